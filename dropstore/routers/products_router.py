"""商品目录 API（公开）"""

from fastapi import APIRouter, HTTPException, Path
import logging

from dropstore.core.dependencies import CatalogServiceDep
from dropstore.core.exceptions import InternalError
from dropstore.schemas.product import ProductSchema
from dropstore.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/products",
    tags=["商品"],
    responses={
        422: {"description": "请求验证失败"},
        500: {"description": "服务器内部错误"}
    }
)


@router.get("", summary="上架商品列表")
def list_products(service: CatalogService = CatalogServiceDep):
    try:
        products = service.list_products()
        return {
            "success": True,
            "data": [ProductSchema.model_validate(p) for p in products]
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询商品列表失败: {str(e)}")
        raise InternalError("Failed to fetch products")


@router.get("/category/{category}", summary="按分类查询商品")
def get_products_by_category(
    category: str = Path(..., min_length=1, max_length=50, description="分类，例如 tee / hoodie"),
    service: CatalogService = CatalogServiceDep
):
    try:
        products = service.get_products_by_category(category)
        return {
            "success": True,
            "data": [ProductSchema.model_validate(p) for p in products]
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"按分类查询商品失败: {str(e)}")
        raise InternalError("Failed to fetch products")


@router.get("/{product_id}", summary="商品详情")
def get_product(
    product_id: int = Path(..., gt=0, description="商品ID"),
    service: CatalogService = CatalogServiceDep
):
    """不存在时 data 为 null"""
    try:
        product = service.get_product(product_id)
        return {
            "success": True,
            "data": ProductSchema.model_validate(product) if product else None
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询商品失败: product_id={product_id}, error={str(e)}")
        raise InternalError("Failed to fetch product")
