"""Drop 管理 API（仅管理员）"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query, Body
import logging

from dropstore.core.dependencies import DropServiceDep, AdminDep
from dropstore.core.exceptions import InternalError
from dropstore.core.security import Principal
from dropstore.models.drop import DropStatus
from dropstore.schemas.drop import (
    DropCreateRequest,
    DropUpdateRequest,
    TogglePinRequest,
    AddDropProductRequest,
    UpdateDropProductQuantityRequest,
    DropSchema,
    DropListResponse,
    AllocationSchema,
    DropStatsSchema,
)
from dropstore.services.drop_service import DropService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/admin/drops",
    tags=["Drop 管理"],
    responses={
        400: {"description": "请求参数错误"},
        401: {"description": "未登录"},
        403: {"description": "需要管理员权限"},
        404: {"description": "资源未找到"},
        409: {"description": "状态冲突"},
        422: {"description": "请求验证失败"},
        500: {"description": "服务器内部错误"}
    }
)


@router.get("", summary="Drop 列表（分页、按状态过滤）")
def list_drops(
    status: Optional[DropStatus] = Query(None, description="状态过滤"),
    limit: int = Query(20, ge=1, le=100, description="每页数量"),
    offset: int = Query(0, ge=0, description="偏移量"),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        items, total = service.list_drops(status=status, limit=limit, offset=offset)
        return {
            "success": True,
            "data": DropListResponse(
                items=[DropSchema.model_validate(d) for d in items],
                total=total,
                limit=limit,
                offset=offset,
            )
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询 Drop 列表失败: {str(e)}")
        raise InternalError("Failed to fetch drops")


@router.post(
    "",
    status_code=201,
    summary="创建 Drop",
    description="""创建一个新的 Drop，初始状态为 upcoming。

    **校验：**
    - 名称不能为空
    - start_date 必须早于 end_date
    """
)
def create_drop(
    request: DropCreateRequest = Body(...),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        drop = service.create_drop(
            name=request.name,
            description=request.description,
            start_date=request.start_date,
            end_date=request.end_date,
            banner_url=request.banner_url,
            is_pinned=request.is_pinned,
        )
        return {"success": True, "message": "创建成功", "data": DropSchema.model_validate(drop)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"创建 Drop 失败: {str(e)}")
        raise InternalError("Failed to create drop")


@router.patch("/{drop_id}", summary="更新 Drop（部分字段）")
def update_drop(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    request: DropUpdateRequest = Body(...),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        drop = service.update_drop(drop_id, **request.model_dump(exclude_unset=True))
        return {"success": True, "message": "更新成功", "data": DropSchema.model_validate(drop)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新 Drop 失败: drop_id={drop_id}, error={str(e)}")
        raise InternalError("Failed to update drop")


@router.put("/{drop_id}/pin", summary="置顶 / 取消置顶")
def toggle_pin(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    request: TogglePinRequest = Body(...),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        drop = service.toggle_pin(drop_id, request.is_pinned)
        return {"success": True, "data": DropSchema.model_validate(drop)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"置顶 Drop 失败: drop_id={drop_id}, error={str(e)}")
        raise InternalError("Failed to update drop")


@router.delete(
    "/{drop_id}",
    summary="删除 Drop",
    description="""硬删除 Drop 及其全部限量分配。

    **注意：**
    - 进行中（active）的 Drop 不能删除，返回 409
    """
)
def delete_drop(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        service.delete_drop(drop_id)
        return {"success": True, "message": "删除成功"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"删除 Drop 失败: drop_id={drop_id}, error={str(e)}")
        raise InternalError("Failed to delete drop")


@router.post("/{drop_id}/products", status_code=201, summary="向 Drop 添加限量商品")
def add_product(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    request: AddDropProductRequest = Body(...),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        allocation = service.add_product(drop_id, request.product_id, request.limited_quantity)
        return {"success": True, "message": "添加成功", "data": AllocationSchema.model_validate(allocation)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"添加 Drop 商品失败: drop_id={drop_id}, error={str(e)}")
        raise InternalError("Failed to add product to drop")


@router.delete("/{drop_id}/products/{product_id}", summary="从 Drop 移除商品")
def remove_product(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    product_id: int = Path(..., gt=0, description="商品ID"),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        service.remove_product(drop_id, product_id)
        return {"success": True, "message": "移除成功"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"移除 Drop 商品失败: drop_id={drop_id}, product_id={product_id}, error={str(e)}")
        raise InternalError("Failed to remove product from drop")


@router.patch("/{drop_id}/products/{product_id}", summary="调整商品限量")
def update_product_quantity(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    product_id: int = Path(..., gt=0, description="商品ID"),
    request: UpdateDropProductQuantityRequest = Body(...),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        allocation = service.resize_product_quantity(drop_id, product_id, request.limited_quantity)
        return {"success": True, "message": "更新成功", "data": AllocationSchema.model_validate(allocation)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"调整限量失败: drop_id={drop_id}, product_id={product_id}, error={str(e)}")
        raise InternalError("Failed to update product quantity")


@router.get("/{drop_id}/stats", summary="Drop 销售统计")
def get_stats(
    drop_id: int = Path(..., gt=0, description="Drop ID"),
    admin: Principal = AdminDep,
    service: DropService = DropServiceDep
):
    try:
        return {"success": True, "data": DropStatsSchema(**service.get_stats(drop_id))}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询 Drop 统计失败: drop_id={drop_id}, error={str(e)}")
        raise InternalError("Failed to fetch drop stats")
