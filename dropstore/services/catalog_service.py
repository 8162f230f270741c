"""商品目录（只读）"""

from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from dropstore.models.product import Product, ProductStatus

logger = logging.getLogger(__name__)


class CatalogService:
    """商品只读查询，每次都直接读库，不做缓存"""

    def __init__(self, db: Session):
        self.db = db

    def list_products(self) -> List[Product]:
        """所有上架商品"""
        stmt = (
            select(Product)
            .where(Product.status == ProductStatus.ACTIVE)
            .order_by(Product.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.db.execute(
            select(Product).where(Product.id == product_id)
        ).scalar_one_or_none()

    def get_products_by_category(self, category: str) -> List[Product]:
        stmt = (
            select(Product)
            .where(
                Product.status == ProductStatus.ACTIVE,
                Product.category == category,
            )
            .order_by(Product.id)
        )
        products = list(self.db.execute(stmt).scalars().all())
        logger.debug(f"Category {category}: {len(products)} products")
        return products
