from datetime import datetime
from typing import Optional

from dropstore.models.product import ProductStatus
from dropstore.schemas.base import ORMSchema


class ProductSchema(ORMSchema):
    id: int
    name: str
    description: Optional[str] = None
    price: int
    image_url: Optional[str] = None
    category: Optional[str] = None
    stock: int
    status: ProductStatus
    created_at: Optional[datetime] = None
