"""Drop 相关的请求 / 响应模型"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from dropstore.models.drop import DropStatus
from dropstore.schemas.base import ORMSchema, require_full_timestamp
from dropstore.schemas.product import ProductSchema


# ==================== 请求模型 ====================

class DropCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Drop 名称")
    description: Optional[str] = None
    start_date: datetime = Field(..., description="开始时间")
    end_date: datetime = Field(..., description="结束时间")
    banner_url: Optional[str] = Field(None, max_length=255)
    is_pinned: bool = False

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def check_full_timestamp(cls, value):
        return require_full_timestamp(value)


class DropUpdateRequest(BaseModel):
    """部分更新：只处理显式提供的字段"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[DropStatus] = None
    is_pinned: Optional[bool] = None
    banner_url: Optional[str] = Field(None, max_length=255)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def check_full_timestamp(cls, value):
        return require_full_timestamp(value)


class TogglePinRequest(BaseModel):
    is_pinned: bool


class AddDropProductRequest(BaseModel):
    product_id: int = Field(..., gt=0, description="商品ID")
    limited_quantity: int = Field(..., gt=0, description="限量数量")


class UpdateDropProductQuantityRequest(BaseModel):
    limited_quantity: int = Field(..., gt=0, description="新的限量数量")


# ==================== 响应模型 ====================

class DropSchema(ORMSchema):
    id: int
    name: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    status: DropStatus
    banner_url: Optional[str] = None
    is_pinned: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DropListResponse(BaseModel):
    items: List[DropSchema]
    total: int
    limit: int
    offset: int


class AllocationSchema(ORMSchema):
    drop_id: int
    product_id: int
    limited_quantity: int
    sold_quantity: int
    remaining_quantity: int


class DropProductSchema(ORMSchema):
    """商品 + 限量分配（字段来源分开，不做合并）"""
    product: ProductSchema
    allocation: AllocationSchema


class CountdownSchema(BaseModel):
    drop_id: int
    drop_name: str
    end_time: datetime
    remaining_ms: int
    days: int
    hours: int
    minutes: int
    seconds: int
    is_ended: bool


class DropProductStats(BaseModel):
    product_id: int
    product_name: str
    limited_quantity: int
    sold_quantity: int
    remaining_quantity: int
    sold_percentage: float


class DropStatsSchema(BaseModel):
    drop_id: int
    drop_name: str
    total_products: int
    total_sold: int
    total_limited: int
    sold_percentage: float
    products: List[DropProductStats]
