# dropstore/schemas/order.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from dropstore.core.config import settings
from dropstore.models.orders import OrderStatus
from dropstore.models.shipments import ShipmentStatus
from dropstore.schemas.base import ORMSchema


# ==================== 请求模型 ====================

class OrderItemRequest(BaseModel):
    product_id: int = Field(..., gt=0, description="商品ID")
    quantity: int = Field(..., gt=0, le=settings.ORDER_ITEM_MAX_QUANTITY, description="购买数量")


# 创建订单请求（空列表交给 Service 返回 BAD_REQUEST）
class CreateOrderRequest(BaseModel):
    items: List[OrderItemRequest]


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus


class ShipmentRequest(BaseModel):
    recipient_name: str = Field(..., min_length=1, max_length=100)
    recipient_phone: str = Field(..., min_length=1, max_length=20)
    address: str = Field(..., min_length=1, max_length=255)
    address_detail: Optional[str] = Field(None, max_length=255)
    postal_code: str = Field(..., min_length=1, max_length=10)


class UpdateShipmentStatusRequest(BaseModel):
    status: ShipmentStatus
    tracking_number: Optional[str] = Field(None, max_length=50)
    shipping_company: Optional[str] = Field(None, max_length=50)


class PaymentResultRequest(BaseModel):
    """支付渠道回调（由网关转换后调用）"""
    order_number: str = Field(..., min_length=1, max_length=50)
    success: bool
    payment_key: Optional[str] = Field(None, max_length=255)
    payment_method: Optional[str] = Field(None, max_length=50)


# ==================== 响应模型 ====================

class CreateOrderResponse(BaseModel):
    order_id: int
    order_number: str
    total_amount: int
    item_count: int


class OrderItemSchema(ORMSchema):
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: int
    total_price: int


class OrderSchema(ORMSchema):
    id: int
    user_id: int
    order_number: str
    total_amount: int
    status: OrderStatus
    payment_method: Optional[str] = None
    ordered_at: datetime
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class OrderDetailSchema(OrderSchema):
    items: List[OrderItemSchema] = []


class OrderListResponse(BaseModel):
    orders: List[OrderSchema]
    page: int
    limit: int
    total: int


class ShipmentSchema(ORMSchema):
    id: int
    order_id: int
    recipient_name: str
    recipient_phone: str
    address: str
    address_detail: Optional[str] = None
    postal_code: str
    status: ShipmentStatus
    tracking_number: Optional[str] = None
    shipping_company: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class PaymentRequestSchema(BaseModel):
    order_id: int
    order_number: str
    amount: int
    order_name: str
    customer_name: Optional[str] = None
