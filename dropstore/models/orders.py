import enum

from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    TIMESTAMP,
    text,
    Enum,
    Index,
    ForeignKey,
)
from sqlalchemy.orm import relationship
from dropstore.db.base import Base, BigIntId



# 1️ 订单状态枚举

class OrderStatus(str, enum.Enum):
    PENDING = "pending"        # 待支付
    PAID = "paid"              # 已支付
    FAILED = "failed"          # 支付失败
    CANCELLED = "cancelled"    # 已取消（终态）


# 当前状态 -> 允许的下一状态
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.CANCELLED},
    OrderStatus.FAILED: {OrderStatus.PENDING},
    OrderStatus.CANCELLED: set(),
}



# 2️ 订单表（不删除）

class Order(Base):
    __tablename__ = "orders"

    id = Column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    user_id = Column(
        BigIntId,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="下单用户",
    )

    order_number = Column(
        String(50),
        nullable=False,
        unique=True,
        comment="对外展示的订单号",
    )

    # 创建时计算一次，之后不再重算
    total_amount = Column(
        Integer,
        nullable=False,
        comment="订单总额",
    )

    status = Column(
        Enum(
            OrderStatus,
            name="order_status_type",
            values_callable=lambda e: [m.value for m in e],
            create_type=True,
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        server_default=OrderStatus.PENDING.value,
        comment="订单状态",
    )

    payment_method = Column(String(50), nullable=True)

    payment_key = Column(
        String(255),
        nullable=True,
        comment="支付渠道回调的交易标识",
    )

    ordered_at = Column(DateTime, nullable=False)

    paid_at = Column(DateTime, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    shipment = relationship(
        "Shipment",
        back_populates="order",
        uselist=False,
    )



# 3️ 用户订单列表（按时间倒序）

Index(
    "idx_orders_user_ordered_desc",
    Order.user_id,
    Order.ordered_at.desc(),
)
