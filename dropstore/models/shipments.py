import enum

from sqlalchemy import (
    Column,
    String,
    DateTime,
    TIMESTAMP,
    text,
    Enum,
    ForeignKey,
)
from sqlalchemy.orm import relationship
from dropstore.db.base import Base, BigIntId



# 1️ 物流状态枚举（与订单支付状态相互独立）

class ShipmentStatus(str, enum.Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    RETURNED = "returned"


SHIPMENT_TRANSITIONS = {
    ShipmentStatus.PENDING: {ShipmentStatus.PREPARING},
    ShipmentStatus.PREPARING: {ShipmentStatus.SHIPPED},
    ShipmentStatus.SHIPPED: {ShipmentStatus.DELIVERED, ShipmentStatus.RETURNED},
    ShipmentStatus.DELIVERED: {ShipmentStatus.RETURNED},
    ShipmentStatus.RETURNED: set(),
}



# 2️ 物流表（每个订单至多一条）

class Shipment(Base):
    __tablename__ = "shipments"

    id = Column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    order_id = Column(
        BigIntId,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="订单ID",
    )

    recipient_name = Column(String(100), nullable=False)

    recipient_phone = Column(String(20), nullable=False)

    address = Column(String(255), nullable=False)

    address_detail = Column(String(255), nullable=True)

    postal_code = Column(String(10), nullable=False)

    status = Column(
        Enum(
            ShipmentStatus,
            name="shipment_status_type",
            values_callable=lambda e: [m.value for m in e],
            create_type=True,
        ),
        nullable=False,
        default=ShipmentStatus.PENDING,
        server_default=ShipmentStatus.PENDING.value,
        comment="物流状态",
    )

    tracking_number = Column(String(50), nullable=True)

    shipping_company = Column(String(50), nullable=True)

    shipped_at = Column(DateTime, nullable=True)

    delivered_at = Column(DateTime, nullable=True)

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

    order = relationship("Order", back_populates="shipment")
