from sqlalchemy import (
    Column,
    Integer,
    TIMESTAMP,
    text,
    ForeignKey,
)
from sqlalchemy.orm import relationship
from dropstore.db.base import Base, BigIntId


class OrderItem(Base):
    """订单明细，随订单原子创建，之后不可变"""
    __tablename__ = "order_items"

    id = Column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    order_id = Column(
        BigIntId,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID",
    )

    product_id = Column(
        BigIntId,
        ForeignKey("products.id"),
        nullable=False,
        index=True,
        comment="商品ID",
    )

    # 扣减了哪个 Drop 的限量分配（不属于进行中 Drop 时为空）
    drop_id = Column(
        BigIntId,
        nullable=True,
        comment="占用限量的 Drop ID",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="购买数量",
    )

    unit_price = Column(
        Integer,
        nullable=False,
        comment="下单时单价快照",
    )

    total_price = Column(
        Integer,
        nullable=False,
        comment="unit_price * quantity",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    order = relationship("Order", back_populates="items")

    product = relationship("Product", lazy="joined")

    @property
    def product_name(self) -> str:
        return self.product.name if self.product else "Unknown Product"
