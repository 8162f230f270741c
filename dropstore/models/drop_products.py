from sqlalchemy import (
    Column,
    Integer,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    TIMESTAMP,
    text,
)
from dropstore.db.base import Base, BigIntId


class DropProduct(Base):
    """Drop 内商品的限量分配

    remaining_quantity 是派生值，不落库。
    """
    __tablename__ = "drop_products"

    id = Column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    drop_id = Column(
        BigIntId,
        ForeignKey("drops.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Drop ID",
    )

    product_id = Column(
        BigIntId,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="商品ID",
    )

    limited_quantity = Column(
        Integer,
        nullable=False,
        comment="限量数量",
    )

    sold_quantity = Column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="已售数量",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    @property
    def remaining_quantity(self) -> int:
        return self.limited_quantity - self.sold_quantity

    __table_args__ = (
        # 同一 Drop 同一商品只能分配一次
        UniqueConstraint(
            "drop_id",
            "product_id",
            name="uq_drop_product",
        ),
        CheckConstraint(
            "sold_quantity >= 0",
            name="ck_sold_quantity_non_negative",
        ),
        CheckConstraint(
            "sold_quantity <= limited_quantity",
            name="ck_sold_within_limit",
        ),
        CheckConstraint(
            "limited_quantity > 0",
            name="ck_limited_quantity_positive",
        ),
    )
