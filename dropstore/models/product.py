import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    TIMESTAMP,
    text,
    Enum,
    Index,
    CheckConstraint,
)
from dropstore.db.base import Base, BigIntId


class ProductStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class Product(Base):
    __tablename__ = "products"

    id = Column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    name = Column(
        String(100),
        nullable=False,
        comment="商品名称",
    )

    description = Column(Text, nullable=True)

    # 最小货币单位
    price = Column(
        Integer,
        nullable=False,
        comment="商品单价",
    )

    image_url = Column(String(255), nullable=True)

    category = Column(
        String(50),
        nullable=True,
        comment="分类，例如 tee / hoodie",
    )

    stock = Column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="当前可售库存",
    )

    status = Column(
        Enum(
            ProductStatus,
            name="product_status_type",
            values_callable=lambda e: [m.value for m in e],
            create_type=True,
        ),
        nullable=False,
        default=ProductStatus.ACTIVE,
        server_default=ProductStatus.ACTIVE.value,
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
        onupdate=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint(
            "stock >= 0",
            name="ck_products_stock_non_negative",
        ),
    )


# -----------------------------
# 分类浏览
# -----------------------------
Index(
    "idx_products_status_category",
    Product.status,
    Product.category,
)
