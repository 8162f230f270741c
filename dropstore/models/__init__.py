# Models
from .user import User, UserRole
from .product import Product, ProductStatus
from .drop import Drop, DropStatus
from .drop_products import DropProduct
from .orders import Order, OrderStatus, ORDER_TRANSITIONS
from .order_items import OrderItem
from .shipments import Shipment, ShipmentStatus, SHIPMENT_TRANSITIONS

__all__ = [
    "User",
    "UserRole",
    "Product",
    "ProductStatus",
    "Drop",
    "DropStatus",
    "DropProduct",
    "Order",
    "OrderStatus",
    "ORDER_TRANSITIONS",
    "OrderItem",
    "Shipment",
    "ShipmentStatus",
    "SHIPMENT_TRANSITIONS",
]
