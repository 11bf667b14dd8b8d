from .base import Base
from .cart import Cart, CartItem
from .order import Order, OrderItem, PaymentAttempt
from .product import Product
from .status import (
    PURCHASABLE_STATUSES,
    DeliveryStatus,
    DeliveryType,
    OrderStatus,
    PaymentStatus,
    ProductStatus,
)

__all__ = [
    "Base",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "PaymentAttempt",
    "Product",
    "PURCHASABLE_STATUSES",
    "DeliveryStatus",
    "DeliveryType",
    "OrderStatus",
    "PaymentStatus",
    "ProductStatus",
]
