"""Closed status types for products and orders."""

from enum import Enum


class ProductStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    LOW_STOCK = "LOW_STOCK"
    SOLD_OUT = "SOLD_OUT"

    @property
    def purchasable(self) -> bool:
        return self in PURCHASABLE_STATUSES


PURCHASABLE_STATUSES = (ProductStatus.AVAILABLE, ProductStatus.LOW_STOCK)


class DeliveryType(str, Enum):
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    READY = "READY"
    IN_TRANSIT = "IN_TRANSIT"
    PICKED_UP = "PICKED_UP"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
