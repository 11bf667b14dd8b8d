from typing import Any

from ..errors import InvalidQuantity, ValidationError
from ..models.status import DeliveryStatus, DeliveryType


def ensure_positive_quantity(value: Any) -> int:
    if value is None or isinstance(value, bool):
        raise InvalidQuantity(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidQuantity(value)
        value = int(value)
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise InvalidQuantity(value)
    if quantity <= 0:
        raise InvalidQuantity(value)
    return quantity


def ensure_text(value: Any, field: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def parse_delivery_type(value: Any) -> DeliveryType:
    try:
        return DeliveryType(str(value or "").strip().upper())
    except ValueError:
        raise ValidationError("deliveryType must be one of: PICKUP, DELIVERY")


def parse_delivery_status(value: Any) -> DeliveryStatus:
    try:
        return DeliveryStatus(str(value or "").strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in DeliveryStatus)
        raise ValidationError(f"deliveryStatus must be one of: {allowed}")
