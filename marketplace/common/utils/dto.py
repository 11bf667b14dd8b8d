from typing import Any, Dict, List

from .money import minor_to_major


def _iso(value: Any):
    return value.isoformat() if value is not None else None


def _value(enum_or_str: Any):
    return getattr(enum_or_str, "value", enum_or_str)


def to_cart_item_dto(item: Any) -> Dict:
    product = getattr(item, "product", None)
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": getattr(product, "name", None),
        "quantity": item.quantity,
        "unit_price_minor": item.unit_price_minor,
        "unit_price": minor_to_major(item.unit_price_minor),
        "subtotal_minor": item.subtotal_minor,
        "subtotal": minor_to_major(item.subtotal_minor),
        "currency": item.currency,
    }


def to_cart_dto(cart: Any, buyer_id: str, currency: str) -> Dict:
    items: List[Dict] = [to_cart_item_dto(it) for it in (getattr(cart, "items", None) or [])]
    total_minor = sum(it["subtotal_minor"] for it in items)
    return {
        "id": getattr(cart, "id", None),
        "buyer_id": buyer_id,
        "items": items,
        "total_items": len(items),
        "total_minor": total_minor,
        "total": minor_to_major(total_minor),
        "currency": items[0]["currency"] if items else currency,
    }


def to_order_item_dto(item: Any) -> Dict:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "grade": item.grade,
        "quantity": item.quantity,
        "unit_price_minor": item.unit_price_minor,
        "subtotal_minor": item.subtotal_minor,
    }


def to_order_dto(order: Any) -> Dict:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "pickup_code": order.pickup_code,
        "buyer_id": order.buyer_id,
        "subtotal_minor": order.subtotal_minor,
        "delivery_fee_minor": order.delivery_fee_minor,
        "grand_total_minor": order.grand_total_minor,
        "grand_total": minor_to_major(order.grand_total_minor),
        "currency": order.currency,
        "delivery_address": order.delivery_address,
        "delivery_type": _value(order.delivery_type),
        "payment_method": order.payment_method,
        "payment_status": _value(order.payment_status),
        "payment_reference": order.payment_reference,
        "status": _value(order.status),
        "delivery_status": _value(order.delivery_status),
        "paid_at": _iso(order.paid_at),
        "picked_up_at": _iso(order.picked_up_at),
        "created_at": _iso(order.created_at),
        "items": [to_order_item_dto(it) for it in order.items],
    }
