"""Checkout and buyer order routes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, request

from ..common.errors import ValidationError
from .auth import current_buyer_id, require_buyer
from .responses import success


orders_bp = Blueprint("marketplace_orders", __name__, url_prefix="/api/v1/marketplace")
orders_bp.before_request(require_buyer)


def _components() -> Dict[str, Any]:
    return current_app.extensions["marketplace_components"]


@orders_bp.post("/checkout")
def checkout():
    payload = request.get_json(silent=True) or {}
    order = _components()["order_service"].checkout(
        buyer_id=current_buyer_id(),
        delivery_address=payload.get("deliveryAddress"),
        delivery_type=payload.get("deliveryType"),
    )
    return success("Order created successfully", order, 201)


@orders_bp.get("/orders")
def list_orders():
    result = _components()["order_service"].list_orders(
        buyer_id=current_buyer_id(),
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("limit", 10, type=int),
    )
    return success("Orders fetched successfully", result)


@orders_bp.get("/orders/<order_id>")
def get_order(order_id: str):
    order = _components()["order_service"].get_order(order_id=order_id, buyer_id=current_buyer_id())
    return success("Order details fetched successfully", order)


@orders_bp.post("/orders/<order_id>/verify-pickup")
def verify_pickup(order_id: str):
    payload = request.get_json(silent=True) or {}
    code = str(payload.get("pickupCode") or "").strip()
    if not code:
        raise ValidationError("pickupCode is required")
    result = _components()["order_state"].verify_pickup(
        order_id=order_id,
        buyer_id=current_buyer_id(),
        pickup_code=code,
    )
    return success("Order marked as picked up", result)
