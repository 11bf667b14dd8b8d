"""Operator routes: order overview and delivery status changes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, request

from ..common.utils.validators import parse_delivery_status
from .auth import require_admin
from .responses import success


admin_bp = Blueprint("marketplace_admin", __name__, url_prefix="/api/v1/admin")
admin_bp.before_request(require_admin)


def _components() -> Dict[str, Any]:
    return current_app.extensions["marketplace_components"]


@admin_bp.get("/orders")
def list_all_orders():
    result = _components()["order_service"].list_orders(
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("limit", 20, type=int),
    )
    return success("Orders fetched successfully", result)


@admin_bp.put("/orders/<order_id>/delivery-status")
def update_delivery_status(order_id: str):
    payload = request.get_json(silent=True) or {}
    target = parse_delivery_status(payload.get("deliveryStatus"))
    order = _components()["order_state"].update_delivery_status(order_id, target)
    return success("Delivery status updated successfully", order)
