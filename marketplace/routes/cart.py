"""Buyer cart routes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, request

from .auth import current_buyer_id, require_buyer
from .responses import success


cart_bp = Blueprint("marketplace_cart", __name__, url_prefix="/api/v1/marketplace/cart")
cart_bp.before_request(require_buyer)


def _components() -> Dict[str, Any]:
    return current_app.extensions["marketplace_components"]


@cart_bp.get("")
def get_cart():
    cart = _components()["cart_service"].get_cart(current_buyer_id())
    return success("Cart fetched successfully", cart)


@cart_bp.post("/add")
def add_to_cart():
    payload = request.get_json(silent=True) or {}
    cart = _components()["cart_service"].add_item(
        buyer_id=current_buyer_id(),
        product_id=payload.get("productId"),
        quantity=payload.get("quantity"),
    )
    return success("Product added to cart successfully", cart)


@cart_bp.put("/item/<item_id>")
def update_cart_item(item_id: str):
    payload = request.get_json(silent=True) or {}
    cart = _components()["cart_service"].update_item_quantity(
        buyer_id=current_buyer_id(),
        item_id=item_id,
        quantity=payload.get("quantity"),
    )
    return success("Cart item updated successfully", cart)


@cart_bp.delete("/item/<item_id>")
def remove_cart_item(item_id: str):
    cart = _components()["cart_service"].remove_item(buyer_id=current_buyer_id(), item_id=item_id)
    return success("Item removed from cart successfully", cart)


@cart_bp.delete("")
def clear_cart():
    _components()["cart_service"].clear(current_buyer_id())
    return success("Cart cleared successfully")
