"""Payment initialize / verify routes and the provider webhook."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from ..common.services.webhook import SIGNATURE_HEADER
from .auth import current_buyer_id, payer_email, require_buyer
from .responses import success


payment_bp = Blueprint("marketplace_payment", __name__, url_prefix="/api/v1/marketplace/payment")
webhook_bp = Blueprint("marketplace_webhook", __name__, url_prefix="/api/v1/marketplace/payment")
payment_bp.before_request(require_buyer)


def _components() -> Dict[str, Any]:
    return current_app.extensions["marketplace_components"]


@payment_bp.post("/initialize/<order_id>")
def initialize_payment(order_id: str):
    payload = request.get_json(silent=True) or {}
    result = _components()["payment_service"].initialize(
        order_id=order_id,
        buyer_id=current_buyer_id(),
        payer_email=payer_email(),
        callback_url=(payload.get("callbackUrl") or "").strip() or None,
    )
    return success("Payment initialized successfully", result)


@payment_bp.get("/verify/<reference>")
def verify_payment(reference: str):
    _components()["payment_service"].verify(reference)
    return success("Payment verified successfully")


@webhook_bp.post("/webhook")
def paystack_webhook():
    # exact bytes as received; the signature covers them, not a re-serialisation
    raw_body = request.get_data(cache=False)
    result = _components()["webhook_reconciler"].handle(raw_body, request.headers.get(SIGNATURE_HEADER))
    status = "success" if result.status in ("processed", "duplicate", "ignored") else "acknowledged"
    return jsonify({"status": status}), 200
