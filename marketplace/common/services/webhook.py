"""Paystack webhook handling.

The signature is checked over the exact bytes received, before any parsing.
Recognised events funnel into ``PaymentService.verify`` so a webhook and a
buyer-driven verify reconcile through the same code. Providers retry
webhooks, so duplicates and reconciliation failures are acknowledged rather
than reported as errors.
"""

import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Optional

from ..errors import MarketplaceError, ValidationError, WebhookSignatureInvalid
from .logging import log_event
from .payment_service import PaymentService, VerifyOutcome

SIGNATURE_HEADER = "x-paystack-signature"
CHARGE_SUCCESS = "charge.success"


@dataclass
class WebhookResult:
    status: str  # processed | duplicate | ignored | acknowledged
    event: Optional[str] = None
    reference: Optional[str] = None


def compute_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


class WebhookReconciler:
    def __init__(self, secret_key: str, payments: PaymentService):
        self._secret_key = secret_key or ""
        self._payments = payments

    def signature_valid(self, raw_body: bytes, signature: Optional[str]) -> bool:
        # without a secret any signature would be forgeable
        if not self._secret_key or not signature:
            return False
        expected = compute_signature(self._secret_key, raw_body)
        return hmac.compare_digest(expected.encode("ascii"), signature.strip().lower().encode("utf-8"))

    def handle(self, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        if not self.signature_valid(raw_body, signature):
            log_event("warning", "payment.webhook_rejected", reason="invalid signature", size=len(raw_body or b""))
            raise WebhookSignatureInvalid()

        try:
            event = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("invalid payload")
        if not isinstance(event, dict):
            raise ValidationError("invalid payload")

        name = event.get("event")
        data = event.get("data") if isinstance(event.get("data"), dict) else {}
        reference = data.get("reference")
        log_event("info", "payment.webhook_received", webhook_event=name, reference=reference)

        if name != CHARGE_SUCCESS or data.get("status") != "success" or not reference:
            log_event("info", "payment.webhook_ignored", webhook_event=name, reference=reference)
            return WebhookResult("ignored", name, reference)

        try:
            outcome = self._payments.verify(str(reference))
        except MarketplaceError as exc:
            log_event(
                "error",
                "payment.reconcile_failed",
                reference=reference,
                error=exc.message,
                error_type=type(exc).__name__,
            )
            return WebhookResult("acknowledged", name, reference)

        if outcome == VerifyOutcome.ALREADY_PAID:
            log_event("info", "payment.webhook_duplicate", reference=reference)
            return WebhookResult("duplicate", name, reference)
        return WebhookResult("processed", name, reference)
