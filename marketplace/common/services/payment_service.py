from enum import Enum
from typing import Callable, Dict, Optional
from sqlalchemy import update

from ..db.session import Database
from ..errors import (
    AlreadyPaid,
    AmountMismatch,
    CurrencyMismatch,
    InvalidTransition,
    OrderNotFound,
    PaymentInitializationFailed,
    PaymentNotSuccessful,
    PaymentProviderError,
    ValidationError,
)
from ..models.order import Order, PaymentAttempt
from ..models.status import OrderStatus, PaymentStatus
from ..utils.identifiers import generate_payment_reference
from ..utils.money import to_minor_units
from .logging import log_event
from .order_state import OrderStateMachine
from .paystack_client import PaystackClient

DEFAULT_CALLBACK_URL = "marketplace://payment/callback"


class VerifyOutcome(str, Enum):
    CONFIRMED = "CONFIRMED"
    ALREADY_PAID = "ALREADY_PAID"


class PaymentService:
    """Payment initialization and reconciliation.

    ``verify`` is the single reconciliation path for both the buyer-driven
    verify call and the provider webhook. The provider is always called with
    no database session open.
    """

    def __init__(
        self,
        db: Database,
        client: PaystackClient,
        state: Optional[OrderStateMachine] = None,
        *,
        default_callback_url: str = DEFAULT_CALLBACK_URL,
        on_paid: Optional[Callable[[Dict], None]] = None,
    ):
        self._db = db
        self._client = client
        self._state = state or OrderStateMachine(db)
        self._default_callback_url = default_callback_url
        self._on_paid = on_paid

    def initialize(
        self,
        *,
        order_id: str,
        buyer_id: Optional[str],
        payer_email: str,
        callback_url: Optional[str] = None,
    ) -> Dict:
        with self._db.session() as session:
            q = session.query(Order).filter(Order.id == order_id)
            if buyer_id is not None:
                q = q.filter(Order.buyer_id == buyer_id)
            order = q.first()
            if order is None:
                raise OrderNotFound(order_id)
            if order.payment_status == PaymentStatus.PAID:
                raise AlreadyPaid()
            if order.payment_status == PaymentStatus.FAILED:
                raise InvalidTransition("payment for this order has failed; place a new order")
            if order.status != OrderStatus.PENDING:
                raise InvalidTransition(f"order is {order.status.value} and cannot be paid")
            amount_minor = order.grand_total_minor
            currency = order.currency

        reference = generate_payment_reference()
        callback = callback_url or self._default_callback_url
        try:
            data = self._client.initialize_transaction(
                email=payer_email,
                amount=amount_minor,
                reference=reference,
                callback_url=callback,
                currency=currency,
            )
        except PaymentProviderError as exc:
            log_event("warning", "payment.initialize_failed", order_id=order_id, error=exc.message)
            raise PaymentInitializationFailed(exc.message) from exc

        with self._db.session() as session:
            result = session.execute(
                update(Order)
                .where(
                    Order.id == order_id,
                    Order.payment_status == PaymentStatus.PENDING,
                    Order.status == OrderStatus.PENDING,
                )
                .values(payment_reference=reference)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # paid or cancelled while this reference was being created
                current = session.get(Order, order_id)
                if current is not None and current.payment_status == PaymentStatus.PAID:
                    raise AlreadyPaid()
                raise InvalidTransition("order can no longer be paid")
            session.add(
                PaymentAttempt(
                    reference=reference,
                    order_id=order_id,
                    amount_minor=amount_minor,
                    currency=currency,
                )
            )

        log_event("info", "payment.initialized", order_id=order_id, reference=reference, amount_minor=amount_minor)
        return {
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
            "reference": reference,
        }

    def verify(self, reference: str) -> VerifyOutcome:
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("payment reference is required")

        order = self._load_by_reference(reference)
        if order["payment_status"] == PaymentStatus.PAID:
            log_event("info", "payment.already_reconciled", order_id=order["id"], reference=reference)
            return VerifyOutcome.ALREADY_PAID

        data = self._client.verify_transaction(reference)

        provider_status = data.get("status")
        if provider_status != "success":
            if provider_status == "failed" and self._state.mark_payment_failed(order["id"]):
                log_event("warning", "payment.failed", order_id=order["id"], reference=reference)
            raise PaymentNotSuccessful(provider_status)

        paid_minor = to_minor_units(data.get("amount"))
        if paid_minor != order["grand_total_minor"]:
            raise AmountMismatch(order["grand_total_minor"], paid_minor)
        currency = str(data.get("currency") or "").upper()
        if currency != order["currency"]:
            raise CurrencyMismatch(order["currency"], currency or None)

        if not self._state.mark_paid(order["id"]):
            log_event("info", "payment.already_reconciled", order_id=order["id"], reference=reference)
            return VerifyOutcome.ALREADY_PAID

        log_event(
            "info",
            "payment.confirmed",
            order_id=order["id"],
            order_number=order["order_number"],
            reference=reference,
            amount_minor=paid_minor,
            channel=data.get("channel"),
        )
        if self._on_paid is not None:
            self._on_paid(dict(order, reference=reference))
        return VerifyOutcome.CONFIRMED

    def _load_by_reference(self, reference: str) -> Dict:
        with self._db.session() as session:
            # any reference ever issued for the order, not only the latest
            order = (
                session.query(Order)
                .join(PaymentAttempt, PaymentAttempt.order_id == Order.id)
                .filter(PaymentAttempt.reference == reference)
                .first()
            )
            if order is None:
                raise OrderNotFound()
            return {
                "id": order.id,
                "order_number": order.order_number,
                "buyer_id": order.buyer_id,
                "payment_status": order.payment_status,
                "grand_total_minor": order.grand_total_minor,
                "currency": order.currency,
            }
