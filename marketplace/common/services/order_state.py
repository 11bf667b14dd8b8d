"""Order lifecycle: payment and delivery status transitions.

The transition tables below are the only place legal moves are defined.
Every write is a compare-and-set ``UPDATE ... WHERE <current state>`` so two
requests racing on the same order cannot both apply a transition; the loser
sees zero affected rows.
"""

from typing import Dict, FrozenSet, Mapping, Optional
from sqlalchemy import update

from ..db.session import Database
from ..errors import InvalidPickupCode, InvalidTransition, OrderNotFound
from ..models.base import utcnow
from ..models.order import Order
from ..models.status import DeliveryStatus, DeliveryType, OrderStatus, PaymentStatus
from ..utils.dto import to_order_dto
from ..utils.identifiers import normalize_pickup_code
from .logging import log_event


PAYMENT_TRANSITIONS: Mapping[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

DELIVERY_TRANSITIONS: Mapping[DeliveryStatus, FrozenSet[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset(
        {
            DeliveryStatus.READY,
            DeliveryStatus.IN_TRANSIT,
            DeliveryStatus.PICKED_UP,
            DeliveryStatus.CANCELLED,
            DeliveryStatus.FAILED,
        }
    ),
    DeliveryStatus.READY: frozenset(
        {DeliveryStatus.IN_TRANSIT, DeliveryStatus.PICKED_UP, DeliveryStatus.CANCELLED, DeliveryStatus.FAILED}
    ),
    DeliveryStatus.IN_TRANSIT: frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.FAILED}),
    DeliveryStatus.PICKED_UP: frozenset(),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.CANCELLED: frozenset(),
    DeliveryStatus.FAILED: frozenset(),
}

# Delivery progress that only makes sense once the buyer has paid.
REQUIRES_PAYMENT = frozenset(
    {DeliveryStatus.READY, DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED, DeliveryStatus.PICKED_UP}
)
DELIVERY_ONLY = frozenset({DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED})

# Order status implied by entering a delivery status.
_ORDER_STATUS_ON_DELIVERY: Dict[DeliveryStatus, OrderStatus] = {
    DeliveryStatus.CANCELLED: OrderStatus.CANCELLED,
    DeliveryStatus.DELIVERED: OrderStatus.COMPLETED,
    DeliveryStatus.PICKED_UP: OrderStatus.COMPLETED,
}

ACTIVE_DELIVERY_STATUSES = frozenset(s for s, nxt in DELIVERY_TRANSITIONS.items() if nxt)


def ensure_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    current, target = PaymentStatus(current), PaymentStatus(target)
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransition(f"payment status cannot change from {current.value} to {target.value}")


def ensure_delivery_transition(
    current: DeliveryStatus,
    target: DeliveryStatus,
    *,
    payment_status: PaymentStatus,
    delivery_type: DeliveryType,
) -> None:
    current, target = DeliveryStatus(current), DeliveryStatus(target)
    if current == target:
        raise InvalidTransition(f"order is already {current.value}")
    if target not in DELIVERY_TRANSITIONS[current]:
        raise InvalidTransition(f"delivery status cannot change from {current.value} to {target.value}")
    if target in REQUIRES_PAYMENT and PaymentStatus(payment_status) != PaymentStatus.PAID:
        raise InvalidTransition("order not paid")
    if target in DELIVERY_ONLY and DeliveryType(delivery_type) != DeliveryType.DELIVERY:
        raise InvalidTransition("this order is for pickup, not delivery")
    if target == DeliveryStatus.PICKED_UP and DeliveryType(delivery_type) != DeliveryType.PICKUP:
        raise InvalidTransition("this order is for delivery, not pickup")


class OrderStateMachine:
    def __init__(self, db: Database):
        self._db = db

    def mark_paid(self, order_id: str) -> bool:
        """PENDING -> PAID and order status -> CONFIRMED, at most once.

        Returns True only for the caller whose update applied the transition.
        Raises InvalidTransition if the order can no longer be paid.
        """
        with self._db.session() as session:
            result = session.execute(
                update(Order)
                .where(
                    Order.id == order_id,
                    Order.payment_status == PaymentStatus.PENDING,
                    Order.status == OrderStatus.PENDING,
                )
                .values(
                    payment_status=PaymentStatus.PAID,
                    status=OrderStatus.CONFIRMED,
                    paid_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return True
            order = session.get(Order, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            if order.payment_status == PaymentStatus.PAID:
                return False
            if order.payment_status == PaymentStatus.PENDING:
                raise InvalidTransition(f"order is {order.status.value} and cannot be paid")
            ensure_payment_transition(order.payment_status, PaymentStatus.PAID)
            return False

    def mark_payment_failed(self, order_id: str) -> bool:
        with self._db.session() as session:
            result = session.execute(
                update(Order)
                .where(Order.id == order_id, Order.payment_status == PaymentStatus.PENDING)
                .values(payment_status=PaymentStatus.FAILED)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def update_delivery_status(self, order_id: str, target) -> Dict:
        """Operator-driven delivery transition. PICKED_UP goes through verify_pickup."""
        target = DeliveryStatus(target)
        if target == DeliveryStatus.PICKED_UP:
            raise InvalidTransition("pickup must be confirmed with the buyer's pickup code")
        with self._db.session() as session:
            order = session.get(Order, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            ensure_delivery_transition(
                order.delivery_status,
                target,
                payment_status=order.payment_status,
                delivery_type=order.delivery_type,
            )
            self._apply_delivery(session, order, target)
            log_event(
                "info",
                "order.delivery_status_changed",
                order_id=order.id,
                from_status=order.delivery_status.value,
                to_status=target.value,
            )
            session.refresh(order)
            return to_order_dto(order)

    def verify_pickup(self, *, order_id: str, buyer_id: Optional[str], pickup_code: str) -> Dict:
        with self._db.session() as session:
            q = session.query(Order).filter(Order.id == order_id)
            if buyer_id is not None:
                q = q.filter(Order.buyer_id == buyer_id)
            order = q.first()
            if order is None:
                raise OrderNotFound(order_id)
            if order.payment_status != PaymentStatus.PAID:
                raise InvalidTransition("order not paid")
            if order.delivery_type != DeliveryType.PICKUP:
                raise InvalidTransition("this order is for delivery, not pickup")
            if not order.pickup_code or normalize_pickup_code(pickup_code) != order.pickup_code:
                raise InvalidPickupCode()
            if order.delivery_status == DeliveryStatus.PICKED_UP:
                raise InvalidTransition("order already picked up")
            ensure_delivery_transition(
                order.delivery_status,
                DeliveryStatus.PICKED_UP,
                payment_status=order.payment_status,
                delivery_type=order.delivery_type,
            )
            picked_up_at = utcnow()
            self._apply_delivery(session, order, DeliveryStatus.PICKED_UP, picked_up_at=picked_up_at)
            log_event("info", "order.picked_up", order_id=order.id, order_number=order.order_number)
            return {"delivery_status": DeliveryStatus.PICKED_UP.value, "picked_up_at": picked_up_at.isoformat()}

    @staticmethod
    def _apply_delivery(session, order: Order, target: DeliveryStatus, **extra) -> None:
        values = {"delivery_status": target, **extra}
        if target in _ORDER_STATUS_ON_DELIVERY:
            values["status"] = _ORDER_STATUS_ON_DELIVERY[target]
        result = session.execute(
            update(Order)
            .where(Order.id == order.id, Order.delivery_status == order.delivery_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransition("order was updated concurrently, reload and try again")
