from dataclasses import dataclass
from typing import Dict, List, Optional
from sqlalchemy import and_, or_
from sqlalchemy.orm import selectinload

from ..db.session import Database
from ..errors import CartChanged, EmptyCart, InsufficientStock, OrderNotFound, ProductNoLongerAvailable
from ..models.cart import Cart, CartItem
from ..models.order import Order, OrderItem
from ..models.status import DeliveryStatus, DeliveryType, OrderStatus, PaymentStatus
from ..utils.dto import to_order_dto
from ..utils.identifiers import generate_order_number, generate_pickup_code, new_id
from ..utils.pagination import normalize_paging, total_pages
from ..utils.validators import ensure_text, parse_delivery_type
from .logging import log_event
from .order_state import ACTIVE_DELIVERY_STATUSES
from .stock_ledger import StockLedger

DEFAULT_DELIVERY_FEE_MINOR = 50000
PICKUP_CODE_ATTEMPTS = 5


@dataclass(frozen=True)
class CheckoutLine:
    """A validated cart line, frozen before the write transaction starts."""

    cart_item_id: str
    product_id: str
    product_name: str
    grade: str
    quantity: int
    unit_price_minor: int

    @property
    def subtotal_minor(self) -> int:
        return self.quantity * self.unit_price_minor


def compute_totals(lines: List[CheckoutLine], delivery_type: DeliveryType, delivery_fee_minor: int) -> Dict[str, int]:
    subtotal = sum(line.subtotal_minor for line in lines)
    fee = delivery_fee_minor if delivery_type == DeliveryType.DELIVERY else 0
    return {"subtotal_minor": subtotal, "delivery_fee_minor": fee, "grand_total_minor": subtotal + fee}


def build_order(
    *,
    buyer_id: str,
    lines: List[CheckoutLine],
    delivery_address: str,
    delivery_type: DeliveryType,
    delivery_fee_minor: int,
    currency: str,
    pickup_code: Optional[str] = None,
) -> Order:
    """Construct an unpersisted Order with its items and derived fields."""
    totals = compute_totals(lines, delivery_type, delivery_fee_minor)
    order = Order(
        id=new_id(),
        order_number=generate_order_number(),
        pickup_code=pickup_code if delivery_type == DeliveryType.PICKUP else None,
        buyer_id=buyer_id,
        currency=currency,
        delivery_address=delivery_address,
        delivery_type=delivery_type,
        payment_method="CARD",
        payment_status=PaymentStatus.PENDING,
        status=OrderStatus.PENDING,
        delivery_status=DeliveryStatus.PENDING,
        **totals,
    )
    for line in lines:
        order.items.append(
            OrderItem(
                id=new_id(),
                product_id=line.product_id,
                product_name=line.product_name,
                grade=line.grade,
                quantity=line.quantity,
                unit_price_minor=line.unit_price_minor,
                subtotal_minor=line.subtotal_minor,
            )
        )
    return order


class OrderService:
    """Checkout and order retrieval backed by DB."""

    def __init__(
        self,
        db: Database,
        ledger: Optional[StockLedger] = None,
        *,
        currency: str = "NGN",
        delivery_fee_minor: int = DEFAULT_DELIVERY_FEE_MINOR,
    ):
        self._db = db
        self._ledger = ledger or StockLedger()
        self._currency = currency
        self._delivery_fee_minor = delivery_fee_minor

    def checkout(self, *, buyer_id: str, delivery_address: str, delivery_type) -> Dict:
        """Convert the buyer's cart into an order in one transaction.

        Lines are re-validated against current stock before anything is
        written; the write transaction then creates the order, reserves stock
        per line and deletes the checked-out cart lines. Any failure rolls
        all of it back.
        """
        uid = ensure_text(buyer_id, "buyer_id")
        address = ensure_text(delivery_address, "deliveryAddress")
        dtype = parse_delivery_type(delivery_type)

        try:
            lines = self._load_lines(uid)
        except (EmptyCart, ProductNoLongerAvailable, InsufficientStock) as exc:
            log_event("info", "checkout.rejected", buyer_id=uid, reason=exc.message)
            raise

        with self._db.session() as session:
            pickup_code = self._unique_pickup_code(session) if dtype == DeliveryType.PICKUP else None
            order = build_order(
                buyer_id=uid,
                lines=lines,
                delivery_address=address,
                delivery_type=dtype,
                delivery_fee_minor=self._delivery_fee_minor,
                currency=self._currency,
                pickup_code=pickup_code,
            )
            session.add(order)
            session.flush()
            for line in lines:
                self._ledger.reserve(session, line.product_id, line.quantity)
            # each line must still hold the quantity it was priced at
            snapshot = or_(
                *(and_(CartItem.id == line.cart_item_id, CartItem.quantity == line.quantity) for line in lines)
            )
            deleted = session.query(CartItem).filter(snapshot).delete(synchronize_session=False)
            if deleted != len(lines):
                # another checkout consumed these lines first, or the buyer edited them
                raise CartChanged()
            result = to_order_dto(order)

        log_event(
            "info",
            "order.created",
            order_id=result["id"],
            order_number=result["order_number"],
            items=len(lines),
            grand_total_minor=result["grand_total_minor"],
        )
        return result

    def _load_lines(self, buyer_id: str) -> List[CheckoutLine]:
        with self._db.session() as session:
            cart = (
                session.query(Cart)
                .options(selectinload(Cart.items).selectinload(CartItem.product))
                .filter(Cart.buyer_id == buyer_id)
                .first()
            )
            if cart is None or not cart.items:
                raise EmptyCart()
            lines = []
            for it in cart.items:
                prod = it.product
                name = prod.name if prod is not None else it.product_id
                # the cart's advisory check may be stale
                if prod is None or not prod.status.purchasable:
                    raise ProductNoLongerAvailable(name)
                if it.quantity > prod.available_quantity:
                    raise InsufficientStock(name)
                lines.append(
                    CheckoutLine(
                        cart_item_id=it.id,
                        product_id=prod.id,
                        product_name=prod.name,
                        grade=prod.grade,
                        quantity=it.quantity,
                        unit_price_minor=it.unit_price_minor,
                    )
                )
            return lines

    @staticmethod
    def _unique_pickup_code(session) -> str:
        for _ in range(PICKUP_CODE_ATTEMPTS):
            code = generate_pickup_code()
            clash = (
                session.query(Order.id)
                .filter(Order.pickup_code == code, Order.delivery_status.in_(ACTIVE_DELIVERY_STATUSES))
                .first()
            )
            if clash is None:
                return code
        raise RuntimeError("could not allocate a unique pickup code")

    def get_order(self, *, order_id: str, buyer_id: Optional[str] = None) -> Dict:
        with self._db.session() as session:
            q = session.query(Order).options(selectinload(Order.items)).filter(Order.id == order_id)
            if buyer_id is not None:
                q = q.filter(Order.buyer_id == buyer_id)
            order = q.first()
            if order is None:
                raise OrderNotFound(order_id)
            return to_order_dto(order)

    def list_orders(self, *, buyer_id: Optional[str] = None, page: int = 1, page_size: int = 10) -> Dict:
        """Newest first. Without buyer_id, lists every order (admin view)."""
        p, ps = normalize_paging(page, page_size)
        with self._db.session() as session:
            q = session.query(Order)
            if buyer_id is not None:
                q = q.filter(Order.buyer_id == buyer_id)
            total = q.count()
            rows = (
                q.options(selectinload(Order.items))
                .order_by(Order.created_at.desc())
                .offset((p - 1) * ps)
                .limit(ps)
                .all()
            )
            return {
                "orders": [to_order_dto(o) for o in rows],
                "pagination": {"page": p, "limit": ps, "total": total, "total_pages": total_pages(total, ps)},
            }
