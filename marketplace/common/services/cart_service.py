from typing import Dict, Optional
from sqlalchemy.orm import selectinload

from ..db.session import Database
from ..errors import CartItemNotFound, InsufficientStock, ProductUnavailable, ValidationError
from ..models.cart import Cart, CartItem
from ..models.product import Product
from ..models.status import PURCHASABLE_STATUSES
from ..utils.dto import to_cart_dto
from ..utils.identifiers import new_id
from ..utils.validators import ensure_positive_quantity, ensure_text


class CartService:
    """Cart operations backed by DB.

    Quantity checks here read the product's current availability and are
    advisory only; nothing is reserved until checkout.
    """

    def __init__(self, db: Database, currency: str = "NGN"):
        self._db = db
        self._currency = currency

    @staticmethod
    def _buyer(buyer_id: Optional[str]) -> str:
        return ensure_text(buyer_id, "buyer_id")

    @staticmethod
    def _find_cart(session, buyer_id: str) -> Optional[Cart]:
        return (
            session.query(Cart)
            .options(selectinload(Cart.items).selectinload(CartItem.product))
            .filter(Cart.buyer_id == buyer_id)
            .first()
        )

    def _get_or_create(self, session, buyer_id: str) -> Cart:
        cart = self._find_cart(session, buyer_id)
        if cart is None:
            cart = Cart(id=new_id(), buyer_id=buyer_id)
            session.add(cart)
            session.flush()
        return cart

    def get_or_create_cart(self, buyer_id: str) -> Dict:
        uid = self._buyer(buyer_id)
        with self._db.session() as session:
            cart = self._get_or_create(session, uid)
            return to_cart_dto(cart, uid, self._currency)

    def get_cart(self, buyer_id: str) -> Dict:
        """Return the buyer's cart; an absent cart reads as empty and is not created."""
        uid = self._buyer(buyer_id)
        with self._db.session() as session:
            cart = self._find_cart(session, uid)
            return to_cart_dto(cart, uid, self._currency)

    def add_item(self, *, buyer_id: str, product_id: str, quantity) -> Dict:
        uid = self._buyer(buyer_id)
        pid = ensure_text(product_id, "product_id")
        qnty = ensure_positive_quantity(quantity)
        with self._db.session() as session:
            prod = (
                session.query(Product)
                .filter(Product.id == pid, Product.status.in_(PURCHASABLE_STATUSES))
                .first()
            )
            if not prod:
                raise ProductUnavailable()
            if qnty > prod.available_quantity:
                raise InsufficientStock(prod.name)

            cart = self._get_or_create(session, uid)
            # Merge with an existing line for the same product
            existing = next((it for it in cart.items if it.product_id == pid), None)
            if existing:
                new_q = existing.quantity + qnty
                if new_q > prod.available_quantity:
                    raise InsufficientStock(prod.name)
                existing.quantity = new_q
                existing.subtotal_minor = new_q * existing.unit_price_minor
            else:
                cart.items.append(
                    CartItem(
                        id=new_id(),
                        product_id=pid,
                        product=prod,
                        quantity=qnty,
                        unit_price_minor=prod.price_minor,
                        subtotal_minor=qnty * prod.price_minor,
                        currency=prod.currency,
                    )
                )
            session.flush()
            return to_cart_dto(cart, uid, self._currency)

    def update_item_quantity(self, *, buyer_id: str, item_id: str, quantity) -> Dict:
        uid = self._buyer(buyer_id)
        qnty = ensure_positive_quantity(quantity)
        with self._db.session() as session:
            cart = self._find_cart(session, uid)
            it = next((i for i in cart.items if i.id == item_id), None) if cart else None
            if it is None:
                raise CartItemNotFound(item_id)
            prod = it.product
            if prod is None or prod.status not in PURCHASABLE_STATUSES:
                raise ProductUnavailable(prod.name if prod else None)
            if qnty > prod.available_quantity:
                raise InsufficientStock(prod.name)
            it.quantity = qnty
            it.subtotal_minor = qnty * it.unit_price_minor
            session.flush()
            return to_cart_dto(cart, uid, self._currency)

    def remove_item(self, *, buyer_id: str, item_id: str) -> Dict:
        uid = self._buyer(buyer_id)
        if not item_id:
            raise ValidationError("item_id is required")
        with self._db.session() as session:
            cart = self._find_cart(session, uid)
            it = next((i for i in cart.items if i.id == item_id), None) if cart else None
            if it is None:
                raise CartItemNotFound(item_id)
            cart.items.remove(it)
            session.flush()
            return to_cart_dto(cart, uid, self._currency)

    def clear(self, buyer_id: str) -> None:
        uid = self._buyer(buyer_id)
        with self._db.session() as session:
            cart = session.query(Cart).filter(Cart.buyer_id == uid).first()
            if cart is None:
                return None
            session.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
        return None
