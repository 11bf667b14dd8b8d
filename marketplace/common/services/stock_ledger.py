from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import InsufficientStock, InvalidQuantity
from ..models.product import Product
from ..models.status import PURCHASABLE_STATUSES, ProductStatus


class StockLedger:
    """Atomic stock reservation against the products table.

    Operates on the caller's session so reservations commit or roll back
    together with the rest of the checkout transaction.
    """

    def reserve(self, session: Session, product_id: str, quantity: int) -> None:
        if quantity is None or int(quantity) <= 0:
            raise InvalidQuantity(quantity)
        quantity = int(quantity)

        # Relative, conditional decrement evaluated by the database; a stale
        # availability read elsewhere cannot let two reservations oversell.
        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.status.in_(PURCHASABLE_STATUSES),
                Product.available_quantity >= quantity,
            )
            .values(available_quantity=Product.available_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        try:
            result = session.execute(stmt)
        except IntegrityError as exc:
            raise InsufficientStock(product_id) from exc

        if result.rowcount != 1:
            # missing, not purchasable, or short of stock
            product = session.get(Product, product_id, populate_existing=True)
            raise InsufficientStock(product.name if product is not None else product_id)

        session.execute(
            update(Product)
            .where(Product.id == product_id, Product.available_quantity == 0)
            .values(status=ProductStatus.SOLD_OUT)
            .execution_options(synchronize_session=False)
        )
