"""Pytest fixtures for marketplace tests."""

import threading

import pytest

from marketplace.common.db.session import Database
from marketplace.common.errors import PaymentProviderError
from marketplace.common.models import Order, Product, ProductStatus
from marketplace.common.services.cart_service import CartService
from marketplace.common.services.order_service import OrderService
from marketplace.common.services.order_state import OrderStateMachine
from marketplace.common.services.payment_service import PaymentService
from marketplace.common.services.stock_ledger import StockLedger
from marketplace.common.services.webhook import WebhookReconciler, compute_signature
from marketplace.common.utils.identifiers import new_id
from marketplace.config import MarketplaceConfig

WEBHOOK_SECRET = "sk_test_webhook_secret"


class FakePaystack:
    """In-memory stand-in for PaystackClient with the same call signatures."""

    def __init__(self):
        self.transactions = {}
        self.initialized = []
        self.fail_initialize = None
        self.verify_calls = 0
        self._lock = threading.Lock()

    def initialize_transaction(self, *, email, amount, reference, callback_url=None, currency=None):
        if self.fail_initialize:
            raise PaymentProviderError(self.fail_initialize)
        self.initialized.append(
            {
                "email": email,
                "amount": amount,
                "reference": reference,
                "callback_url": callback_url,
                "currency": currency,
            }
        )
        self.transactions[reference] = {
            "status": "success",
            "reference": reference,
            "amount": amount,
            "currency": currency or "NGN",
            "channel": "card",
        }
        return {
            "authorization_url": f"https://checkout.paystack.test/{reference}",
            "access_code": f"AC_{reference[-6:]}",
            "reference": reference,
        }

    def verify_transaction(self, reference):
        with self._lock:
            self.verify_calls += 1
        if reference not in self.transactions:
            raise PaymentProviderError("Transaction reference not found")
        return dict(self.transactions[reference])


@pytest.fixture
def db(tmp_path):
    """File-backed SQLite database so threads see each other's commits."""
    database = Database(f"sqlite:///{tmp_path / 'marketplace.db'}")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def make_product(db):
    def _make(name="Tomatoes", price_minor=100000, quantity=10, status=ProductStatus.AVAILABLE, grade="A"):
        pid = new_id()
        with db.session() as session:
            session.add(
                Product(
                    id=pid,
                    name=name,
                    grade=grade,
                    available_quantity=quantity,
                    price_minor=price_minor,
                    currency="NGN",
                    status=status,
                )
            )
        return pid

    return _make


@pytest.fixture
def product_row(db):
    """Fresh read of a product: (available_quantity, status)."""

    def _read(product_id):
        with db.session() as session:
            p = session.get(Product, product_id)
            return p.available_quantity, p.status

    return _read


@pytest.fixture
def order_row(db):
    def _read(order_id):
        with db.session() as session:
            return session.get(Order, order_id)

    return _read


@pytest.fixture
def carts(db):
    return CartService(db, currency="NGN")


@pytest.fixture
def orders(db):
    return OrderService(db, StockLedger(), currency="NGN", delivery_fee_minor=50000)


@pytest.fixture
def state(db):
    return OrderStateMachine(db)


@pytest.fixture
def paystack():
    return FakePaystack()


@pytest.fixture
def paid_events():
    return []


@pytest.fixture
def payments(db, paystack, state, paid_events):
    return PaymentService(db, paystack, state, on_paid=paid_events.append)


@pytest.fixture
def reconciler(payments):
    return WebhookReconciler(WEBHOOK_SECRET, payments)


@pytest.fixture
def sign():
    """Signs a raw webhook body the way the provider does."""
    return lambda body: compute_signature(WEBHOOK_SECRET, body)


@pytest.fixture
def place_order(carts, orders, make_product):
    """Add one product to a buyer's cart and check it out."""

    def _place(buyer_id="buyer-1", quantity=5, delivery_type="DELIVERY", product_id=None):
        pid = product_id or make_product()
        carts.add_item(buyer_id=buyer_id, product_id=pid, quantity=quantity)
        return orders.checkout(buyer_id=buyer_id, delivery_address="12 Marina Road, Lagos", delivery_type=delivery_type)

    return _place


@pytest.fixture
def config(tmp_path):
    return MarketplaceConfig(
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        secret_key="test",
        log_level="INFO",
        currency="NGN",
        paystack_secret_key=WEBHOOK_SECRET,
        paystack_base_url="https://api.paystack.test",
        payment_callback_url="marketplace://payment/callback",
        delivery_fee_minor=50000,
        http_timeout=5.0,
        payer_email_domain="marketplace.test",
    )
