"""Marketplace checkout and payment Flask application."""

from __future__ import annotations

from typing import Callable, Dict, Optional

from flask import Flask
from werkzeug.exceptions import HTTPException

from .common.db.session import Database
from .common.errors import MarketplaceError, PersistenceError
from .common.services.cart_service import CartService
from .common.services.logging import log_event, set_log_level
from .common.services.order_service import OrderService
from .common.services.order_state import OrderStateMachine
from .common.services.payment_service import PaymentService
from .common.services.paystack_client import PaystackClient
from .common.services.stock_ledger import StockLedger
from .common.services.webhook import WebhookReconciler
from .config import MarketplaceConfig, load_env
from .routes import admin, cart, orders, payment
from .routes.responses import failure, success


def build_components(
    config: MarketplaceConfig,
    db: Database,
    *,
    paystack_client: Optional[PaystackClient] = None,
    on_paid: Optional[Callable[[Dict], None]] = None,
) -> Dict[str, object]:
    client = paystack_client or PaystackClient(
        config.paystack_secret_key,
        base_url=config.paystack_base_url,
        timeout=config.http_timeout,
    )
    order_state = OrderStateMachine(db)
    payment_service = PaymentService(
        db,
        client,
        order_state,
        default_callback_url=config.payment_callback_url,
        on_paid=on_paid,
    )
    return {
        "db": db,
        "cart_service": CartService(db, currency=config.currency),
        "order_service": OrderService(
            db,
            StockLedger(),
            currency=config.currency,
            delivery_fee_minor=config.delivery_fee_minor,
        ),
        "order_state": order_state,
        "payment_service": payment_service,
        "webhook_reconciler": WebhookReconciler(config.paystack_secret_key, payment_service),
    }


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(exc: MarketplaceError):
        if not isinstance(exc, PersistenceError):
            log_event("info", "request.rejected", error_type=type(exc).__name__, error=exc.message)
        return failure(exc.message, exc.http_status)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return failure(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        log_event("error", "request.failed", error_type=type(exc).__name__, error=str(exc))
        return failure("Internal server error", 500)


def create_app(
    config: Optional[MarketplaceConfig] = None,
    *,
    db: Optional[Database] = None,
    paystack_client: Optional[PaystackClient] = None,
    on_paid: Optional[Callable[[Dict], None]] = None,
) -> Flask:
    config = config or load_env()
    set_log_level(config.log_level)
    db = db or Database(config.database_url)
    db.create_all()

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["MARKETPLACE_CONFIG"] = config
    app.extensions["marketplace_components"] = build_components(
        config, db, paystack_client=paystack_client, on_paid=on_paid
    )

    @app.get("/health")
    def health():
        return success("Marketplace Service is running", {"service": "marketplace-service"})

    app.register_blueprint(cart.cart_bp)
    app.register_blueprint(orders.orders_bp)
    app.register_blueprint(payment.payment_bp)
    app.register_blueprint(payment.webhook_bp)
    app.register_blueprint(admin.admin_bp)
    _register_error_handlers(app)

    return app


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=8085, debug=False)


if __name__ == "__main__":
    main()
