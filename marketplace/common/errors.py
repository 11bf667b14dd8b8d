"""Exceptions raised by the marketplace services.

Every error carries the HTTP status the API layer answers with, so route
handlers never have to translate them one by one.
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base exception for all marketplace errors."""

    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(MarketplaceError):
    """Malformed or missing input."""

    http_status = 400


class InvalidQuantity(ValidationError):
    def __init__(self, value=None):
        self.value = value
        super().__init__("quantity must be a whole number greater than 0")


class BusinessRuleViolation(MarketplaceError):
    """Input is well formed but the request breaks a business rule."""

    http_status = 400


class InsufficientStock(BusinessRuleViolation):
    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(f"insufficient stock for {product_name}")


class ProductUnavailable(BusinessRuleViolation):
    def __init__(self, product_name: Optional[str] = None, message: Optional[str] = None):
        self.product_name = product_name
        if message is None:
            if product_name:
                message = f"product {product_name} is not available"
            else:
                message = "product not found or not available"
        super().__init__(message)


class ProductNoLongerAvailable(ProductUnavailable):
    def __init__(self, product_name: str):
        super().__init__(product_name, f"product {product_name} is no longer available")


class EmptyCart(BusinessRuleViolation):
    def __init__(self):
        super().__init__("cart is empty")


class CartChanged(BusinessRuleViolation):
    def __init__(self):
        super().__init__("cart changed during checkout, please review it and try again")


class AlreadyPaid(BusinessRuleViolation):
    def __init__(self):
        super().__init__("order already paid")


class InvalidTransition(BusinessRuleViolation):
    def __init__(self, message: str):
        super().__init__(message)


class InvalidPickupCode(BusinessRuleViolation):
    def __init__(self):
        super().__init__("invalid pickup code")


class PaymentNotSuccessful(BusinessRuleViolation):
    def __init__(self, provider_status: Optional[str]):
        self.provider_status = provider_status
        super().__init__(f"payment not successful (status: {provider_status or 'unknown'})")


class AmountMismatch(BusinessRuleViolation):
    def __init__(self, expected_minor: int, paid_minor: Optional[int]):
        self.expected_minor = expected_minor
        self.paid_minor = paid_minor
        super().__init__(
            f"payment amount mismatch: expected {expected_minor} but received {paid_minor}"
        )


class CurrencyMismatch(BusinessRuleViolation):
    def __init__(self, expected: str, received: Optional[str]):
        self.expected = expected
        self.received = received
        super().__init__(f"invalid currency: expected {expected}, received {received or 'none'}")


class NotFound(MarketplaceError):
    http_status = 404


class OrderNotFound(NotFound):
    def __init__(self, order_id: Optional[str] = None):
        self.order_id = order_id
        super().__init__("order not found")


class CartItemNotFound(NotFound):
    def __init__(self, item_id: Optional[str] = None):
        self.item_id = item_id
        super().__init__("cart item not found")


class ExternalServiceError(MarketplaceError):
    """The payment provider was unreachable or reported a failure."""

    http_status = 502


class PaymentProviderError(ExternalServiceError):
    pass


class PaymentInitializationFailed(ExternalServiceError):
    http_status = 400


class PersistenceError(MarketplaceError):
    """Database failure. The message is safe to show to callers."""

    http_status = 500

    def __init__(self, message: str = "internal database error"):
        super().__init__(message)


class WebhookSignatureInvalid(MarketplaceError):
    http_status = 401

    def __init__(self):
        super().__init__("invalid signature")
