from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship, validates
from .base import Base, utcnow
from .status import DeliveryStatus, DeliveryType, OrderStatus, PaymentStatus
from ..errors import BusinessRuleViolation


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    order_number = Column(String(50), nullable=False, unique=True)
    pickup_code = Column(String(16), nullable=True, index=True)
    buyer_id = Column(String(128), nullable=False, index=True)
    subtotal_minor = Column(Integer, nullable=False)
    delivery_fee_minor = Column(Integer, nullable=False, default=0)
    grand_total_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    delivery_address = Column(Text, nullable=False)
    delivery_type = Column(Enum(DeliveryType, native_enum=False, length=20), nullable=False)
    payment_method = Column(String(20), nullable=False, default="CARD")
    payment_status = Column(Enum(PaymentStatus, native_enum=False, length=20), nullable=False, default=PaymentStatus.PENDING)
    payment_reference = Column(String(255), nullable=True, unique=True)
    status = Column(Enum(OrderStatus, native_enum=False, length=20), nullable=False, default=OrderStatus.PENDING)
    delivery_status = Column(Enum(DeliveryStatus, native_enum=False, length=20), nullable=False, default=DeliveryStatus.PENDING)
    paid_at = Column(DateTime, nullable=True)
    picked_up_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    @validates("grand_total_minor")
    def _freeze_grand_total(self, key, value):
        current = self.__dict__.get(key)
        if current is not None and current != value:
            raise BusinessRuleViolation("grand total cannot change once set")
        return value


class OrderItem(Base):
    """Immutable snapshot of a cart line at checkout time."""

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), nullable=False)  # weak reference, no FK
    product_name = Column(String(255), nullable=False)
    grade = Column(String(1), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_minor = Column(Integer, nullable=False)
    subtotal_minor = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")


class PaymentAttempt(Base):
    """One provider transaction started for an order.

    Every reference ever handed to the provider stays resolvable here, so a
    payment completed on an older authorization URL still reconciles after the
    buyer re-initialized.
    """

    __tablename__ = "payment_attempts"

    reference = Column(String(255), primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
