from sqlalchemy import CheckConstraint, Column, DateTime, Enum, Integer, String, Text
from .base import Base, utcnow
from .status import ProductStatus


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="ck_products_available_quantity_non_negative"),
    )

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    grade = Column(String(1), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    available_quantity = Column(Integer, nullable=False, default=0)
    price_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(Enum(ProductStatus, native_enum=False, length=20), nullable=False, default=ProductStatus.AVAILABLE)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
