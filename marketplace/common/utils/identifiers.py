"""Identifier generation for carts, orders and payments.

Order numbers, pickup codes and payment references are computed here before
an entity is persisted, so the generation rules can be tested on their own.
All randomness comes from ``secrets``.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

ORDER_NUMBER_PREFIX = "ORD"
PAYMENT_REFERENCE_PREFIX = "PAY"

# Crockford-style alphabet without 0/O, 1/I/L and U so codes survive being read aloud.
PICKUP_CODE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTVWXYZ"
PICKUP_CODE_LENGTH = 8


def new_id() -> str:
    return str(uuid4())


def generate_order_number(now: Optional[datetime] = None) -> str:
    """``ORD-<UTC yyyymmdd>-<12 hex>``; 48 random bits per day prefix."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{ORDER_NUMBER_PREFIX}-{now:%Y%m%d}-{secrets.token_hex(6).upper()}"


def generate_pickup_code(length: int = PICKUP_CODE_LENGTH) -> str:
    if length < 6:
        raise ValueError("pickup code length must be at least 6")
    return "".join(secrets.choice(PICKUP_CODE_ALPHABET) for _ in range(length))


def generate_payment_reference() -> str:
    return f"{PAYMENT_REFERENCE_PREFIX}-{uuid4().hex}"


def normalize_pickup_code(code: Optional[str]) -> str:
    return (code or "").strip().upper().replace("-", "").replace(" ", "")
