"""Marketplace service configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .common.services.payment_service import DEFAULT_CALLBACK_URL
from .common.services.paystack_client import PaystackClient


@dataclass
class MarketplaceConfig:
    database_url: str
    secret_key: str
    log_level: str
    currency: str
    paystack_secret_key: str
    paystack_base_url: str
    payment_callback_url: str
    delivery_fee_minor: int
    http_timeout: float
    payer_email_domain: str


def validate_currency(value: Optional[str]) -> str:
    v = (value or "NGN").strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def _non_negative_int(value: Any, key: str) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer") from exc
    if number < 0:
        raise ValueError(f"{key} must be >= 0")
    return number


def _positive_float(value: Any, key: str) -> float:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be a number") from exc
    if number <= 0:
        raise ValueError(f"{key} must be > 0")
    return number


def _load_settings_file(path: Optional[str] = None) -> Dict[str, Any]:
    target = Path(path or os.getenv("MARKETPLACE_SETTINGS_FILE") or "data/settings.json")
    if not target.exists():
        return {}
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ValueError(f"cannot read settings file {target}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"settings file {target} must contain a JSON object")
    return data


def load_env(settings_path: Optional[str] = None) -> MarketplaceConfig:
    # settings file wins, environment is the fallback
    s = _load_settings_file(settings_path)

    def get(key: str, default: Any = None) -> Any:
        value = s.get(key)
        if value is None or value == "":
            value = os.getenv(key)
        return default if value is None or value == "" else value

    return MarketplaceConfig(
        database_url=get("DATABASE_URL", "sqlite:///data/marketplace.db"),
        secret_key=get("SECRET_KEY", "dev_secret"),
        log_level=str(get("LOG_LEVEL", "INFO")).upper(),
        currency=validate_currency(get("CURRENCY")),
        paystack_secret_key=get("PAYSTACK_SECRET_KEY", ""),
        paystack_base_url=str(get("PAYSTACK_BASE_URL", PaystackClient.API_BASE_URL)).rstrip("/"),
        payment_callback_url=get("PAYMENT_CALLBACK_URL", DEFAULT_CALLBACK_URL),
        delivery_fee_minor=_non_negative_int(get("DELIVERY_FEE_MINOR", 50000), "DELIVERY_FEE_MINOR"),
        http_timeout=_positive_float(get("HTTP_TIMEOUT", 15), "HTTP_TIMEOUT"),
        payer_email_domain=get("PAYER_EMAIL_DOMAIN", "marketplace.local"),
    )
