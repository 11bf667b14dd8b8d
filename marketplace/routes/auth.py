"""Identity injected by the upstream API gateway.

The gateway authenticates the caller and forwards ``X-User-Id``,
``X-User-Role`` and contact headers; this service trusts them as-is.
"""

from __future__ import annotations

from flask import current_app, g, request

from .responses import failure

ADMIN_ROLES = {"ADMIN", "SUPER_ADMIN"}


def require_buyer():
    """Blueprint ``before_request`` hook: 401 unless a user id was forwarded."""
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if not user_id:
        return failure("Authentication required", 401)
    g.user_id = user_id
    g.user_role = (request.headers.get("X-User-Role") or "").strip().upper()
    g.user_email = (request.headers.get("X-User-Email") or "").strip()
    g.user_phone = (request.headers.get("X-User-Phone") or "").strip()
    return None


def require_admin():
    denied = require_buyer()
    if denied is not None:
        return denied
    if g.user_role not in ADMIN_ROLES:
        return failure("Admin or Super Admin access required", 403)
    return None


def current_buyer_id() -> str:
    return g.user_id


def payer_email() -> str:
    if g.get("user_email"):
        return g.user_email
    domain = current_app.config["MARKETPLACE_CONFIG"].payer_email_domain
    if g.get("user_phone"):
        return f"{g.user_phone.lstrip('+')}@{domain}"
    return f"buyer@{domain}"
