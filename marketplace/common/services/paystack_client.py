"""
Paystack transaction API client.

Only the two calls the checkout flow needs: initialize a transaction and
verify one by reference. Every failure (transport, HTTP, malformed body,
``status: false``) surfaces as PaymentProviderError carrying the provider's
message; nothing is retried here.
"""
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from ..errors import PaymentProviderError


class PaystackClient:
    API_BASE_URL = "https://api.paystack.co"

    def __init__(
        self,
        secret_key: str,
        *,
        base_url: Optional[str] = None,
        timeout: float = 15.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.secret_key = secret_key or ""
        self.base_url = (base_url or self.API_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._http = http or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def initialize_transaction(
        self,
        *,
        email: str,
        amount: int,
        reference: str,
        callback_url: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Returns the ``data`` object: authorization_url, access_code, reference."""
        body: Dict[str, Any] = {"email": email, "amount": int(amount), "reference": reference}
        if callback_url:
            body["callback_url"] = callback_url
        if currency:
            body["currency"] = currency
        return self._request("POST", "/transaction/initialize", json=body)

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Returns the ``data`` object: status, reference, amount, currency, ..."""
        return self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not self.secret_key:
            raise PaymentProviderError("payment provider is not configured")
        url = f"{self.base_url}{path}"
        try:
            resp = self._http.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            raise PaymentProviderError("payment provider timed out") from exc
        except requests.RequestException as exc:
            raise PaymentProviderError(f"payment provider unreachable: {exc}") from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            raise PaymentProviderError(
                f"payment provider returned an invalid response (HTTP {resp.status_code})"
            ) from exc
        if not isinstance(payload, dict):
            raise PaymentProviderError("payment provider returned an invalid response")

        if not payload.get("status") or resp.status_code >= 400:
            raise PaymentProviderError(payload.get("message") or f"payment provider error (HTTP {resp.status_code})")
        data = payload.get("data")
        return data if isinstance(data, dict) else {}
