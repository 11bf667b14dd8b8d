"""Tests for the Paystack HTTP client against a recorded-call transport."""

import pytest
import requests

from marketplace.common.errors import PaymentProviderError
from marketplace.common.services.paystack_client import PaystackClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    def json(self):
        if self._text is not None:
            raise ValueError("not json")
        return self._payload


class FakeHttp:
    """Records calls made through ``requests.Session.request``."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


def _client(http, secret="sk_test_abc"):
    return PaystackClient(secret, base_url="https://api.paystack.test/", timeout=7, http=http)


class TestInitializeTransaction:
    def test_posts_amount_in_minor_units(self):
        http = FakeHttp(
            FakeResponse(
                payload={
                    "status": True,
                    "message": "Authorization URL created",
                    "data": {
                        "authorization_url": "https://checkout.paystack.com/abc",
                        "access_code": "abc",
                        "reference": "PAY-1",
                    },
                }
            )
        )
        data = _client(http).initialize_transaction(
            email="ada@example.com",
            amount=550000,
            reference="PAY-1",
            callback_url="marketplace://payment/callback",
            currency="NGN",
        )

        assert data["authorization_url"] == "https://checkout.paystack.com/abc"
        call = http.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == "https://api.paystack.test/transaction/initialize"
        assert call["headers"]["Authorization"] == "Bearer sk_test_abc"
        assert call["timeout"] == 7
        assert call["json"] == {
            "email": "ada@example.com",
            "amount": 550000,
            "reference": "PAY-1",
            "callback_url": "marketplace://payment/callback",
            "currency": "NGN",
        }

    def test_optional_fields_omitted(self):
        http = FakeHttp(FakeResponse(payload={"status": True, "data": {}}))
        _client(http).initialize_transaction(email="a@b.c", amount=100, reference="PAY-2")
        assert set(http.calls[0]["json"]) == {"email", "amount", "reference"}

    def test_provider_rejection_carries_message(self):
        http = FakeHttp(FakeResponse(status_code=400, payload={"status": False, "message": "Invalid key"}))
        with pytest.raises(PaymentProviderError, match="Invalid key"):
            _client(http).initialize_transaction(email="a@b.c", amount=100, reference="PAY-3")

    def test_missing_secret_key_never_calls_out(self):
        http = FakeHttp(FakeResponse(payload={"status": True, "data": {}}))
        with pytest.raises(PaymentProviderError, match="not configured"):
            _client(http, secret="").initialize_transaction(email="a@b.c", amount=100, reference="PAY-4")
        assert http.calls == []


class TestVerifyTransaction:
    def test_returns_data(self):
        http = FakeHttp(
            FakeResponse(
                payload={
                    "status": True,
                    "message": "Verification successful",
                    "data": {"status": "success", "reference": "PAY-1", "amount": 550000, "currency": "NGN"},
                }
            )
        )
        data = _client(http).verify_transaction("PAY-1")
        assert data["status"] == "success"
        assert data["amount"] == 550000
        assert http.calls[0]["method"] == "GET"
        assert http.calls[0]["url"] == "https://api.paystack.test/transaction/verify/PAY-1"

    def test_reference_is_url_encoded(self):
        http = FakeHttp(FakeResponse(payload={"status": True, "data": {}}))
        _client(http).verify_transaction("a/b c")
        assert http.calls[0]["url"].endswith("/transaction/verify/a%2Fb%20c")

    def test_status_false_on_http_200(self):
        http = FakeHttp(FakeResponse(payload={"status": False, "message": "Transaction reference not found"}))
        with pytest.raises(PaymentProviderError, match="reference not found"):
            _client(http).verify_transaction("PAY-1")

    @pytest.mark.parametrize(
        "response",
        [FakeResponse(status_code=502, text="<html>Bad gateway</html>"), FakeResponse(payload=["not", "a", "dict"])],
    )
    def test_malformed_body(self, response):
        with pytest.raises(PaymentProviderError, match="invalid response"):
            _client(FakeHttp(response)).verify_transaction("PAY-1")

    def test_timeout(self):
        http = FakeHttp(error=requests.Timeout("read timed out"))
        with pytest.raises(PaymentProviderError, match="timed out"):
            _client(http).verify_transaction("PAY-1")

    def test_connection_error(self):
        http = FakeHttp(error=requests.ConnectionError("refused"))
        with pytest.raises(PaymentProviderError, match="unreachable"):
            _client(http).verify_transaction("PAY-1")

    def test_default_base_url(self):
        assert PaystackClient("sk").base_url == "https://api.paystack.co"
