from urllib.parse import parse_qs

import httpx
import pytest

from app.services.stripe_client import StripeClient, StripeError


def make_client(handler, api_key="sk_test_123") -> StripeClient:
    return StripeClient(api_key=api_key, base_url="https://stripe.test/v1", transport=httpx.MockTransport(handler))


def test_retrieve_balance_sends_bearer_key() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"available": [{"amount": 1200, "currency": "usd"}], "pending": []})

    balance = make_client(handler).retrieve_balance()

    assert balance["available"][0]["amount"] == 1200
    assert seen == {"auth": "Bearer sk_test_123", "url": "https://stripe.test/v1/balance"}


def test_create_payout_form_encodes_metadata_and_sets_idempotency_key() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["form"] = parse_qs(request.content.decode())
        seen["idempotency"] = request.headers.get("Idempotency-Key")
        return httpx.Response(200, json={"id": "po_1", "status": "pending"})

    payout = make_client(handler).create_payout(
        amount=5000,
        description="Platform withdrawal",
        metadata={"withdrawalId": 7, "transactionId": "WD-1-abc"},
    )

    assert payout["id"] == "po_1"
    assert seen["method"] == "POST"
    assert seen["form"]["amount"] == ["5000"]
    assert seen["form"]["currency"] == ["usd"]
    assert seen["form"]["metadata[withdrawalId]"] == ["7"]
    assert seen["idempotency"] == "WD-1-abc"


def test_api_error_message_is_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Insufficient funds in Stripe account"}})

    with pytest.raises(StripeError) as exc:
        make_client(handler).create_payout(amount=100)
    assert exc.value.message == "Insufficient funds in Stripe account"
    assert exc.value.status_code == 400


def test_connection_errors_become_stripe_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(StripeError, match="connection error"):
        make_client(handler).retrieve_balance()


def test_missing_key_fails_before_any_request(monkeypatch) -> None:
    monkeypatch.setattr("app.services.stripe_client.STRIPE_SECRET_KEY", None)

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = StripeClient(base_url="https://stripe.test/v1", transport=httpx.MockTransport(handler))
    with pytest.raises(StripeError, match="STRIPE_SECRET_KEY is not configured"):
        client.retrieve_balance()
