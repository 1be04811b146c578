from decimal import Decimal

import pytest
import stripe

from membership.errors import CardError, ClientError, PaymentError, TransientError
from membership.payments.gateway import (
    CaptureKind,
    GatewayResult,
    StripeGateway,
    WalletProvider,
    translate_stripe_error,
)
from membership.payments.intents import IntentStatus, PaymentIntentRef


def _intent():
    return PaymentIntentRef(intent_id="pi_1", client_secret="pi_1_secret_x", amount=Decimal("119.88"))


@pytest.mark.parametrize("error, expected", [
    (stripe.CardError("Your card was declined.", None, "card_declined"), CardError),
    (stripe.APIConnectionError("network"), TransientError),
    (stripe.RateLimitError("slow down"), TransientError),
    (stripe.InvalidRequestError("bad param", "amount"), ClientError),
    (stripe.AuthenticationError("bad key"), ClientError),
    (stripe.APIError("boom"), PaymentError),
])
def test_translate_stripe_error(error, expected):
    assert type(translate_stripe_error(error)) is expected


@pytest.mark.asyncio
async def test_create_card_payment_method_uses_publishable_key(monkeypatch):
    seen = {}

    def fake_create(**kwargs):
        seen.update(kwargs)
        return {"id": "pm_123"}

    monkeypatch.setattr(stripe.PaymentMethod, "create", fake_create)
    gateway = StripeGateway("pk_test_x")
    pm = await gateway.create_payment_method(
        CaptureKind.CARD,
        {"number": "4242424242424242", "exp_month": 12, "exp_year": 2034, "cvc": "123"},
        {"address": {"postal_code": "10001"}},
    )
    assert pm == "pm_123"
    assert seen["api_key"] == "pk_test_x"
    assert seen["type"] == "card"
    assert seen["card"]["number"] == "4242424242424242"


@pytest.mark.asyncio
async def test_card_decline_is_translated(monkeypatch):
    def fake_create(**kwargs):
        raise stripe.CardError("Your card was declined.", None, "card_declined")

    monkeypatch.setattr(stripe.PaymentMethod, "create", fake_create)
    with pytest.raises(CardError) as e:
        await StripeGateway("pk_test_x").create_payment_method(CaptureKind.WALLET, {"token": "tok_1"})
    assert "declined" in e.value.message


@pytest.mark.asyncio
async def test_confirm_intent_returns_status_and_next_action(monkeypatch):
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", lambda *a, **kw: {"status": "requires_payment_method"})
    seen = {}

    def fake_confirm(intent_id, **kwargs):
        seen["id"] = intent_id
        seen.update(kwargs)
        return {"status": "requires_action", "next_action": {"redirect_to_url": {"url": "https://3ds.test"}}}

    monkeypatch.setattr(stripe.PaymentIntent, "confirm", fake_confirm)
    result = await StripeGateway("pk_test_x", return_url="https://app.test/done").confirm_intent(_intent(), "pm_1")
    assert result.status is IntentStatus.REQUIRES_ACTION
    assert result.next_action_url == "https://3ds.test"
    assert seen["id"] == "pi_1"
    assert seen["client_secret"] == "pi_1_secret_x"
    assert seen["payment_method"] == "pm_1"
    assert seen["return_url"] == "https://app.test/done"


@pytest.mark.asyncio
async def test_confirm_intent_skips_already_succeeded(monkeypatch):
    calls = []
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", lambda *a, **kw: {"status": "succeeded"})
    monkeypatch.setattr(stripe.PaymentIntent, "confirm", lambda *a, **kw: calls.append(a))
    result = await StripeGateway("pk_test_x").confirm_intent(_intent(), "pm_1")
    assert result.status is IntentStatus.SUCCEEDED
    assert calls == []


@pytest.mark.asyncio
async def test_handle_next_action_without_handler_fails():
    gateway = StripeGateway("pk_test_x")
    assert await gateway.handle_next_action(_intent(), GatewayResult(IntentStatus.REQUIRES_ACTION)) is False


@pytest.mark.asyncio
async def test_handle_next_action_delegates_to_handler():
    urls = []

    async def handler(url):
        urls.append(url)
        return True

    gateway = StripeGateway("pk_test_x", challenge_handler=handler)
    ok = await gateway.handle_next_action(_intent(), GatewayResult(IntentStatus.REQUIRES_ACTION, "https://3ds.test"))
    assert ok is True
    assert urls == ["https://3ds.test"]


@pytest.mark.asyncio
async def test_wallet_availability_depends_on_provider():
    class Provider(WalletProvider):
        def __init__(self, ok):
            self.ok = ok

        async def can_make_payment(self):
            return self.ok

        async def present(self, *, label, amount, currency, country):
            return f"tok_{label}_{amount}_{currency}_{country}"

    assert (await StripeGateway("pk").wallet_availability()).available is False
    assert (await StripeGateway("pk", wallet_provider=Provider(False)).wallet_availability()).available is False
    gateway = StripeGateway("pk", wallet_provider=Provider(True), currency="usd")
    assert (await gateway.wallet_availability()).available is True
    token = await gateway.collect_wallet_token(amount=Decimal("89.91"))
    assert token == "tok_Elite Healthspan Membership_89.91_usd_US"
