from decimal import Decimal

import pytest

from membership.errors import CardError, ValidationError
from membership.payments.capture import (
    STALE_ELEMENT_MESSAGE,
    CardCapture,
    WalletCapture,
    make_capture,
    validate_card_field,
)


@pytest.mark.parametrize("field, value, ok", [
    ("number", "4242 4242 4242 4242", True),
    ("number", "4242", False),
    ("exp", "12/34", True),
    ("exp", "13/34", False),
    ("exp", "1234", False),
    ("cvc", "123", True),
    ("cvc", "12", False),
    ("zip", "10001", True),
    ("zip", "1000", False),
    ("country", "GB", True),
    ("country", "FR", False),
])
def test_validate_card_field(field, value, ok):
    assert (validate_card_field(field, value) is None) is ok


def test_make_capture_mounts_element(fakes):
    capture = make_capture(fakes.CARD, fakes.Gateway())
    assert isinstance(capture, CardCapture)
    assert capture.element.mounted
    assert capture.element.values["country"] == "US"


def test_card_update_reports_inline_error_without_submitting(fakes):
    gateway = fakes.Gateway()
    capture = make_capture(fakes.CARD, gateway)
    assert capture.update("number", "4242") == "Please enter a valid card number (13-16 digits)"
    assert capture.element.errors["number"]
    # Corrigé: l'erreur disparaît
    assert capture.update("number", "4242424242424242") is None
    assert "number" not in capture.element.errors
    # Champ vide non signalé avant soumission
    assert capture.update("cvc", "") is None
    assert gateway.payment_methods == []


@pytest.mark.asyncio
async def test_card_tokenize_returns_payment_method(fakes):
    gateway = fakes.Gateway()
    capture = make_capture(fakes.CARD, gateway)
    fakes.fill_card(capture)
    token = await capture.tokenize({"name": "Jane Doe"})
    assert token == "pm_1"
    kind, details, billing = gateway.payment_methods[0]
    assert details == {"number": "4242424242424242", "exp_month": 12, "exp_year": 2034, "cvc": "123"}
    assert billing == {"name": "Jane Doe", "address": {"postal_code": "10001", "country": "US"}}


@pytest.mark.asyncio
async def test_card_tokenize_invalid_data_is_card_error_and_element_unusable(fakes):
    capture = make_capture(fakes.CARD, fakes.Gateway())
    fakes.fill_card(capture, cvc="1")
    with pytest.raises(CardError):
        await capture.tokenize()
    assert capture.element.failed
    # Élément en échec: plus utilisable avant reset
    with pytest.raises(CardError) as e:
        await capture.tokenize()
    assert e.value.message == STALE_ELEMENT_MESSAGE


@pytest.mark.asyncio
async def test_reset_remounts_fresh_element(fakes):
    capture = make_capture(fakes.CARD, fakes.Gateway(decline_tokenize=True))
    fakes.fill_card(capture)
    first = capture.element
    with pytest.raises(CardError):
        await capture.tokenize()
    assert capture.last_error == "Your card was declined."

    capture.reset()
    assert first.destroyed
    assert capture.element is not first
    assert capture.element_id != first.element_id
    assert capture.element.usable
    assert capture.element.values == {"country": "US"}


@pytest.mark.asyncio
async def test_wallet_unavailable_is_normal_outcome(fakes):
    capture = make_capture(fakes.WALLET, fakes.Gateway(wallet_available=False))
    availability = await capture.check_availability()
    assert availability.available is False
    assert availability.reason
    with pytest.raises(ValidationError):
        await capture.tokenize(amount=Decimal("119.88"))


@pytest.mark.asyncio
async def test_wallet_tokenize_uses_wallet_token(fakes):
    gateway = fakes.Gateway()
    capture = make_capture(fakes.WALLET, gateway)
    assert isinstance(capture, WalletCapture)
    token = await capture.tokenize(amount=Decimal("89.91"))
    assert token == "pm_1"
    kind, details, _ = gateway.payment_methods[0]
    assert kind is fakes.WALLET
    assert details == {"token": "tok_wallet"}


@pytest.mark.asyncio
async def test_wallet_tokenize_requires_amount(fakes):
    capture = make_capture(fakes.WALLET, fakes.Gateway())
    with pytest.raises(ValidationError):
        await capture.tokenize()
