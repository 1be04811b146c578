from decimal import Decimal

import pytest

from membership.errors import ClientError, PaymentError, TransientError
from membership.payments.capture import make_capture
from membership.payments.gateway import GatewayResult
from membership.payments.intents import IntentStatus
from membership.payments.orchestrator import (
    CHALLENGE_FAILED_MESSAGE,
    INIT_FAILED_MESSAGE,
    NOTIFICATION_WARNING,
    ConfirmationOrchestrator,
    OutcomeKind,
    PaymentPhase,
)
from membership.pricing import PendingSubscription


def _subscription():
    return PendingSubscription(user_id="u1", pricing_base=Decimal("119.88"))


def _orchestrator(fakes, intents=None, gateway=None, notifications=None, **kwargs):
    return ConfirmationOrchestrator(
        intents or fakes.Intents(),
        gateway or fakes.Gateway(),
        notifications,
        retry_delay=1.0,
        sleep=fakes.sleep,
        **kwargs,
    )


def _card(fakes, gateway):
    capture = make_capture(fakes.CARD, gateway)
    fakes.fill_card(capture)
    return capture


# --- Création de l'intent ---

@pytest.mark.asyncio
async def test_intent_creation_retries_transient_errors_with_growing_delay(fakes):
    intents = fakes.Intents([TransientError("503"), TransientError("503"), None])
    orch = _orchestrator(fakes, intents=intents)
    intent = await orch.ensure_intent("tok", _subscription())
    assert intent.intent_id == "pi_3"
    assert len(intents.calls) == 3
    assert fakes.sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_intent_creation_gives_up_after_max_retries(fakes):
    intents = fakes.Intents([TransientError("503")] * 5)
    orch = _orchestrator(fakes, intents=intents)
    with pytest.raises(PaymentError) as e:
        await orch.ensure_intent("tok", _subscription())
    assert e.value.message == INIT_FAILED_MESSAGE
    # 1 tentative + 2 nouvelles tentatives
    assert len(intents.calls) == 3
    assert fakes.sleep.delays == [1.0, 2.0]
    assert isinstance(e.value.__cause__, TransientError)


@pytest.mark.asyncio
async def test_intent_creation_client_error_is_not_retried(fakes):
    intents = fakes.Intents([ClientError("Amount must be greater than 0", 400)])
    orch = _orchestrator(fakes, intents=intents)
    with pytest.raises(ClientError):
        await orch.ensure_intent("tok", _subscription())
    assert len(intents.calls) == 1
    assert fakes.sleep.delays == []


@pytest.mark.asyncio
async def test_intent_reused_while_amount_unchanged(fakes):
    intents = fakes.Intents()
    orch = _orchestrator(fakes, intents=intents)
    sub = _subscription()
    first = await orch.ensure_intent("tok", sub)
    again = await orch.ensure_intent("tok", sub)
    assert again is first
    assert len(intents.calls) == 1

    sub.apply_discount(25, "SAVE25")
    fresh = await orch.ensure_intent("tok", sub)
    assert fresh.intent_id != first.intent_id
    assert fresh.amount == Decimal("89.91")
    assert intents.calls[-1] == {"token": "tok", "amount": Decimal("89.91"), "user_id": "u1"}
    assert intents.promo_codes == [None, "SAVE25"]


# --- Confirmation ---

@pytest.mark.asyncio
async def test_confirm_success_commits_and_sends_notification(fakes):
    gateway = fakes.Gateway()
    notifications = fakes.Notifications()
    orch = _orchestrator(fakes, gateway=gateway, notifications=notifications)
    sub = _subscription()
    sub.apply_discount(25, "SAVE25")

    outcome = await orch.confirm(_card(fakes, gateway), "tok", sub)
    assert outcome.succeeded
    assert outcome.intent_id == "pi_1"
    assert orch.phase is PaymentPhase.COMMITTED
    assert gateway.confirm_calls == [("pi_1", "pm_1", Decimal("89.91"))]

    assert await outcome.notification is None
    assert notifications.calls == [{"token": "tok", "user_id": "u1", "promo_code": "SAVE25"}]
    assert orch.warnings == []


@pytest.mark.asyncio
async def test_notification_failure_is_only_a_warning(fakes):
    warnings = []
    gateway = fakes.Gateway()
    orch = _orchestrator(fakes, gateway=gateway, notifications=fakes.Notifications(fail=True), on_warning=warnings.append)

    outcome = await orch.confirm(_card(fakes, gateway), "tok", _subscription())
    assert outcome.kind is OutcomeKind.SUCCEEDED
    assert await outcome.notification == NOTIFICATION_WARNING
    assert orch.phase is PaymentPhase.COMMITTED
    assert warnings == [NOTIFICATION_WARNING]


@pytest.mark.asyncio
async def test_requires_action_then_success_commits_once(fakes):
    gateway = fakes.Gateway(confirm_results=[
        GatewayResult(IntentStatus.REQUIRES_ACTION, "https://3ds.test"),
        GatewayResult(IntentStatus.SUCCEEDED),
    ])
    intents = fakes.Intents()
    notifications = fakes.Notifications()
    orch = _orchestrator(fakes, intents=intents, gateway=gateway, notifications=notifications)

    outcome = await orch.confirm(_card(fakes, gateway), "tok", _subscription())
    assert outcome.succeeded
    assert gateway.challenges == 1
    # Resoumission sur le même intent, sans en recréer
    assert [c[0] for c in gateway.confirm_calls] == ["pi_1", "pi_1"]
    assert len(intents.calls) == 1
    await outcome.notification
    assert len(notifications.calls) == 1


@pytest.mark.asyncio
async def test_failed_challenge_is_card_error(fakes):
    gateway = fakes.Gateway(
        confirm_results=[GatewayResult(IntentStatus.REQUIRES_ACTION)],
        challenge_ok=False,
    )
    orch = _orchestrator(fakes, gateway=gateway)
    outcome = await orch.confirm(_card(fakes, gateway), "tok", _subscription())
    assert outcome.kind is OutcomeKind.CARD_ERROR
    assert outcome.message == CHALLENGE_FAILED_MESSAGE
    assert len(gateway.confirm_calls) == 1


@pytest.mark.asyncio
async def test_decline_resets_capture_element(fakes):
    gateway = fakes.Gateway(decline_tokenize=True)
    orch = _orchestrator(fakes, gateway=gateway)
    capture = _card(fakes, gateway)
    before = capture.element_id

    outcome = await orch.confirm(capture, "tok", _subscription())
    assert outcome.kind is OutcomeKind.CARD_ERROR
    assert outcome.message == "Your card was declined."
    assert orch.phase is PaymentPhase.FAILED
    assert capture.element_id != before
    assert capture.element.usable
    assert orch.submit_enabled


@pytest.mark.asyncio
async def test_failure_after_unmount_does_not_touch_capture(fakes):
    gateway = fakes.Gateway(decline_tokenize=True)
    orch = _orchestrator(fakes, gateway=gateway, is_mounted=lambda: False)
    capture = _card(fakes, gateway)
    before = capture.element_id
    outcome = await orch.confirm(capture, "tok", _subscription())
    assert outcome.kind is OutcomeKind.CARD_ERROR
    assert capture.element_id == before


@pytest.mark.asyncio
async def test_unexpected_status_is_payment_error(fakes):
    gateway = fakes.Gateway(confirm_results=[GatewayResult(IntentStatus.FAILED)])
    orch = _orchestrator(fakes, gateway=gateway)
    outcome = await orch.confirm(_card(fakes, gateway), "tok", _subscription())
    assert outcome.kind is OutcomeKind.PAYMENT_ERROR
    assert "failed" in outcome.message


@pytest.mark.asyncio
async def test_init_failure_is_payment_error_outcome(fakes):
    gateway = fakes.Gateway()
    orch = _orchestrator(fakes, intents=fakes.Intents([TransientError("503")] * 3), gateway=gateway)
    outcome = await orch.confirm(_card(fakes, gateway), "tok", _subscription())
    assert outcome.kind is OutcomeKind.PAYMENT_ERROR
    assert outcome.message == INIT_FAILED_MESSAGE
    assert gateway.payment_methods == []


@pytest.mark.asyncio
async def test_submit_disabled_after_commit(fakes):
    gateway = fakes.Gateway()
    orch = _orchestrator(fakes, gateway=gateway)
    capture = _card(fakes, gateway)
    outcome = await orch.confirm(capture, "tok", _subscription())
    assert outcome.succeeded
    await outcome.notification
    assert not orch.submit_enabled
    assert await orch.confirm(capture, "tok", _subscription()) is None
    assert len(gateway.confirm_calls) == 1


@pytest.mark.asyncio
async def test_concurrent_submit_is_ignored(fakes):
    gateway = fakes.Gateway()
    orch = _orchestrator(fakes, gateway=gateway)
    capture = _card(fakes, gateway)
    orch._in_flight = True
    assert not orch.submit_enabled
    assert await orch.confirm(capture, "tok", _subscription()) is None
    assert gateway.confirm_calls == []


@pytest.mark.asyncio
async def test_promo_applied_during_tokenize_recreates_intent_before_confirm(fakes):
    intents = fakes.Intents()
    gateway = fakes.Gateway()
    orch = _orchestrator(fakes, intents=intents, gateway=gateway)
    sub = _subscription()
    capture = _card(fakes, gateway)
    tokenize = capture.tokenize

    async def tokenize_while_promo_lands(billing_details=None, *, amount=None):
        token = await tokenize(billing_details, amount=amount)
        sub.apply_discount(25, "SAVE25")
        return token

    capture.tokenize = tokenize_while_promo_lands
    outcome = await orch.confirm(capture, "tok", sub)
    assert outcome.succeeded
    assert [c["amount"] for c in intents.calls] == [Decimal("119.88"), Decimal("89.91")]
    assert gateway.confirm_calls == [("pi_2", "pm_1", Decimal("89.91"))]
    assert outcome.intent_id == "pi_2"
    await outcome.notification
