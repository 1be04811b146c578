"""
Orchestrateur de confirmation de paiement.

Étapes d'une soumission:
  1) obtenir un intent au montant courant (création rejouée sur TransientError,
     au plus max_retries fois, délai retry_delay * n avant la tentative n)
  2) tokeniser le moyen de paiement via la session de capture
  3) confirmer l'intent:
     - succeeded        -> phase COMMITTED + email de confirmation en tâche de fond
     - requires_action  -> challenge 3-D Secure puis une seule resoumission
     - autre statut     -> PaymentError
Toute issue en échec réinitialise l'élément de capture.
Une fois la phase COMMITTED atteinte, plus rien n'est interprété comme un
échec de paiement: l'échec de l'email n'est qu'un avertissement.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from membership.config import PAYMENT_MAX_RETRIES, PAYMENT_RETRY_DELAY_MS
from membership.errors import CardError, MembershipError, PaymentError, TransientError
from membership.pricing import PendingSubscription
from membership.services.notifications import NotificationService
from .capture import CaptureSession
from .gateway import GatewayResult, PaymentGateway
from .intents import IntentClient, IntentStatus, PaymentIntentRef

logger = logging.getLogger(__name__)

INIT_FAILED_MESSAGE = "Could not initialize payment. Please try again."
CHALLENGE_FAILED_MESSAGE = "Card authentication failed. Please try again or use another card."
NOTIFICATION_WARNING = "Payment succeeded, but the confirmation email could not be sent."


class OutcomeKind(str, Enum):
    SUCCEEDED = "succeeded"
    CARD_ERROR = "card_error"
    PAYMENT_ERROR = "payment_error"


class PaymentPhase(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    CONFIRMING = "confirming"
    CHALLENGING = "challenging"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class ConfirmationOutcome:
    kind: OutcomeKind
    intent_id: Optional[str] = None
    error: Optional[MembershipError] = None
    # Tâche d'envoi de l'email; son résultat est l'avertissement éventuel (ou None)
    notification: Optional["asyncio.Task[Optional[str]]"] = None

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.SUCCEEDED

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None


class ConfirmationOrchestrator:
    def __init__(
        self,
        intents: IntentClient,
        gateway: PaymentGateway,
        notifications: Optional[NotificationService] = None,
        *,
        max_retries: int = PAYMENT_MAX_RETRIES,
        retry_delay: float = PAYMENT_RETRY_DELAY_MS / 1000,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        is_mounted: Optional[Callable[[], bool]] = None,
        on_warning: Optional[Callable[[str], None]] = None,
    ):
        self._intents = intents
        self._gateway = gateway
        self._notifications = notifications
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._is_mounted = is_mounted or (lambda: True)
        self._on_warning = on_warning
        self._in_flight = False
        self.phase = PaymentPhase.IDLE
        self.intent: Optional[PaymentIntentRef] = None
        self.warnings: List[str] = []

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def submit_enabled(self) -> bool:
        return not self._in_flight and self.phase is not PaymentPhase.COMMITTED

    def invalidate_intent(self, reason: str = "") -> None:
        """Oublie l'intent courant: le prochain ensure_intent en recrée un."""
        if self.intent is not None:
            logger.info("payments.intent invalidated intent_id=%s reason=%s", self.intent.intent_id, reason or "-")
        self.intent = None

    async def ensure_intent(self, auth_token: Optional[str], subscription: PendingSubscription) -> PaymentIntentRef:
        """
        Retourne un intent dont le montant est égal au montant final courant.
        - intent existant au bon montant et encore confirmable: réutilisé
        - sinon: création, rejouée sur TransientError (ClientError interrompt tout de suite)
        - retries épuisés: PaymentError("Could not initialize payment")
        """
        amount = subscription.final_amount
        if self.intent is not None and self.intent.amount != amount:
            self.invalidate_intent(f"amount changed {self.intent.amount} -> {amount}")
        if self.intent is not None and self.intent.status is IntentStatus.REQUIRES_PAYMENT_METHOD:
            return self.intent
        self.intent = None

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientError),
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_incrementing(start=self._retry_delay, increment=self._retry_delay),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    self.intent = await self._intents.create_intent(
                        auth_token, amount, subscription.user_id, promo_code=subscription.promo_code
                    )
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.warning("payments.intent creation gave up after %s retries: %s", self._max_retries, last)
            raise PaymentError(INIT_FAILED_MESSAGE, getattr(last, "status_code", None)) from last
        return self.intent

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            "payments.intent creation failed (%s), retry %s/%s in %.1fs",
            error, retry_state.attempt_number, self._max_retries, retry_state.next_action.sleep,
        )

    async def confirm(
        self,
        capture: CaptureSession,
        auth_token: Optional[str],
        subscription: PendingSubscription,
        billing_details: Optional[Dict[str, Any]] = None,
    ) -> Optional[ConfirmationOutcome]:
        """
        Soumission unique: retourne None (sans rien faire) si une soumission est
        déjà en cours ou si le paiement est déjà validé.
        """
        if not self.submit_enabled:
            logger.warning("payments.confirm ignored: submission in flight or already committed")
            return None
        self._in_flight = True
        try:
            return await self._confirm(capture, auth_token, subscription, billing_details)
        finally:
            self._in_flight = False

    async def _confirm(
        self,
        capture: CaptureSession,
        auth_token: Optional[str],
        subscription: PendingSubscription,
        billing_details: Optional[Dict[str, Any]],
    ) -> ConfirmationOutcome:
        self.phase = PaymentPhase.INITIALIZING
        try:
            intent = await self.ensure_intent(auth_token, subscription)
        except MembershipError as e:
            return self._fail(OutcomeKind.PAYMENT_ERROR, e, capture)

        try:
            payment_method = await capture.tokenize(billing_details, amount=intent.amount)
        except CardError as e:
            return self._fail(OutcomeKind.CARD_ERROR, e, capture)
        except MembershipError as e:
            return self._fail(OutcomeKind.PAYMENT_ERROR, e, capture)

        # Le montant a pu changer (code promo) pendant la tokenisation
        if intent.amount != subscription.final_amount:
            try:
                intent = await self.ensure_intent(auth_token, subscription)
            except MembershipError as e:
                return self._fail(OutcomeKind.PAYMENT_ERROR, e, capture)

        self.phase = PaymentPhase.CONFIRMING
        try:
            result = await self._gateway.confirm_intent(intent, payment_method)
        except CardError as e:
            return self._fail(OutcomeKind.CARD_ERROR, e, capture)
        except MembershipError as e:
            return self._fail(OutcomeKind.PAYMENT_ERROR, e, capture)
        intent.status = result.status

        if result.status is IntentStatus.SUCCEEDED:
            return self._commit(intent, auth_token, subscription)
        if result.status is IntentStatus.REQUIRES_ACTION:
            return await self._challenge(intent, result, payment_method, capture, auth_token, subscription)

        error = PaymentError(result.error_message or f"Payment failed (status={result.status.value})")
        return self._fail(OutcomeKind.PAYMENT_ERROR, error, capture)

    async def _challenge(
        self,
        intent: PaymentIntentRef,
        result: GatewayResult,
        payment_method: str,
        capture: CaptureSession,
        auth_token: Optional[str],
        subscription: PendingSubscription,
    ) -> ConfirmationOutcome:
        self.phase = PaymentPhase.CHALLENGING
        logger.info("payments.confirm requires_action intent_id=%s", intent.intent_id)
        try:
            if not await self._gateway.handle_next_action(intent, result):
                raise CardError(CHALLENGE_FAILED_MESSAGE)
            # Une seule resoumission, sans recréer d'intent
            result = await self._gateway.confirm_intent(intent, payment_method)
        except CardError as e:
            return self._fail(OutcomeKind.CARD_ERROR, e, capture)
        except MembershipError as e:
            return self._fail(OutcomeKind.CARD_ERROR, CardError(e.message, e.status_code), capture)
        intent.status = result.status

        if result.status is IntentStatus.SUCCEEDED:
            return self._commit(intent, auth_token, subscription)
        return self._fail(OutcomeKind.CARD_ERROR, CardError(result.error_message or CHALLENGE_FAILED_MESSAGE), capture)

    def _fail(self, kind: OutcomeKind, error: MembershipError, capture: CaptureSession) -> ConfirmationOutcome:
        self.phase = PaymentPhase.FAILED
        logger.warning("payments.confirm failed kind=%s error=%s", kind.value, error.message)
        if self._is_mounted():
            capture.reset()
        return ConfirmationOutcome(
            kind=kind,
            intent_id=self.intent.intent_id if self.intent else None,
            error=error,
        )

    def _commit(self, intent: PaymentIntentRef, auth_token: Optional[str], subscription: PendingSubscription) -> ConfirmationOutcome:
        self.phase = PaymentPhase.COMMITTED
        logger.info("payments.confirm succeeded intent_id=%s amount=%s", intent.intent_id, intent.amount)
        task = asyncio.create_task(self._notify(auth_token, subscription))
        return ConfirmationOutcome(kind=OutcomeKind.SUCCEEDED, intent_id=intent.intent_id, notification=task)

    async def _notify(self, auth_token: Optional[str], subscription: PendingSubscription) -> Optional[str]:
        """Effet de bord best-effort: son échec ne remet jamais en cause le paiement."""
        if self._notifications is None:
            return None
        try:
            await self._notifications.send_subscription_confirmation(
                auth_token, subscription.user_id, promo_code=subscription.promo_code
            )
            return None
        except Exception:
            logger.exception("payments.notification failed user_id=%s", subscription.user_id)
            self.warnings.append(NOTIFICATION_WARNING)
            if self._on_warning:
                self._on_warning(NOTIFICATION_WARNING)
            return NOTIFICATION_WARNING
