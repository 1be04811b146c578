"""
Wizard d'adhésion: membership -> contactInfo -> paymentMethod -> paymentForm_{card|wallet} -> done.

Le jeton d'authentification et l'identifiant utilisateur sont portés par
l'état du wizard et passés explicitement à chaque collaborateur.
Fermer le wizard jette tout l'état en mémoire; un résultat réseau qui arrive
après la fermeture est ignoré (les appels SDK ne sont pas annulables).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional

from membership.config import BASE_PRICE, PAYMENT_MAX_RETRIES, PAYMENT_RETRY_DELAY_MS
from membership.errors import ClientError, InvalidTransition, MembershipError, ValidationError
from membership.payments.capture import CaptureSession, CardCapture, WalletCapture, make_capture
from membership.payments.gateway import CaptureKind, PaymentGateway, WalletAvailability
from membership.payments.intents import IntentClient
from membership.payments.orchestrator import ConfirmationOrchestrator, ConfirmationOutcome
from membership.pricing import PendingSubscription, Quote, price
from membership.services.accounts import AccountService, AccountSession
from membership.services.notifications import NotificationService
from membership.services.promo import PromoService
from .contact import parse_contact_info
from .steps import PAYMENT_FORMS, WizardStep, capture_kind_for, form_step_for, next_step

logger = logging.getLogger(__name__)

FREE_PROMO_MESSAGE = "This promo code cannot be applied to the membership."
WALLET_CHECK_FAILED_MESSAGE = "Wallet payments could not be checked on this device."


@dataclass
class WizardState:
    step: WizardStep = WizardStep.MEMBERSHIP
    wants_to_join: bool = False
    user_id: Optional[str] = None
    auth_token: Optional[str] = None
    subscription: Optional[PendingSubscription] = None
    payment_kind: Optional[CaptureKind] = None
    error: Optional[str] = None
    promo_message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class SubscriptionWizard:
    def __init__(
        self,
        accounts: AccountService,
        promo: PromoService,
        intents: IntentClient,
        gateway: PaymentGateway,
        notifications: Optional[NotificationService] = None,
        *,
        base_price: Decimal = BASE_PRICE,
        on_close: Optional[Callable[[], None]] = None,
        on_continue: Optional[Callable[[WizardStep, Dict[str, Any]], None]] = None,
        on_warning: Optional[Callable[[str], None]] = None,
        max_retries: int = PAYMENT_MAX_RETRIES,
        retry_delay: float = PAYMENT_RETRY_DELAY_MS / 1000,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._accounts = accounts
        self._promo = promo
        self._gateway = gateway
        self._base_price = base_price
        self._on_close = on_close
        self._on_continue = on_continue
        self._on_warning = on_warning
        self.mounted = True
        self.state = WizardState()
        self.capture: Optional[CaptureSession] = None
        self.orchestrator = ConfirmationOrchestrator(
            intents,
            gateway,
            notifications,
            max_retries=max_retries,
            retry_delay=retry_delay,
            sleep=sleep,
            is_mounted=lambda: self.mounted,
            on_warning=self._warn,
        )
        self._last_outcome: Optional[ConfirmationOutcome] = None

    # --- Helpers ---

    def _require_step(self, *steps: WizardStep) -> None:
        if not self.mounted:
            raise InvalidTransition("The membership wizard is closed")
        if self.state.step not in steps:
            expected = ", ".join(s.value for s in steps)
            raise InvalidTransition(f"Expected step {expected}, current step is {self.state.step.value}")

    def _advance(self, target: WizardStep, payload: Dict[str, Any]) -> None:
        previous = self.state.step
        self.state.step = next_step(previous, target)
        self.state.error = None
        logger.info("wizard.step %s -> %s", previous.value, target.value)
        if self._on_continue:
            self._on_continue(target, payload)

    def _warn(self, message: str) -> None:
        self.state.warnings.append(message)
        if self._on_warning:
            self._on_warning(message)

    # --- Étapes ---

    def confirm_membership(self) -> None:
        """membership -> contactInfo: seule l'intention d'adhérer est transmise."""
        self._require_step(WizardStep.MEMBERSHIP)
        self.state.wants_to_join = True
        self._advance(WizardStep.CONTACT_INFO, {})

    async def submit_contact_info(self, data: Dict[str, Any]) -> Optional[AccountSession]:
        """
        contactInfo -> paymentMethod, uniquement si connexion/inscription réussit.
        En cas d'échec: pas d'avancée, message dans state.error, retourne None.
        """
        self._require_step(WizardStep.CONTACT_INFO)
        try:
            contact = parse_contact_info(data)
        except ValidationError as e:
            self.state.error = e.message
            return None

        self.state.error = None
        try:
            session = await self._accounts.sign_in_or_register(contact.credentials(), contact.signup_payload())
        except MembershipError as e:
            if self.mounted:
                self.state.error = e.message or "Server error during signup/login"
            return None
        if not self.mounted:
            logger.info("wizard.contact late result ignored (wizard closed)")
            return None

        self.state.user_id = session.user_id
        self.state.auth_token = session.auth_token
        self.state.subscription = PendingSubscription(user_id=session.user_id, pricing_base=self._base_price)
        self._advance(WizardStep.PAYMENT_METHOD, {"userId": session.user_id})
        return session

    async def apply_promo_code(self, code: str) -> Optional[Quote]:
        """
        Valide un code promo et recalcule le prix.
        - code refusé: remise remise à 0, message dans state.promo_message, nouvel essai possible
        - remise qui ramènerait le montant à 0: refusée, remise courante inchangée
        - montant modifié: l'intent courant est invalidé (recréé avant la prochaine confirmation)
        """
        self._require_step(WizardStep.PAYMENT_METHOD, *PAYMENT_FORMS.values())
        subscription = self.state.subscription
        try:
            discount = await self._promo.validate(code, self.state.auth_token)
        except ValidationError as e:
            if not self.mounted:
                return None
            if subscription.clear_discount():
                self.orchestrator.invalidate_intent("promo code rejected")
            self.state.promo_message = e.message
            return subscription.quote()
        except MembershipError as e:
            if self.mounted:
                self.state.promo_message = e.message
            return None
        if not self.mounted:
            return None

        # Un intent exige un montant > 0: la remise courante est conservée
        if price(subscription.pricing_base, discount).final_amount <= 0:
            logger.info("wizard.promo refused code=%s discount=%s (nothing left to pay)", code.strip(), discount)
            self.state.promo_message = FREE_PROMO_MESSAGE
            return subscription.quote()

        if subscription.apply_discount(discount, code.strip()):
            self.orchestrator.invalidate_intent("promo code applied")
        self.state.promo_message = None
        quote = subscription.quote()
        logger.info("wizard.promo applied discount=%s final=%s", quote.discount_percent, quote.final_amount)
        return quote

    async def select_payment_method(self, kind: Any) -> Optional[CaptureSession]:
        """paymentMethod -> paymentForm_X: sélection pure; le wallet vérifie la capacité de l'appareil."""
        self._require_step(WizardStep.PAYMENT_METHOD)
        try:
            kind = CaptureKind(kind)
        except ValueError:
            raise InvalidTransition(f"Unknown payment method: {kind}")

        capture = make_capture(kind, self._gateway)
        if isinstance(capture, WalletCapture):
            try:
                await capture.check_availability()
            except Exception:
                logger.exception("wizard.wallet availability check failed")
                capture.availability = WalletAvailability(False, WALLET_CHECK_FAILED_MESSAGE)
            if not self.mounted:
                capture.destroy()
                return None
        self.capture = capture
        self.state.payment_kind = kind
        self._advance(form_step_for(kind), {"method": kind.value, "userId": self.state.user_id})
        return capture

    @property
    def wallet_availability(self) -> Optional[WalletAvailability]:
        if isinstance(self.capture, WalletCapture):
            return self.capture.availability
        return None

    def update_card_field(self, field_name: str, value: str) -> Optional[str]:
        self._require_step(WizardStep.PAYMENT_FORM_CARD)
        if not isinstance(self.capture, CardCapture):
            raise InvalidTransition("No card form is mounted")
        return self.capture.update(field_name, value)

    @property
    def submit_enabled(self) -> bool:
        if not self.mounted or self.state.step not in PAYMENT_FORMS.values() or self.capture is None:
            return False
        if isinstance(self.capture, WalletCapture):
            availability = self.capture.availability
            if availability is None or not availability.available:
                return False
        return self.orchestrator.submit_enabled

    async def submit_payment(self, billing_details: Optional[Dict[str, Any]] = None) -> Optional[ConfirmationOutcome]:
        """
        paymentForm_X -> done, uniquement sur succès de la confirmation.
        Échec: on reste sur l'étape (données saisies conservées, élément de capture réinitialisé).
        Retourne None si une soumission est déjà en cours.
        """
        self._require_step(*PAYMENT_FORMS.values())
        if self.state.auth_token is None:
            raise ClientError("Authentication token is missing. Please log in again.", 401)
        expected = capture_kind_for(self.state.step)
        if self.capture is None or self.capture.kind is not expected:
            raise InvalidTransition(f"No {expected.value} capture is mounted")

        outcome = await self.orchestrator.confirm(
            self.capture, self.state.auth_token, self.state.subscription, billing_details
        )
        if outcome is None:
            return None
        self._last_outcome = outcome
        if not self.mounted:
            logger.info("wizard.payment late outcome ignored kind=%s", outcome.kind.value)
            return outcome

        if outcome.succeeded:
            self._advance(WizardStep.DONE, {"intentId": outcome.intent_id, "userId": self.state.user_id})
            self._finish()
        else:
            self.state.error = outcome.message
        return outcome

    @property
    def notification(self) -> Optional["asyncio.Task[Optional[str]]"]:
        """Tâche d'envoi de l'email de confirmation (dernier paiement réussi)."""
        if self._last_outcome is None:
            return None
        return self._last_outcome.notification

    # --- Fermeture ---

    def _teardown(self) -> None:
        if self.capture is not None:
            self.capture.destroy()
            self.capture = None
        self.mounted = False
        if self._on_close:
            self._on_close()

    def _finish(self) -> None:
        # Paiement réglé: l'adhésion en attente est consommée; étape et avertissements conservés
        self.state.subscription = None
        self.state.auth_token = None
        self._teardown()

    def close(self) -> None:
        """Fermeture à n'importe quelle étape: l'état partiel est jeté."""
        if not self.mounted:
            return
        logger.info("wizard.close at step=%s", self.state.step.value)
        self.state = WizardState()
        self._teardown()
