"""
Adaptateur passerelle de paiement (Stripe, clé publique).
Centralise les appels SDK et la traduction des erreurs Stripe vers la
taxonomie du parcours. Le SDK stripe est synchrone: les appels passent par
asyncio.to_thread pour ne pas bloquer la boucle d'événements.
"""
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import stripe

from membership.config import CURRENCY, MEMBERSHIP_LABEL, PAYMENT_RETURN_URL, STRIPE_PUBLIC_KEY
from membership.errors import CardError, ClientError, MembershipError, PaymentError, TransientError
from .intents import IntentStatus, PaymentIntentRef

logger = logging.getLogger(__name__)

# Reçoit l'URL du challenge 3-D Secure, retourne True si l'utilisateur l'a passé
ChallengeHandler = Callable[[Optional[str]], Awaitable[bool]]


class CaptureKind(str, Enum):
    CARD = "card"
    WALLET = "wallet"


@dataclass
class GatewayResult:
    status: IntentStatus
    next_action_url: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class WalletAvailability:
    available: bool
    reason: Optional[str] = None


class WalletProvider:
    """Pont vers le wallet de l'appareil (Apple Pay, Google Pay), fourni par l'UI hôte."""

    async def can_make_payment(self) -> bool:
        raise NotImplementedError

    async def present(self, *, label: str, amount: Decimal, currency: str, country: str) -> str:
        """Affiche la feuille de paiement et retourne un token carte (tok_...)."""
        raise NotImplementedError


class PaymentGateway:
    async def create_payment_method(
        self,
        kind: CaptureKind,
        details: Dict[str, Any],
        billing_details: Optional[Dict[str, Any]] = None,
    ) -> str:
        raise NotImplementedError

    async def wallet_availability(self) -> WalletAvailability:
        raise NotImplementedError

    async def collect_wallet_token(self, *, amount: Decimal, label: str = MEMBERSHIP_LABEL) -> str:
        raise NotImplementedError

    async def confirm_intent(self, intent: PaymentIntentRef, payment_method: str) -> GatewayResult:
        raise NotImplementedError

    async def handle_next_action(self, intent: PaymentIntentRef, result: GatewayResult) -> bool:
        raise NotImplementedError


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _stripe_message(e: stripe.StripeError) -> str:
    return getattr(e, "user_message", None) or str(e) or e.__class__.__name__


def translate_stripe_error(e: stripe.StripeError) -> MembershipError:
    status = getattr(e, "http_status", None)
    if isinstance(e, stripe.CardError):
        return CardError(_stripe_message(e), status)
    if isinstance(e, (stripe.APIConnectionError, stripe.RateLimitError)):
        return TransientError(_stripe_message(e), status)
    if isinstance(e, (stripe.InvalidRequestError, stripe.AuthenticationError)):
        return ClientError(_stripe_message(e), status)
    return PaymentError(_stripe_message(e), status)


class StripeGateway(PaymentGateway):
    def __init__(
        self,
        publishable_key: str = STRIPE_PUBLIC_KEY,
        *,
        challenge_handler: Optional[ChallengeHandler] = None,
        wallet_provider: Optional[WalletProvider] = None,
        currency: str = CURRENCY,
        return_url: str = PAYMENT_RETURN_URL,
    ):
        self._api_key = publishable_key
        self._challenge_handler = challenge_handler
        self._wallet_provider = wallet_provider
        self._currency = currency
        self._return_url = return_url

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        kwargs.setdefault("api_key", self._api_key)
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except stripe.StripeError as e:
            logger.warning("payments.gateway stripe error %s: %s", e.__class__.__name__, _stripe_message(e))
            raise translate_stripe_error(e) from e

    async def create_payment_method(
        self,
        kind: CaptureKind,
        details: Dict[str, Any],
        billing_details: Optional[Dict[str, Any]] = None,
    ) -> str:
        if kind is CaptureKind.WALLET:
            card = {"token": details["token"]}
        else:
            card = {
                "number": details["number"],
                "exp_month": details["exp_month"],
                "exp_year": details["exp_year"],
                "cvc": details["cvc"],
            }
        pm = await self._call(
            stripe.PaymentMethod.create,
            type="card",
            card=card,
            billing_details=billing_details or {},
        )
        return _field(pm, "id")

    async def wallet_availability(self) -> WalletAvailability:
        if self._wallet_provider is None:
            return WalletAvailability(False, "Wallet payments are not supported on this device or browser.")
        if not await self._wallet_provider.can_make_payment():
            return WalletAvailability(False, "No wallet is set up on this device.")
        return WalletAvailability(True)

    async def collect_wallet_token(self, *, amount: Decimal, label: str = MEMBERSHIP_LABEL) -> str:
        if self._wallet_provider is None:
            raise PaymentError("Wallet payments are not supported on this device or browser.")
        return await self._wallet_provider.present(label=label, amount=amount, currency=self._currency, country="US")

    def _result(self, pi: Any) -> GatewayResult:
        return GatewayResult(
            status=IntentStatus.parse(_field(pi, "status")),
            next_action_url=_field(_field(_field(pi, "next_action"), "redirect_to_url"), "url"),
            error_message=_field(_field(pi, "last_payment_error"), "message"),
        )

    async def confirm_intent(self, intent: PaymentIntentRef, payment_method: str) -> GatewayResult:
        """
        Confirme l'intent avec le moyen de paiement.
        Relit d'abord l'intent: une resoumission après challenge 3-D Secure
        ne reconfirme pas un intent déjà réglé.
        """
        current = await self._call(stripe.PaymentIntent.retrieve, intent.intent_id, client_secret=intent.client_secret)
        if IntentStatus.parse(_field(current, "status")) is IntentStatus.SUCCEEDED:
            return self._result(current)
        pi = await self._call(
            stripe.PaymentIntent.confirm,
            intent.intent_id,
            client_secret=intent.client_secret,
            payment_method=payment_method,
            return_url=self._return_url,
        )
        result = self._result(pi)
        logger.info("payments.gateway confirm intent_id=%s status=%s", intent.intent_id, result.status.value)
        return result

    async def handle_next_action(self, intent: PaymentIntentRef, result: GatewayResult) -> bool:
        if self._challenge_handler is None:
            logger.warning("payments.gateway no challenge handler for intent_id=%s", intent.intent_id)
            return False
        return bool(await self._challenge_handler(result.next_action_url))
