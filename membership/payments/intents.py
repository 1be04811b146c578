"""
Client Payment-Intent: demande au backend un intent Stripe pour un montant donné.
Chaque appel alloue un nouvel intent côté serveur (aucune idempotence supposée).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from membership.errors import PaymentError, ValidationError
from membership.http import ApiClient
from membership.pricing import to_decimal
from membership.tokens import ensure_token

logger = logging.getLogger(__name__)


class IntentStatus(str, Enum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_ACTION = "requires_action"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "IntentStatus":
        try:
            return cls(str(value or ""))
        except ValueError:
            return cls.UNKNOWN


@dataclass
class PaymentIntentRef:
    """Référence locale sur un intent détenu par la passerelle (client secret + dernier statut connu)."""

    intent_id: str
    client_secret: str
    amount: Decimal
    status: IntentStatus = IntentStatus.REQUIRES_PAYMENT_METHOD


def intent_id_from_secret(client_secret: str) -> str:
    # pi_123_secret_abc -> pi_123
    return client_secret.split("_secret_")[0]


class IntentClient:
    def __init__(self, api: ApiClient):
        self._api = api

    async def create_intent(
        self,
        auth_token: Optional[str],
        amount: Any,
        subject_user_id: Optional[str],
        promo_code: Optional[str] = None,
    ) -> PaymentIntentRef:
        """
        POST /payments/create-payment-intent
        - promo_code transmis pour que le backend recalcule le montant attendu
        - ClientError si jeton absent/expiré ou si le backend répond 400/401/403
        - TransientError sur erreur réseau/5xx (le retry est géré par l'orchestrateur)
        """
        token = ensure_token(auth_token)
        amount_d = to_decimal(amount)
        if amount_d <= 0:
            raise ValidationError("Amount must be greater than 0")

        payload = {"amount": float(amount_d), "userId": subject_user_id}
        if promo_code:
            payload["promoCode"] = promo_code
        body = await self._api.post("/payments/create-payment-intent", json=payload, token=token)
        client_secret = body.get("clientSecret") or body.get("client_secret")
        if not client_secret:
            raise PaymentError("Payment intent not available. Please try again.")
        intent = PaymentIntentRef(
            intent_id=body.get("intentId") or intent_id_from_secret(client_secret),
            client_secret=client_secret,
            amount=amount_d,
            status=IntentStatus.parse(body.get("status") or IntentStatus.REQUIRES_PAYMENT_METHOD.value),
        )
        logger.info("payments.intent created intent_id=%s amount=%s", intent.intent_id, amount_d)
        return intent
