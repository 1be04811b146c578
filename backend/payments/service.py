"""
Cas d'usage 'payments': création d'intent pour l'adhésion, webhook Stripe, revenus admin.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple
import logging

import stripe
from fastapi import HTTPException

from backend.config import MEMBERSHIP_BASE_PRICE, MEMBERSHIP_CURRENCY, PREMIUM_DURATION_DAYS
from backend.promo.service import discount_for_code
from backend.users import repository as users_repo
from . import repository
from . import stripe_client
from membership.pricing import price

logger = logging.getLogger(__name__)

AMOUNT_MISMATCH_MESSAGE = "Amount does not match the membership price"

def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)

def to_cents(amount: Any) -> int:
    """Montant en unités -> centimes entiers (arrondi au plus proche)."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise HTTPException(status_code=400, detail="Amount must be greater than 0")
    if not value.is_finite() or value <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than 0")
    return int((value * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))

def expected_amount(promo_code: Optional[str]) -> Tuple[Decimal, int]:
    """(montant attendu, remise %) recalculés côté serveur: tarif de base + code promo encore valide."""
    discount = discount_for_code(promo_code)
    return price(MEMBERSHIP_BASE_PRICE, discount).final_amount, discount

def create_membership_intent(
    *,
    amount: Any,
    user_id: Optional[str],
    current_user_id: str,
    promo_code: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée un PaymentIntent pour le montant (déjà remisé) calculé côté client.
    - 400 si amount <= 0
    - 400 si amount ne correspond pas au tarif recalculé (base + promo_code)
    - 500 si Stripe refuse (clé manquante, erreur API)
    Retour: {intentId, clientSecret, amount, status}
    """
    cents = to_cents(amount)
    expected, discount = expected_amount(promo_code)
    if cents != to_cents(expected):
        logger.warning("payments.intent amount mismatch amount_cents=%s expected=%s promo=%s", cents, expected, promo_code)
        raise HTTPException(status_code=400, detail=AMOUNT_MISMATCH_MESSAGE)
    metadata = {"userId": user_id or current_user_id, "discountPercentage": str(discount)}
    if discount:
        metadata["promoCode"] = promo_code.strip()
    try:
        intent = stripe_client.create_payment_intent(amount_cents=cents, currency=MEMBERSHIP_CURRENCY, metadata=metadata)
    except stripe.StripeError:
        logger.exception("payments.intent creation failed user_id=%s", metadata["userId"])
        raise HTTPException(status_code=500, detail="Payment intent creation failed")
    logger.info("payments.intent created intent_id=%s amount_cents=%s", _field(intent, "id"), cents)
    return {
        "intentId": _field(intent, "id"),
        "clientSecret": _field(intent, "client_secret"),
        "amount": cents / 100,
        "status": _field(intent, "status"),
    }

def _minimum_paid(metadata: Any) -> Decimal:
    # Remise figée à la création de l'intent (métadonnées posées par ce serveur)
    try:
        discount = Decimal(str(_field(metadata, "discountPercentage") or 0))
    except InvalidOperation:
        discount = Decimal(0)
    return price(MEMBERSHIP_BASE_PRICE, discount).final_amount

def _grant_premium(user_id: str, intent_id: str) -> None:
    """500 si l'activation échoue: Stripe relivre l'événement."""
    if not users_repo.mark_premium(user_id, PREMIUM_DURATION_DAYS):
        logger.error("payments.webhook premium activation failed intent_id=%s user_id=%s", intent_id, user_id)
        raise HTTPException(status_code=500, detail="Could not activate membership")

def _is_premium(user_id: str) -> bool:
    return bool((users_repo.get_user_by_id(user_id) or {}).get("is_premium"))

def handle_event(event: Any) -> Dict[str, Any]:
    """
    Consomme payment_intent.succeeded:
    - enregistre la transaction (idempotent sur stripe_payment_id)
    - active l'adhésion premium (PREMIUM_DURATION_DAYS jours) si le montant payé couvre le tarif
    - échec d'activation: 500, et une relivraison réessaie l'activation
    Les autres types sont ignorés.
    """
    if _field(event, "type") != "payment_intent.succeeded":
        return {"status": "ignored"}
    intent = _field(_field(event, "data"), "object") or {}
    intent_id = _field(intent, "id")
    if not intent_id:
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook payload")

    metadata = _field(intent, "metadata") or {}
    user_id = _field(metadata, "userId")
    if user_id == "anonymous":
        user_id = None
    amount = Decimal(int(_field(intent, "amount") or 0)) / 100
    paid_enough = amount >= _minimum_paid(metadata)
    if user_id and not paid_enough:
        logger.warning("payments.webhook underpaid intent_id=%s user_id=%s amount=%s", intent_id, user_id, amount)

    if repository.get_transaction_by_payment_id(intent_id):
        logger.info("payments.webhook duplicate intent_id=%s", intent_id)
        if user_id and paid_enough and not _is_premium(user_id):
            _grant_premium(user_id, intent_id)
            logger.info("payments.webhook premium activated on redelivery intent_id=%s user_id=%s", intent_id, user_id)
            return {"status": "ok", "duplicate": True, "premium": True}
        return {"status": "ok", "duplicate": True}

    row = repository.insert_transaction(
        user_id=user_id,
        amount=f"{amount:.2f}",
        currency=_field(intent, "currency") or MEMBERSHIP_CURRENCY,
        stripe_payment_id=intent_id,
        status="succeeded",
    )
    if row is None:
        raise HTTPException(status_code=500, detail="Could not record transaction")
    premium = bool(user_id) and paid_enough
    if premium:
        _grant_premium(user_id, intent_id)
    logger.info("payments.webhook recorded intent_id=%s user_id=%s premium=%s", intent_id, user_id, premium)
    return {"status": "ok", "premium": premium}

def get_transactions(*, status: Optional[str] = None, start_date: Optional[str] = None, end_date: Optional[str] = None) -> Dict[str, Any]:
    transactions = repository.list_transactions(status=status, start_date=start_date, end_date=end_date)
    total = sum((Decimal(str(t.get("amount") or 0)) for t in transactions), Decimal(0))
    return {"transactions": transactions, "totalRevenue": float(total)}
