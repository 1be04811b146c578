import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from backend.utils.security import require_user, require_admin
from backend.utils.rate_limit import optional_rate_limit
from backend.payments import stripe_client
from backend.payments import service as payments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

class CreateIntentRequest(BaseModel):
    amount: float
    userId: Optional[str] = None
    promoCode: Optional[str] = None

# module backend.payments.views
@router.post("/create-payment-intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_payment_intent(req: CreateIntentRequest, user: Dict[str, Any] = Depends(require_user)):
    """
    Crée un PaymentIntent Stripe pour l'adhésion.
    - Entrée JSON: {"amount": 89.91, "userId": "<id>", "promoCode": "SAVE25"}
    - Le montant doit égaler le tarif recalculé côté serveur (base + promoCode), sinon 400
    - Sécurité: require_user + rate limit (10 req / 60s)
    - Erreurs: 400 si amount <= 0, 500 si Stripe échoue
    """
    return payments_service.create_membership_intent(
        amount=req.amount,
        user_id=req.userId,
        current_user_id=user.get("id", ""),
        promo_code=req.promoCode,
    )

@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe: consomme payment_intent.succeeded.
    - Signature: valide via stripe_client.parse_event (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - Réponses: {"status": "ok", ...} ou {"status": "ignored"}
    - Erreurs: 400 si signature/payload invalide
    """
    try:
        event = await stripe_client.parse_event(request)
    except Exception:
        logger.exception("Erreur webhook_stripe")
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook payload")
    return JSONResponse(payments_service.handle_event(event))

@router.get("/transactions")
def list_transactions(
    status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    admin: Dict[str, Any] = Depends(require_admin),
):
    """Suivi des revenus (admin): {transactions, totalRevenue}."""
    return payments_service.get_transactions(status=status, start_date=start_date, end_date=end_date)
