"""
Adaptateur Stripe: centralise les appels et la configuration Stripe (clé secrète).
"""
import stripe
from typing import Any, Dict
from fastapi import Request
from backend.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET as WEBHOOK_SECRET

# module backend.payments.stripe_client
def require_stripe() -> stripe:
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe

def create_payment_intent(*, amount_cents: int, currency: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crée un PaymentIntent carte pour l'adhésion.
    - amount_cents: montant en centimes (entier)
    - metadata: ex {"userId": "..."} (relu par le webhook)
    Retour: dict-compatible (id, client_secret, amount, status, ...)
    """
    require_stripe()
    intent = stripe.PaymentIntent.create(
        amount=amount_cents,
        currency=currency,
        payment_method_types=["card"],
        metadata=metadata,
    )
    return intent

async def parse_event(request: Request):
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    Retour: l'objet event si la signature est valide.
    """
    require_stripe()
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or request.headers.get("Stripe-Signature")
    event = stripe.Webhook.construct_event(payload, sig_header, WEBHOOK_SECRET or "")
    return event
