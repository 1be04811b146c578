"""
Module 'payments' (feature-first): point d'entrée public.
Réunit client Stripe, repository BD (transactions) et services.
"""

from .stripe_client import require_stripe, create_payment_intent, parse_event
from .repository import get_transaction_by_payment_id, insert_transaction, list_transactions
from .service import create_membership_intent, handle_event, get_transactions

__all__ = [
    # stripe
    "require_stripe",
    "create_payment_intent",
    "parse_event",
    # repository
    "get_transaction_by_payment_id",
    "insert_transaction",
    "list_transactions",
    # services
    "create_membership_intent",
    "handle_event",
    "get_transactions",
]
