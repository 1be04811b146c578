"""
Accès aux données pour la feature 'payments' (table transactions).
"""
from typing import Any, Dict, List, Optional
import logging
# Import du module pour bénéficier des monkeypatchs de tests
import backend.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module backend.payments.repository
def get_transaction_by_payment_id(stripe_payment_id: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("transactions")
            .select("*")
            .eq("stripe_payment_id", stripe_payment_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("payments.repository.get_transaction_by_payment_id failed id=%s", stripe_payment_id)
        return None

def insert_transaction(
    *,
    user_id: Optional[str],
    amount: str,
    currency: str,
    stripe_payment_id: str,
    status: str,
) -> Optional[dict]:
    """
    Insert via service-role (bypass RLS): appelé par le webhook Stripe.
    - amount: montant en unités monétaires, formaté "89.91"
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("transactions")
            .insert({
                "user_id": user_id,
                "amount": amount,
                "currency": currency,
                "stripe_payment_id": stripe_payment_id,
                "status": status,
            })
            .execute()
        )
        rows = res.data or []
        return rows[0] if isinstance(rows, list) and rows else {"status": "ok"}
    except Exception:
        logger.exception("payments.repository.insert_transaction failed stripe_payment_id=%s", stripe_payment_id)
        return None

def list_transactions(
    *,
    status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Liste les transactions (admin), triées par date décroissante.
    - Filtres optionnels: status, created_at >= start_date, created_at <= end_date
    - En cas d'erreur: liste vide
    """
    try:
        query = supabase_client.get_service_supabase().table("transactions").select("*, users(name, email)")
        if status:
            query = query.eq("status", status)
        if start_date:
            query = query.gte("created_at", start_date)
        if end_date:
            query = query.lte("created_at", end_date)
        res = query.order("created_at", desc=True).execute()
        return res.data or []
    except Exception:
        logger.exception("payments.repository.list_transactions failed")
        return []
