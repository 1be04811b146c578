"""
Accès aux données pour la feature 'promo' (table promo_codes).
Colonnes: code, discount_percentage, expiry_date, is_active, created_at.
"""
from typing import Any, Dict, List, Optional
import logging
import backend.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

def find_active_code(code: str, now_iso: str) -> Optional[dict]:
    """Code actif et non expiré (expiry_date >= now), ou None."""
    if not code:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("promo_codes")
            .select("*")
            .eq("code", code)
            .eq("is_active", True)
            .gte("expiry_date", now_iso)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("promo.repository.find_active_code failed")
        return None

def code_exists(code: str) -> bool:
    res = (
        supabase_client.get_service_supabase()
        .table("promo_codes")
        .select("code")
        .eq("code", code)
        .limit(1)
        .execute()
    )
    return bool(res.data)

def insert_code(*, code: str, discount_percentage: int, expiry_date: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("promo_codes")
            .insert({
                "code": code,
                "discount_percentage": discount_percentage,
                "expiry_date": expiry_date,
                "is_active": True,
            })
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("promo.repository.insert_code failed code=%s", code)
        return None

def list_active_codes() -> List[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("promo_codes")
            .select("*")
            .eq("is_active", True)
            .order("created_at", desc=True)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("promo.repository.list_active_codes failed")
        return []
