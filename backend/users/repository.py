"""Couche d'accès aux données (Supabase) pour le domaine Utilisateurs.
Table users: id, email, name, role, phone, address, specialties, is_premium, premium_expiry.
Les lectures « catchent » les exceptions et renvoient None afin de ne pas casser l'UX.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
import logging
from backend.infra.supabase_client import get_service_supabase

logger = logging.getLogger(__name__)

def get_user_by_email(email: str) -> Optional[dict]:
    """Récupère un utilisateur par email (table users).
    - Retour: dict utilisateur ou None si introuvable/erreur
    """
    if not email:
        return None
    try:
        res = get_service_supabase().table("users").select("*").eq("email", email.strip().lower()).limit(1).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("users.repository.get_user_by_email failed")
        return None

def get_user_by_id(user_id: str) -> Optional[dict]:
    """Récupère un utilisateur par id (table users).
    - Retour: dict utilisateur ou None si introuvable/erreur
    """
    if not user_id:
        return None
    try:
        res = get_service_supabase().table("users").select("*").eq("id", user_id).limit(1).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("users.repository.get_user_by_id failed user_id=%s", user_id)
        return None

def upsert_user_profile(
    user_id: str,
    email: str,
    *,
    name: Optional[str] = None,
    role: Optional[str] = None,
    contact_info: Optional[Dict[str, Any]] = None,
) -> bool:
    """Crée ou met à jour le profil applicatif (clé de service, bypass RLS).
    - Champs écrits: id, email, name/role (optionnels), phone/address/specialties (contactInfo)
    - Retour: True si succès, False sinon
    """
    if not user_id:
        return False
    payload: Dict[str, Any] = {"id": user_id, "email": (email or "").strip().lower()}
    if name:
        payload["name"] = name
    if role:
        payload["role"] = role
    if contact_info:
        payload["phone"] = contact_info.get("phone") or ""
        payload["address"] = contact_info.get("address") or ""
        specialties: List[str] = contact_info.get("specialties") or []
        payload["specialties"] = list(specialties)
    try:
        get_service_supabase().table("users").upsert(payload).execute()
        return True
    except Exception:
        logger.exception("users.repository.upsert_user_profile failed user_id=%s", user_id)
        return False

def mark_premium(user_id: str, days: int, now: Optional[datetime] = None) -> bool:
    """Active l'adhésion premium pour `days` jours à partir de maintenant."""
    now = now or datetime.now(timezone.utc)
    expiry = now + timedelta(days=days)
    try:
        (
            get_service_supabase()
            .table("users")
            .update({"is_premium": True, "premium_expiry": expiry.isoformat()})
            .eq("id", user_id)
            .execute()
        )
        return True
    except Exception:
        logger.exception("users.repository.mark_premium failed user_id=%s", user_id)
        return False
