"""
Cas d'usage 'promo': validation, création et liste des codes de réduction.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging
from fastapi import HTTPException
from . import repository

logger = logging.getLogger(__name__)

INVALID_PROMO_MESSAGE = "Invalid or expired promo code"

def _now_iso(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()

def to_public(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "code": row.get("code"),
        "discountPercentage": row.get("discount_percentage"),
        "expiryDate": row.get("expiry_date"),
        "isActive": bool(row.get("is_active")),
    }

def discount_for_code(code: Optional[str], now: Optional[datetime] = None) -> int:
    """Pourcentage du code s'il est actif et non expiré, sinon 0."""
    code = (code or "").strip()
    if not code:
        return 0
    row = repository.find_active_code(code, _now_iso(now))
    return int((row or {}).get("discount_percentage") or 0)

def validate_code(code: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """{discountPercentage} ou 400 Invalid or expired promo code."""
    code = (code or "").strip()
    row = repository.find_active_code(code, _now_iso(now)) if code else None
    if not row:
        logger.info("promo.validate refused code=%s", code)
        raise HTTPException(status_code=400, detail=INVALID_PROMO_MESSAGE)
    return {"discountPercentage": int(row.get("discount_percentage") or 0)}

def create_code(*, code: str, discount_percentage: int, expiry_date: datetime) -> Dict[str, Any]:
    code = code.strip()
    try:
        exists = repository.code_exists(code)
    except Exception:
        logger.exception("promo.create lookup failed code=%s", code)
        raise HTTPException(status_code=500, detail="Error creating promo code")
    if exists:
        raise HTTPException(status_code=400, detail="Promo code already exists")
    row = repository.insert_code(code=code, discount_percentage=discount_percentage, expiry_date=expiry_date.isoformat())
    if row is None:
        raise HTTPException(status_code=500, detail="Error creating promo code")
    logger.info("promo.create code=%s discount=%s", code, discount_percentage)
    return {"message": "Promo code created successfully", "promoCode": to_public(row)}

def list_codes() -> Dict[str, List[Dict[str, Any]]]:
    return {"promoCodes": [to_public(r) for r in repository.list_active_codes()]}
