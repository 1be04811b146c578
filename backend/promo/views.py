from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from backend.utils.security import require_user, require_admin
from backend.utils.rate_limit import optional_rate_limit
from . import service as promo_service

router = APIRouter(prefix="/api/v1/promo-codes", tags=["Promo codes API"])

class ValidateRequest(BaseModel):
    code: str

class CreateRequest(BaseModel):
    code: str = Field(min_length=1)
    discountPercentage: int = Field(ge=1, le=100)
    expiryDate: datetime

@router.post("/validate", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def validate_promo_code(req: ValidateRequest, user: Dict[str, Any] = Depends(require_user)):
    return promo_service.validate_code(req.code)

@router.post("/create", status_code=201)
def create_promo_code(req: CreateRequest, admin: Dict[str, Any] = Depends(require_admin)):
    """Création d'un code (admin). 400 si le code existe déjà."""
    return promo_service.create_code(code=req.code, discount_percentage=req.discountPercentage, expiry_date=req.expiryDate)

@router.get("/list")
def list_promo_codes(admin: Dict[str, Any] = Depends(require_admin)):
    return promo_service.list_codes()
