from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from backend.utils.security import require_user
from . import service as notifications_service

router = APIRouter(prefix="/api/v1/email", tags=["Email API"])

class SubscriptionEmailRequest(BaseModel):
    userId: Optional[str] = None
    promoCode: Optional[str] = None

@router.post("/send-subscription-email")
async def send_subscription_email(req: SubscriptionEmailRequest, user: Dict[str, Any] = Depends(require_user)):
    """Email de bienvenue après paiement (appelé en best-effort par le client)."""
    return await notifications_service.send_subscription_email(req.userId, req.promoCode)
