"""
Cas d'usage 'notifications': email de bienvenue après paiement de l'adhésion.
Le montant affiché est recalculé côté serveur (tarif de base + code promo encore valide).
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple
import logging

from fastapi import HTTPException

from backend.config import MEMBERSHIP_BASE_PRICE, SUPPORT_EMAIL
from backend.promo.service import discount_for_code
from backend.users.repository import get_user_by_id
from membership.pricing import price
from .email import EmailService, get_email_service

logger = logging.getLogger(__name__)

SUBJECT = "Welcome to Elite Healthspan – Your Subscription is Active!"

def build_subscription_email(name: str, final_price: Decimal, support_email: str, year: int) -> Tuple[str, str, str]:
    """Retourne (sujet, texte, html)."""
    text = (
        f"Welcome to Elite Healthspan, {name}!\n\n"
        f"We're thrilled to confirm that your annual membership subscription of ${final_price:.2f} has been successfully activated.\n"
        "You now have full access to Elite Healthspan's exclusive network and resources to enhance your wellness journey.\n\n"
        "What's Next?\n"
        "- Connect with top providers, scientists, and practitioners.\n"
        "- Access state-of-the-art knowledge and insights.\n"
        "- Explore innovative therapies and treatments.\n\n"
        f"If you have any questions or need assistance, feel free to reach out to us at {support_email}.\n\n"
        "Thank you for joining Elite Healthspan!\n"
        "Best regards,\n"
        "The Elite Healthspan Team\n\n"
        f"© {year} Elite Healthspan. All rights reserved.\n"
    )
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<h2 style="color: #0B0757;">Welcome to Elite Healthspan, {name}!</h2>'
        '<p style="color: #333; font-size: 16px;">'
        f"We're thrilled to confirm that your annual membership subscription of ${final_price:.2f} has been successfully activated. "
        "You now have full access to Elite Healthspan's exclusive network and resources to enhance your wellness journey.</p>"
        '<p style="color: #333; font-size: 16px;"><strong>What\'s Next?</strong><br/>'
        "- Connect with top providers, scientists, and practitioners.<br/>"
        "- Access state-of-the-art knowledge and insights.<br/>"
        "- Explore innovative therapies and treatments.</p>"
        '<p style="color: #333; font-size: 16px;">If you have any questions or need assistance, feel free to reach out to us at '
        f'<a href="mailto:{support_email}" style="color: #0B0757;">{support_email}</a>.</p>'
        '<p style="color: #333; font-size: 16px;">Thank you for joining Elite Healthspan!<br/>Best regards,<br/>The Elite Healthspan Team</p>'
        '<hr style="border: 1px solid #eee;" />'
        f'<p style="color: #666; font-size: 12px; text-align: center;">© {year} Elite Healthspan. All rights reserved.</p>'
        "</div>"
    )
    return SUBJECT, text, html

async def send_subscription_email(
    user_id: Optional[str],
    promo_code: Optional[str] = None,
    email_service: Optional[EmailService] = None,
) -> dict:
    """
    - 400 si userId manquant, 404 si l'utilisateur est inconnu
    - code promo invalide/expiré: remise 0 (l'email part quand même)
    - 500 si l'envoi SMTP échoue
    """
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID is required")
    user = get_user_by_id(user_id)
    if not user:
        logger.warning("notifications.subscription unknown user_id=%s", user_id)
        raise HTTPException(status_code=404, detail="User not found")

    discount = discount_for_code(promo_code)
    final_price = price(MEMBERSHIP_BASE_PRICE, discount).final_amount
    subject, text, html = build_subscription_email(
        user.get("name") or "Member",
        final_price,
        SUPPORT_EMAIL,
        datetime.now(timezone.utc).year,
    )
    try:
        await (email_service or get_email_service()).send_email(user.get("email"), subject, text, html)
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to send subscription email")
    return {"message": "Subscription email sent successfully"}
