from typing import Optional

from membership.http import ApiClient
from membership.tokens import ensure_token


class NotificationService:
    """Envoi de l'email de confirmation d'abonnement (/email/send-subscription-email)."""

    def __init__(self, api: ApiClient):
        self._api = api

    async def send_subscription_confirmation(
        self,
        auth_token: Optional[str],
        user_id: str,
        promo_code: Optional[str] = None,
    ) -> bool:
        token = ensure_token(auth_token)
        payload = {"userId": user_id}
        if promo_code:
            payload["promoCode"] = promo_code
        await self._api.post("/email/send-subscription-email", json=payload, token=token)
        return True
