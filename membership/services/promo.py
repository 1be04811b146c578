"""
Client de validation des codes promo (/promo-codes/validate).
"""
import logging
from decimal import Decimal
from typing import Optional

from membership.errors import ClientError, ValidationError
from membership.http import ApiClient
from membership.pricing import to_decimal
from membership.tokens import ensure_token

logger = logging.getLogger(__name__)

INVALID_PROMO_MESSAGE = "Invalid or expired promo code"


class PromoService:
    def __init__(self, api: ApiClient):
        self._api = api

    async def validate(self, code: Optional[str], auth_token: Optional[str]) -> Decimal:
        """
        Résout un code promo en pourcentage de remise.
        - ValidationError si le code est vide, inconnu ou expiré
        - ClientError si la session est absente/expirée (401/403)
        """
        code = (code or "").strip()
        if not code:
            raise ValidationError("Promo code is required")
        token = ensure_token(auth_token)
        try:
            body = await self._api.post("/promo-codes/validate", json={"code": code}, token=token)
        except ClientError as e:
            if e.status_code in (401, 403):
                raise
            raise ValidationError(e.message or INVALID_PROMO_MESSAGE, e.status_code) from e

        percent = to_decimal(body.get("discountPercentage"), "discount percentage")
        if percent < 0 or percent > 100:
            raise ValidationError(INVALID_PROMO_MESSAGE)
        logger.info("promo.validate ok code=%s discount=%s", code, percent)
        return percent
