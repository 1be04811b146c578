"""
Vérification locale du jeton d'authentification avant un appel protégé.
Le jeton (JWT Supabase) est décodé sans vérification de signature: seule
l'expiration est contrôlée côté client, le backend reste l'autorité.
"""
import time
from typing import Optional

import jwt

from membership.errors import ClientError

MISSING_TOKEN_MESSAGE = "Please ensure you're logged in or joined to make a payment."
EXPIRED_TOKEN_MESSAGE = "Your session has expired. Please log in again."


def ensure_token(auth_token: Optional[str], *, leeway: int = 0) -> str:
    """
    Retourne le jeton nettoyé, ou lève ClientError(401) s'il est absent ou expiré.
    Un jeton opaque (non JWT) est accepté tel quel.
    """
    token = (auth_token or "").strip()
    if not token:
        raise ClientError(MISSING_TOKEN_MESSAGE, 401)
    try:
        claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return token
    exp = claims.get("exp")
    if exp is None:
        return token
    try:
        expires_at = float(exp)
    except (TypeError, ValueError):
        # exp illisible: jeton traité comme opaque
        return token
    if expires_at + leeway <= time.time():
        raise ClientError(EXPIRED_TOKEN_MESSAGE, 401)
    return token
