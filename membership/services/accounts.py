"""
Client du service de comptes (/users/signup, /users/login).
Les refus (email déjà utilisé, identifiants invalides) remontent en
ValidationError avec le message du serveur, affiché tel quel dans le formulaire.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from membership.errors import ClientError, ValidationError
from membership.http import ApiClient

logger = logging.getLogger(__name__)


@dataclass
class AccountSession:
    user_id: str
    auth_token: str
    user: Dict[str, Any] = field(default_factory=dict)


def _session_from(body: Dict[str, Any], action: str) -> AccountSession:
    user = body.get("user") or {}
    user_id = user.get("id") or user.get("_id")
    if not user_id:
        raise ValidationError(f"{action} response does not contain user ID")
    token = body.get("token") or body.get("access_token")
    if not token:
        raise ValidationError(f"{action} response does not contain an auth token")
    return AccountSession(user_id=str(user_id), auth_token=token, user=user)


class AccountService:
    def __init__(self, api: ApiClient):
        self._api = api

    async def signup(self, profile: Dict[str, Any]) -> AccountSession:
        try:
            body = await self._api.post("/users/signup", json=profile)
        except ClientError as e:
            raise ValidationError(e.message or "Signup failed", e.status_code) from e
        session = _session_from(body, "Signup")
        logger.info("accounts.signup ok user_id=%s", session.user_id)
        return session

    async def login(self, credentials: Dict[str, Any]) -> AccountSession:
        try:
            body = await self._api.post("/users/login", json=credentials)
        except ClientError as e:
            raise ValidationError(e.message or "Login failed", e.status_code) from e
        session = _session_from(body, "Login")
        logger.info("accounts.login ok user_id=%s", session.user_id)
        return session

    async def sign_in_or_register(self, credentials: Dict[str, Any], profile: Dict[str, Any]) -> AccountSession:
        """
        Étape contact du wizard:
        - tente d'abord une connexion (membre qui revient)
        - en cas de refus, bascule sur l'inscription avec le profil complet
        Les erreurs réseau/5xx ne déclenchent pas la bascule.
        """
        try:
            return await self.login(credentials)
        except ValidationError as e:
            logger.info("accounts.login refused (%s), proceeding with signup", e.message)
        return await self.signup(profile)
