from typing import Optional, Dict, Any
import logging
from backend.auth.models import AuthResponse, make_auth_response, handle_exception
from backend.config import ADMIN_EMAILS
from backend.users.repository import get_user_by_email, upsert_user_profile
from .repository import (
    auth_sign_in_password as sign_in_password,
    auth_sign_up_account as sign_up_account,
    get_user_from_access_token as _repo_get_user_from_token,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
USER_EXISTS = "User already exists"

def determine_role(email: Optional[str], metadata: Dict[str, Any] | None) -> str:
    if str((metadata or {}).get("role", "")).lower() == "admin":
        return "admin"
    if email and email.strip().lower() in ADMIN_EMAILS:
        return "admin"
    return "user"

# --- Cas d'usage Auth exposés ---

def login(email: str, password: str) -> AuthResponse:
    """Connexion:
    - Délègue à supabase.auth.sign_in_with_password via repository
    - Identifiants refusés par GoTrue -> 401 (le client bascule alors sur l'inscription)
    """
    try:
        email = (email or "").strip()
        res = sign_in_password(email, password)
        return make_auth_response(res, fallback_error=INVALID_CREDENTIALS)
    except Exception as e:
        msg = str(e).lower()
        if any(k in msg for k in ["invalid", "credentials", "not confirmed", "not found"]):
            logger.info("auth.login refused email=%s", email)
            return AuthResponse(False, error=INVALID_CREDENTIALS, status_code=401)
        return handle_exception("login", e)

def signup(email: str, password: str, name: str, contact_info: Optional[Dict[str, Any]] = None) -> AuthResponse:
    """Inscription:
    - Refuse un email déjà présent dans la table users (400)
    - Injecte name dans user_metadata
    - Synchronise le profil applicatif (coordonnées, spécialités) en best-effort
    """
    try:
        email = (email or "").strip()
        if get_user_by_email(email):
            return AuthResponse(False, error=USER_EXISTS, status_code=400)

        res = sign_up_account(email=email, password=password, options_data={"name": (name or "").strip()})
        result = make_auth_response(
            res,
            fallback_error="Signup succeeded, please confirm your email before logging in",
            status_code=400,
        )
        user = getattr(res, "user", None)
        user_id = getattr(user, "id", None)
        if user_id:
            try:
                upsert_user_profile(
                    user_id,
                    email,
                    name=(name or "").strip(),
                    role=determine_role(email, {}),
                    contact_info=contact_info,
                )
            except Exception:
                logger.exception("auth.signup profile sync failed user_id=%s", user_id)
        return result
    except Exception as e:
        msg = str(e).lower()
        if any(k in msg for k in ["already", "register", "exists", "23505"]):
            return AuthResponse(False, error=USER_EXISTS, status_code=400)
        return handle_exception("signup", e)

# --- Intégration sécurité ---

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise l'utilisateur issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, name, role, token}
    """
    raw = _repo_get_user_from_token(access_token)
    email = raw.get("email")
    metadata = raw.get("user_metadata") or {}
    return {
        "id": raw.get("id"),
        "email": email,
        "name": metadata.get("name") or "",
        "role": determine_role(email, metadata),
        "token": access_token,
    }
