from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

class AuthResponse:
    def __init__(
        self,
        success: bool,
        user: Optional[Dict[str, Any]] = None,
        session: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        status_code: int = 400,
    ):
        self.success = success
        self.user = user
        self.session = session
        self.error = error
        self.status_code = status_code

    @property
    def access_token(self):
        return (self.session or {}).get("access_token")

    def to_payload(self) -> Dict[str, Any]:
        """Corps JSON attendu par le client: {token, user: {id, email, name}}."""
        user = self.user or {}
        return {
            "token": self.access_token,
            "user": {"id": user.get("id"), "email": user.get("email"), "name": user.get("name")},
        }

def build_user_dict(user) -> Dict[str, Any]:
    from backend.auth.service import determine_role
    metadata = getattr(user, "user_metadata", None) or {}
    email = getattr(user, "email", None)
    return {
        "id": getattr(user, "id", None),
        "email": email,
        "name": metadata.get("name") or "",
        "role": determine_role(email, metadata),
    }

def build_session_dict(session) -> Dict[str, Any]:
    return {
        "access_token": getattr(session, "access_token", None),
        "refresh_token": getattr(session, "refresh_token", None),
    }

def make_auth_response(res, fallback_error: str = "Invalid email or password", status_code: int = 401) -> AuthResponse:
    sess = getattr(res, "session", None)
    user = getattr(res, "user", None)
    if not sess or not getattr(sess, "access_token", None):
        return AuthResponse(False, error=fallback_error, status_code=status_code)
    return AuthResponse(True, user=build_user_dict(user), session=build_session_dict(sess))

def handle_exception(action: str, e: Exception, status_code: int = 500) -> AuthResponse:
    logger.exception(f"Erreur {action}")
    return AuthResponse(False, error=f"Server error during {action}", status_code=status_code)
