from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List

from backend.utils.rate_limit import optional_rate_limit
from .service import login as svc_login, signup as svc_signup

# --- API Router (/api/v1/users) ---

api_router = APIRouter(prefix="/api/v1/users", tags=["Users API"])

class ContactInfoPayload(BaseModel):
    phone: str = ""
    address: str = ""
    specialties: List[str] = Field(default_factory=list)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    contactInfo: Optional[ContactInfoPayload] = None

@api_router.post("/login", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_login(req: LoginRequest):
    """Connexion (API JSON).
    - 401 si les identifiants sont refusés (le client bascule alors sur /signup)
    - Retourne {token, user: {id, email, name}}
    """
    result = svc_login(req.email, req.password)
    if not result.success:
        raise HTTPException(status_code=result.status_code, detail=result.error or "Invalid email or password")
    return result.to_payload()

@api_router.post("/signup", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
def api_signup(req: SignupRequest):
    """Inscription (API JSON) avec les coordonnées saisies dans le wizard.
    - 400 si l'email existe déjà ou si la session n'est pas ouverte (email à confirmer)
    - Retourne {token, user: {id, email, name}}
    """
    contact_info = req.contactInfo.model_dump() if req.contactInfo else None
    result = svc_signup(req.email, req.password, req.name, contact_info=contact_info)
    if not result.success:
        raise HTTPException(status_code=result.status_code, detail=result.error or "Signup failed")
    return result.to_payload()
