"""
Formulaire de coordonnées (étape contactInfo).
Les règles sont vérifiées dans l'ordre d'affichage du formulaire: seule la
première erreur est remontée, comme message inline.
"""
import re
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from membership.errors import ValidationError

SPECIALTIES = [
    "Autoimmune",
    "Dentistry",
    "Functional Medicine",
    "Longevity Medicine",
    "Men's Health",
    "Neurodegenerative Disease",
    "Nutrition",
    "Orthopedic",
    "Regenerative Aesthetics",
    "Vision",
    "Women's Health",
]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\d{3}-\d{3}-\d{4}$")


def format_phone_number(value: str) -> str:
    """Reformate la saisie en XXX-XXX-XXXX au fil de la frappe (chiffres seuls, 10 max)."""
    cleaned = re.sub(r"\D", "", value or "")
    if len(cleaned) >= 6:
        return f"{cleaned[:3]}-{cleaned[3:6]}-{cleaned[6:10]}"
    if len(cleaned) >= 3:
        return f"{cleaned[:3]}-{cleaned[3:]}"
    return cleaned


class ContactInfo(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""
    phone: str = ""
    address: str = ""
    specialties: List[str] = Field(default_factory=list)
    accepted_terms: bool = False

    @field_validator("phone", mode="before")
    @classmethod
    def normalize_phone(cls, v: Any) -> str:
        return format_phone_number(str(v or ""))

    @field_validator("first_name", "last_name", "email", "password", "address", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> str:
        return str(v or "").strip()

    @model_validator(mode="after")
    def check_rules(self) -> "ContactInfo":
        if not self.accepted_terms:
            raise ValueError("You must agree to the Terms & Services")
        if not self.first_name or not self.last_name:
            raise ValueError("First Name and Last Name are required")
        if not EMAIL_RE.match(self.email):
            raise ValueError("A valid email address is required")
        if len(self.password) < 6:
            raise ValueError("Password must be at least 6 characters long")
        if not PHONE_RE.match(self.phone):
            raise ValueError("Phone number must be in the format 000-000-0000")
        if not self.specialties:
            raise ValueError("Please select at least one area of interest")
        return self

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def credentials(self) -> Dict[str, str]:
        return {"email": self.email, "password": self.password}

    def signup_payload(self) -> Dict[str, Any]:
        return {
            "name": self.full_name,
            "email": self.email,
            "password": self.password,
            "contactInfo": {
                "phone": self.phone,
                "address": self.address,
                "specialties": list(self.specialties),
            },
        }


def _first_message(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    ctx_error = (err.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def parse_contact_info(data: Dict[str, Any]) -> ContactInfo:
    """Construit et valide les coordonnées; ValidationError avec le premier message sinon."""
    try:
        return ContactInfo.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_first_message(e)) from e
