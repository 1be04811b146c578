"""
Capture du moyen de paiement (carte ou wallet).

Chaque session porte un élément de saisie monté (CaptureElement). Après une
CardError l'élément est marqué en échec et ne peut plus servir: il faut
appeler reset(), qui détruit l'élément et en monte un neuf (nouvel element_id).
"""
import logging
import re
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import uuid4

from membership.config import MEMBERSHIP_LABEL
from membership.errors import CardError, MembershipError, ValidationError
from .gateway import CaptureKind, PaymentGateway, WalletAvailability

logger = logging.getLogger(__name__)

CARD_FIELDS = ("number", "exp", "cvc", "zip", "country")
COUNTRIES = ("US", "CA", "GB")
STALE_ELEMENT_MESSAGE = "The payment form must be reloaded before trying again."


class CaptureElement:
    """Surface de saisie côté UI: identité stable jusqu'à sa destruction."""

    def __init__(self, kind: CaptureKind):
        self.element_id = uuid4().hex
        self.kind = kind
        self.mounted = False
        self.destroyed = False
        self.failed = False
        self.values: Dict[str, str] = {}
        self.errors: Dict[str, str] = {}

    def mount(self) -> None:
        self.mounted = True

    def destroy(self) -> None:
        self.mounted = False
        self.destroyed = True
        self.values.clear()
        self.errors.clear()

    @property
    def usable(self) -> bool:
        return self.mounted and not self.destroyed and not self.failed


class CaptureSession:
    kind: CaptureKind

    def __init__(self, gateway: PaymentGateway):
        self._gateway = gateway
        self.element: Optional[CaptureElement] = None
        self.last_error: Optional[str] = None

    @property
    def element_id(self) -> Optional[str]:
        return self.element.element_id if self.element else None

    def mount(self) -> CaptureElement:
        if self.element is None or self.element.destroyed:
            self.element = CaptureElement(self.kind)
            self.element.mount()
        return self.element

    def reset(self) -> CaptureElement:
        """Détruit l'élément courant et en monte un neuf."""
        if self.element is not None:
            self.element.destroy()
            logger.info("payments.capture reset kind=%s element_id=%s", self.kind.value, self.element.element_id)
        self.element = None
        return self.mount()

    def destroy(self) -> None:
        if self.element is not None:
            self.element.destroy()

    def _require_element(self) -> CaptureElement:
        if self.element is None or not self.element.usable:
            raise CardError(STALE_ELEMENT_MESSAGE)
        return self.element

    def _fail(self, error: CardError) -> CardError:
        if self.element is not None:
            self.element.failed = True
        self.last_error = error.message
        return error

    async def tokenize(self, billing_details: Optional[Dict[str, Any]] = None, *, amount: Optional[Decimal] = None) -> str:
        raise NotImplementedError


def _digits(value: str) -> str:
    return re.sub(r"\s", "", value or "")


def validate_card_field(field: str, value: str) -> Optional[str]:
    """Retourne le message d'erreur inline du champ, ou None si valide."""
    value = (value or "").strip()
    if field == "number":
        if not re.fullmatch(r"\d{13,16}", _digits(value)):
            return "Please enter a valid card number (13-16 digits)"
    elif field == "exp":
        m = re.fullmatch(r"(\d{2})/(\d{2})", value)
        if not m or not 1 <= int(m.group(1)) <= 12:
            return "Please enter a valid expiry date (MM/YY)"
    elif field == "cvc":
        if not re.fullmatch(r"\d{3,4}", value):
            return "Please enter a valid CVV (3-4 digits)"
    elif field == "zip":
        if not re.fullmatch(r"\d{5}", value):
            return "Please enter a valid ZIP code (5 digits)"
    elif field == "country":
        if value not in COUNTRIES:
            return "Please select a supported country"
    else:
        return f"Unknown card field: {field}"
    return None


class CardCapture(CaptureSession):
    kind = CaptureKind.CARD

    def mount(self) -> CaptureElement:
        element = super().mount()
        element.values.setdefault("country", "US")
        return element

    def update(self, field: str, value: str) -> Optional[str]:
        """
        Saisie utilisateur: mémorise la valeur et retourne l'erreur inline éventuelle.
        Aucun envoi n'est effectué; un champ vide n'est pas signalé avant soumission.
        """
        element = self.mount() if self.element is None else self.element
        if field not in CARD_FIELDS:
            raise ValidationError(f"Unknown card field: {field}")
        element.values[field] = value or ""
        error = validate_card_field(field, value) if (value or "").strip() else None
        if error:
            element.errors[field] = error
        else:
            element.errors.pop(field, None)
        return error

    async def tokenize(self, billing_details: Optional[Dict[str, Any]] = None, *, amount: Optional[Decimal] = None) -> str:
        element = self._require_element()
        for field in CARD_FIELDS:
            error = validate_card_field(field, element.values.get(field, ""))
            if error:
                raise self._fail(CardError(error))

        month, year = element.values["exp"].strip().split("/")
        details = {
            "number": _digits(element.values["number"]),
            "exp_month": int(month),
            "exp_year": 2000 + int(year),
            "cvc": element.values["cvc"].strip(),
        }
        billing = dict(billing_details or {})
        address = dict(billing.get("address") or {})
        address.setdefault("postal_code", element.values["zip"].strip())
        address.setdefault("country", element.values["country"])
        billing["address"] = address

        try:
            token = await self._gateway.create_payment_method(CaptureKind.CARD, details, billing)
        except CardError as e:
            raise self._fail(e)
        self.last_error = None
        return token


class WalletCapture(CaptureSession):
    kind = CaptureKind.WALLET

    def __init__(self, gateway: PaymentGateway):
        super().__init__(gateway)
        self.availability: Optional[WalletAvailability] = None

    async def check_availability(self) -> WalletAvailability:
        """Indisponibilité = résultat normal (l'UI désactive l'action), pas une erreur."""
        self.availability = await self._gateway.wallet_availability()
        if not self.availability.available:
            logger.info("payments.capture wallet unavailable: %s", self.availability.reason)
        return self.availability

    async def tokenize(self, billing_details: Optional[Dict[str, Any]] = None, *, amount: Optional[Decimal] = None) -> str:
        element = self._require_element()
        if self.availability is None:
            await self.check_availability()
        if not self.availability.available:
            raise ValidationError(self.availability.reason or "Wallet payments are not available")
        if amount is None:
            raise ValidationError("Amount is required for wallet payments")
        try:
            wallet_token = await self._gateway.collect_wallet_token(amount=amount, label=MEMBERSHIP_LABEL)
            token = await self._gateway.create_payment_method(CaptureKind.WALLET, {"token": wallet_token}, billing_details)
        except CardError as e:
            raise self._fail(e)
        except MembershipError:
            element.failed = True
            raise
        self.last_error = None
        return token


def make_capture(kind: CaptureKind, gateway: PaymentGateway) -> CaptureSession:
    sessions = {
        CaptureKind.CARD: CardCapture,
        CaptureKind.WALLET: WalletCapture,
    }
    capture = sessions[kind](gateway)
    capture.mount()
    return capture
