"""
Calcul du prix de l'adhésion (pur, sans I/O).
- price(base, discount_percent) -> Quote
- PendingSubscription: état de prix du wizard (remise issue d'un code promo)
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from membership.config import BASE_PRICE
from membership.errors import ValidationError

CENTS = Decimal("0.01")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Convertit str|int|float|Decimal en Decimal.
    - Les float passent par str() pour éviter 119.88 -> 119.8799999...
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid {field}: {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}")
    return result


@dataclass(frozen=True)
class Quote:
    base: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    final_amount: Decimal


def price(base: Any, discount_percent: Any = 0) -> Quote:
    """
    Applique un pourcentage de remise au tarif de base.
    - discount_percent doit être dans [0, 100], sinon ValidationError
    - discount_amount est arrondi au centime, final_amount = base - discount_amount
      (donc discount_amount + final_amount == base exactement)
    Ex: price("119.88", 25) -> discount 29.97, final 89.91
    """
    base_d = to_decimal(base, "base price")
    pct = to_decimal(discount_percent, "discount percentage")
    if base_d < 0:
        raise ValidationError("Base price must not be negative")
    if pct < 0 or pct > 100:
        raise ValidationError("Discount must be between 0 and 100")
    discount = (base_d * pct / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return Quote(
        base=base_d,
        discount_percent=pct,
        discount_amount=discount,
        final_amount=base_d - discount,
    )


@dataclass
class PendingSubscription:
    """Adhésion en attente de paiement, créée au démarrage du wizard et jetée à la fermeture."""

    user_id: str
    pricing_base: Decimal = BASE_PRICE
    discount_percent: Decimal = Decimal(0)
    promo_code: Optional[str] = None

    def quote(self) -> Quote:
        return price(self.pricing_base, self.discount_percent)

    @property
    def final_amount(self) -> Decimal:
        return self.quote().final_amount

    def apply_discount(self, discount_percent: Any, promo_code: Optional[str] = None) -> bool:
        """Applique une remise validée. Retourne True si le montant final a changé."""
        before = self.final_amount
        # price() valide la borne avant toute mutation
        price(self.pricing_base, discount_percent)
        self.discount_percent = to_decimal(discount_percent, "discount percentage")
        self.promo_code = promo_code
        return self.final_amount != before

    def clear_discount(self) -> bool:
        """Code promo rejeté: remise remise à 0. Retourne True si le montant a changé."""
        return self.apply_discount(0, None)
