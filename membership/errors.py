"""
Taxonomie d'erreurs du parcours d'adhésion.

- ValidationError: saisie invalide, jamais rejouée
- ClientError: requête ou authentification refusée (400/401/403), jamais rejouée
- TransientError: réseau / 5xx, rejouable de façon bornée
- CardError: moyen de paiement refusé ou invalide, l'utilisateur doit corriger
- PaymentError: échec de confirmation pour une autre raison que la carte
"""
from typing import Optional


class MembershipError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(MembershipError):
    pass


class ClientError(MembershipError):
    pass


class TransientError(MembershipError):
    pass


class CardError(MembershipError):
    pass


class PaymentError(MembershipError):
    pass


class InvalidTransition(MembershipError):
    """Transition d'étape non prévue par la table du wizard (erreur de programmation)."""
