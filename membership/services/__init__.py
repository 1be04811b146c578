"""
Collaborateurs distants du wizard (comptes, codes promo, notifications).
"""
from .accounts import AccountService, AccountSession
from .promo import PromoService
from .notifications import NotificationService

__all__ = [
    "AccountService",
    "AccountSession",
    "PromoService",
    "NotificationService",
]
