"""
Client du parcours d'adhésion: tarification, compte, code promo,
capture et confirmation du paiement, wizard d'étapes.
"""
from .pricing import PendingSubscription, Quote, price

__all__ = ["PendingSubscription", "Quote", "price"]
