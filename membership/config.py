# membership.config
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Même .env que le backend (racine du projet)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration du client d'adhésion (wizard + paiement).

- URL de l'API backend (proxy paiement / promo / comptes / email)
- Clé publique Stripe pour la capture et la confirmation côté client
- Tarif annuel, devise, politique de retry de création d'intent
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement (espaces, guillemets, backticks).
    Retourne toujours une chaîne.
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

API_BASE_URL = _clean_env(os.getenv("MEMBERSHIP_API_URL") or "http://localhost:8000/api/v1").rstrip("/")

STRIPE_PUBLIC_KEY = _clean_env(os.getenv("STRIPE_PUBLIC_KEY") or "")
# Page de retour après un challenge 3-D Secure
PAYMENT_RETURN_URL = _clean_env(os.getenv("PAYMENT_RETURN_URL") or "http://localhost:5173/completion")

BASE_PRICE = Decimal(_clean_env(os.getenv("MEMBERSHIP_BASE_PRICE") or "119.88"))
CURRENCY = _clean_env(os.getenv("MEMBERSHIP_CURRENCY") or "usd").lower()
MEMBERSHIP_LABEL = "Elite Healthspan Membership"

PAYMENT_MAX_RETRIES = int(os.getenv("PAYMENT_MAX_RETRIES", "2"))
PAYMENT_RETRY_DELAY_MS = int(os.getenv("PAYMENT_RETRY_DELAY_MS", "1000"))

# Vide = pas de timeout (une requête bloquée laisse l'UI en chargement)
_timeout = _clean_env(os.getenv("MEMBERSHIP_HTTP_TIMEOUT") or "")
HTTP_TIMEOUT = float(_timeout) if _timeout else None
