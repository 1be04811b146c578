# backend.config
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend (proxy du parcours d'adhésion).

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, SMTP)
- CORS/hosts, comptes admin, tarif de l'adhésion
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

# Supabase: URLs et clés (public/anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Rôle admin: emails listés ici ou metadata.role == "admin"
ADMIN_EMAILS = [e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "admin@example.com").split(",") if e.strip()]

# CORS (le client d'adhésion tourne sur un autre port en dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Stripe: clé secrète et secret webhook
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")

# Adhésion annuelle
MEMBERSHIP_BASE_PRICE = Decimal(_clean_env(os.getenv("MEMBERSHIP_BASE_PRICE") or "119.88"))
MEMBERSHIP_CURRENCY = _clean_env(os.getenv("MEMBERSHIP_CURRENCY") or "usd").lower()
PREMIUM_DURATION_DAYS = int(os.getenv("PREMIUM_DURATION_DAYS", "365"))

# SMTP (email de confirmation d'abonnement)
EMAIL_HOST = _clean_env(os.getenv("EMAIL_HOST") or "smtp.gmail.com")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "465"))
EMAIL_USER = _clean_env(os.getenv("EMAIL_USER") or "")
EMAIL_PASSWORD = _clean_env(os.getenv("EMAIL_PASSWORD") or "")
EMAIL_USE_TLS = (os.getenv("EMAIL_USE_TLS", "true").lower() == "true")
SUPPORT_EMAIL = _clean_env(os.getenv("SUPPORT_EMAIL") or EMAIL_USER)
