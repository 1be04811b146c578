import os

os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from decimal import Decimal
from typing import Generator, Dict, Any, List, Optional
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from backend.app import app as fastapi_app
from backend.utils.security import require_user
from backend.utils.security import require_admin
from membership.errors import CardError
from membership.payments.gateway import CaptureKind, GatewayResult, PaymentGateway, WalletAvailability
from membership.payments.intents import IntentStatus, PaymentIntentRef

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

# --- Backend (FastAPI) ---

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def authenticated_admin_client(app, client):
    def _override_require_admin():
        return {"id": "admin-user-id", "role": "admin", "email": "admin@example.com", "name": "Admin"}
    app.dependency_overrides[require_admin] = _override_require_admin
    yield client
    app.dependency_overrides.pop(require_admin, None)

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    fake_user: Dict[str, Any] = {
        "id": "test-user",
        "email": "test@example.com",
        "name": "Test User",
        "role": "user",
        "token": "fake-token",
    }
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

# Aucun accès Supabase réel pendant les tests
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("backend.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("backend.infra.supabase_client.get_service_supabase", lambda: MagicMock())

# --- Client d'adhésion: doublures ---

class FakeIntents:
    """IntentClient scripté: chaque élément de `script` est une exception à lever ou None (succès)."""

    def __init__(self, script: Optional[List[Optional[Exception]]] = None):
        self.script = list(script or [])
        self.calls: List[Dict[str, Any]] = []
        self.promo_codes: List[Optional[str]] = []

    async def create_intent(self, auth_token, amount, subject_user_id, promo_code=None):
        self.calls.append({"token": auth_token, "amount": Decimal(str(amount)), "user_id": subject_user_id})
        self.promo_codes.append(promo_code)
        if self.script:
            outcome = self.script.pop(0)
            if outcome is not None:
                raise outcome
        n = len(self.calls)
        return PaymentIntentRef(
            intent_id=f"pi_{n}",
            client_secret=f"pi_{n}_secret_x",
            amount=Decimal(str(amount)),
        )


class FakeGateway(PaymentGateway):
    """Passerelle scriptée: `confirm_results` est consommé à chaque confirmation."""

    def __init__(
        self,
        confirm_results: Optional[List[Any]] = None,
        challenge_ok: bool = True,
        wallet_available: bool = True,
        decline_tokenize: bool = False,
    ):
        self.confirm_results = list(confirm_results or [GatewayResult(IntentStatus.SUCCEEDED)])
        self.challenge_ok = challenge_ok
        self.wallet_available = wallet_available
        self.decline_tokenize = decline_tokenize
        self.confirm_calls: List[Any] = []
        self.challenges = 0
        self.payment_methods: List[Any] = []

    async def create_payment_method(self, kind, details, billing_details=None):
        if self.decline_tokenize:
            raise CardError("Your card was declined.")
        self.payment_methods.append((kind, details, billing_details))
        return f"pm_{len(self.payment_methods)}"

    async def wallet_availability(self):
        if self.wallet_available:
            return WalletAvailability(True)
        return WalletAvailability(False, "No wallet is set up on this device.")

    async def collect_wallet_token(self, *, amount, label="Elite Healthspan Membership"):
        return "tok_wallet"

    async def confirm_intent(self, intent, payment_method):
        self.confirm_calls.append((intent.intent_id, payment_method, intent.amount))
        result = self.confirm_results.pop(0) if self.confirm_results else GatewayResult(IntentStatus.SUCCEEDED)
        if isinstance(result, Exception):
            raise result
        return result

    async def handle_next_action(self, intent, result):
        self.challenges += 1
        return self.challenge_ok


class FakeNotifications:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    async def send_subscription_confirmation(self, auth_token, user_id, promo_code=None):
        self.calls.append({"token": auth_token, "user_id": user_id, "promo_code": promo_code})
        if self.fail:
            raise RuntimeError("smtp down")
        return True


async def no_sleep(delay):
    no_sleep.delays.append(delay)

no_sleep.delays = []


def fill_card(capture, number="4242 4242 4242 4242", exp="12/34", cvc="123", zip_code="10001", country="US"):
    capture.update("number", number)
    capture.update("exp", exp)
    capture.update("cvc", cvc)
    capture.update("zip", zip_code)
    capture.update("country", country)


@pytest.fixture
def fakes():
    """Accès aux doublures depuis les tests (pas d'import direct de conftest)."""
    no_sleep.delays = []
    return type("Fakes", (), {
        "Intents": FakeIntents,
        "Gateway": FakeGateway,
        "Notifications": FakeNotifications,
        "sleep": staticmethod(no_sleep),
        "fill_card": staticmethod(fill_card),
        "CARD": CaptureKind.CARD,
        "WALLET": CaptureKind.WALLET,
    })
