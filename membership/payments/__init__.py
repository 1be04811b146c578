from .intents import IntentClient, IntentStatus, PaymentIntentRef
from .gateway import CaptureKind, GatewayResult, PaymentGateway, StripeGateway, WalletAvailability, WalletProvider
from .capture import CaptureSession, CardCapture, WalletCapture, make_capture
from .orchestrator import ConfirmationOrchestrator, ConfirmationOutcome, OutcomeKind, PaymentPhase

__all__ = [
    "IntentClient",
    "IntentStatus",
    "PaymentIntentRef",
    "CaptureKind",
    "GatewayResult",
    "PaymentGateway",
    "StripeGateway",
    "WalletAvailability",
    "WalletProvider",
    "CaptureSession",
    "CardCapture",
    "WalletCapture",
    "make_capture",
    "ConfirmationOrchestrator",
    "ConfirmationOutcome",
    "OutcomeKind",
    "PaymentPhase",
]
