"""
Étapes du wizard d'adhésion et table de transitions.
Chaque étape déclare explicitement ses successeurs: pas de pile de retour implicite.
"""
from enum import Enum
from typing import Dict, FrozenSet

from membership.errors import InvalidTransition
from membership.payments.gateway import CaptureKind


class WizardStep(str, Enum):
    MEMBERSHIP = "membership"
    CONTACT_INFO = "contactInfo"
    PAYMENT_METHOD = "paymentMethod"
    PAYMENT_FORM_CARD = "paymentForm_card"
    PAYMENT_FORM_WALLET = "paymentForm_wallet"
    DONE = "done"


TRANSITIONS: Dict[WizardStep, FrozenSet[WizardStep]] = {
    WizardStep.MEMBERSHIP: frozenset({WizardStep.CONTACT_INFO}),
    WizardStep.CONTACT_INFO: frozenset({WizardStep.PAYMENT_METHOD}),
    WizardStep.PAYMENT_METHOD: frozenset({WizardStep.PAYMENT_FORM_CARD, WizardStep.PAYMENT_FORM_WALLET}),
    WizardStep.PAYMENT_FORM_CARD: frozenset({WizardStep.DONE}),
    WizardStep.PAYMENT_FORM_WALLET: frozenset({WizardStep.DONE}),
    WizardStep.DONE: frozenset(),
}

PAYMENT_FORMS: Dict[CaptureKind, WizardStep] = {
    CaptureKind.CARD: WizardStep.PAYMENT_FORM_CARD,
    CaptureKind.WALLET: WizardStep.PAYMENT_FORM_WALLET,
}


def next_step(current: WizardStep, target: WizardStep) -> WizardStep:
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot move from {current.value} to {target.value}")
    return target


def form_step_for(kind: CaptureKind) -> WizardStep:
    return PAYMENT_FORMS[CaptureKind(kind)]


def capture_kind_for(step: WizardStep) -> CaptureKind:
    for kind, form in PAYMENT_FORMS.items():
        if form is step:
            return kind
    raise InvalidTransition(f"{step.value} is not a payment form step")
