from .steps import WizardStep, TRANSITIONS, next_step
from .contact import ContactInfo, SPECIALTIES, format_phone_number, parse_contact_info
from .sequencer import SubscriptionWizard, WizardState

__all__ = [
    "WizardStep",
    "TRANSITIONS",
    "next_step",
    "ContactInfo",
    "SPECIALTIES",
    "format_phone_number",
    "parse_contact_info",
    "SubscriptionWizard",
    "WizardState",
]
