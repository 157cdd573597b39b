"""
Onboarding Services

Protocol flows for each wizard step and the orchestrator that sequences them.
"""

from .state_machine import (
    WizardState,
    Advance,
    Retreat,
    JumpTo,
    MarkComplete,
    transition
)

from .resumer import (
    ProfileResumer,
    ResumePoint
)

from .session_auth import (
    SessionAuthenticator,
    Session,
    AuthState
)

from .kyc_flow import (
    KYCSubmissionFlow,
    KycState
)

from .wallet_linking import WalletLinkingFlow

from .attestation import (
    AttestationIssuer,
    add_years
)

from .orchestrator import OnboardingOrchestrator

__all__ = [
    # State machine
    "WizardState",
    "Advance",
    "Retreat",
    "JumpTo",
    "MarkComplete",
    "transition",
    # Resume
    "ProfileResumer",
    "ResumePoint",
    # Step flows
    "SessionAuthenticator",
    "Session",
    "AuthState",
    "KYCSubmissionFlow",
    "KycState",
    "WalletLinkingFlow",
    "AttestationIssuer",
    "add_years",
    # Orchestration
    "OnboardingOrchestrator",
]
