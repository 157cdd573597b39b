"""
Onboarding error types.

Blocked jurisdictions and incomplete answers are not errors: they keep a
step gate closed. Everything raised here is retryable by the investor.
"""

from typing import Any, Dict, Optional


class OnboardingError(Exception):
    """Base class for failures surfaced inline by the orchestrator."""


class ApiError(OnboardingError):
    """
    Raised when the platform API returns a non-2xx status or an
    envelope with ``success: false``.
    """

    def __init__(
        self,
        message: str,
        status: int,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code or "UNKNOWN"
        self.details = details

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, code={self.code!r}, message={self.message!r})"


class SigningError(OnboardingError):
    """The wallet refused or failed to sign a message."""


class OperationInProgress(OnboardingError):
    """A second invocation of an operation that is already pending."""


class AttemptAbandoned(OnboardingError):
    """A sign-in attempt was superseded by a wallet account change."""


class StepGateClosed(OnboardingError):
    """An operation required earlier steps that are not yet satisfied."""


class AttestationExistsError(OnboardingError):
    """An attestation is already attached to the profile."""


class PolicyError(OnboardingError):
    """The compliance policy file is missing or malformed."""


class InvalidInputError(OnboardingError):
    """Investor input the engine cannot act on (unknown chain or step, malformed address)."""
