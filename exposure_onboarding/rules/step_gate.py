"""
Step gates: may the investor leave a wizard step?

Each gate is a pure predicate over the profile draft. A step can be entered
only when the gates of every earlier step are open, so a jurisdiction change
made after the assessment re-closes the way to the later steps.
"""

from enum import IntEnum
from typing import List, Optional

from ..profile import KycStatus, OnboardingProfile
from .eligibility import EligibilityRules


class Step(IntEnum):
    SIGN_IN = 0
    ASSESSMENT = 1
    KYC = 2
    WALLET_LINKING = 3
    ATTESTATION = 4

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]


_STEP_LABELS = {
    Step.SIGN_IN: "Sign In",
    Step.ASSESSMENT: "Assessment",
    Step.KYC: "Verify Identity",
    Step.WALLET_LINKING: "Connect Wallet",
    Step.ATTESTATION: "Attestation",
}

FIRST_STEP = Step.SIGN_IN
LAST_STEP = Step.ATTESTATION


class StepGate:
    """Admission predicates for leaving each step."""

    def __init__(self, rules: EligibilityRules):
        self.rules = rules

    def can_leave(self, step: Step, profile: OnboardingProfile) -> bool:
        step = Step(step)
        if step == Step.SIGN_IN:
            return profile.authenticated
        if step == Step.ASSESSMENT:
            return not self.assessment_issues(profile)
        if step == Step.KYC:
            return profile.kyc_status in (KycStatus.SUBMITTED, KycStatus.VERIFIED)
        # Wallet linking is optional and attestation is terminal
        return True

    def can_enter(self, step: Step, profile: OnboardingProfile) -> bool:
        return all(self.can_leave(earlier, profile) for earlier in Step if earlier < step)

    def first_closed_gate(self, profile: OnboardingProfile) -> Optional[Step]:
        for step in Step:
            if not self.can_leave(step, profile):
                return step
        return None

    def assessment_issues(self, profile: OnboardingProfile) -> List[str]:
        """Reasons the assessment gate is closed; empty when it is open."""
        issues = []
        country = profile.jurisdiction

        if not country:
            issues.append("Select your jurisdiction")
        elif self.rules.is_blocked_jurisdiction(country):
            issues.append(f"Investors in {country} are not eligible to participate")
            return issues

        if not self._questionnaire_satisfied(profile):
            issues.append("Answer every question and acknowledge the risks")

        if country and self.rules.requires_accreditation(country):
            if profile.accreditation_basis is None:
                issues.append("Select your accreditation basis")
            if not profile.accreditation_certified:
                issues.append("Certify your accreditation status")

        return issues

    def _questionnaire_satisfied(self, profile: OnboardingProfile) -> bool:
        if self.rules.is_questionnaire_complete(profile.questionnaire):
            return True
        # Resumed assessments are trusted until the investor edits the answers
        return profile.questionnaire.is_empty() and profile.resumed_classification is not None
