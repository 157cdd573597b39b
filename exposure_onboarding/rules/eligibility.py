"""
Eligibility Rules

Pure functions over the compliance policy:
- jurisdiction blocklist check
- accreditation-requirement check
- investor classification from questionnaire answers
- questionnaire completeness
- attestation label

No I/O beyond loading the policy once.
"""

from typing import Optional

from ..profile import AccreditationBasis, Classification, QuestionnaireAnswers
from .policy import CompliancePolicy, load_policy

ACCREDITED_LABEL = "Accredited Investor"
CLASSIFICATION_LABELS = {
    Classification.SOPHISTICATED: "Sophisticated Investor",
    Classification.EXPERIENCED: "Experienced Investor",
}
DEFAULT_LABEL = "Verified Investor"


def _normalize(country: Optional[str]) -> str:
    return (country or "").strip().upper()


class EligibilityRules:
    """
    Evaluates a CompliancePolicy.

    Usage:
        rules = EligibilityRules(load_policy())
        rules.classify(answers)  # -> Classification.EXPERIENCED
    """

    def __init__(self, policy: CompliancePolicy):
        self.policy = policy

    def is_blocked_jurisdiction(self, country: Optional[str]) -> bool:
        return _normalize(country) in self.policy.blocked_jurisdictions

    def requires_accreditation(self, country: Optional[str]) -> bool:
        return _normalize(country) in self.policy.accreditation_required_jurisdictions

    def classify(self, answers: QuestionnaireAnswers) -> Classification:
        """First matching tier wins; no match is retail."""
        for tier in self.policy.classification_tiers:
            if tier.matches(answers):
                return tier.classification
        return Classification.RETAIL

    def is_questionnaire_complete(self, answers: QuestionnaireAnswers) -> bool:
        return (
            answers.years_investing != ""
            and len(answers.investment_types) > 0
            and answers.digital_asset_familiarity != ""
            and answers.token_sale_experience != ""
            and answers.risk_assessment_ability != ""
            and answers.annual_income != ""
            and answers.net_worth != ""
            and answers.risk_acknowledged
        )

    def is_accredited(self, country: Optional[str], basis: Optional[AccreditationBasis]) -> bool:
        return (
            self.requires_accreditation(country)
            and basis is not None
            and basis != AccreditationBasis.NONE
        )

    def attestation_type(
        self,
        classification: Optional[Classification],
        basis: Optional[AccreditationBasis],
        country: Optional[str]
    ) -> str:
        # Accreditation takes precedence over classification
        if self.is_accredited(country, basis):
            return ACCREDITED_LABEL
        return CLASSIFICATION_LABELS.get(classification, DEFAULT_LABEL)


# Singleton bound to the configured policy file
_rules: Optional[EligibilityRules] = None


def get_rules() -> EligibilityRules:
    """Get or create the rules instance for the default policy."""
    global _rules
    if _rules is None:
        _rules = EligibilityRules(load_policy())
    return _rules
