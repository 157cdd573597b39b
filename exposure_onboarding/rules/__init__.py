"""
Compliance Rules

Policy-driven eligibility evaluation and per-step admission gates.
"""

from .policy import (
    CompliancePolicy,
    ClassificationTier,
    load_policy,
    clear_policy_cache
)

from .eligibility import (
    EligibilityRules,
    get_rules
)

from .step_gate import (
    Step,
    StepGate,
    FIRST_STEP,
    LAST_STEP
)

__all__ = [
    # Policy
    "CompliancePolicy",
    "ClassificationTier",
    "load_policy",
    "clear_policy_cache",
    # Eligibility
    "EligibilityRules",
    "get_rules",
    # Gates
    "Step",
    "StepGate",
    "FIRST_STEP",
    "LAST_STEP",
]
