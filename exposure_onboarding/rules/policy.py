"""
Compliance policy loading.

The policy is external data: which jurisdictions are blocked, which need
accreditation, and the classification tier table. The engine evaluates
whatever it is given and never hard-codes the buckets.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

import yaml

from ..config import get_policy_path
from ..errors import PolicyError
from ..profile import Classification, QuestionnaireAnswers

logger = logging.getLogger(__name__)

# Questionnaire fields a tier may put criteria on
CRITERIA_FIELDS = (
    "years_investing",
    "digital_asset_familiarity",
    "token_sale_experience",
    "risk_assessment_ability",
    "annual_income",
    "net_worth",
)

_policy_cache: Dict[Path, "CompliancePolicy"] = {}


@dataclass(frozen=True)
class ClassificationTier:
    """One row of the classification table: every criterion must match."""
    classification: Classification
    criteria: Tuple[Tuple[str, FrozenSet[str]], ...]

    def matches(self, answers: QuestionnaireAnswers) -> bool:
        return all(getattr(answers, name) in allowed for name, allowed in self.criteria)


@dataclass(frozen=True)
class CompliancePolicy:
    blocked_jurisdictions: FrozenSet[str] = frozenset()
    accreditation_required_jurisdictions: FrozenSet[str] = frozenset()
    classification_tiers: Tuple[ClassificationTier, ...] = ()
    proof_of_address_max_age_days: Optional[int] = None
    version: str = "unversioned"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompliancePolicy":
        """Build a policy from its parsed YAML form, validating the tier table."""
        if not isinstance(data, dict):
            raise PolicyError("Policy document must be a mapping")

        tiers: List[ClassificationTier] = []
        for index, raw in enumerate(data.get("classification_tiers") or []):
            classification = Classification.parse(raw.get("classification"))
            if classification is None:
                raise PolicyError(
                    f"Tier {index}: unknown classification {raw.get('classification')!r}"
                )
            criteria = []
            for name, values in (raw.get("criteria") or {}).items():
                if name not in CRITERIA_FIELDS:
                    raise PolicyError(f"Tier {index}: unsupported criterion {name!r}")
                criteria.append((name, frozenset(str(v) for v in values)))
            if not criteria:
                raise PolicyError(f"Tier {index}: a tier needs at least one criterion")
            tiers.append(ClassificationTier(classification, tuple(criteria)))

        kyc = data.get("kyc") or {}
        return cls(
            blocked_jurisdictions=_country_set(data.get("blocked_jurisdictions")),
            accreditation_required_jurisdictions=_country_set(
                data.get("accreditation_required_jurisdictions")
            ),
            classification_tiers=tuple(tiers),
            proof_of_address_max_age_days=kyc.get("proof_of_address_max_age_days"),
            version=str(data.get("version", "unversioned")),
        )


def _country_set(values: Optional[List[str]]) -> FrozenSet[str]:
    return frozenset(str(v).strip().upper() for v in (values or []))


def load_policy(path: Optional[Path] = None) -> CompliancePolicy:
    """Load (and cache) the compliance policy from a YAML file."""
    policy_path = Path(path) if path else get_policy_path()

    if policy_path in _policy_cache:
        return _policy_cache[policy_path]

    if not policy_path.exists():
        raise PolicyError(f"Policy file not found: {policy_path}")

    try:
        with open(policy_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PolicyError(f"Invalid policy file {policy_path}: {e}") from e

    policy = CompliancePolicy.from_dict(data)
    _policy_cache[policy_path] = policy
    logger.info(
        f"Loaded compliance policy {policy.version} from {policy_path} "
        f"({len(policy.blocked_jurisdictions)} blocked, "
        f"{len(policy.classification_tiers)} tiers)"
    )
    return policy


def clear_policy_cache() -> None:
    _policy_cache.clear()
