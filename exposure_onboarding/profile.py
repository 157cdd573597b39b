"""
Onboarding profile draft.

The draft is owned by the orchestrator for the lifetime of one onboarding
session. Steps change it only through the field-level update methods
defined here so that the derived fields stay consistent:

- classification is computed from the questionnaire, never assigned
- changing jurisdiction resets the accreditation answers
- an attestation can be attached once
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, TYPE_CHECKING

from .errors import AttestationExistsError

if TYPE_CHECKING:
    from .rules.eligibility import EligibilityRules


class Classification(str, Enum):
    """Investor classification derived from the questionnaire."""
    RETAIL = "retail"
    EXPERIENCED = "experienced"
    SOPHISTICATED = "sophisticated"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Classification"]:
        if not value:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None


class AccreditationBasis(str, Enum):
    """Basis an investor certifies for accreditation (Reg D style)."""
    INCOME = "income"
    NET_WORTH = "net_worth"
    LICENSED_PROFESSIONAL = "licensed_professional"
    QUALIFIED_PURCHASER = "qualified_purchaser"
    NONE = "none"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["AccreditationBasis"]:
        if not value:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None


class KycStatus(str, Enum):
    """Local KYC status. The server calls these NONE / PENDING / APPROVED."""
    NOT_SUBMITTED = "not_submitted"
    SUBMITTED = "submitted"
    VERIFIED = "verified"

    @classmethod
    def from_server(cls, value: Optional[str]) -> "KycStatus":
        status = (value or "").upper()
        if status == "APPROVED":
            return cls.VERIFIED
        if status == "PENDING":
            return cls.SUBMITTED
        return cls.NOT_SUBMITTED


class Chain(str, Enum):
    """Chains a secondary wallet can be linked on."""
    ETHEREUM = "ethereum"
    BASE = "base"
    ARBITRUM = "arbitrum"

    @property
    def chain_id(self) -> int:
        return _CHAIN_IDS[self]

    @property
    def wire_name(self) -> str:
        return self.value.upper()

    @classmethod
    def parse(cls, value: str) -> "Chain":
        """Accepts the slug ("base") or the API enum ("BASE")."""
        return cls(value.lower())


_CHAIN_IDS = {
    Chain.ETHEREUM: 1,
    Chain.BASE: 8453,
    Chain.ARBITRUM: 42161,
}


@dataclass(frozen=True)
class QuestionnaireAnswers:
    """The eight sophistication questionnaire answers. Empty string = unanswered."""
    years_investing: str = ""
    investment_types: FrozenSet[str] = frozenset()
    digital_asset_familiarity: str = ""
    token_sale_experience: str = ""
    risk_assessment_ability: str = ""
    annual_income: str = ""
    net_worth: str = ""
    risk_acknowledged: bool = False

    def updated(self, **changes: Any) -> "QuestionnaireAnswers":
        if "investment_types" in changes:
            changes["investment_types"] = frozenset(changes["investment_types"] or ())
        return replace(self, **changes)

    def is_empty(self) -> bool:
        return self == QuestionnaireAnswers()


@dataclass(frozen=True)
class LinkedWallet:
    address: str
    chain: Chain
    is_primary: bool = False
    linked_at: Optional[datetime] = None

    @property
    def key(self):
        return (self.address.lower(), self.chain)


@dataclass(frozen=True)
class Attestation:
    """Time-bounded eligibility attestation. issued_at is unknown for some resumed records."""
    hash: str
    type: str
    issued_at: Optional[datetime]
    expires_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "type": self.type,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass
class KycDraft:
    status: KycStatus = KycStatus.NOT_SUBMITTED
    identity_document: Optional[str] = None
    proof_of_address: Optional[str] = None
    proof_of_address_date: Optional[date] = None


def merge_wallets(
    existing: Iterable[LinkedWallet],
    incoming: Iterable[LinkedWallet]
) -> List[LinkedWallet]:
    """Union of two wallet lists keyed on (address, chain); incoming records win."""
    merged: Dict[Any, LinkedWallet] = {}
    for wallet in list(existing) + list(incoming):
        merged[wallet.key] = wallet
    return list(merged.values())


def shorten_address(address: str) -> str:
    if not address or len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


@dataclass
class OnboardingProfile:
    """
    Draft profile accumulated across the wizard.

    ``resumed_classification`` holds what the server had on record. It is
    only used while the questionnaire is untouched; once any answer is
    given the classification is recomputed from the answers.
    """
    rules: "EligibilityRules" = field(repr=False, compare=False)
    authenticated: bool = False
    wallet_address: Optional[str] = None
    display_name: Optional[str] = None
    jurisdiction: Optional[str] = None
    questionnaire: QuestionnaireAnswers = field(default_factory=QuestionnaireAnswers)
    accreditation_basis: Optional[AccreditationBasis] = None
    accreditation_certified: bool = False
    kyc: KycDraft = field(default_factory=KycDraft)
    linked_wallets: List[LinkedWallet] = field(default_factory=list)
    attestation: Optional[Attestation] = None
    resumed_classification: Optional[Classification] = None

    @property
    def classification(self) -> Optional[Classification]:
        if self.jurisdiction and self.rules.is_blocked_jurisdiction(self.jurisdiction):
            return None
        if self.questionnaire.is_empty():
            return self.resumed_classification
        return self.rules.classify(self.questionnaire)

    @property
    def accreditation_required(self) -> bool:
        return bool(self.jurisdiction) and self.rules.requires_accreditation(self.jurisdiction)

    @property
    def kyc_status(self) -> KycStatus:
        return self.kyc.status

    # ---- field-level updates ----

    def mark_authenticated(self, wallet_address: str, display_name: Optional[str] = None) -> None:
        self.authenticated = True
        self.wallet_address = wallet_address
        self.display_name = display_name or shorten_address(wallet_address)

    def set_jurisdiction(self, country: Optional[str]) -> None:
        normalized = country.strip().upper() if country else None
        if normalized == self.jurisdiction:
            return
        self.jurisdiction = normalized
        self.accreditation_basis = None
        self.accreditation_certified = False

    def update_questionnaire(self, **changes: Any) -> Optional[Classification]:
        self.questionnaire = self.questionnaire.updated(**changes)
        return self.classification

    def set_accreditation(self, basis: Optional[AccreditationBasis], certified: bool) -> None:
        self.accreditation_basis = basis
        self.accreditation_certified = certified

    def stage_identity_document(self, reference: str) -> None:
        self.kyc.identity_document = reference

    def stage_proof_of_address(self, reference: str, document_date: date) -> None:
        self.kyc.proof_of_address = reference
        self.kyc.proof_of_address_date = document_date

    def set_kyc_status(self, status: KycStatus) -> None:
        self.kyc.status = status

    def set_linked_wallets(self, wallets: Iterable[LinkedWallet]) -> None:
        self.linked_wallets = merge_wallets([], wallets)

    def attach_attestation(self, attestation: Attestation) -> None:
        if self.attestation is not None:
            raise AttestationExistsError(
                f"Attestation {self.attestation.hash} already attached"
            )
        self.attestation = attestation
