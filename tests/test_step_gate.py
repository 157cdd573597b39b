"""
Tests for step gates and the profile invariants they rely on.
"""

import pytest

from exposure_onboarding.errors import AttestationExistsError
from exposure_onboarding.profile import (
    AccreditationBasis,
    Attestation,
    Classification,
    KycStatus,
)
from exposure_onboarding.rules.step_gate import Step

from conftest import SOPHISTICATED, WALLET, complete_answers


def answer_all(profile, **overrides):
    answers = complete_answers(**overrides)
    profile.update_questionnaire(**{
        name: getattr(answers, name) for name in answers.__dataclass_fields__
    })


# =============================================================
# TEST: Sign-in and KYC gates
# =============================================================

class TestSimpleGates:

    def test_sign_in_requires_authentication(self, gate, profile):
        assert not gate.can_leave(Step.SIGN_IN, profile)
        profile.mark_authenticated(WALLET)
        assert gate.can_leave(Step.SIGN_IN, profile)
        assert profile.display_name == "0x1111...1111"

    @pytest.mark.parametrize("status,open_", [
        (KycStatus.NOT_SUBMITTED, False),
        (KycStatus.SUBMITTED, True),
        (KycStatus.VERIFIED, True),
    ])
    def test_kyc_gate(self, gate, profile, status, open_):
        profile.set_kyc_status(status)
        assert gate.can_leave(Step.KYC, profile) is open_

    def test_wallet_linking_and_attestation_always_open(self, gate, profile):
        assert gate.can_leave(Step.WALLET_LINKING, profile)
        assert gate.can_leave(Step.ATTESTATION, profile)


# =============================================================
# TEST: Assessment gate
# =============================================================

class TestAssessmentGate:

    def test_blocked_country_closes_gate_regardless_of_answers(self, gate, profile):
        profile.set_jurisdiction("RU")
        answer_all(profile, **SOPHISTICATED)

        assert not gate.can_leave(Step.ASSESSMENT, profile)
        assert profile.classification is None
        issues = gate.assessment_issues(profile)
        assert issues == ["Investors in RU are not eligible to participate"]

    def test_sophisticated_de_investor_admitted(self, gate, profile):
        profile.set_jurisdiction("DE")
        answer_all(profile, **SOPHISTICATED)

        assert profile.classification == Classification.SOPHISTICATED
        assert not profile.accreditation_required
        assert gate.can_leave(Step.ASSESSMENT, profile)
        assert gate.assessment_issues(profile) == []

    def test_us_retail_needs_basis_and_certification(self, gate, profile):
        profile.set_jurisdiction("US")
        answer_all(
            profile,
            years_investing="1-3",
            digital_asset_familiarity="somewhat_familiar",
            token_sale_experience="no",
        )
        assert profile.classification == Classification.RETAIL
        assert profile.accreditation_required
        assert not gate.can_leave(Step.ASSESSMENT, profile)

        profile.set_accreditation(AccreditationBasis.INCOME, False)
        assert gate.assessment_issues(profile) == ["Certify your accreditation status"]

        profile.set_accreditation(AccreditationBasis.INCOME, True)
        assert gate.can_leave(Step.ASSESSMENT, profile)

    def test_incomplete_questionnaire(self, gate, profile):
        profile.set_jurisdiction("DE")
        answer_all(profile, risk_acknowledged=False)
        assert gate.assessment_issues(profile) == ["Answer every question and acknowledge the risks"]

    def test_missing_jurisdiction(self, gate, profile):
        answer_all(profile)
        assert gate.assessment_issues(profile) == ["Select your jurisdiction"]

    def test_jurisdiction_change_resets_accreditation(self, gate, profile):
        profile.set_jurisdiction("US")
        answer_all(profile)
        profile.set_accreditation(AccreditationBasis.NET_WORTH, True)
        assert gate.can_leave(Step.ASSESSMENT, profile)

        profile.set_jurisdiction("GB")
        assert profile.accreditation_basis is None
        assert not profile.accreditation_certified

        profile.set_jurisdiction("US")
        assert not gate.can_leave(Step.ASSESSMENT, profile)

    def test_same_jurisdiction_keeps_accreditation(self, profile):
        profile.set_jurisdiction("US")
        profile.set_accreditation(AccreditationBasis.INCOME, True)
        profile.set_jurisdiction("us")
        assert profile.accreditation_basis == AccreditationBasis.INCOME

    def test_block_is_reversible(self, gate, profile):
        profile.set_jurisdiction("DE")
        answer_all(profile, **SOPHISTICATED)

        profile.set_jurisdiction("BY")
        assert profile.classification is None
        assert not gate.can_leave(Step.ASSESSMENT, profile)

        profile.set_jurisdiction("DE")
        assert profile.classification == Classification.SOPHISTICATED
        assert gate.can_leave(Step.ASSESSMENT, profile)

    def test_resumed_classification_trusted_until_edited(self, gate, profile):
        profile.set_jurisdiction("DE")
        profile.resumed_classification = Classification.EXPERIENCED
        assert profile.classification == Classification.EXPERIENCED
        assert gate.can_leave(Step.ASSESSMENT, profile)

        profile.update_questionnaire(years_investing="<1")
        assert profile.classification == Classification.RETAIL
        assert not gate.can_leave(Step.ASSESSMENT, profile)

    def test_classification_recomputed_on_every_change(self, profile):
        profile.set_jurisdiction("DE")
        assert profile.update_questionnaire(**SOPHISTICATED) == Classification.SOPHISTICATED
        assert profile.update_questionnaire(token_sale_experience="4-10") == Classification.EXPERIENCED
        assert profile.update_questionnaire(years_investing="1-3") == Classification.RETAIL


# =============================================================
# TEST: Entering later steps
# =============================================================

class TestCanEnter:

    def test_requires_every_earlier_gate(self, gate, profile):
        profile.mark_authenticated(WALLET)
        profile.set_jurisdiction("DE")
        answer_all(profile, **SOPHISTICATED)

        assert gate.can_enter(Step.KYC, profile)
        assert not gate.can_enter(Step.WALLET_LINKING, profile)
        assert gate.first_closed_gate(profile) == Step.KYC

        profile.set_kyc_status(KycStatus.SUBMITTED)
        assert gate.can_enter(Step.ATTESTATION, profile)
        assert gate.first_closed_gate(profile) is None

    def test_jurisdiction_change_recloses_later_steps(self, gate, profile):
        profile.mark_authenticated(WALLET)
        profile.set_jurisdiction("DE")
        answer_all(profile, **SOPHISTICATED)
        profile.set_kyc_status(KycStatus.SUBMITTED)
        assert gate.can_enter(Step.ATTESTATION, profile)

        profile.set_jurisdiction("IR")
        assert not gate.can_enter(Step.KYC, profile)
        assert not gate.can_enter(Step.ATTESTATION, profile)
        assert gate.first_closed_gate(profile) == Step.ASSESSMENT


class TestAttestationOnce:

    def test_second_attach_rejected(self, profile):
        first = Attestation("0xabc", "Verified Investor", None, None)
        profile.attach_attestation(first)
        with pytest.raises(AttestationExistsError):
            profile.attach_attestation(Attestation("0xdef", "Verified Investor", None, None))
        assert profile.attestation is first
