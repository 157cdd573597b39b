"""
Tests for attestation issuance.
"""

from datetime import datetime, timezone

import pytest

from exposure_onboarding.errors import StepGateClosed
from exposure_onboarding.profile import AccreditationBasis, Attestation, KycStatus
from exposure_onboarding.services.attestation import AttestationIssuer, add_years

from conftest import SOPHISTICATED, WALLET, complete_answers

ISSUED = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def issuer(connector, gate):
    return AttestationIssuer(connector, gate)


@pytest.fixture
def eligible(profile, platform):
    platform.seed_user()
    profile.mark_authenticated(WALLET)
    profile.set_jurisdiction("DE")
    profile.questionnaire = complete_answers(**SOPHISTICATED)
    profile.set_kyc_status(KycStatus.SUBMITTED)
    return profile


class TestAddYears:

    def test_one_year(self):
        assert add_years(ISSUED, 1) == datetime(2027, 10, 19, 8, 0, tzinfo=timezone.utc)

    def test_leap_day(self):
        assert add_years(datetime(2028, 2, 29), 1) == datetime(2029, 3, 1)

    def test_backwards(self):
        assert add_years(datetime(2027, 3, 1), -1) == datetime(2026, 3, 1)


class TestIssue:

    @pytest.mark.asyncio
    async def test_issues_one_year_attestation(self, issuer, eligible, platform, connector):
        attestation = await issuer.issue(eligible, terms_accepted=True, now=ISSUED)

        assert attestation.type == "Sophisticated Investor"
        assert attestation.issued_at == ISSUED
        assert attestation.expires_at == datetime(2027, 10, 19, 8, 0, tzinfo=timezone.utc)
        assert attestation.hash.startswith("0x") and len(attestation.hash) == 66

        body, = platform.calls("PATCH", "/users/me")
        assert body == {
            "attestationHash": attestation.hash,
            "attestationType": "Sophisticated Investor",
            "attestationIssuedAt": "2026-10-19T08:00:00+00:00",
            "attestationExpiresAt": "2027-10-19T08:00:00+00:00",
        }
        assert connector.has_kyc_marker()
        assert not issuer.busy.active

    @pytest.mark.asyncio
    async def test_accreditation_label(self, issuer, eligible):
        eligible.set_jurisdiction("US")
        eligible.set_accreditation(AccreditationBasis.QUALIFIED_PURCHASER, True)

        attestation = await issuer.issue(eligible, terms_accepted=True, now=ISSUED)
        assert attestation.type == "Accredited Investor"

    @pytest.mark.asyncio
    async def test_existing_attestation_not_reissued(self, issuer, eligible, platform):
        existing = Attestation(
            hash="0xabc",
            type="Experienced Investor",
            issued_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            expires_at=datetime(2027, 1, 1, tzinfo=timezone.utc),
        )
        eligible.attach_attestation(existing)

        first = await issuer.issue(eligible, terms_accepted=True, now=ISSUED)
        second = await issuer.issue(eligible, terms_accepted=True)

        assert first is existing and second is existing
        assert platform.calls("PATCH", "/users/me") == []

    @pytest.mark.asyncio
    async def test_earlier_steps_required(self, issuer, eligible, platform):
        eligible.set_kyc_status(KycStatus.NOT_SUBMITTED)
        with pytest.raises(StepGateClosed, match="Verify Identity"):
            await issuer.issue(eligible, terms_accepted=True)
        assert platform.requests == []

    @pytest.mark.asyncio
    async def test_blocked_jurisdiction_cannot_attest(self, issuer, eligible):
        eligible.set_jurisdiction("KP")
        with pytest.raises(StepGateClosed, match="Assessment"):
            await issuer.issue(eligible, terms_accepted=True)

    @pytest.mark.asyncio
    async def test_terms_required(self, issuer, eligible, platform):
        with pytest.raises(StepGateClosed, match="terms"):
            await issuer.issue(eligible, terms_accepted=False)
        assert platform.requests == []
