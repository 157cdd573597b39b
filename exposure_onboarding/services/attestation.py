"""
Attestation Issuer

Finalizes eligibility into a one-year attestation once every earlier step
is satisfied. Issuance happens at most once per profile: an attestation
already on record is returned as-is and never re-issued.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

from ..errors import StepGateClosed
from ..integrations.api_connector import PlatformConnector
from ..profile import Attestation, OnboardingProfile
from ..rules.step_gate import Step, StepGate
from .busy import BusyFlag

logger = logging.getLogger(__name__)

VALIDITY_YEARS = 1


def add_years(moment: datetime, years: int) -> datetime:
    """Same calendar date ``years`` later; Feb 29 rolls over to Mar 1."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, month=3, day=1)


def attestation_hash(wallet_address: str, attestation_type: str, issued_at: datetime) -> str:
    content = f"{wallet_address.lower()}:{attestation_type}:{issued_at.isoformat()}"
    return "0x" + hashlib.sha256(content.encode()).hexdigest()


class AttestationIssuer:

    def __init__(self, connector: PlatformConnector, gate: StepGate):
        self.connector = connector
        self.gate = gate
        self.busy = BusyFlag("Attestation issuance")

    async def issue(
        self,
        profile: OnboardingProfile,
        terms_accepted: bool,
        now: Optional[datetime] = None
    ) -> Attestation:
        """
        Issue the attestation for the profile.

        Args:
            profile: Draft with every earlier step satisfied
            terms_accepted: The investor accepted the attestation terms
            now: Issuance time (UTC now by default)

        Returns:
            The new attestation, or the existing one untouched
        """
        if profile.attestation is not None:
            logger.info(f"Attestation {profile.attestation.hash} already on record, not re-issuing")
            return profile.attestation

        if not self.gate.can_enter(Step.ATTESTATION, profile):
            blocking = self.gate.first_closed_gate(profile)
            raise StepGateClosed(
                f"Complete the {blocking.label} step before requesting an attestation"
            )
        if not terms_accepted:
            raise StepGateClosed("Accept the attestation terms to continue")

        with self.busy.hold():
            issued_at = now or datetime.now(timezone.utc)
            expires_at = add_years(issued_at, VALIDITY_YEARS)
            attestation_type = self.gate.rules.attestation_type(
                profile.classification,
                profile.accreditation_basis,
                profile.jurisdiction
            )
            attestation = Attestation(
                hash=attestation_hash(profile.wallet_address or "", attestation_type, issued_at),
                type=attestation_type,
                issued_at=issued_at,
                expires_at=expires_at,
            )

            await self.connector.update_me({
                "attestationHash": attestation.hash,
                "attestationType": attestation.type,
                "attestationIssuedAt": issued_at.isoformat(),
                "attestationExpiresAt": expires_at.isoformat(),
            })

        if not self.connector.has_kyc_marker():
            self.connector.set_kyc_marker()

        logger.info(
            f"Issued {attestation.type} attestation {attestation.hash} "
            f"valid until {expires_at.date().isoformat()}"
        )
        return attestation
