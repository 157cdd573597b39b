#!/usr/bin/env python3
"""
Profile Resumer

Maps the persisted profile (fetched once at session start) onto the wizard:
which steps are already complete and where the investor should land.

The scan walks the steps in order and stops at the first one the server
has no record of. Server state is trusted as-is; local gates are only
consulted for a deep link one step past the first incomplete step.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Union

from ..profile import (
    AccreditationBasis,
    Attestation,
    Chain,
    Classification,
    KycStatus,
    LinkedWallet,
    OnboardingProfile,
)
from ..integrations.schemas import LinkedWalletRecord, ProfileRecord
from ..rules.eligibility import EligibilityRules
from ..rules.step_gate import LAST_STEP, Step, StepGate
from .attestation import add_years

logger = logging.getLogger(__name__)

SERVER_KYC_COMPLETE = ("PENDING", "APPROVED")


@dataclass
class ResumePoint:
    start_step: Step
    completed_steps: FrozenSet[Step]
    profile: OnboardingProfile

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_step": int(self.start_step),
            "start_step_label": self.start_step.label,
            "completed_steps": sorted(int(s) for s in self.completed_steps),
            "classification": self.profile.classification.value if self.profile.classification else None,
            "kyc_status": self.profile.kyc_status.value,
            "attestation": self.profile.attestation.to_dict() if self.profile.attestation else None,
        }


def wallets_from_records(records: List[LinkedWalletRecord]) -> List[LinkedWallet]:
    wallets = []
    for record in records:
        try:
            chain = Chain.parse(record.chain)
        except ValueError:
            logger.warning(f"Skipping wallet {record.address} on unsupported chain {record.chain}")
            continue
        wallets.append(LinkedWallet(
            address=record.address,
            chain=chain,
            is_primary=record.is_primary,
            linked_at=record.linked_at,
        ))
    return wallets


class ProfileResumer:
    """
    Computes the resume point for a persisted profile.

    Usage:
        resumer = ProfileResumer(get_rules())
        point = resumer.resume(await connector.get_me(), requested_step=2)
    """

    def __init__(self, rules: EligibilityRules):
        self.rules = rules
        self.gate = StepGate(rules)

    def resume(
        self,
        record: Optional[ProfileRecord],
        requested_step: Optional[Union[int, str]] = None
    ) -> ResumePoint:
        profile = self.hydrate(record)

        completed: List[Step] = []
        first_incomplete: Optional[Step] = None
        for step, done in self._step_conditions(record):
            if not done:
                first_incomplete = step
                break
            completed.append(step)

        start_step = first_incomplete if first_incomplete is not None else LAST_STEP
        override = self._parse_override(requested_step, start_step, profile)
        if override is not None:
            start_step = override

        logger.info(
            f"Resuming onboarding at step {int(start_step)} ({start_step.label}), "
            f"completed={[int(s) for s in completed]}"
        )
        return ResumePoint(start_step, frozenset(completed), profile)

    def _step_conditions(self, record: Optional[ProfileRecord]):
        if record is None:
            return [(step, False) for step in Step]
        return [
            (Step.SIGN_IN, bool(record.wallet_address)),
            (Step.ASSESSMENT, bool(record.country and record.investor_classification)),
            (Step.KYC, (record.kyc_status or "").upper() in SERVER_KYC_COMPLETE),
            (Step.WALLET_LINKING, len(record.wallets) > 0),
            (Step.ATTESTATION, bool(record.attestation_hash)),
        ]

    def _parse_override(
        self,
        requested_step: Optional[Union[int, str]],
        limit: Step,
        profile: OnboardingProfile
    ) -> Optional[Step]:
        """
        A deep-linked step is honoured up to the first incomplete step, or one
        past it when the hydrated draft already opens that step's gates.
        """
        if requested_step is None or requested_step == "":
            return None
        try:
            step = Step(int(requested_step))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid step override {requested_step!r}")
            return None
        if step > limit + 1 or (step > limit and not self.gate.can_enter(step, profile)):
            logger.warning(
                f"Step override {int(step)} is ahead of the first incomplete step {int(limit)}"
            )
            return None
        return step

    def hydrate(self, record: Optional[ProfileRecord]) -> OnboardingProfile:
        """Build the initial draft from whatever the server has on record."""
        profile = OnboardingProfile(rules=self.rules)
        if record is None or not record.wallet_address:
            return profile

        profile.mark_authenticated(record.wallet_address, record.display_name)

        if record.country:
            profile.set_jurisdiction(record.country)
        profile.resumed_classification = Classification.parse(record.investor_classification)

        basis = AccreditationBasis.parse(record.accreditation_method)
        if basis is not None:
            # A recorded basis was certified when the assessment was submitted
            profile.set_accreditation(basis, True)

        profile.set_kyc_status(KycStatus.from_server(record.kyc_status))
        profile.set_linked_wallets(wallets_from_records(record.wallets))

        if record.attestation_hash:
            expires_at = record.attestation_expires_at
            issued_at = record.attestation_issued_at
            if issued_at is None and expires_at is not None:
                issued_at = add_years(expires_at, -1)
            profile.attach_attestation(Attestation(
                hash=record.attestation_hash,
                type=record.attestation_type or self.rules.attestation_type(
                    profile.classification, profile.accreditation_basis, profile.jurisdiction
                ),
                issued_at=issued_at,
                expires_at=expires_at,
            ))

        return profile


async def main() -> Dict[str, Any]:
    """Print the resume point for the session in EXPOSURE_SESSION_COOKIE."""
    from ..errors import ApiError
    from ..integrations.api_connector import PlatformConnector
    from ..rules.eligibility import get_rules

    connector = PlatformConnector()
    session_cookie = os.getenv("EXPOSURE_SESSION_COOKIE")
    if session_cookie:
        connector.client.cookies.set("exposure_session", session_cookie)

    try:
        try:
            record = await connector.get_me()
        except ApiError as e:
            logger.warning(f"No persisted profile ({e.status} {e.code}): {e.message}")
            record = None
        point = ProfileResumer(get_rules()).resume(record, os.getenv("EXPOSURE_STEP"))
        return point.to_dict()
    finally:
        await connector.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print(json.dumps(asyncio.run(main()), indent=2))
