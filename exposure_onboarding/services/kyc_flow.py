"""
KYC Submission Flow

Document staging and submission for identity verification:

    NotSubmitted → Submittable → Submitted → Verified

Submission moves the profile to Submitted. Verified is reached only by the
external compliance review and is observed by re-fetching the profile.
"""

import logging
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from ..errors import StepGateClosed
from ..integrations.api_connector import PlatformConnector
from ..profile import KycDraft, KycStatus
from .busy import BusyFlag

logger = logging.getLogger(__name__)


class KycState(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    SUBMITTABLE = "submittable"
    SUBMITTED = "submitted"
    VERIFIED = "verified"


class KYCSubmissionFlow:

    def __init__(
        self,
        connector: PlatformConnector,
        proof_of_address_max_age_days: Optional[int] = None
    ):
        self.connector = connector
        self.max_age_days = proof_of_address_max_age_days
        self.submit_busy = BusyFlag("KYC submission")
        self.refresh_busy = BusyFlag("KYC status refresh")

    @staticmethod
    def is_submittable(draft: KycDraft) -> bool:
        return bool(
            draft.identity_document
            and draft.proof_of_address
            and draft.proof_of_address_date
        )

    def state(self, draft: KycDraft) -> KycState:
        if draft.status == KycStatus.VERIFIED:
            return KycState.VERIFIED
        if draft.status == KycStatus.SUBMITTED:
            return KycState.SUBMITTED
        if self.is_submittable(draft):
            return KycState.SUBMITTABLE
        return KycState.NOT_SUBMITTED

    def validate_document_date(self, document_date: date, today: Optional[date] = None) -> Optional[str]:
        """Returns why a proof-of-address date is unacceptable, or None."""
        today = today or date.today()
        if document_date > today:
            return "Proof of address cannot be dated in the future"
        if self.max_age_days is not None and document_date < today - timedelta(days=self.max_age_days):
            return f"Proof of address must be dated within the last {self.max_age_days} days"
        return None

    async def submit(self, draft: KycDraft) -> KycStatus:
        """Post the staged documents; returns the new status."""
        if draft.status in (KycStatus.SUBMITTED, KycStatus.VERIFIED):
            return draft.status
        if not self.is_submittable(draft):
            raise StepGateClosed("Upload both documents and set the document date before submitting")

        with self.submit_busy.hold():
            await self.connector.update_me({
                "kycStatus": "PENDING",
                "kycDocuments": {
                    "identityDocument": draft.identity_document,
                    "proofOfAddress": draft.proof_of_address,
                    "proofOfAddressDate": draft.proof_of_address_date.isoformat(),
                },
            })

        logger.info("KYC documents submitted for review")
        return KycStatus.SUBMITTED

    async def refresh(self) -> KycStatus:
        """Re-read the server's KYC status to observe review outcomes."""
        with self.refresh_busy.hold():
            record = await self.connector.get_me()

        status = KycStatus.from_server(record.kyc_status)
        if status == KycStatus.VERIFIED and not self.connector.has_kyc_marker():
            self.connector.set_kyc_marker()
        logger.info(f"KYC status on record: {record.kyc_status} -> {status.value}")
        return status

    def rearm(self) -> None:
        self.submit_busy.rearm()
        self.refresh_busy.rearm()
