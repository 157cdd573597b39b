"""
Onboarding Orchestrator

Top-level state machine for the five-step onboarding wizard:

    Sign-In → Assessment → KYC → Wallet Linking → Attestation

The orchestrator alone:
1. Owns the profile draft and applies field-level updates to it
2. Decides transition legality (StepGate + pure transitions)
3. Runs step submission handlers and flushes partial updates
4. Catches step failures and surfaces them as ``step_error``

No failure here is fatal: the investor stays on the current step with the
draft unchanged and can retry, or leave and resume later.
"""

import logging
import re
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from ..config import SignInConfig
from ..errors import (
    ApiError,
    AttemptAbandoned,
    OnboardingError,
    OperationInProgress,
    StepGateClosed
)
from ..integrations.api_connector import PlatformConnector
from ..integrations.wallet_adapter import WalletSigner
from ..profile import AccreditationBasis, Chain, Classification, KycStatus, OnboardingProfile
from ..rules.eligibility import EligibilityRules, get_rules
from ..rules.step_gate import LAST_STEP, Step, StepGate
from .attestation import AttestationIssuer
from .busy import BusyFlag
from .kyc_flow import KYCSubmissionFlow, KycState
from .resumer import ProfileResumer, ResumePoint
from .session_auth import Session, SessionAuthenticator
from .state_machine import Advance, JumpTo, MarkComplete, Retreat, WizardEvent, WizardState, transition
from .wallet_linking import WalletLinkingFlow

logger = logging.getLogger(__name__)

DEAL_PATH = re.compile(r"^/deals/([^/?#]+)")
UNAUTHENTICATED = (401, 403)


class OnboardingOrchestrator:
    """
    Drives one investor through onboarding.

    Usage:
        orchestrator = OnboardingOrchestrator(connector, signer)
        await orchestrator.start(requested_step=None)
        await orchestrator.sign_in(address, chain_id)
        orchestrator.set_jurisdiction("DE")
        orchestrator.answer(years_investing="5+", ...)
        await orchestrator.next()
    """

    def __init__(
        self,
        connector: PlatformConnector,
        signer: WalletSigner,
        rules: Optional[EligibilityRules] = None,
        sign_in_config: Optional[SignInConfig] = None,
        session: Optional[Session] = None
    ):
        self.connector = connector
        self.rules = rules or get_rules()
        self.gate = StepGate(self.rules)
        self.resumer = ProfileResumer(self.rules)

        self.authenticator = SessionAuthenticator(connector, signer, sign_in_config)
        self.kyc = KYCSubmissionFlow(connector, self.rules.policy.proof_of_address_max_age_days)
        self.wallets = WalletLinkingFlow(connector, signer)
        self.issuer = AttestationIssuer(connector, self.gate)

        self.state = WizardState()
        self.profile = OnboardingProfile(rules=self.rules)
        self.step_error: Optional[str] = None
        self.redirect_target: Optional[str] = None
        self._assessment_dirty = False

        self._session: Optional[Session] = None
        self._transition_busy = BusyFlag("Step transition")
        self._submit_handlers: Dict[Step, Callable[[], Awaitable[Any]]] = {
            Step.ASSESSMENT: self._submit_assessment,
        }

        if session is not None:
            self.set_session(session)

    # ============== Derived state ==============

    @property
    def current_step(self) -> Step:
        return self.state.current_step

    @property
    def completed_steps(self):
        return self.state.completed_steps

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def can_proceed(self) -> bool:
        step = self.current_step
        return step != LAST_STEP and self.gate.can_enter(Step(step + 1), self.profile)

    @property
    def classification(self) -> Optional[Classification]:
        return self.profile.classification

    @property
    def is_blocked(self) -> bool:
        return bool(self.profile.jurisdiction) and self.rules.is_blocked_jurisdiction(
            self.profile.jurisdiction
        )

    @property
    def assessment_issues(self) -> List[str]:
        return self.gate.assessment_issues(self.profile)

    @property
    def kyc_state(self) -> KycState:
        return self.kyc.state(self.profile.kyc)

    @property
    def busy(self) -> bool:
        return any((
            self._transition_busy.active,
            self.authenticator.in_flight_address is not None,
            self.kyc.submit_busy.active,
            self.kyc.refresh_busy.active,
            self.wallets.link_busy.active,
            self.issuer.busy.active,
        ))

    # ============== Session ==============

    async def start(
        self,
        requested_step: Optional[Union[int, str]] = None,
        redirect_target: Optional[str] = None
    ) -> ResumePoint:
        """Fetch the persisted profile once and position the wizard."""
        self.redirect_target = redirect_target
        record = None
        try:
            record = await self.connector.get_me()
        except ApiError as e:
            if e.status in UNAUTHENTICATED:
                logger.info("No active session, starting onboarding from the beginning")
            else:
                logger.warning(f"Could not load persisted profile: {e}")
                self.step_error = str(e)

        point = self.resumer.resume(record, requested_step)
        self.profile = point.profile
        self._assessment_dirty = False
        self.state = WizardState(point.start_step, point.completed_steps)
        if self._session is not None and not self.profile.authenticated:
            self.profile.mark_authenticated(
                self._session.wallet_address, self._session.user.display_name
            )
        return point

    def set_session(self, session: Optional[Session]) -> None:
        """The only way the orchestrator's session changes."""
        self._session = session
        if session is not None:
            self.profile.mark_authenticated(session.wallet_address, session.user.display_name)

    async def sign_in(self, address: str, chain_id: int) -> bool:
        ok, session = await self._run("Sign-in", lambda: self.authenticator.sign_in(address, chain_id))
        if not ok:
            return False

        self.set_session(session)
        self._apply(MarkComplete(Step.SIGN_IN))
        if self.current_step == Step.SIGN_IN:
            self._apply(Advance())
        return True

    async def retry_sign_in(self, address: str, chain_id: int) -> bool:
        self.authenticator.reset()
        return await self.sign_in(address, chain_id)

    def on_account_changed(self, address: Optional[str]) -> None:
        self.authenticator.on_account_changed(address)

    # ============== Assessment ==============

    def set_jurisdiction(self, country: Optional[str]) -> None:
        self.profile.set_jurisdiction(country)
        self._assessment_dirty = True
        if self.is_blocked:
            logger.info(f"Jurisdiction {self.profile.jurisdiction} is blocked")

    def answer(self, **answers: Any) -> Optional[Classification]:
        """Update questionnaire answers; returns the recomputed classification."""
        self._assessment_dirty = True
        return self.profile.update_questionnaire(**answers)

    def set_accreditation(
        self,
        basis: Optional[Union[AccreditationBasis, str]],
        certified: bool
    ) -> None:
        if isinstance(basis, str):
            basis = AccreditationBasis.parse(basis)
        self.profile.set_accreditation(basis, certified)
        self._assessment_dirty = True

    async def _submit_assessment(self) -> None:
        profile = self.profile
        classification = profile.classification
        await self.connector.update_me({
            "country": profile.jurisdiction,
            "investorClassification": classification.value if classification else None,
            "isAccreditedUS": self.rules.is_accredited(
                profile.jurisdiction, profile.accreditation_basis
            ),
            "accreditationMethod": (
                profile.accreditation_basis.value
                if profile.accreditation_required and profile.accreditation_basis
                else None
            ),
        })
        self._assessment_dirty = False

    async def _flush_assessment(self) -> bool:
        """Save assessment edits made after the assessment step was left."""
        if not self._assessment_dirty or self.assessment_issues:
            return True
        ok, _ = await self._run("Assessment submission", self._submit_assessment)
        return ok

    # ============== KYC ==============

    def stage_identity_document(self, reference: str) -> None:
        self.profile.stage_identity_document(reference)

    def stage_proof_of_address(self, reference: str, document_date: date) -> bool:
        problem = self.kyc.validate_document_date(document_date)
        if problem:
            self.step_error = problem
            return False
        self.profile.stage_proof_of_address(reference, document_date)
        return True

    async def submit_kyc(self) -> bool:
        ok, status = await self._run("KYC submission", lambda: self.kyc.submit(self.profile.kyc))
        if ok:
            self.profile.set_kyc_status(status)
        return ok

    async def refresh_kyc(self) -> KycStatus:
        ok, status = await self._run("KYC refresh", self.kyc.refresh)
        if ok and status != KycStatus.NOT_SUBMITTED:
            self.profile.set_kyc_status(status)
        return self.profile.kyc_status

    # ============== Wallets ==============

    async def load_wallets(self) -> bool:
        ok, wallets = await self._run("Loading wallets", self.wallets.fetch)
        if ok:
            self.profile.set_linked_wallets(wallets)
        return ok

    async def link_wallet(self, address: str, chain: Union[Chain, str]) -> bool:
        try:
            chain = Chain.parse(chain) if isinstance(chain, str) else Chain(chain)
        except ValueError:
            self.step_error = f"Unsupported chain: {chain}"
            return False
        ok, wallets = await self._run(
            "Wallet linking",
            lambda: self.wallets.link(address, chain, self.profile.linked_wallets)
        )
        if ok:
            self.profile.set_linked_wallets(wallets)
        return ok

    # ============== Attestation ==============

    async def accept_attestation(self, terms_accepted: bool = True) -> bool:
        if not await self._flush_assessment():
            return False
        ok, attestation = await self._run(
            "Attestation", lambda: self.issuer.issue(self.profile, terms_accepted)
        )
        if not ok:
            return False
        if self.profile.attestation is None:
            self.profile.attach_attestation(attestation)
        self._apply(MarkComplete(Step.ATTESTATION))
        return True

    async def register_for_deal(self, deal_id: Optional[str] = None) -> bool:
        """Adjacent flow offered after onboarding: register for the deal the investor came from."""
        deal_id = deal_id or self.pending_deal_id
        if not deal_id:
            return False
        if self.profile.attestation is None:
            self.step_error = "Complete onboarding before registering for a deal"
            return False
        ok, _ = await self._run("Deal registration", lambda: self.connector.register_for_deal(deal_id))
        return ok

    @property
    def pending_deal_id(self) -> Optional[str]:
        match = DEAL_PATH.match(self.redirect_target or "")
        return match.group(1) if match else None

    # ============== Navigation ==============

    async def next(self) -> bool:
        """Submit the current step and advance when its gate allows."""
        self.step_error = None
        step = self.current_step
        if not self.can_proceed:
            return False

        try:
            token = self._transition_busy.acquire()
        except OperationInProgress:
            return False

        try:
            if step > Step.ASSESSMENT and not await self._flush_assessment():
                return False
            handler = self._submit_handlers.get(step)
            if handler is not None:
                ok, _ = await self._run(f"{step.label} submission", handler)
                if not ok:
                    return False
        finally:
            self._transition_busy.release(token)

        before = self.current_step
        self._apply(Advance())
        return self.current_step != before

    def back(self) -> None:
        self.step_error = None
        self._apply(Retreat())

    def go_to(self, step: Union[Step, int]) -> bool:
        try:
            target = Step(step)
        except (TypeError, ValueError):
            self.step_error = f"Unknown onboarding step: {step}"
            return False
        self._apply(JumpTo(target))
        return self.current_step == target

    def rearm(self) -> None:
        """Free every busy flag so a stuck operation can be retried."""
        self._transition_busy.rearm()
        self.authenticator.reset()
        self.kyc.rearm()
        self.wallets.rearm()
        self.issuer.busy.rearm()

    async def close(self) -> None:
        await self.connector.close()

    # ============== Internals ==============

    def _apply(self, event: WizardEvent) -> None:
        previous = self.state
        self.state = transition(self.state, event, self.gate, self.profile)
        if self.state.current_step != previous.current_step:
            logger.info(
                f"Onboarding step {int(previous.current_step)} -> {int(self.state.current_step)} "
                f"({self.state.current_step.label})"
            )

    async def _run(
        self,
        name: str,
        operation: Callable[[], Awaitable[Any]]
    ) -> Tuple[bool, Any]:
        """Run a step operation, turning failures into an inline error."""
        self.step_error = None
        try:
            return True, await operation()
        except (AttemptAbandoned, OperationInProgress) as e:
            logger.info(f"{name} skipped: {e}")
        except StepGateClosed as e:
            self.step_error = str(e)
        except OnboardingError as e:
            logger.error(f"{name} failed: {e}")
            self.step_error = str(e) or f"{name} failed. Please try again."
        return False, None


