"""
Shared fixtures: an in-memory Exposure platform behind httpx.MockTransport
and a scriptable wallet signer.
"""

import hashlib
import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from exposure_onboarding.config import APIConfig, DEFAULT_POLICY_PATH, SignInConfig
from exposure_onboarding.errors import SigningError
from exposure_onboarding.integrations.api_connector import PlatformConnector
from exposure_onboarding.integrations.wallet_adapter import WalletSigner
from exposure_onboarding.profile import OnboardingProfile, QuestionnaireAnswers
from exposure_onboarding.rules.eligibility import EligibilityRules
from exposure_onboarding.rules.policy import load_policy
from exposure_onboarding.rules.step_gate import StepGate

WALLET = "0x1111111111111111111111111111111111111111"
OTHER_WALLET = "0x2222222222222222222222222222222222222222"
SECOND_WALLET = "0x3333333333333333333333333333333333333333"

NONCE_LINE = re.compile(r"^Nonce: (\S+)$", re.M)


def ok(data: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json={"success": True, "data": data, "error": None})


def fail(status: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(
        status,
        json={"success": False, "data": None, "error": {"code": code, "message": message}}
    )


class FakePlatform:
    """Just enough of the Exposure API for the onboarding flows."""

    def __init__(self):
        self.user: Optional[Dict[str, Any]] = None
        self.wallets: List[Dict[str, Any]] = []
        self.issued_nonces: List[str] = []
        self.requests: List[Tuple[str, str, Any]] = []
        self.failures: Dict[Tuple[str, str], List[httpx.Response]] = {}

    # ---- test helpers ----

    def seed_user(self, wallets: Optional[List[Dict[str, Any]]] = None, **fields: Any) -> Dict[str, Any]:
        self.user = {
            "id": "user-1",
            "walletAddress": WALLET,
            "displayName": None,
            "kycStatus": "NONE",
            "country": None,
            "investorClassification": None,
            "isAccreditedUS": False,
            "accreditationMethod": None,
            "attestationHash": None,
            "attestationExpiresAt": None,
        }
        self.user.update(fields)
        self.wallets = list(wallets or [])
        return self.user

    def fail_next(self, method: str, path: str, response: httpx.Response, times: int = 1) -> None:
        self.failures.setdefault((method, path), []).extend([response] * times)

    def calls(self, method: str, path: str) -> List[Any]:
        return [body for m, p, body in self.requests if m == method and p == path]

    # ---- transport ----

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        queued = self.failures.get((request.method, path))
        if queued:
            return queued.pop(0)

        route = (request.method, path)
        if route == ("GET", "/auth/nonce"):
            nonce = uuid.uuid4().hex[:17]
            self.issued_nonces.append(nonce)
            return ok({"nonce": nonce})
        if route == ("POST", "/auth/verify"):
            return self._verify(body)
        if self.user is None:
            return fail(401, "UNAUTHORIZED", "Authentication required")
        if route == ("GET", "/users/me"):
            return ok({"user": dict(self.user, wallets=list(self.wallets))})
        if route == ("PATCH", "/users/me"):
            self.user.update(body)
            return ok({"user": dict(self.user)})
        if route == ("GET", "/users/me/wallets"):
            return ok({
                "primaryWallet": self.user["walletAddress"],
                "wallets": list(self.wallets),
                "totalWallets": len(self.wallets),
            })
        if route == ("POST", "/users/me/wallets"):
            return self._link(body)
        if request.method == "POST" and path.startswith("/deals/") and path.endswith("/register"):
            return ok({"registration": {"dealId": path.split("/")[2]}}, status=201)
        return fail(404, "NOT_FOUND", f"No route for {request.method} {path}")

    def _verify(self, body: Dict[str, Any]) -> httpx.Response:
        message = body["message"]
        match = NONCE_LINE.search(message)
        if not match or match.group(1) not in self.issued_nonces:
            return fail(400, "INVALID_NONCE", "Invalid or expired nonce")
        self.issued_nonces.remove(match.group(1))
        address = message.splitlines()[1]
        if body["signature"] != FakeSigner.signature_for(address, message):
            return fail(401, "INVALID_SIGNATURE", "Invalid signature")
        if self.user is None or self.user["walletAddress"].lower() != address.lower():
            self.seed_user(walletAddress=address)
        return ok({"user": {
            "id": self.user["id"],
            "walletAddress": address,
            "role": "USER",
            "kycStatus": self.user["kycStatus"],
            "tierLevel": "BRONZE",
            "displayName": self.user["displayName"],
            "email": None,
            "createdAt": "2026-01-01T00:00:00.000Z",
        }})

    def _link(self, body: Dict[str, Any]) -> httpx.Response:
        for wallet in self.wallets:
            if wallet["address"].lower() == body["address"].lower():
                return fail(409, "ALREADY_LINKED", "This wallet is already linked to your account")
        if self.user["walletAddress"].lower() not in body["message"].lower() \
                and body["address"].lower() not in body["message"].lower():
            return fail(400, "INVALID_MESSAGE", "Signature message must reference your account")
        wallet = {
            "id": str(uuid.uuid4()),
            "address": body["address"],
            "chain": body["chain"],
            "isPrimary": False,
            "linkedAt": datetime.now(timezone.utc).isoformat(),
        }
        self.wallets.append(wallet)
        return ok({"wallet": wallet}, status=201)


class FakeSigner(WalletSigner):
    """Deterministic signer; set ``reject`` to simulate a dismissed wallet prompt."""

    def __init__(self, chain_id: int = 8453):
        self.chain_id = chain_id
        self.reject = False
        self.signed: List[Tuple[str, str]] = []
        self.switches: List[int] = []

    @staticmethod
    def signature_for(address: str, message: str) -> str:
        return "0x" + hashlib.sha256(f"{address.lower()}|{message}".encode()).hexdigest()

    async def sign_message(self, address: str, message: str) -> str:
        if self.reject:
            raise SigningError("User rejected the request")
        self.signed.append((address, message))
        return self.signature_for(address, message)

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def switch_chain(self, chain_id: int) -> None:
        self.switches.append(chain_id)
        self.chain_id = chain_id


# ============== Fixtures ==============

@pytest.fixture
def rules() -> EligibilityRules:
    return EligibilityRules(load_policy(DEFAULT_POLICY_PATH))


@pytest.fixture
def gate(rules) -> StepGate:
    return StepGate(rules)


@pytest.fixture
def profile(rules) -> OnboardingProfile:
    return OnboardingProfile(rules=rules)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def connector(platform) -> PlatformConnector:
    config = APIConfig(base_url="http://testserver/api", timeout=5, max_retries=3, backoff_base=0)
    return PlatformConnector(config, transport=httpx.MockTransport(platform.handler))


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def sign_in_config() -> SignInConfig:
    return SignInConfig(
        domain="app.exposure.test",
        uri="https://app.exposure.test",
        statement="Sign in to Exposure",
        version="1"
    )


def complete_answers(**overrides: Any) -> QuestionnaireAnswers:
    """A fully answered questionnaire (retail unless overridden)."""
    answers = dict(
        years_investing="1-3",
        investment_types=frozenset({"stocks", "crypto"}),
        digital_asset_familiarity="somewhat_familiar",
        token_sale_experience="no",
        risk_assessment_ability="with_help",
        annual_income="100k-200k",
        net_worth="250k-1m",
        risk_acknowledged=True,
    )
    answers.update(overrides)
    return QuestionnaireAnswers(**answers)


SOPHISTICATED = dict(
    years_investing="5+",
    digital_asset_familiarity="very_familiar",
    token_sale_experience="10+",
    risk_assessment_ability="independently",
)
