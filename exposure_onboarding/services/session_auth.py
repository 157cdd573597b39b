"""
Session Authenticator

Challenge/response wallet sign-in:

    IDLE → CONNECTING → SIGNING → VERIFYING → AUTHENTICATED
      ↑________ FAILED ←_______________________|  (any error, retryable)

1. Fetch a single-use nonce from the server
2. Render the canonical sign-in message around it
3. Have the wallet sign the exact text
4. Submit (message, signature) for verification and open the session

Attempts are keyed by wallet address. A second attempt for the same address
while one is in flight is refused; an account switch abandons the in-flight
attempt so its signature is never submitted for the new identity.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from ..config import SignInConfig
from ..errors import AttemptAbandoned, OnboardingError, OperationInProgress, SigningError
from ..integrations.api_connector import PlatformConnector
from ..integrations.schemas import UserRecord
from ..integrations.wallet_adapter import WalletSigner
from ..messages import get_sign_in_message

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    SIGNING = "signing"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class Session:
    """An authenticated platform session."""
    user: UserRecord
    wallet_address: str
    chain_id: int
    established_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class _Attempt:
    address: str
    chain_id: int


class SessionAuthenticator:
    """
    Drives the sign-in handshake for one wallet at a time.

    Usage:
        auth = SessionAuthenticator(connector, signer)
        session = await auth.sign_in("0xabc...", chain_id=8453)
    """

    def __init__(
        self,
        connector: PlatformConnector,
        signer: WalletSigner,
        config: Optional[SignInConfig] = None
    ):
        self.connector = connector
        self.signer = signer
        self.config = config or SignInConfig()
        self.state = AuthState.IDLE
        self.error: Optional[str] = None
        self.session: Optional[Session] = None
        self._attempt: Optional[_Attempt] = None

    @property
    def in_flight_address(self) -> Optional[str]:
        return self._attempt.address if self._attempt else None

    async def sign_in(self, address: str, chain_id: int) -> Session:
        current = self._attempt
        if current is not None:
            if current.address.lower() == address.lower():
                raise OperationInProgress(f"Sign-in for {address} is already in progress")
            self.abandon(f"switched to {address}")

        attempt = _Attempt(address=address, chain_id=chain_id)
        self._attempt = attempt
        self.error = None
        self.session = None

        try:
            self._enter(attempt, AuthState.CONNECTING)
            nonce = await self.connector.get_nonce()

            self._enter(attempt, AuthState.SIGNING)
            message = get_sign_in_message(
                domain=self.config.domain,
                address=address,
                statement=self.config.statement,
                uri=self.config.uri,
                version=self.config.version,
                chain_id=chain_id,
                nonce=nonce,
            )
            try:
                signature = await self.signer.sign_message(address, message)
            except SigningError:
                raise
            except Exception as e:
                raise SigningError(f"Wallet failed to sign the sign-in message: {e}") from e

            self._enter(attempt, AuthState.VERIFYING)
            user = await self.connector.verify(message, signature)

            self._enter(attempt, AuthState.AUTHENTICATED)
        except AttemptAbandoned:
            raise
        except OnboardingError as e:
            if self._attempt is attempt:
                self._attempt = None
                self.state = AuthState.FAILED
                self.error = str(e) or "Sign-in failed. Please try again."
                logger.error(f"Sign-in failed for {address}: {self.error}")
            raise

        self._attempt = None
        self.session = Session(user=user, wallet_address=address, chain_id=chain_id)
        logger.info(f"Signed in {address} as user {user.id}")
        return self.session

    def _enter(self, attempt: _Attempt, state: AuthState) -> None:
        """Move to ``state`` unless the attempt was superseded while suspended."""
        if self._attempt is not attempt:
            raise AttemptAbandoned(f"Sign-in attempt for {attempt.address} was abandoned")
        self.state = state

    def abandon(self, reason: str = "abandoned") -> None:
        if self._attempt is not None:
            logger.info(f"Abandoning sign-in for {self._attempt.address}: {reason}")
        self._attempt = None
        self.state = AuthState.IDLE

    def on_account_changed(self, address: Optional[str]) -> None:
        """Wallet reported a different account; drop any attempt for the old one."""
        if self._attempt is not None and (
            address is None or self._attempt.address.lower() != address.lower()
        ):
            self.abandon(f"account changed to {address}")

    def reset(self) -> None:
        """Clear a failed or stuck attempt so sign-in can be retried."""
        self.abandon("reset for retry")
        self.error = None
