"""
API Connector - Bridge between the onboarding engine and the Exposure platform API.

Handles:
- Session cookies (set by /auth/verify, replayed on every call)
- The {success, data, error} response envelope
- Retry logic for idempotent reads
- The client-local KYC marker cookie
"""

import asyncio
import logging
import time
from http.cookiejar import Cookie
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import APIConfig, KYC_COOKIE_MAX_AGE, KYC_COOKIE_NAME
from ..errors import ApiError
from .schemas import LinkedWalletRecord, ProfileRecord, UserRecord, WalletsRecord

logger = logging.getLogger(__name__)

RETRYABLE_METHODS = ("GET",)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: Type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ApiError(f"Unexpected {model.__name__} payload: {e}", 502, "MALFORMED_RESPONSE") from e


class PlatformConnector:
    """
    Connector for the Exposure platform API.

    Used by the onboarding flows to:
    - Run the sign-in handshake (nonce, verify)
    - Read and partially update the investor profile
    - List and link secondary wallets
    - Register for a deal once onboarding is finished
    """

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config or APIConfig()
        self.client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={
                "Content-Type": "application/json",
                "X-Client": "exposure-onboarding"
            },
            timeout=self.config.timeout,
            transport=transport
        )

    # ---- auth ----

    async def get_nonce(self) -> str:
        data = await self._request("GET", "/auth/nonce")
        nonce = (data or {}).get("nonce")
        if not nonce:
            raise ApiError("Failed to fetch nonce from server", 502, "MISSING_NONCE")
        return nonce

    async def verify(self, message: str, signature: str) -> UserRecord:
        data = await self._request(
            "POST", "/auth/verify", json={"message": message, "signature": signature}
        )
        user = (data or {}).get("user")
        if not user:
            raise ApiError("Verification returned no user", 502, "MISSING_USER")
        return _parse(UserRecord, user)

    # ---- profile ----

    async def get_me(self) -> ProfileRecord:
        data = await self._request("GET", "/users/me")
        return _parse(ProfileRecord, (data or {}).get("user") or {})

    async def update_me(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Partial profile update; only the given fields are sent."""
        return await self._request("PATCH", "/users/me", json=fields) or {}

    # ---- wallets ----

    async def get_wallets(self) -> WalletsRecord:
        data = await self._request("GET", "/users/me/wallets")
        return _parse(WalletsRecord, data or {})

    async def link_wallet(
        self,
        address: str,
        chain: str,
        signature: str,
        message: str
    ) -> Optional[LinkedWalletRecord]:
        payload = {
            "address": address,
            "chain": chain,
            "signature": signature,
            "message": message
        }
        data = await self._request("POST", "/users/me/wallets", json=payload)
        wallet = (data or {}).get("wallet")
        return _parse(LinkedWalletRecord, wallet) if wallet else None

    # ---- deals ----

    async def register_for_deal(self, deal_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/deals/{deal_id}/register") or {}

    # ---- client-local marker ----

    def set_kyc_marker(self, max_age: int = KYC_COOKIE_MAX_AGE) -> None:
        """Route-gating hint only; server-side profile state stays authoritative."""
        # httpx's Cookies.set cannot carry an expiry, so go through the jar
        self.client.cookies.jar.set_cookie(Cookie(
            version=0,
            name=KYC_COOKIE_NAME,
            value="approved",
            port=None,
            port_specified=False,
            domain="",
            domain_specified=False,
            domain_initial_dot=False,
            path="/",
            path_specified=True,
            secure=False,
            expires=int(time.time()) + max_age,
            discard=False,
            comment=None,
            comment_url=None,
            rest={},
        ))

    def has_kyc_marker(self) -> bool:
        self.client.cookies.jar.clear_expired_cookies()
        return self.client.cookies.get(KYC_COOKIE_NAME) == "approved"

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs
    ) -> Any:
        """Make HTTP request, unwrap the envelope, retry idempotent reads."""
        attempts = self.config.max_retries if method in RETRYABLE_METHODS else 1
        last_exception: Optional[ApiError] = None

        for attempt in range(max(attempts, 1)):
            try:
                response = await self.client.request(method, path, **kwargs)
            except httpx.RequestError as e:
                logger.error(f"Request error on {method} {path}: {e}")
                last_exception = ApiError(str(e) or "Network error", 0, "NETWORK_ERROR")
            else:
                try:
                    return self._unwrap(response)
                except ApiError as e:
                    logger.error(f"HTTP error {e.status} on {method} {path}: {e.message}")
                    if e.status < 500:
                        raise  # Don't retry client errors
                    last_exception = e

            if attempt + 1 < attempts:
                # Exponential backoff
                await asyncio.sleep(self.config.backoff_base * 2 ** attempt)

        raise last_exception

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            raise ApiError(
                response.reason_phrase or "Network error",
                response.status_code,
                "NETWORK_ERROR"
            )

        if not isinstance(body, dict):
            raise ApiError("Malformed response", response.status_code, "MALFORMED_RESPONSE")

        error = body.get("error") or {}
        if response.is_error or not body.get("success"):
            raise ApiError(
                error.get("message") or response.reason_phrase or "Request failed",
                response.status_code,
                error.get("code"),
                error.get("details")
            )
        return body.get("data")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
