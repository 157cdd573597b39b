"""
Sign-In Message

EIP-4361 (Sign-In with Ethereum) text built with ``siwe``. The server
re-parses the exact string with a SIWE parser, so the address must be in
EIP-55 checksum form.
"""

from datetime import datetime, timezone
from typing import Optional

from siwe import SiweMessage
from web3 import Web3

from ..errors import InvalidInputError


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def checksum_address(address: str) -> str:
    try:
        return Web3.to_checksum_address(address)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid wallet address: {address}") from e


def get_sign_in_message(
    domain: str,
    address: str,
    statement: str,
    uri: str,
    version: str,
    chain_id: int,
    nonce: str,
    issued_at: Optional[datetime] = None
) -> str:
    """Render the sign-in message for a nonce."""
    try:
        message = SiweMessage(
            domain=domain,
            address=checksum_address(address),
            statement=statement,
            uri=uri,
            version=version,
            chain_id=chain_id,
            nonce=nonce,
            issued_at=iso_timestamp(issued_at),
        )
    except ValueError as e:
        raise InvalidInputError(f"Cannot build sign-in message: {e}") from e
    return message.prepare_message()
