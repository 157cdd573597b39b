"""
Signed Message Templates

Text the investor's wallet signs during sign-in and wallet linking.
"""

from .sign_in import (
    checksum_address,
    get_sign_in_message,
    iso_timestamp
)

from .wallet_link import (
    WALLET_LINK_MESSAGE,
    get_wallet_link_message
)

__all__ = [
    # Sign-in
    "checksum_address",
    "get_sign_in_message",
    "iso_timestamp",
    # Wallet linking
    "WALLET_LINK_MESSAGE",
    "get_wallet_link_message",
]
