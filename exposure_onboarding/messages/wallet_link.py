"""
Wallet Link-Intent Template

Free text signed by a secondary wallet. The same rendered string is signed
and submitted; the server checks that it references the account.
"""

from datetime import datetime
from typing import Optional

from .sign_in import iso_timestamp

WALLET_LINK_MESSAGE = """Link wallet {address} to my Exposure account.

Chain: {chain}
Timestamp: {timestamp}"""


def get_wallet_link_message(address: str, chain: str, timestamp: Optional[datetime] = None) -> str:
    return WALLET_LINK_MESSAGE.format(
        address=address,
        chain=chain.upper(),
        timestamp=iso_timestamp(timestamp),
    )
