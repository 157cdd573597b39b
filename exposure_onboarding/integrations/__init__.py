"""
External Integrations

Platform API connector, its wire records, and the wallet signer interface.
"""

from .api_connector import PlatformConnector

from .schemas import (
    LinkedWalletRecord,
    ProfileRecord,
    UserRecord,
    WalletsRecord
)

from .wallet_adapter import WalletSigner

__all__ = [
    # Platform API
    "PlatformConnector",
    "LinkedWalletRecord",
    "ProfileRecord",
    "UserRecord",
    "WalletsRecord",
    # Wallet
    "WalletSigner",
]
