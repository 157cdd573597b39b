"""
Wallet Adapter - Interface to the investor's connected wallet.

The wallet library (connection modal, account/chain tracking, message
signing) is external. The engine only needs the three calls below.
Implementations raise SigningError when the investor rejects a request.
"""

from abc import ABC, abstractmethod


class WalletSigner(ABC):
    """Abstract base class for wallet integrations."""

    @abstractmethod
    async def sign_message(self, address: str, message: str) -> str:
        """Sign the exact message text with the given account; returns the hex signature."""
        pass

    @abstractmethod
    async def get_chain_id(self) -> int:
        """Chain id the wallet is currently connected to."""
        pass

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """Ask the wallet to switch networks."""
        pass
