"""
Wallet Linking Flow

Links secondary wallets to the account:
1. Switch the wallet to the target chain when needed
2. Render the link-intent message (address, chain, timestamp)
3. Sign the exact text and submit (address, chain, signature, message)

Linking is an idempotent upsert per (address, chain): a pair already on
the list is returned without asking for a signature, and the server's
ALREADY_LINKED conflict is treated as success when the refreshed list holds
the requested pair.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..errors import ApiError, SigningError
from ..integrations.api_connector import PlatformConnector
from ..integrations.wallet_adapter import WalletSigner
from ..messages import get_wallet_link_message
from ..profile import Chain, LinkedWallet, merge_wallets
from .busy import BusyFlag
from .resumer import wallets_from_records

logger = logging.getLogger(__name__)

ALREADY_LINKED = "ALREADY_LINKED"


class WalletLinkingFlow:

    def __init__(self, connector: PlatformConnector, signer: WalletSigner):
        self.connector = connector
        self.signer = signer
        self.link_busy = BusyFlag("Wallet linking")

    async def fetch(self) -> List[LinkedWallet]:
        record = await self.connector.get_wallets()
        return wallets_from_records(record.wallets)

    async def link(
        self,
        address: str,
        chain: Chain,
        existing: List[LinkedWallet],
        now: Optional[datetime] = None
    ) -> List[LinkedWallet]:
        """
        Link ``address`` on ``chain``.

        Returns:
            The linked-wallet list after linking, without duplicates
        """
        chain = Chain(chain)
        key = (address.lower(), chain)
        if any(wallet.key == key for wallet in existing):
            logger.info(f"Wallet {address} already linked on {chain.wire_name}")
            return list(existing)

        with self.link_busy.hold():
            await self._ensure_chain(chain)

            message = get_wallet_link_message(address, chain.value, now)
            try:
                signature = await self.signer.sign_message(address, message)
            except SigningError:
                raise
            except Exception as e:
                raise SigningError(f"Wallet failed to sign the link request: {e}") from e

            conflict = None
            try:
                await self.connector.link_wallet(address, chain.wire_name, signature, message)
            except ApiError as e:
                if e.status != 409 or e.code != ALREADY_LINKED:
                    raise
                logger.info(f"Server reports {address} already linked")
                conflict = e

            refreshed = await self.fetch()

        # The server keys wallets on address alone; a conflict only counts as
        # success when the requested chain is the one on record
        if conflict is not None and not any(wallet.key == key for wallet in refreshed):
            raise ApiError(
                f"Wallet {address} is already linked on another chain",
                conflict.status,
                ALREADY_LINKED,
                conflict.details
            )

        logger.info(f"Linked wallet {address} on {chain.wire_name}")
        return merge_wallets(existing, refreshed)

    async def _ensure_chain(self, chain: Chain) -> None:
        try:
            current = await self.signer.get_chain_id()
            if current != chain.chain_id:
                logger.info(f"Switching wallet from chain {current} to {chain.chain_id}")
                await self.signer.switch_chain(chain.chain_id)
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Could not switch wallet to {chain.wire_name}: {e}") from e

    def rearm(self) -> None:
        self.link_busy.rearm()
