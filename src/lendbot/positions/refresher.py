"""Wallet position refresh: read chain state, reconcile, persist.

Only the operator-controlled home wallet is written back to the position
store. Other wallets are reconciled against whatever is stored for them and
reported, but never persisted.

Reconciliation for one wallet (read baseline, decide, write) runs under a
per-wallet asyncio.Lock so two overlapping refreshes of the same wallet
cannot interleave their read and write.

The store keeps one row per (wallet, mint). When the home wallet holds the
same mint on two protocols, the row belongs to the protocol that stored it
first; the other protocol's position is still returned but not written, so
the stored baseline is never replaced by a different protocol's deposit.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from lendbot.logging import get_logger
from lendbot.models import WalletPosition, now_ms
from lendbot.positions.reconciler import SKIP_ZERO_AMOUNT, SkippedDeposit, reconcile

if TYPE_CHECKING:
    from lendbot.chain.provider import ProviderRegistry
    from lendbot.config import WalletSettings
    from lendbot.data.positions import PositionStore

logger = get_logger(__name__)


class WalletPositionRefresher:
    """Refreshes one wallet at a time across every registered protocol.

    Args:
        registry: Reserve providers by protocol.
        positions: Current-position store.
        settings: Home wallet address and pruning policy.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        positions: PositionStore,
        settings: WalletSettings,
    ) -> None:
        self._registry = registry
        self._positions = positions
        self._settings = settings
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def home_address(self) -> str:
        return self._settings.home_address

    def is_home(self, wallet_address: str) -> bool:
        return bool(self._settings.home_address) and wallet_address == self._settings.home_address

    async def refresh_wallet(
        self, wallet_address: str, protocols: list[str] | None = None
    ) -> list[WalletPosition]:
        """Reconcile a wallet on each protocol and return its positions.

        Raises ProviderUnavailable if a provider cannot be read; positions of
        protocols processed before the failure are already persisted.
        """
        lock = self._locks.setdefault(wallet_address, asyncio.Lock())
        results: list[WalletPosition] = []

        async with lock:
            for protocol in protocols or self._registry.protocols():
                results.extend(await self._refresh_protocol(wallet_address, protocol))

        logger.info(
            "wallet_positions_refreshed",
            wallet=wallet_address,
            positions=len(results),
            persisted=self.is_home(wallet_address),
        )
        return results

    async def _refresh_protocol(self, wallet_address: str, protocol: str) -> list[WalletPosition]:
        reserves = await self._registry.get_reserves(protocol)
        deposits = await self._registry.get_obligations(protocol, wallet_address)

        stored = await self._positions.get_active(wallet_address)
        prior = {p.mint_address: p for p in stored if p.protocol_name == protocol}
        # One row per (wallet, mint): the protocol that stored it first owns it
        owners = {p.mint_address: p.protocol_name for p in stored if p.protocol_name != protocol}

        result = reconcile(
            wallet_address=wallet_address,
            protocol=protocol,
            deposits=deposits,
            reserves=reserves,
            prior_positions=prior,
            now_ms=now_ms(),
        )

        for skipped in result.skipped:
            logger.warning(
                "deposit_skipped",
                wallet=wallet_address,
                protocol=protocol,
                mint=skipped.mint_address,
                reason=skipped.reason,
            )

        if self.is_home(wallet_address):
            for position in result.positions:
                owner = owners.get(position.mint_address)
                if owner is not None:
                    logger.warning(
                        "position_held_by_other_protocol",
                        wallet=wallet_address,
                        protocol=protocol,
                        mint=position.mint_address,
                        stored_protocol=owner,
                    )
                    continue
                await self._positions.upsert(position)

            if self._settings.prune_closed_positions:
                await self._prune(wallet_address, prior, result.positions, result.skipped)

        return result.positions

    async def _prune(
        self,
        wallet_address: str,
        prior: dict[str, WalletPosition],
        fresh: list[WalletPosition],
        skipped: list[SkippedDeposit],
    ) -> None:
        """Remove stored positions whose deposit vanished or dropped to zero."""
        live = {p.mint_address for p in fresh}
        # A deposit skipped for a missing reserve is still open on chain
        unknown = {s.mint_address for s in skipped if s.reason != SKIP_ZERO_AMOUNT}
        for mint in prior:
            if mint not in live and mint not in unknown:
                await self._positions.remove(wallet_address, mint)
                logger.info("closed_position_pruned", wallet=wallet_address, mint=mint)
