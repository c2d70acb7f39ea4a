"""Wallet-position refresh for explicit addresses or every known wallet."""

from __future__ import annotations

from typing import TYPE_CHECKING

from lendbot.chain.address import extract_addresses, validate_address
from lendbot.exceptions import LendBotError
from lendbot.logging import get_logger
from lendbot.models import WalletPosition
from lendbot.pipelines.base import Pipeline, PipelineContext, PipelineOptions, PipelineResult

if TYPE_CHECKING:
    from lendbot.data.wallets import WalletStore
    from lendbot.positions.refresher import WalletPositionRefresher

logger = get_logger(__name__)


class WalletPositionsPipeline(Pipeline):
    """Refresh lending positions wallet by wallet.

    Addresses come from ``options.wallet_addresses`` or, failing that, from
    the context text. Explicit addresses are validated up front and an
    invalid one raises InvalidAddress before any chain read. With no explicit
    address the linked-wallet registry plus the home wallet is refreshed,
    sequentially in registration order; a failing wallet is logged and the
    rest still run.
    """

    name = "wallet_positions"

    def __init__(self, refresher: WalletPositionRefresher, wallets: WalletStore) -> None:
        self._refresher = refresher
        self._wallets = wallets

    async def _scheduled_addresses(self) -> list[str]:
        addresses = [w.wallet_address for w in await self._wallets.get_all()]
        if self._refresher.home_address:
            addresses.append(self._refresher.home_address)
        return list(dict.fromkeys(addresses))

    async def run(self, context: PipelineContext, options: PipelineOptions) -> PipelineResult:
        explicit = options.wallet_addresses or extract_addresses(context.text)
        if explicit:
            addresses = [validate_address(a) for a in explicit]
        else:
            addresses = await self._scheduled_addresses()

        if not addresses:
            result = PipelineResult(summary="No wallets to refresh.", data={})
            return await self.respond(context, options, result)

        protocols = options.selected_protocols([]) or None
        by_wallet: dict[str, list[WalletPosition]] = {}
        failed: list[str] = []

        for address in addresses:
            try:
                by_wallet[address] = await self._refresher.refresh_wallet(address, protocols)
            except LendBotError as e:
                logger.error("wallet_refresh_failed", wallet=address, error=str(e))
                failed.append(address)

        logger.info("wallet_positions_done", wallets=len(by_wallet), failed=len(failed))
        result = PipelineResult(
            summary=_format_positions(by_wallet, failed),
            data={w: [p.to_dict() for p in ps] for w, ps in by_wallet.items()},
            ok=not failed or bool(by_wallet),
        )
        return await self.respond(context, options, result)


def _format_positions(by_wallet: dict[str, list[WalletPosition]], failed: list[str]) -> str:
    lines: list[str] = []
    for wallet, positions in by_wallet.items():
        lines.append(f"Wallet {wallet}:")
        if not positions:
            lines.append("- no lending positions")
        for p in positions:
            lines.append(
                f"- {p.protocol_name} {p.coin_name}: {p.current_position} "
                f"(started {p.amount} at {p.start_apy}%, now {p.latest_apy}%)"
            )
    for wallet in failed:
        lines.append(f"Wallet {wallet}: positions could not be fetched")
    return "\n".join(lines)
