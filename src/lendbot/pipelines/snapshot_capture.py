"""Snapshot capture -- sample every registered protocol's reserves.

Runs on the shortest interval; its output feeds every other pipeline.
A provider failure skips that protocol for this run only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lendbot.exceptions import ProviderUnavailable
from lendbot.logging import get_logger
from lendbot.models import ReserveSnapshot, coins_for, now_ms
from lendbot.pipelines.base import Pipeline, PipelineContext, PipelineOptions, PipelineResult

if TYPE_CHECKING:
    from lendbot.chain.provider import ProviderRegistry
    from lendbot.data.snapshots import SnapshotStore

logger = get_logger(__name__)

_DAY_MS = 86_400 * 1000


class SnapshotCapturePipeline(Pipeline):
    """Append one snapshot per supported reserve per protocol."""

    name = "snapshot_capture"

    def __init__(
        self,
        registry: ProviderRegistry,
        snapshots: SnapshotStore,
        retention_days: int = 0,
    ) -> None:
        self._registry = registry
        self._snapshots = snapshots
        self._retention_days = retention_days

    async def run(self, context: PipelineContext, options: PipelineOptions) -> PipelineResult:
        captured: list[ReserveSnapshot] = []
        failed: list[str] = []

        for protocol in options.selected_protocols(self._registry.protocols()):
            try:
                reserves = await self._registry.get_reserves(protocol)
            except ProviderUnavailable as e:
                logger.warning("snapshot_provider_unavailable", protocol=protocol, error=str(e))
                failed.append(protocol)
                continue

            supported_mints = {c.mint for c in coins_for(protocol)}
            for reserve in reserves:
                if reserve.mint_address not in supported_mints:
                    continue
                snapshot = reserve.to_snapshot()
                await self._snapshots.put(snapshot)
                captured.append(snapshot)

            if options.include_logs:
                logger.info("protocol_snapshots_saved", protocol=protocol, count=len(reserves))

        if self._retention_days > 0:
            await self._snapshots.purge_older_than(now_ms() - self._retention_days * _DAY_MS)

        logger.info("snapshot_capture_done", captured=len(captured), failed_protocols=failed)

        if captured:
            lines = ["Lending Protocol Stats:", ""]
            lines += [
                f"- {s.protocol} {s.coin_name}: APY {s.apy:.2f}%, "
                f"Utilization {s.utilization_rate:.2f}%"
                for s in captured
            ]
            summary = "\n".join(lines)
        else:
            summary = "No data was retrieved for the specified lending protocols."

        result = PipelineResult(
            summary=summary,
            data=[s.to_dict() for s in captured],
            ok=bool(captured) or not failed,
        )
        return await self.respond(context, options, result)
