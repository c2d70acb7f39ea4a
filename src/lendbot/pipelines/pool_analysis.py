"""Pool-dynamics analysis -- compare each reserve's current reading with its history."""

from __future__ import annotations

from typing import TYPE_CHECKING

from lendbot.exceptions import MalformedDerivedData, ProviderUnavailable
from lendbot.llm.parsing import PoolAnalysis, parse_pool_analyses
from lendbot.llm.prompts import analysis_prompt
from lendbot.logging import get_logger
from lendbot.pipelines.base import Pipeline, PipelineContext, PipelineOptions, PipelineResult
from lendbot.social.poster import post_safely

if TYPE_CHECKING:
    from lendbot.chain.provider import ProviderRegistry
    from lendbot.data.rules import RuleStore
    from lendbot.data.snapshots import SnapshotStore
    from lendbot.llm.generator import TextGenerator
    from lendbot.social.poster import SocialPoster

logger = get_logger(__name__)

NOT_ENOUGH_DATA = "I couldn't fetch enough data to analyze the pool trends."


class PoolAnalysisPipeline(Pipeline):
    """Generate trend insights per (protocol, coin) that has snapshot history.

    Reserves without history, and reserves whose generated analysis does not
    parse, are skipped. With ``should_post`` the first insight of the first
    analysis is posted.
    """

    name = "pool_analysis"

    def __init__(
        self,
        registry: ProviderRegistry,
        snapshots: SnapshotStore,
        rules: RuleStore,
        generator: TextGenerator,
        poster: SocialPoster | None = None,
    ) -> None:
        self._registry = registry
        self._snapshots = snapshots
        self._rules = rules
        self._generator = generator
        self._poster = poster

    async def run(self, context: PipelineContext, options: PipelineOptions) -> PipelineResult:
        coins = set(options.selected_coins())
        analyses: list[PoolAnalysis] = []

        for protocol in options.selected_protocols(self._registry.protocols()):
            try:
                reserves = await self._registry.get_reserves(protocol)
            except ProviderUnavailable as e:
                logger.warning("analysis_provider_unavailable", protocol=protocol, error=str(e))
                continue

            rules = await self._rules.get_by_protocol(protocol)

            for reserve in reserves:
                if reserve.coin_name.upper() not in coins:
                    continue

                historical = await self._snapshots.get_by_mint(protocol, reserve.mint_address)
                if not historical:
                    logger.debug("analysis_no_history", protocol=protocol, coin=reserve.coin_name)
                    continue

                text = await self._generator.generate(
                    analysis_prompt(reserve.to_snapshot(), historical, rules)
                )
                try:
                    analyses.extend(parse_pool_analyses(text))
                except MalformedDerivedData as e:
                    logger.error(
                        "analysis_response_malformed",
                        protocol=protocol,
                        coin=reserve.coin_name,
                        error=str(e),
                    )

        if not analyses:
            logger.warning("pool_analysis_empty")
            result = PipelineResult(summary=NOT_ENOUGH_DATA, data=[])
            return await self.respond(context, options, result)

        if options.should_post:
            insight = next((i for a in analyses for i in a.insights), None)
            if insight:
                await post_safely(self._poster, insight)

        logger.info("pool_analysis_done", analyses=len(analyses))
        result = PipelineResult(
            summary=_format_analyses(analyses),
            data=[a.to_dict() for a in analyses],
        )
        return await self.respond(context, options, result)


def _format_analyses(analyses: list[PoolAnalysis]) -> str:
    blocks = ["Lending pool trend analysis:"]
    for a in analyses:
        lines = [
            "",
            f"{a.pool} ({a.protocol})",
            f"Current APY: {a.apy}",
            f"APY change: {a.apy_change}",
            f"Utilization change: {a.utilization_change}",
            f"Liquidity change: {a.liquidity_change}",
        ]
        lines += [f"- {insight}" for insight in a.insights]
        blocks.append("\n".join(lines))
    return "\n".join(blocks)
