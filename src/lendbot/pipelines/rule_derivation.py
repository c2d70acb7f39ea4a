"""Rule derivation -- turn the recent snapshot window into protocol rules.

Per protocol: read the 20-row history and the 10 newest rules, ask the
generator for at most two new rules, validate the whole batch, append it.
A malformed response discards that protocol's batch for this run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lendbot.exceptions import MalformedDerivedData
from lendbot.llm.parsing import parse_rules
from lendbot.llm.prompts import rules_prompt
from lendbot.logging import get_logger
from lendbot.models import ProtocolRule
from lendbot.pipelines.base import Pipeline, PipelineContext, PipelineOptions, PipelineResult
from lendbot.social.poster import post_safely

if TYPE_CHECKING:
    from lendbot.chain.provider import ProviderRegistry
    from lendbot.data.rules import RuleStore
    from lendbot.data.snapshots import SnapshotStore
    from lendbot.llm.generator import TextGenerator
    from lendbot.social.poster import SocialPoster

logger = get_logger(__name__)


class RuleDerivationPipeline(Pipeline):
    name = "rule_derivation"

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
        created: list[ProtocolRule] = []

        for protocol in options.selected_protocols(self._registry.protocols()):
            historical = await self._snapshots.get_by_protocol(protocol)
            if not historical:
                logger.warning("no_historical_data", protocol=protocol)
                continue

            existing = await self._rules.get_by_protocol(protocol)
            text = await self._generator.generate(rules_prompt(protocol, historical, existing))

            try:
                new_rules = parse_rules(text, protocol)
            except MalformedDerivedData as e:
                logger.error("rules_response_malformed", protocol=protocol, error=str(e))
                continue

            await self._rules.save_many(new_rules)
            created.extend(new_rules)
            logger.info("rules_created", protocol=protocol, count=len(new_rules))

        if not created:
            logger.warning("no_rules_generated")
            result = PipelineResult(summary="No rules were generated from the historical data.", data=[])
            return await self.respond(context, options, result)

        if options.should_post:
            await post_safely(self._poster, created[0].rule)

        lines = [f"Created {len(created)} new rules:", ""]
        lines += [f"- [{r.protocol_name}] {r.rule} (confidence {r.confidence})" for r in created]
        result = PipelineResult(summary="\n".join(lines), data=[r.to_dict() for r in created])
        return await self.respond(context, options, result)
