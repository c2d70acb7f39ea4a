"""APY prediction -- hourly APY forecast for one (protocol, coin).

The latest forecast per (protocol, mint) overwrites the previous one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lendbot.exceptions import MalformedDerivedData, NoMatchingReserve
from lendbot.llm.parsing import parse_predictions
from lendbot.llm.prompts import prediction_prompt
from lendbot.logging import get_logger
from lendbot.models import SUPPORTED_COINS, ProtocolPredictedApy, now_ms
from lendbot.pipelines.base import Pipeline, PipelineContext, PipelineOptions, PipelineResult

if TYPE_CHECKING:
    from lendbot.chain.provider import ProviderRegistry
    from lendbot.data.predictions import PredictionStore
    from lendbot.data.rules import RuleStore
    from lendbot.data.snapshots import SnapshotStore
    from lendbot.llm.generator import TextGenerator

logger = get_logger(__name__)

SELECTION_REQUIRED = "Please specify exactly one protocol and one coin for prediction."


class ApyPredictionPipeline(Pipeline):
    name = "apy_prediction"

    def __init__(
        self,
        registry: ProviderRegistry,
        snapshots: SnapshotStore,
        rules: RuleStore,
        predictions: PredictionStore,
        generator: TextGenerator,
    ) -> None:
        self._registry = registry
        self._snapshots = snapshots
        self._rules = rules
        self._predictions = predictions
        self._generator = generator

    async def predict(self, protocol: str, coin_name: str, hours: int) -> ProtocolPredictedApy:
        """Forecast ``hours`` hourly APY points and persist them.

        Raises:
            NoMatchingReserve: The coin is unknown, the provider has no reserve
                for it, or no snapshot history exists yet.
            ProviderUnavailable: The provider could not be read.
            MalformedDerivedData: The generated forecast did not parse.
        """
        coin = next((c for c in SUPPORTED_COINS if c.name == coin_name.upper()), None)
        if coin is None:
            raise NoMatchingReserve(f"{coin_name} is not a supported coin")

        reserves = await self._registry.get_reserves(protocol)
        current = next((r for r in reserves if r.mint_address == coin.mint), None)
        if current is None:
            raise NoMatchingReserve(f"{coin.name} reserve not available on {protocol}")

        historical = await self._snapshots.get_by_mint(protocol, coin.mint)
        if not historical:
            raise NoMatchingReserve(f"No historical data available for {coin.name} on {protocol}")

        rules = await self._rules.get_by_protocol(protocol)
        timestamp = now_ms()
        prompt = prediction_prompt(
            protocol=protocol,
            coin=coin.name,
            hours=hours,
            current=current.to_snapshot().to_dict(),
            historical=historical,
            rules=rules,
            current_timestamp=timestamp,
        )
        points = parse_predictions(await self._generator.generate(prompt))

        prediction = ProtocolPredictedApy(
            protocol_name=protocol,
            mint_address=coin.mint,
            coin_name=coin.name,
            predicted_apy=points,
            timestamp=timestamp,
        )
        await self._predictions.save(prediction)
        logger.info("apy_predicted", protocol=protocol, coin=coin.name, points=len(points))
        return prediction

    async def run(self, context: PipelineContext, options: PipelineOptions) -> PipelineResult:
        if len(options.protocols) != 1 or len(options.coins) != 1:
            result = PipelineResult(summary=SELECTION_REQUIRED, ok=False)
            return await self.respond(context, options, result)

        protocol = options.protocols[0].upper()
        coin = options.coins[0].upper()
        try:
            prediction = await self.predict(protocol, coin, options.hours_to_predict)
        except MalformedDerivedData as e:
            logger.error("prediction_response_malformed", protocol=protocol, coin=coin, error=str(e))
            result = PipelineResult(summary=f"Error predicting APY: {e}", ok=False)
            return await self.respond(context, options, result)

        lines = [f"Predicted APY for {coin} on {protocol}:", ""]
        lines += [f"- {p.timestamp}: {p.apy}%" for p in prediction.predicted_apy]
        result = PipelineResult(
            summary="\n".join(lines),
            data=[p.to_dict() for p in prediction.predicted_apy],
        )
        return await self.respond(context, options, result)
