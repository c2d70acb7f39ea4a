"""Position analysis -- would moving the home wallet's deposits pay off?

Refreshes the home wallet, forecasts every supported (protocol, coin) pair
and, for each held position, estimates the annual profit of moving it:

    potential_profit = (max_predicted_apy - latest_apy) / 100 * current_position

The best positive switch is reported.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from lendbot.exceptions import LendBotError
from lendbot.logging import get_logger
from lendbot.models import ProtocolPredictedApy, WalletPosition, coins_for
from lendbot.pipelines.base import Pipeline, PipelineContext, PipelineOptions, PipelineResult

if TYPE_CHECKING:
    from lendbot.chain.provider import ProviderRegistry
    from lendbot.pipelines.apy_prediction import ApyPredictionPipeline
    from lendbot.positions.refresher import WalletPositionRefresher

logger = get_logger(__name__)


@dataclass
class SwitchOpportunity:
    """Moving one position to a forecast reserve."""

    from_protocol: str
    from_coin: str
    to_protocol: str
    to_coin: str
    current_position: Decimal
    latest_apy: Decimal
    max_predicted_apy: Decimal
    potential_profit: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_protocol": self.from_protocol,
            "from_coin": self.from_coin,
            "to_protocol": self.to_protocol,
            "to_coin": self.to_coin,
            "current_position": str(self.current_position),
            "latest_apy": str(self.latest_apy),
            "max_predicted_apy": str(self.max_predicted_apy),
            "potential_profit": str(self.potential_profit),
        }


def potential_profit(position: WalletPosition, max_predicted_apy: Decimal) -> Decimal:
    return (max_predicted_apy - position.latest_apy) / 100 * position.current_position


def best_switch(
    positions: list[WalletPosition], forecasts: list[ProtocolPredictedApy]
) -> SwitchOpportunity | None:
    """Return the most profitable move, or None when nothing beats the current APY."""
    best: SwitchOpportunity | None = None
    for position in positions:
        for forecast in forecasts:
            if not forecast.predicted_apy:
                continue
            if (forecast.protocol_name, forecast.mint_address) == (
                position.protocol_name,
                position.mint_address,
            ):
                continue
            max_apy = max(p.apy for p in forecast.predicted_apy)
            profit = potential_profit(position, max_apy)
            if profit <= 0 or (best is not None and profit <= best.potential_profit):
                continue
            best = SwitchOpportunity(
                from_protocol=position.protocol_name,
                from_coin=position.coin_name,
                to_protocol=forecast.protocol_name,
                to_coin=forecast.coin_name,
                current_position=position.current_position,
                latest_apy=position.latest_apy,
                max_predicted_apy=max_apy,
                potential_profit=profit,
            )
    return best


class PositionAnalysisPipeline(Pipeline):
    name = "position_analysis"

    def __init__(
        self,
        registry: ProviderRegistry,
        refresher: WalletPositionRefresher,
        predictor: ApyPredictionPipeline,
        hours: int = 12,
    ) -> None:
        self._registry = registry
        self._refresher = refresher
        self._predictor = predictor
        self._hours = hours

    async def run(self, context: PipelineContext, options: PipelineOptions) -> PipelineResult:
        home = self._refresher.home_address
        if not home:
            result = PipelineResult(summary="No home wallet is configured.", ok=False)
            return await self.respond(context, options, result)

        positions = await self._refresher.refresh_wallet(home)
        if not positions:
            result = PipelineResult(summary=f"Wallet {home} has no lending positions.", data={})
            return await self.respond(context, options, result)

        coins = set(options.selected_coins())
        forecasts: list[ProtocolPredictedApy] = []
        for protocol in options.selected_protocols(self._registry.protocols()):
            for coin in coins_for(protocol):
                if coin.name not in coins:
                    continue
                try:
                    forecasts.append(await self._predictor.predict(protocol, coin.name, self._hours))
                except LendBotError as e:
                    logger.warning(
                        "position_forecast_skipped", protocol=protocol, coin=coin.name, error=str(e)
                    )

        best = best_switch(positions, forecasts)
        logger.info("position_analysis_done", forecasts=len(forecasts), switch=best is not None)

        if best is None:
            summary = "Current positions already match or beat every forecast APY."
        else:
            summary = (
                f"Best switch: move {best.current_position} {best.from_coin} from "
                f"{best.from_protocol} ({best.latest_apy}%) to {best.to_coin} on "
                f"{best.to_protocol} (up to {best.max_predicted_apy}%). "
                f"Potential annual profit: {best.potential_profit:.2f}"
            )
        result = PipelineResult(
            summary=summary,
            data={
                "positions": [p.to_dict() for p in positions],
                "forecasts": [f.to_dict() for f in forecasts],
                "best_switch": best.to_dict() if best else None,
            },
        )
        return await self.respond(context, options, result)
