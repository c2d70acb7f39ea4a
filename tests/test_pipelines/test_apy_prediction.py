"""Tests for ApyPredictionPipeline."""

from decimal import Decimal

import pytest

from lendbot.exceptions import NoMatchingReserve
from lendbot.models import USDC, USDS
from lendbot.pipelines import ApyPredictionPipeline, PipelineContext, PipelineOptions
from lendbot.pipelines.apy_prediction import SELECTION_REQUIRED

FORECAST = (
    '[{"timestamp": 7200000, "apy": 5.4}, {"timestamp": 3600000, "apy": "5.3"},'
    ' {"timestamp": 10800000, "apy": 5.6}]'
)


@pytest.fixture
def pipeline(registry, snapshot_store, rule_store, prediction_store, mock_generator):
    return ApyPredictionPipeline(registry, snapshot_store, rule_store, prediction_store, mock_generator)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "protocols, coins",
    [([], []), (["KAMINO"], []), (["KAMINO", "SOLEND"], ["USDC"]), (["KAMINO"], ["USDC", "USDT"])],
)
async def test_requires_exactly_one_protocol_and_coin(
    pipeline, mock_generator, protocols, coins
) -> None:
    result = await pipeline.run(PipelineContext(), PipelineOptions(protocols=protocols, coins=coins))

    assert not result.ok
    assert result.summary == SELECTION_REQUIRED
    mock_generator.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_forecast_is_saved_and_returned(
    pipeline, snapshot_store, prediction_store, mock_generator, make_snapshot
) -> None:
    await snapshot_store.put(make_snapshot())
    mock_generator.generate.return_value = FORECAST

    result = await pipeline.run(
        PipelineContext(), PipelineOptions(protocols=["kamino"], coins=["usdc"], hours_to_predict=3)
    )

    assert result.ok
    assert [p["apy"] for p in result.data] == ["5.3", "5.4", "5.6"]
    stored = await prediction_store.get_latest("KAMINO", USDC.mint)
    assert stored is not None
    assert stored.coin_name == "USDC"
    assert [p.apy for p in stored.predicted_apy] == [Decimal("5.3"), Decimal("5.4"), Decimal("5.6")]
    assert "next 3 hours" in mock_generator.generate.call_args.args[0]


@pytest.mark.asyncio
async def test_missing_history_raises(pipeline, mock_generator) -> None:
    with pytest.raises(NoMatchingReserve):
        await pipeline.run(PipelineContext(), PipelineOptions(protocols=["KAMINO"], coins=["USDC"]))
    mock_generator.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_reserve_raises(pipeline, snapshot_store, make_snapshot) -> None:
    await snapshot_store.put(make_snapshot(coin_name="USDS", mint_address=USDS.mint))

    with pytest.raises(NoMatchingReserve):
        await pipeline.run(PipelineContext(), PipelineOptions(protocols=["KAMINO"], coins=["USDS"]))


@pytest.mark.asyncio
async def test_unsupported_coin_raises(pipeline) -> None:
    with pytest.raises(NoMatchingReserve):
        await pipeline.predict("KAMINO", "DOGE", 6)


@pytest.mark.asyncio
async def test_malformed_forecast_is_reported(
    pipeline, snapshot_store, prediction_store, mock_generator, make_snapshot
) -> None:
    await snapshot_store.put(make_snapshot())
    mock_generator.generate.return_value = "[]"

    result = await pipeline.run(PipelineContext(), PipelineOptions(protocols=["KAMINO"], coins=["USDC"]))

    assert not result.ok
    assert result.summary.startswith("Error predicting APY")
    assert await prediction_store.get_all() == []
