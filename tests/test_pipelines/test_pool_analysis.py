"""Tests for PoolAnalysisPipeline."""

import pytest

from lendbot.models import USDC
from lendbot.pipelines import PipelineContext, PipelineOptions, PoolAnalysisPipeline
from lendbot.pipelines.pool_analysis import NOT_ENOUGH_DATA

ANALYSIS = (
    '[{"pool": "USDC", "protocol": "KAMINO", "apy": "5.2%", "apyChange": "+0.3%",'
    ' "utilizationChange": "+2%", "liquidityChange": "-1%",'
    ' "insights": ["Kamino USDC APY up 0.3% as utilization climbs.", "Second insight."]}]'
)


@pytest.fixture
def pipeline(registry, snapshot_store, rule_store, mock_generator, mock_poster):
    return PoolAnalysisPipeline(registry, snapshot_store, rule_store, mock_generator, mock_poster)


@pytest.mark.asyncio
async def test_only_reserves_with_history_are_analyzed(
    pipeline, snapshot_store, mock_generator, make_snapshot
) -> None:
    await snapshot_store.put(make_snapshot())
    mock_generator.generate.return_value = ANALYSIS

    result = await pipeline.run(PipelineContext(), PipelineOptions())

    assert mock_generator.generate.await_count == 1
    assert USDC.mint in mock_generator.generate.call_args.args[0]
    assert result.data[0]["pool"] == "USDC"
    assert "Utilization change: +2%" in result.summary


@pytest.mark.asyncio
async def test_no_history_gives_not_enough_data(pipeline, mock_generator) -> None:
    result = await pipeline.run(PipelineContext(), PipelineOptions())

    mock_generator.generate.assert_not_awaited()
    assert result.summary == NOT_ENOUGH_DATA


@pytest.mark.asyncio
async def test_malformed_analysis_is_skipped(
    pipeline, snapshot_store, mock_generator, make_snapshot
) -> None:
    await snapshot_store.put(make_snapshot())
    mock_generator.generate.return_value = "the pools look fine"

    result = await pipeline.run(PipelineContext(), PipelineOptions())

    assert result.summary == NOT_ENOUGH_DATA


@pytest.mark.asyncio
async def test_should_post_posts_first_insight(
    pipeline, snapshot_store, mock_generator, mock_poster, make_snapshot
) -> None:
    await snapshot_store.put(make_snapshot())
    mock_generator.generate.return_value = ANALYSIS

    await pipeline.run(PipelineContext(), PipelineOptions(should_post=True))

    mock_poster.post.assert_awaited_once_with("Kamino USDC APY up 0.3% as utilization climbs.")


@pytest.mark.asyncio
async def test_failed_post_does_not_fail_run(
    pipeline, snapshot_store, mock_generator, mock_poster, make_snapshot
) -> None:
    await snapshot_store.put(make_snapshot())
    mock_generator.generate.return_value = ANALYSIS
    mock_poster.post.side_effect = RuntimeError("rate limited")

    result = await pipeline.run(PipelineContext(), PipelineOptions(should_post=True))

    assert result.ok


@pytest.mark.asyncio
async def test_coin_filter(pipeline, snapshot_store, mock_generator, make_snapshot) -> None:
    await snapshot_store.put(make_snapshot())

    await pipeline.run(PipelineContext(), PipelineOptions(coins=["usdt"]))

    mock_generator.generate.assert_not_awaited()
