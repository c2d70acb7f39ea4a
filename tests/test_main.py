"""Tests for component wiring in main."""

import pytest

from lendbot.config import AppSettings, DatabaseSettings, SchedulerSettings
from lendbot.main import _build_components


@pytest.mark.asyncio
async def test_build_components_registers_enabled_jobs() -> None:
    settings = AppSettings(
        _env_file=None,
        database=DatabaseSettings(path=":memory:"),
        scheduler=SchedulerSettings(rules_enabled=False),
    )

    components = await _build_components(settings)

    jobs = {s["name"]: s for s in components["scheduler"].status()}
    assert set(jobs) == {"snapshot_capture", "pool_analysis", "wallet_positions"}
    assert jobs["snapshot_capture"]["interval"] == 1200
    assert set(components["pipelines"]) == {
        "snapshot_capture",
        "rule_derivation",
        "pool_analysis",
        "apy_prediction",
        "wallet_positions",
        "position_analysis",
    }
    await components["generator"].close()
