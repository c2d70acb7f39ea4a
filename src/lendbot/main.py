"""Entry point for the lending reserve monitor.

Wires all components together, registers the periodic jobs on the
scheduler, and optionally serves the JSON API. When the API is enabled
(default), the scheduler and the API share a single asyncio event loop via
uvicorn's programmatic API and FastAPI's lifespan context manager.

SIGINT/SIGTERM stop the scheduler gracefully: running iterations finish,
no new ones start.

Component wiring order (in _build_components):
1. LendingDatabase and the typed stores
2. ProviderRegistry (reserve providers from PROVIDERS_CLASSES)
3. WalletPositionRefresher
4. TextGenerator (OpenAI chat completions)
5. Pipelines
6. TaskScheduler with the four periodic jobs
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from lendbot.chain.provider import build_registry
from lendbot.config import AppSettings
from lendbot.data import (
    LendingDatabase,
    PositionStore,
    PredictionStore,
    RuleStore,
    SnapshotStore,
    WalletStore,
)
from lendbot.llm.generator import OpenAITextGenerator
from lendbot.logging import get_logger, setup_logging
from lendbot.pipelines import (
    ApyPredictionPipeline,
    Pipeline,
    PipelineContext,
    PipelineOptions,
    PoolAnalysisPipeline,
    PositionAnalysisPipeline,
    RuleDerivationPipeline,
    SnapshotCapturePipeline,
    WalletPositionsPipeline,
)
from lendbot.positions.refresher import WalletPositionRefresher
from lendbot.scheduler import TaskScheduler


def _scheduled(pipeline: Pipeline, options: PipelineOptions) -> Any:
    """Wrap a pipeline run as a zero-argument scheduler job."""

    async def job() -> None:
        await pipeline.run(PipelineContext(), options)

    return job


def _build_scheduler(settings: AppSettings, pipelines: dict[str, Pipeline]) -> TaskScheduler:
    s = settings.scheduler
    scheduler = TaskScheduler(
        backoff_factor=s.backoff_factor,
        backoff_max_seconds=s.backoff_max_seconds,
        failure_alert_threshold=s.failure_alert_threshold,
    )

    jobs = [
        ("snapshot_capture", s.snapshot_enabled, s.snapshot_interval, PipelineOptions()),
        ("rule_derivation", s.rules_enabled, s.rules_interval, PipelineOptions()),
        (
            "pool_analysis",
            s.analysis_enabled,
            s.analysis_interval,
            PipelineOptions(should_post=settings.pipeline.analysis_should_post),
        ),
        ("wallet_positions", s.positions_enabled, s.positions_interval, PipelineOptions()),
    ]
    for name, enabled, interval, options in jobs:
        if enabled:
            scheduler.register(name, _scheduled(pipelines[name], options), interval)

    return scheduler


async def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Note: Does NOT connect the database -- that happens in the lifespan
    (API mode) or run() (headless mode).

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("lendbot.main")

    # 1. Storage
    database = LendingDatabase(settings.database.path)
    snapshots = SnapshotStore(database)
    positions = PositionStore(database)
    rules = RuleStore(database)
    predictions = PredictionStore(database)
    wallets = WalletStore(database)

    # 2. Reserve providers
    registry = build_registry(settings.providers.classes, settings.providers.call_timeout)

    # 3. Position refresher
    refresher = WalletPositionRefresher(registry, positions, settings.wallet)
    if not settings.wallet.home_address:
        logger.warning(
            "no_home_wallet_configured",
            note="Positions are reported but never persisted. Set WALLET_HOME_ADDRESS.",
        )

    # 4. Text generator
    if not settings.llm.api_key.get_secret_value():
        logger.warning(
            "no_llm_api_key_configured",
            note="Rule derivation, analysis and prediction jobs will fail until LLM_API_KEY is set.",
        )
    generator = OpenAITextGenerator(settings.llm)

    # 5. Pipelines (no social poster is wired; posts are skipped)
    predictor = ApyPredictionPipeline(registry, snapshots, rules, predictions, generator)
    pipelines: dict[str, Pipeline] = {
        p.name: p
        for p in (
            SnapshotCapturePipeline(registry, snapshots, settings.snapshots.retention_days),
            RuleDerivationPipeline(registry, snapshots, rules, generator),
            PoolAnalysisPipeline(registry, snapshots, rules, generator),
            predictor,
            WalletPositionsPipeline(refresher, wallets),
            PositionAnalysisPipeline(
                registry, refresher, predictor, settings.pipeline.position_analysis_hours
            ),
        )
    }

    # 6. Scheduler
    scheduler = _build_scheduler(settings, pipelines)

    return {
        "database": database,
        "snapshots": snapshots,
        "positions": positions,
        "rules": rules,
        "predictions": predictions,
        "wallets": wallets,
        "registry": registry,
        "refresher": refresher,
        "generator": generator,
        "pipelines": pipelines,
        "scheduler": scheduler,
    }


def _setup_signal_handlers(scheduler: TaskScheduler) -> None:
    """Register SIGINT/SIGTERM handlers that stop the scheduler gracefully."""
    logger = get_logger("lendbot.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        scheduler.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def _shutdown(components: dict[str, Any]) -> None:
    scheduler = components["scheduler"]
    scheduler.stop()
    await scheduler.wait()
    await components["generator"].close()
    await components["database"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores components on app.state, connects the database and
    starts the scheduler. On shutdown: stops the scheduler, waits for
    in-flight iterations, and closes the generator and the database.
    Uvicorn owns the process signals in this mode.
    """
    logger = get_logger("lendbot.main")
    components = app.state.components

    for key in ("snapshots", "positions", "rules", "predictions", "wallets", "registry",
                "scheduler", "pipelines"):
        setattr(app.state, key, components[key])

    await components["database"].connect()
    components["scheduler"].start()
    logger.info("lifespan_started", protocols=components["registry"].protocols())

    yield

    await _shutdown(components)
    logger.info("lending_monitor_stopped")


async def run() -> None:
    """Run the lending monitor.

    When the API is enabled (API_ENABLED=true, the default) the scheduler
    runs inside the uvicorn server's lifespan. Otherwise the scheduler runs
    headless until a signal stops it.
    """
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("lendbot.main")

    # 3. Build all components
    components = await _build_components(settings)

    if settings.api.enabled:
        from lendbot.api.app import create_app

        app = create_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info("starting_with_api", host=settings.api.host, port=settings.api.port)

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        scheduler = components["scheduler"]
        _setup_signal_handlers(scheduler)
        logger.info("starting_without_api", jobs=[j["name"] for j in scheduler.status()])

        await components["database"].connect()
        try:
            scheduler.start()
            await scheduler.wait()
        finally:
            await _shutdown(components)
            logger.info("lending_monitor_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
