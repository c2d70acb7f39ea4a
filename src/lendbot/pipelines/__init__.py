"""Pipelines runnable by the scheduler and the HTTP API."""

from lendbot.pipelines.apy_prediction import ApyPredictionPipeline
from lendbot.pipelines.base import Pipeline, PipelineContext, PipelineOptions, PipelineResult
from lendbot.pipelines.pool_analysis import PoolAnalysisPipeline
from lendbot.pipelines.position_analysis import PositionAnalysisPipeline
from lendbot.pipelines.rule_derivation import RuleDerivationPipeline
from lendbot.pipelines.snapshot_capture import SnapshotCapturePipeline
from lendbot.pipelines.wallet_positions import WalletPositionsPipeline

__all__ = [
    "ApyPredictionPipeline",
    "Pipeline",
    "PipelineContext",
    "PipelineOptions",
    "PipelineResult",
    "PoolAnalysisPipeline",
    "PositionAnalysisPipeline",
    "RuleDerivationPipeline",
    "SnapshotCapturePipeline",
    "WalletPositionsPipeline",
]
