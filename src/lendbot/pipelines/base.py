"""Common pipeline types.

Every pipeline exposes ``run(context, options) -> PipelineResult``. The
scheduler calls it with a system context; the HTTP API calls it with the
requesting user's context and options from the request body.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from lendbot.logging import get_logger
from lendbot.models import SUPPORTED_COINS

logger = get_logger(__name__)

ResponseCallback = Callable[[str], Awaitable[None]]


@dataclass
class PipelineContext:
    """Who triggered a run and where human-readable output goes."""

    user_id: str = "system"
    text: str = ""
    callback: ResponseCallback | None = None


@dataclass
class PipelineOptions:
    """Options bag shared by all pipelines.

    Empty ``protocols`` means every registered protocol; empty ``coins``
    means every supported coin.
    """

    include_logs: bool = True
    should_post: bool = False
    hours_to_predict: int = 6
    protocols: list[str] = field(default_factory=list)
    coins: list[str] = field(default_factory=list)
    wallet_addresses: list[str] = field(default_factory=list)

    def selected_coins(self) -> list[str]:
        if self.coins:
            return [c.upper() for c in self.coins]
        return [c.name for c in SUPPORTED_COINS]

    def selected_protocols(self, registered: list[str]) -> list[str]:
        if self.protocols:
            return [p.upper() for p in self.protocols]
        return registered


@dataclass
class PipelineResult:
    """Human-readable summary plus the raw structured result."""

    summary: str
    data: Any = None
    ok: bool = True


class Pipeline(ABC):
    """A unit of work runnable by the scheduler or on demand."""

    name: str

    @abstractmethod
    async def run(self, context: PipelineContext, options: PipelineOptions) -> PipelineResult:
        ...

    async def respond(
        self, context: PipelineContext, options: PipelineOptions, result: PipelineResult
    ) -> PipelineResult:
        """Deliver the summary to the context callback when logs are requested."""
        if options.include_logs and context.callback is not None:
            try:
                await context.callback(result.summary)
            except Exception as e:
                logger.warning("pipeline_callback_failed", pipeline=self.name, error=str(e))
        return result
