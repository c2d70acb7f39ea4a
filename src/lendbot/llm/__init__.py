"""Text generation layer -- generator interface, prompts and JSON validation."""

from lendbot.llm.generator import OpenAITextGenerator, TextGenerator
from lendbot.llm.parsing import (
    PoolAnalysis,
    parse_pool_analyses,
    parse_predictions,
    parse_rules,
)

__all__ = [
    "OpenAITextGenerator",
    "PoolAnalysis",
    "TextGenerator",
    "parse_pool_analyses",
    "parse_predictions",
    "parse_rules",
]
