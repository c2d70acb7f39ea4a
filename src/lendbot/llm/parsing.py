"""Validation and parsing of generated JSON payloads.

Every parser validates the whole payload before returning anything, so a
malformed item discards the batch instead of persisting half of it.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from lendbot.exceptions import MalformedDerivedData
from lendbot.models import PredictedApyPoint, ProtocolRule


@dataclass
class PoolAnalysis:
    """One generated reading of a pool's recent dynamics."""

    pool: str
    protocol: str
    apy: str
    apy_change: str
    utilization_change: str
    liquidity_change: str
    insights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pool": self.pool,
            "protocol": self.protocol,
            "apy": self.apy,
            "apyChange": self.apy_change,
            "utilizationChange": self.utilization_change,
            "liquidityChange": self.liquidity_change,
            "insights": self.insights,
        }


def strip_fences(text: str) -> str:
    """Remove a surrounding ```/```json fence if the model added one anyway."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_json_array(text: str) -> list[dict[str, Any]]:
    """Parse text as a JSON array of objects."""
    try:
        parsed = json.loads(strip_fences(text))
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedDerivedData(f"Response is not valid JSON: {e}") from e

    if isinstance(parsed, dict):
        parsed = [parsed]
    if not isinstance(parsed, list):
        raise MalformedDerivedData(f"Expected a JSON array, got {type(parsed).__name__}")
    if not all(isinstance(item, dict) for item in parsed):
        raise MalformedDerivedData("Every array item must be a JSON object")
    return parsed


def _to_decimal(value: Any, what: str) -> Decimal:
    if isinstance(value, bool):
        raise MalformedDerivedData(f"{what} must be a number, got {value!r}")
    try:
        number = Decimal(str(value).strip().rstrip("%"))
    except (InvalidOperation, ValueError) as e:
        raise MalformedDerivedData(f"{what} must be a number, got {value!r}") from e
    if not number.is_finite():
        raise MalformedDerivedData(f"{what} must be finite, got {value!r}")
    return number


def parse_rules(text: str, protocol: str) -> list[ProtocolRule]:
    """Parse ``[{"protocolName", "rule", "confidence"}]`` into rules scoped to ``protocol``.

    Rules are always stored under the protocol they were derived for; the
    generated protocolName may name a coin instead.
    """
    rules: list[ProtocolRule] = []
    for item in parse_json_array(text):
        rule_text = item.get("rule")
        if not isinstance(rule_text, str) or not rule_text.strip():
            raise MalformedDerivedData(f"Rule text missing in {item!r}")

        confidence = _to_decimal(item.get("confidence"), "confidence")
        if not 0 <= confidence <= 100:
            raise MalformedDerivedData(f"Confidence out of range: {confidence}")

        rules.append(
            ProtocolRule(
                protocol_name=protocol,
                rule=rule_text.strip(),
                confidence=int(confidence),
            )
        )
    return rules


def parse_predictions(text: str) -> list[PredictedApyPoint]:
    """Parse ``[{"timestamp", "apy"}]`` into points ordered by timestamp."""
    items = parse_json_array(text)
    if not items:
        raise MalformedDerivedData("Prediction array is empty")

    points = [
        PredictedApyPoint(
            timestamp=int(_to_decimal(item.get("timestamp"), "timestamp")),
            apy=_to_decimal(item.get("apy"), "apy"),
        )
        for item in items
    ]
    return sorted(points, key=lambda p: p.timestamp)


def parse_pool_analyses(text: str) -> list[PoolAnalysis]:
    analyses: list[PoolAnalysis] = []
    for item in parse_json_array(text):
        insights = item.get("insights", [])
        if isinstance(insights, str):
            insights = [insights]
        if not isinstance(insights, list) or not all(isinstance(i, str) for i in insights):
            raise MalformedDerivedData(f"Insights must be a list of strings in {item!r}")
        if "pool" not in item:
            raise MalformedDerivedData(f"Pool name missing in {item!r}")

        analyses.append(
            PoolAnalysis(
                pool=str(item["pool"]),
                protocol=str(item.get("protocol", "")),
                apy=str(item.get("apy", "")),
                apy_change=str(item.get("apyChange", "")),
                utilization_change=str(item.get("utilizationChange", "")),
                liquidity_change=str(item.get("liquidityChange", "")),
                insights=insights,
            )
        )
    return analyses
