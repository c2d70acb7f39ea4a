"""Tests for parsing and validation of generated JSON."""

from decimal import Decimal

import pytest

from lendbot.exceptions import MalformedDerivedData
from lendbot.llm.parsing import (
    parse_json_array,
    parse_pool_analyses,
    parse_predictions,
    parse_rules,
    strip_fences,
)


class TestStripFences:
    def test_json_fence(self) -> None:
        assert strip_fences('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'

    def test_plain_fence(self) -> None:
        assert strip_fences("```\n[]\n```") == "[]"

    def test_no_fence(self) -> None:
        assert strip_fences("  [1]  ") == "[1]"


class TestParseJsonArray:
    def test_single_object_is_wrapped(self) -> None:
        assert parse_json_array('{"rule": "x"}') == [{"rule": "x"}]

    @pytest.mark.parametrize("text", ["not json", "42", '"text"', "[1, 2]", ""])
    def test_rejects_non_object_arrays(self, text: str) -> None:
        with pytest.raises(MalformedDerivedData):
            parse_json_array(text)


class TestParseRules:
    def test_valid_batch(self) -> None:
        text = (
            '[{"protocolName": "USDC", "rule": " APY rises above 80% utilization ", "confidence": 85},'
            ' {"protocolName": "KAMINO", "rule": "Liquidity inflows lower APY", "confidence": "70"}]'
        )

        rules = parse_rules(text, "KAMINO")

        assert [(r.protocol_name, r.rule, r.confidence) for r in rules] == [
            ("KAMINO", "APY rises above 80% utilization", 85),
            ("KAMINO", "Liquidity inflows lower APY", 70),
        ]

    def test_one_bad_item_rejects_the_batch(self) -> None:
        text = '[{"rule": "ok", "confidence": 80}, {"rule": "bad", "confidence": 150}]'
        with pytest.raises(MalformedDerivedData, match="out of range"):
            parse_rules(text, "KAMINO")

    @pytest.mark.parametrize(
        "item",
        [
            '{"confidence": 80}',
            '{"rule": "", "confidence": 80}',
            '{"rule": "x", "confidence": "high"}',
            '{"rule": "x", "confidence": true}',
            '{"rule": "x", "confidence": -1}',
        ],
    )
    def test_invalid_items(self, item: str) -> None:
        with pytest.raises(MalformedDerivedData):
            parse_rules(f"[{item}]", "KAMINO")

    def test_empty_array_is_no_rules(self) -> None:
        assert parse_rules("[]", "KAMINO") == []


class TestParsePredictions:
    def test_points_are_sorted(self) -> None:
        text = '[{"timestamp": 3000, "apy": "4.1%"}, {"timestamp": 1000, "apy": 3.65}]'

        points = parse_predictions(text)

        assert [p.timestamp for p in points] == [1000, 3000]
        assert points[0].apy == Decimal("3.65")
        assert points[1].apy == Decimal("4.1")

    def test_empty_array_is_malformed(self) -> None:
        with pytest.raises(MalformedDerivedData):
            parse_predictions("[]")

    @pytest.mark.parametrize(
        "text",
        ['[{"timestamp": 1000}]', '[{"apy": 3.0}]', '[{"timestamp": 1000, "apy": "NaN"}]'],
    )
    def test_missing_or_non_finite_fields(self, text: str) -> None:
        with pytest.raises(MalformedDerivedData):
            parse_predictions(text)


class TestParsePoolAnalyses:
    def test_full_item(self) -> None:
        text = """```json
        [{"pool": "USDC", "protocol": "KAMINO", "apy": "5.2%", "apyChange": "+0.4%",
          "utilizationChange": "+3%", "liquidityChange": "-2%",
          "insights": ["USDC APY on Kamino climbed as utilization rose."]}]
        ```"""

        [analysis] = parse_pool_analyses(text)

        assert analysis.pool == "USDC"
        assert analysis.apy_change == "+0.4%"
        assert analysis.insights == ["USDC APY on Kamino climbed as utilization rose."]
        assert analysis.to_dict()["utilizationChange"] == "+3%"

    def test_string_insight_is_wrapped(self) -> None:
        [analysis] = parse_pool_analyses('[{"pool": "USDT", "insights": "single insight"}]')
        assert analysis.insights == ["single insight"]

    def test_missing_pool_is_malformed(self) -> None:
        with pytest.raises(MalformedDerivedData):
            parse_pool_analyses('[{"protocol": "KAMINO", "insights": []}]')

    def test_non_string_insights_are_malformed(self) -> None:
        with pytest.raises(MalformedDerivedData):
            parse_pool_analyses('[{"pool": "USDC", "insights": [1, 2]}]')
