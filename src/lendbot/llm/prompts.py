"""Prompt templates for rule derivation, pool analysis and APY prediction.

Templates use str.format; literal JSON braces are doubled.
"""

import json
from typing import Any

RULES_PROMPT = """\
# Task: Develop rules from historical data for APY changes in lending protocols.

Each reserve record has: protocol, coin_name, mint_address, apy (percent),
lend_liquidity, borrow_liquidity, utilization_rate (percent), borrow_cap,
supply_cap, ltv (0-1) and update_time (epoch milliseconds).

## Historical data for {protocol}:
{historical_data}

## Existing rules:
{existing_rules}

## Instructions
1. Identify consistent patterns in the data, e.g. how utilization_rate,
   lend_liquidity, borrow_liquidity and supply_cap relate to APY changes.
   Use update_time to follow how metrics move over time.
2. Tie each rule to the asset it was observed on (USDC, USDT, ...).
3. Do not repeat an existing rule unless your version is a clear improvement.
4. Describe observed behaviour only. No predictions, no speculation.
5. Give every rule a confidence score from 0 to 100.
6. Generate at most two rules.

## Expected output
Respond with a valid JSON array and nothing else:
[
  {{"protocolName": "{protocol}", "rule": "Description of the observed rule.", "confidence": 85}}
]
"""

ANALYSIS_PROMPT = """\
# Task: Analyze lending pool trends and provide insights.

## Historical data:
{historical_data}

## Current data:
{current_data}

## Existing rules:
{rules}

## Instructions
1. Compare the historical data with the current data over the full interval:
   describe the APY change, the utilization change and the liquidity change.
2. Write at most two insights per pool. Each insight names the protocol,
   combines APY with liquidity or utilization, and fits in a short social post.
3. Check the findings against the existing rules and point out anomalies.

## Expected output
Respond with a valid JSON array and nothing else:
[
  {{
    "pool": "POOL_NAME",
    "protocol": "PROTOCOL_NAME",
    "apy": "CURRENT_APY",
    "apyChange": "...",
    "utilizationChange": "...",
    "liquidityChange": "...",
    "insights": ["...", "..."]
  }}
]
"""

PREDICTION_PROMPT = """\
# Task: Predict APY for {coin} on {protocol} for the next {hours} hours.

## Historical data:
{historical_data}

## Current data:
{current_data}

## Rules:
{rules}

## Current time (epoch milliseconds):
{current_timestamp}

## Instructions
1. Find the trends in the historical data and apply the protocol rules.
2. Produce one prediction per hour, starting one hour after the current time.
3. Timestamps are epoch milliseconds, each one hour (3600000 ms) after the previous.

## Expected output
Respond with a valid JSON array and nothing else:
[
  {{"timestamp": {example_timestamp}, "apy": 3.65}}
]
"""


def to_json(records: list[Any]) -> str:
    """Serialize model objects (anything with to_dict) for prompt context."""
    return json.dumps([r.to_dict() if hasattr(r, "to_dict") else r for r in records])


def rules_prompt(protocol: str, historical: list[Any], existing_rules: list[Any]) -> str:
    return RULES_PROMPT.format(
        protocol=protocol,
        historical_data=to_json(historical),
        existing_rules=to_json(existing_rules),
    )


def analysis_prompt(current: Any, historical: list[Any], rules: list[Any]) -> str:
    return ANALYSIS_PROMPT.format(
        historical_data=to_json(historical),
        current_data=json.dumps(current.to_dict()),
        rules=to_json(rules),
    )


def prediction_prompt(
    protocol: str,
    coin: str,
    hours: int,
    current: dict[str, Any],
    historical: list[Any],
    rules: list[Any],
    current_timestamp: int,
) -> str:
    return PREDICTION_PROMPT.format(
        protocol=protocol,
        coin=coin,
        hours=hours,
        historical_data=to_json(historical),
        current_data=json.dumps(current),
        rules=to_json(rules),
        current_timestamp=current_timestamp,
        example_timestamp=current_timestamp + 3_600_000,
    )
