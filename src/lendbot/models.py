"""Shared data models for the lending monitor.

CRITICAL: Amounts, liquidity, caps and APY use Decimal. They are stored as TEXT
in SQLite and restored as Decimal on read. Timestamps are epoch milliseconds.
"""

import time
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SupportedProtocol(str, Enum):
    """Lending protocols known to the monitor."""

    KAMINO = "KAMINO"
    SOLEND = "SOLEND"


@dataclass(frozen=True)
class SupportedCoin:
    """A stablecoin the monitor samples, and where it can be lent."""

    name: str
    mint: str
    protocols: tuple[SupportedProtocol, ...]


USDC = SupportedCoin(
    name="USDC",
    mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    protocols=(SupportedProtocol.KAMINO, SupportedProtocol.SOLEND),
)
USDT = SupportedCoin(
    name="USDT",
    mint="Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
    protocols=(SupportedProtocol.KAMINO, SupportedProtocol.SOLEND),
)
USDS = SupportedCoin(
    name="USDS",
    mint="USDSwr9ApdHk5bvJKMjzff41FfuX8bSxdKcR81vTwcA",
    protocols=(SupportedProtocol.KAMINO, SupportedProtocol.SOLEND),
)

SUPPORTED_COINS: tuple[SupportedCoin, ...] = (USDC, USDT, USDS)


def coins_for(protocol: str) -> list[SupportedCoin]:
    """Return the supported coins that can be lent on ``protocol``."""
    return [c for c in SUPPORTED_COINS if protocol in {p.value for p in c.protocols}]


@dataclass(frozen=True)
class ReserveSnapshot:
    """One immutable observation of a lending reserve.

    Rows sharing (protocol, mint_address) form a time series ordered by
    update_time.
    """

    protocol: str
    coin_name: str
    mint_address: str
    apy: Decimal  # percent
    lend_liquidity: Decimal
    borrow_liquidity: Decimal
    utilization_rate: Decimal  # percent
    borrow_cap: Decimal
    supply_cap: Decimal
    ltv: Decimal  # 0-1
    update_time: int  # epoch ms

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class ReserveObservation:
    """A reserve reading returned by a provider, before persistence.

    Carries the token decimals needed to scale raw deposit amounts.
    """

    protocol: str
    coin_name: str
    mint_address: str
    apy: Decimal
    lend_liquidity: Decimal
    borrow_liquidity: Decimal
    utilization_rate: Decimal
    borrow_cap: Decimal
    supply_cap: Decimal
    ltv: Decimal
    decimals: int
    update_time: int = field(default_factory=now_ms)

    def to_snapshot(self) -> ReserveSnapshot:
        return ReserveSnapshot(
            protocol=self.protocol,
            coin_name=self.coin_name,
            mint_address=self.mint_address,
            apy=self.apy,
            lend_liquidity=self.lend_liquidity,
            borrow_liquidity=self.borrow_liquidity,
            utilization_rate=self.utilization_rate,
            borrow_cap=self.borrow_cap,
            supply_cap=self.supply_cap,
            ltv=self.ltv,
            update_time=self.update_time,
        )


@dataclass(frozen=True)
class Deposit:
    """A wallet's on-chain deposit into a reserve, in raw base units."""

    mint_address: str
    amount: int


@dataclass
class WalletPosition:
    """The single tracked lending position of a wallet in a mint.

    amount/start_apy/start_time are the baseline captured at first
    observation; current_position/latest_apy follow the chain.
    """

    wallet_address: str
    protocol_name: str
    coin_name: str
    mint_address: str
    amount: Decimal
    start_apy: Decimal
    start_time: int
    current_position: Decimal
    latest_apy: Decimal

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class ProtocolRule:
    """A protocol-scoped heuristic with a 0-100 confidence score."""

    protocol_name: str
    rule: str
    confidence: int
    created_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "protocolName": self.protocol_name,
            "rule": self.rule,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class PredictedApyPoint:
    """One forecast point."""

    timestamp: int
    apy: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "apy": str(self.apy)}


@dataclass
class ProtocolPredictedApy:
    """The latest APY forecast for a (protocol, mint). Overwritten on save."""

    protocol_name: str
    mint_address: str
    coin_name: str
    predicted_apy: list[PredictedApyPoint]
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "protocol_name": self.protocol_name,
            "mint_address": self.mint_address,
            "coin_name": self.coin_name,
            "predicted_apy": [p.to_dict() for p in self.predicted_apy],
            "timestamp": self.timestamp,
        }


@dataclass
class UserWallet:
    """A wallet linked to an internal user and, optionally, a messaging identity."""

    user_id: str
    wallet_address: str
    telegram_user_id: str = ""
    created_at: int = field(default_factory=now_ms)


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values to strings for JSON serialization."""
    return {k: str(v) if isinstance(v, Decimal) else v for k, v in data.items()}
