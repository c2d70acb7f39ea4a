"""Shared test fixtures for the lending monitor."""

from collections.abc import AsyncIterator, Callable
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from lendbot.chain.provider import ProviderRegistry, ReserveProvider
from lendbot.config import WalletSettings
from lendbot.data import (
    LendingDatabase,
    PositionStore,
    PredictionStore,
    RuleStore,
    SnapshotStore,
    WalletStore,
)
from lendbot.models import USDC, USDT, Deposit, ReserveObservation, ReserveSnapshot

HOME_WALLET = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
OTHER_WALLET = "So11111111111111111111111111111111111111112"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def database() -> AsyncIterator[LendingDatabase]:
    """Fresh in-memory database with the full schema."""
    async with LendingDatabase(":memory:") as db:
        yield db


@pytest.fixture
def snapshot_store(database: LendingDatabase) -> SnapshotStore:
    return SnapshotStore(database)


@pytest.fixture
def position_store(database: LendingDatabase) -> PositionStore:
    return PositionStore(database)


@pytest.fixture
def rule_store(database: LendingDatabase) -> RuleStore:
    return RuleStore(database)


@pytest.fixture
def prediction_store(database: LendingDatabase) -> PredictionStore:
    return PredictionStore(database)


@pytest.fixture
def wallet_store(database: LendingDatabase) -> WalletStore:
    return WalletStore(database)


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_observation() -> Callable[..., ReserveObservation]:
    """Factory for reserve observations with realistic USDC defaults."""

    def _make(**overrides: Any) -> ReserveObservation:
        fields: dict[str, Any] = {
            "protocol": "KAMINO",
            "coin_name": USDC.name,
            "mint_address": USDC.mint,
            "apy": Decimal("5.2"),
            "lend_liquidity": Decimal("1000000"),
            "borrow_liquidity": Decimal("750000"),
            "utilization_rate": Decimal("75"),
            "borrow_cap": Decimal("5000000"),
            "supply_cap": Decimal("10000000"),
            "ltv": Decimal("0.8"),
            "decimals": 6,
            "update_time": 1_700_000_000_000,
        }
        fields.update(overrides)
        return ReserveObservation(**fields)

    return _make


@pytest.fixture
def make_snapshot(make_observation: Callable[..., ReserveObservation]) -> Callable[..., ReserveSnapshot]:
    """Factory for stored snapshots, built from an observation."""

    def _make(**overrides: Any) -> ReserveSnapshot:
        return make_observation(**overrides).to_snapshot()

    return _make


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class FakeProvider(ReserveProvider):
    """In-memory provider: fixed reserves and per-wallet deposits."""

    def __init__(
        self,
        protocol: str,
        reserves: list[ReserveObservation],
        deposits: dict[str, list[Deposit]] | None = None,
    ) -> None:
        self.protocol = protocol
        self.reserves = reserves
        self.deposits = deposits or {}
        self.obligation_calls: list[str] = []

    async def get_reserves(self) -> list[ReserveObservation]:
        return list(self.reserves)

    async def get_obligations(self, wallet_address: str) -> list[Deposit]:
        self.obligation_calls.append(wallet_address)
        return list(self.deposits.get(wallet_address, []))


@pytest.fixture
def kamino_reserves(make_observation: Callable[..., ReserveObservation]) -> list[ReserveObservation]:
    return [
        make_observation(),
        make_observation(
            coin_name=USDT.name,
            mint_address=USDT.mint,
            apy=Decimal("4.1"),
            utilization_rate=Decimal("62.5"),
        ),
    ]


@pytest.fixture
def kamino_provider(kamino_reserves: list[ReserveObservation]) -> FakeProvider:
    return FakeProvider(
        "KAMINO",
        kamino_reserves,
        deposits={HOME_WALLET: [Deposit(mint_address=USDC.mint, amount=120_000_000)]},
    )


@pytest.fixture
def registry(kamino_provider: FakeProvider) -> ProviderRegistry:
    reg = ProviderRegistry(call_timeout=1.0)
    reg.register(kamino_provider)
    return reg


@pytest.fixture
def wallet_settings() -> WalletSettings:
    return WalletSettings(home_address=HOME_WALLET, prune_closed_positions=False)


@pytest.fixture
def mock_generator() -> AsyncMock:
    """TextGenerator double; tests set generate.return_value."""
    generator = AsyncMock()
    generator.generate = AsyncMock(return_value="[]")
    return generator


@pytest.fixture
def mock_poster() -> AsyncMock:
    poster = AsyncMock()
    poster.post = AsyncMock(return_value=None)
    return poster


@pytest.fixture
def home_wallet() -> str:
    return HOME_WALLET


@pytest.fixture
def other_wallet() -> str:
    return OTHER_WALLET


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    """The FakeProvider class, for tests that build their own registries."""
    return FakeProvider
