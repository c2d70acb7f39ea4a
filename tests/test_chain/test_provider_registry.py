"""Tests for ProviderRegistry error translation and provider loading."""

import asyncio

import pytest

from lendbot.chain.provider import ProviderRegistry, ReserveProvider, build_registry, load_provider
from lendbot.exceptions import ProviderUnavailable


class _SlowProvider(ReserveProvider):
    protocol = "SLOW"

    async def get_reserves(self):
        await asyncio.sleep(5)
        return []

    async def get_obligations(self, wallet_address):
        await asyncio.sleep(5)
        return []


class _BrokenProvider(ReserveProvider):
    protocol = "BROKEN"

    async def get_reserves(self):
        raise ConnectionError("rpc down")

    async def get_obligations(self, wallet_address):
        raise ConnectionError("rpc down")


class _EmptyProvider(ReserveProvider):
    protocol = "EMPTY"

    async def get_reserves(self):
        return []

    async def get_obligations(self, wallet_address):
        return []


@pytest.mark.asyncio
async def test_registered_provider_is_dispatched(registry, kamino_reserves) -> None:
    assert registry.protocols() == ["KAMINO"]
    assert await registry.get_reserves("KAMINO") == kamino_reserves


@pytest.mark.asyncio
async def test_unknown_protocol_raises() -> None:
    with pytest.raises(ProviderUnavailable):
        await ProviderRegistry().get_reserves("KAMINO")


@pytest.mark.asyncio
async def test_timeout_becomes_provider_unavailable() -> None:
    registry = ProviderRegistry(call_timeout=0.05)
    registry.register(_SlowProvider())

    with pytest.raises(ProviderUnavailable, match="timed out"):
        await registry.get_reserves("SLOW")
    with pytest.raises(ProviderUnavailable, match="timed out"):
        await registry.get_obligations("SLOW", "wallet")


@pytest.mark.asyncio
async def test_provider_exception_becomes_provider_unavailable() -> None:
    registry = ProviderRegistry()
    registry.register(_BrokenProvider())

    with pytest.raises(ProviderUnavailable, match="rpc down"):
        await registry.get_reserves("BROKEN")


@pytest.mark.asyncio
async def test_empty_reserve_list_is_unavailable() -> None:
    registry = ProviderRegistry()
    registry.register(_EmptyProvider())

    with pytest.raises(ProviderUnavailable, match="no reserves"):
        await registry.get_reserves("EMPTY")
    assert await registry.get_obligations("EMPTY", "wallet") == []


def test_load_provider_rejects_bad_paths() -> None:
    with pytest.raises(ValueError):
        load_provider("no_colon_here")
    with pytest.raises(TypeError):
        load_provider("collections:OrderedDict")


def test_build_registry_without_paths_is_empty() -> None:
    assert build_registry([]).protocols() == []
