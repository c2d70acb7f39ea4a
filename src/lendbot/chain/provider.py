"""Reserve provider interface and the protocol -> provider registry.

Pipelines depend only on ReserveProvider. Protocol-specific chain access
(market loading, obligation decoding) lives in concrete implementations that
are registered once at startup.
"""

import asyncio
import importlib
from abc import ABC, abstractmethod

from lendbot.exceptions import ProviderUnavailable
from lendbot.logging import get_logger
from lendbot.models import Deposit, ReserveObservation

logger = get_logger(__name__)


class ReserveProvider(ABC):
    """Abstract base class for a lending protocol's chain data access."""

    protocol: str

    @abstractmethod
    async def get_reserves(self) -> list[ReserveObservation]:
        """Return the current state of every supported reserve of the protocol."""
        ...

    @abstractmethod
    async def get_obligations(self, wallet_address: str) -> list[Deposit]:
        """Return the wallet's deposits across the protocol's reserves."""
        ...


class ProviderRegistry:
    """Maps protocol ids to providers and guards every remote call.

    Each call is bounded by ``call_timeout`` seconds. Any failure, including
    a timeout or an empty reserve list, is raised as ProviderUnavailable so
    callers have a single error to absorb.
    """

    def __init__(self, call_timeout: float = 30.0) -> None:
        self._providers: dict[str, ReserveProvider] = {}
        self._call_timeout = call_timeout

    def register(self, provider: ReserveProvider) -> None:
        self._providers[provider.protocol] = provider
        logger.info("reserve_provider_registered", protocol=provider.protocol)

    def get(self, protocol: str) -> ReserveProvider:
        provider = self._providers.get(protocol)
        if provider is None:
            raise ProviderUnavailable(f"No provider registered for protocol {protocol}")
        return provider

    def protocols(self) -> list[str]:
        """Registered protocol ids, in registration order."""
        return list(self._providers)

    async def get_reserves(self, protocol: str) -> list[ReserveObservation]:
        provider = self.get(protocol)
        try:
            reserves = await asyncio.wait_for(provider.get_reserves(), self._call_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderUnavailable(
                f"{protocol} reserves timed out after {self._call_timeout}s"
            ) from e
        except ProviderUnavailable:
            raise
        except Exception as e:
            raise ProviderUnavailable(f"{protocol} reserves failed: {e}") from e

        if not reserves:
            raise ProviderUnavailable(f"{protocol} returned no reserves")
        return reserves

    async def get_obligations(self, protocol: str, wallet_address: str) -> list[Deposit]:
        provider = self.get(protocol)
        try:
            return await asyncio.wait_for(
                provider.get_obligations(wallet_address), self._call_timeout
            )
        except asyncio.TimeoutError as e:
            raise ProviderUnavailable(
                f"{protocol} obligations for {wallet_address} timed out after {self._call_timeout}s"
            ) from e
        except ProviderUnavailable:
            raise
        except Exception as e:
            raise ProviderUnavailable(f"{protocol} obligations failed: {e}") from e


def load_provider(path: str) -> ReserveProvider:
    """Instantiate a provider from a ``module:Class`` path."""
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise ValueError(f"Provider path must look like 'module:Class', got {path!r}")

    cls = getattr(importlib.import_module(module_name), class_name)
    provider = cls()
    if not isinstance(provider, ReserveProvider):
        raise TypeError(f"{path} is not a ReserveProvider")
    return provider


def build_registry(paths: list[str], call_timeout: float = 30.0) -> ProviderRegistry:
    """Build the registry from configured provider paths."""
    registry = ProviderRegistry(call_timeout=call_timeout)
    for path in paths:
        registry.register(load_provider(path))

    if not paths:
        logger.warning(
            "no_reserve_providers_configured",
            note="Set PROVIDERS_CLASSES to enable snapshot capture and position refresh.",
        )
    return registry
