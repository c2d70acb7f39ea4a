"""Chain access layer -- reserve provider interface, registry, address validation."""

from lendbot.chain.address import (
    extract_addresses,
    is_valid_address,
    parse_pubkey,
    validate_address,
)
from lendbot.chain.provider import ProviderRegistry, ReserveProvider, build_registry

__all__ = [
    "ProviderRegistry",
    "ReserveProvider",
    "build_registry",
    "extract_addresses",
    "is_valid_address",
    "parse_pubkey",
    "validate_address",
]
