"""Solana address parsing and validation.

An address is valid when solders parses it as a public key: base58 text
that decodes to exactly 32 bytes.
"""

import re

from solders.pubkey import Pubkey

from lendbot.exceptions import InvalidAddress

ADDRESS_PATTERN = re.compile(r"\b[1-9A-HJ-NP-Za-km-z]{32,44}\b")


def parse_pubkey(address: str) -> Pubkey:
    """Parse an address into a Pubkey, raising InvalidAddress on bad input."""
    try:
        return Pubkey.from_string(address)
    except ValueError as exc:
        raise InvalidAddress(f"Invalid wallet address: {address!r}") from exc


def is_valid_address(address: str) -> bool:
    try:
        parse_pubkey(address)
    except InvalidAddress:
        return False
    return True


def validate_address(address: str) -> str:
    """Return the address in canonical base58 form, or raise InvalidAddress."""
    return str(parse_pubkey(address.strip()))


def extract_addresses(text: str) -> list[str]:
    """Find candidate addresses in free text, deduplicated in order of appearance."""
    seen: dict[str, None] = {}
    for match in ADDRESS_PATTERN.findall(text):
        seen.setdefault(match, None)
    return list(seen)
