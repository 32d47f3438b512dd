"""Key hashing, address and parameter validation helpers."""

from __future__ import annotations

import re
from typing import Iterable, MutableSequence

from eth_utils import is_address, to_checksum_address

from .chain.abi import keccak256
from .errors import DDCError

BYTES32_ZERO = "0x" + "00" * 32

_BYTES32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def get_key_hash(key: str) -> str:
    """Keccak-256 of the UTF-8 key, as 0x-prefixed hex."""
    if not key:
        raise DDCError("Key must not be empty", "INVALID_PARAMETER", {"parameter": "key"})
    return "0x" + keccak256(key.encode("utf-8")).hex()


def is_bytes32_hex(value: object) -> bool:
    return isinstance(value, str) and bool(_BYTES32_RE.match(value))


def is_zero_hash(value: str) -> bool:
    return value.lower() == BYTES32_ZERO


def validate_address(address: object, label: str = "address") -> str:
    """
    Validate an address and return it checksummed.

    Raises:
        DDCError: INVALID_ADDRESS if the value is not a 20-byte hex address
    """
    if not isinstance(address, str) or not is_address(address):
        raise DDCError(
            f"Invalid {label}: {address!r}",
            "INVALID_ADDRESS",
            {"parameter": label, "value": address},
        )
    return to_checksum_address(address)


def normalize_address(address: str) -> str:
    return to_checksum_address(address)


def same_address(a: str, b: str) -> bool:
    return normalize_address(a) == normalize_address(b)


def add_address(addresses: MutableSequence[str], address: str) -> bool:
    """
    Insert a checksummed address unless an equal one is already present.

    Returns:
        True if the address was added, False if it was already there
    """
    checksummed = normalize_address(address)
    if checksummed in addresses:
        return False
    addresses.append(checksummed)
    return True


def unique_addresses(values: Iterable[str]) -> list[str]:
    result: list[str] = []
    for value in values:
        add_address(result, validate_address(value, "deployed address"))
    return result


def require_bytes32(value: object, label: str) -> str:
    if not is_bytes32_hex(value):
        raise DDCError(
            f"{label} must be a 0x-prefixed 32-byte hex string",
            "INVALID_PARAMETER",
            {"parameter": label, "value": value},
        )
    return str(value).lower()


def require_text(value: object, label: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise DDCError(f"{label} must not be empty", "INVALID_PARAMETER", {"parameter": label})
    return text


def require_token_id(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise DDCError(
            "Token ID must be a positive integer",
            "INVALID_TOKEN_ID",
            {"token_id": value},
        )
    return value
