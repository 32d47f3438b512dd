"""
ABI Loader and codec.

Contract ABIs ship with the package (``ddcmarket/abis/*.json``).  Deployment
bytecode is not shipped: it is read at runtime from compiled artifacts
(Foundry ``out/<Name>.sol/<Name>.json`` or Hardhat ``<Name>.json``) found in
``DDC_ARTIFACTS_DIR`` or a ``contracts/out`` directory above the package.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from eth_abi import decode, encode
from eth_hash.auto import keccak
from eth_utils import to_checksum_address

from ..errors import DDCError
from ..models import DecodedEvent

ABI_DIR = Path(__file__).resolve().parent.parent / "abis"


def keccak256(data: bytes) -> bytes:
    """Keccak-256 digest (NOT the same as hashlib.sha3_256 / NIST SHA-3)."""
    return keccak(data)


@lru_cache(maxsize=16)
def load_abi(contract_name: str) -> tuple[dict[str, Any], ...]:
    """
    Load the ABI for a contract shipped with the package.

    Args:
        contract_name: Contract name (e.g., "DDCNFT", "MembershipFactory")

    Returns:
        ABI entries (immutable tuple of dicts)

    Raises:
        FileNotFoundError: If no ABI with that name ships with the package
    """
    abi_path = ABI_DIR / f"{contract_name}.json"
    if not abi_path.exists():
        raise FileNotFoundError(f"ABI not found: {abi_path}")

    with abi_path.open("r", encoding="utf-8") as f:
        artifact = json.load(f)

    abi = artifact["abi"] if isinstance(artifact, dict) else artifact
    return tuple(abi)


def _artifact_candidates(contract_name: str, artifacts_dir: Optional[Path]) -> list[Path]:
    roots: list[Path] = []
    if artifacts_dir is not None:
        roots.append(Path(artifacts_dir))
    env_dir = os.environ.get("DDC_ARTIFACTS_DIR")
    if env_dir:
        roots.append(Path(env_dir).expanduser())
    current = Path(__file__).resolve()
    for parent in current.parents:
        candidate = parent / "contracts" / "out"
        if candidate.is_dir():
            roots.append(candidate)
            break

    paths: list[Path] = []
    for root in roots:
        paths.append(root / f"{contract_name}.sol" / f"{contract_name}.json")
        paths.append(root / f"{contract_name}.json")
    return paths


def load_bytecode(contract_name: str, artifacts_dir: Optional[Path] = None) -> str:
    """
    Load deployment bytecode for a contract from compiled artifacts.

    Args:
        contract_name: Contract name (e.g., "DDCNFTFactory")
        artifacts_dir: Directory to search first

    Returns:
        0x-prefixed hex bytecode

    Raises:
        DDCError: MISSING_BYTECODE if no artifact carries bytecode
    """
    searched = _artifact_candidates(contract_name, artifacts_dir)
    for path in searched:
        if not path.is_file():
            continue
        with path.open("r", encoding="utf-8") as f:
            artifact = json.load(f)
        bytecode = artifact.get("bytecode", "")
        if isinstance(bytecode, dict):
            bytecode = bytecode.get("object", "")
        if bytecode and bytecode != "0x":
            return bytecode if bytecode.startswith("0x") else "0x" + bytecode

    raise DDCError(
        f"Bytecode for {contract_name} not found. Set DDC_ARTIFACTS_DIR to the "
        f"directory holding compiled contract artifacts.",
        "MISSING_BYTECODE",
        {"contract": contract_name, "searched": [str(p) for p in searched]},
    )


# ---------------------------------------------------------------------------
# Types and signatures
# ---------------------------------------------------------------------------

def canonical_type(param: dict[str, Any]) -> str:
    """Return the canonical ABI type string for an input/output entry."""
    abi_type = param["type"]
    if abi_type.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def signature(entry: dict[str, Any]) -> str:
    types = ",".join(canonical_type(p) for p in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def find_function(abi: Any, function_name: str, arg_count: Optional[int] = None) -> dict[str, Any]:
    for entry in abi:
        if entry.get("type") != "function" or entry.get("name") != function_name:
            continue
        if arg_count is None or len(entry.get("inputs", [])) == arg_count:
            return entry
    raise ValueError(f"Function {function_name} not found in ABI")


def find_event(abi: Any, event_name: str) -> dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "event" and entry.get("name") == event_name:
            return entry
    raise ValueError(f"Event {event_name} not found in ABI")


def event_topic(entry: dict[str, Any]) -> str:
    return "0x" + keccak256(signature(entry).encode("utf-8")).hex()


def _normalize(abi_type: str, value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        inner = abi_type[: abi_type.rfind("[")] if abi_type.endswith("]") else abi_type
        return [_normalize(inner, v) for v in value]
    if abi_type == "address" and isinstance(value, str):
        return to_checksum_address(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith(("0x", "0X")) else value)


# ---------------------------------------------------------------------------
# Calls
# ---------------------------------------------------------------------------

def encode_call(abi: Any, function_name: str, args: list) -> str:
    """
    ABI-encode a function call.

    Args:
        abi: Contract ABI
        function_name: Function name to call
        args: Function arguments

    Returns:
        0x-prefixed hex encoded calldata
    """
    func = find_function(abi, function_name, len(args))
    input_types = [canonical_type(inp) for inp in func.get("inputs", [])]

    # NOTE: Keccak-256 != SHA3-256 (NIST). Never use hashlib.sha3_256 here.
    selector = keccak256(signature(func).encode("utf-8"))[:4]
    encoded_args = encode(input_types, args) if args else b""

    return "0x" + selector.hex() + encoded_args.hex()


def encode_constructor(abi: Any, bytecode: str, args: Optional[list] = None) -> str:
    """Append ABI-encoded constructor arguments to creation bytecode."""
    if not args:
        return bytecode
    constructor = next((e for e in abi if e.get("type") == "constructor"), None)
    if constructor is None:
        raise ValueError("Constructor not found in ABI, but constructor args were provided.")
    input_types = [canonical_type(inp) for inp in constructor.get("inputs", [])]
    return bytecode + encode(input_types, args).hex()


def decode_result(abi: Any, function_name: str, data: str, arg_count: Optional[int] = None) -> Any:
    """
    ABI-decode a function call result.

    Returns:
        Decoded result (single value, tuple of values, or None)
    """
    func = find_function(abi, function_name, arg_count)
    outputs = func.get("outputs", [])
    if not outputs:
        return None

    output_types = [canonical_type(out) for out in outputs]
    decoded = decode(output_types, _hex_to_bytes(data))
    values = tuple(_normalize(t, v) for t, v in zip(output_types, decoded))

    if len(values) == 1:
        return values[0]
    return values


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------

_STATIC_TOPIC_PREFIXES = ("address", "bool", "uint", "int", "bytes")


def _is_static_topic(abi_type: str) -> bool:
    if abi_type.endswith("]") or abi_type.startswith("("):
        return False
    if abi_type == "bytes":
        return False
    return abi_type.startswith(_STATIC_TOPIC_PREFIXES)


def decode_log(abi: Any, log: dict[str, Any]) -> Optional[DecodedEvent]:
    """
    Decode one receipt log against an ABI.

    Returns:
        The decoded event, or None if no event in the ABI matches the log.
        Indexed dynamic values (strings, arrays) are returned as their
        topic hash, since the value itself is not recoverable.

    Raises:
        Exception: Whatever eth-abi raises when a matching log is malformed
    """
    topics = [t.lower() for t in log.get("topics", [])]
    if not topics:
        return None

    for entry in abi:
        if entry.get("type") != "event" or entry.get("anonymous"):
            continue
        if event_topic(entry) != topics[0]:
            continue

        inputs = entry.get("inputs", [])
        indexed = [p for p in inputs if p.get("indexed")]
        if len(topics) != 1 + len(indexed):
            continue

        plain = [p for p in inputs if not p.get("indexed")]
        plain_types = [canonical_type(p) for p in plain]
        plain_values = decode(plain_types, _hex_to_bytes(log.get("data", "0x"))) if plain else ()

        args: dict[str, Any] = {}
        topic_iter = iter(topics[1:])
        plain_iter = iter(zip(plain_types, plain_values))
        for position, param in enumerate(inputs):
            name = param.get("name") or f"arg{position}"
            abi_type = canonical_type(param)
            if param.get("indexed"):
                topic = next(topic_iter)
                if _is_static_topic(abi_type):
                    args[name] = _normalize(abi_type, decode([abi_type], _hex_to_bytes(topic))[0])
                else:
                    args[name] = topic
            else:
                plain_type, value = next(plain_iter)
                args[name] = _normalize(plain_type, value)

        return DecodedEvent(
            name=entry["name"],
            args=args,
            address=log.get("address"),
            log_index=log.get("logIndex"),
        )

    return None
