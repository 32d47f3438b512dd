"""
Domain errors and transport-error classification.

Every failure that leaves the package is a ``DDCError`` carrying a stable
``code`` string.  Callers branch on ``code`` only; ``details`` is a
diagnostic payload and is never consulted for control flow.

Raw failures (JSON-RPC errors, wallet rejections, reverted receipts, HTTP
errors) are turned into ``DDCError`` by :func:`classify`, which first
identifies the transport condition and then maps it through a single
table.  An error that is already a ``DDCError`` passes through unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from eth_abi import decode

from .chain.rpc import RpcError, TransactionReverted


class DDCError(RuntimeError):
    """Domain error with a stable code.

    Attributes:
        message: Human-readable description
        code: Stable machine-readable code (e.g. "USER_REJECTED")
        details: Diagnostic payload (never used for control flow)
    """

    exit_code: int = 1

    def __init__(self, message: str, code: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details: dict[str, Any] = dict(details or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"DDCError(code={self.code!r}, message={self.message!r})"


# ---------------------------------------------------------------------------
# Transport identification
# ---------------------------------------------------------------------------

class TransportError(str, Enum):
    """Known transport failure identifiers."""

    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    ACTION_REJECTED = "ACTION_REJECTED"
    NONCE_EXPIRED = "NONCE_EXPIRED"
    CALL_EXCEPTION = "CALL_EXCEPTION"
    UNKNOWN = "UNKNOWN"


# EIP-1193 provider error codes
USER_REJECTED_REQUEST = 4001
UNRECOGNIZED_CHAIN = 4902

# JSON-RPC code used by geth-style nodes for reverts with data
EXECUTION_REVERTED = 3

_ERROR_STRING_SELECTOR = "08c379a0"  # Error(string)
_PANIC_SELECTOR = "4e487b71"  # Panic(uint256)

_REJECTED_MARKERS = ("user rejected", "user denied", "action_rejected", "rejected by user")
_FUNDS_MARKERS = ("insufficient funds",)
_NONCE_MARKERS = (
    "nonce too low",
    "nonce has already been used",
    "nonce expired",
    "nonce_expired",
    "replacement transaction underpriced",
)
_REVERT_MARKERS = ("execution reverted", "revert", "call_exception")


def _error_text(error: BaseException) -> str:
    parts = [str(error)]
    if isinstance(error, RpcError):
        parts.append(error.message)
        if isinstance(error.data, str):
            parts.append(error.data)
    return " ".join(parts).lower()


def _has_revert_data(error: BaseException) -> bool:
    data: Any = getattr(error, "data", None)
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, str):
        return False
    return data[2:10].lower() in (_ERROR_STRING_SELECTOR, _PANIC_SELECTOR)


def identify(error: BaseException) -> TransportError:
    """Identify which known transport condition a raw error represents."""
    if isinstance(error, TransactionReverted):
        return TransportError.CALL_EXCEPTION

    code = getattr(error, "code", None)
    if code == USER_REJECTED_REQUEST or code == "ACTION_REJECTED":
        return TransportError.ACTION_REJECTED
    if code in ("INSUFFICIENT_FUNDS", "NONCE_EXPIRED", "CALL_EXCEPTION"):
        return TransportError(code)

    if code == EXECUTION_REVERTED or _has_revert_data(error):
        return TransportError.CALL_EXCEPTION

    text = _error_text(error)
    if "execution reverted" in text:
        return TransportError.CALL_EXCEPTION
    if any(marker in text for marker in _REJECTED_MARKERS):
        return TransportError.ACTION_REJECTED
    if any(marker in text for marker in _FUNDS_MARKERS):
        return TransportError.INSUFFICIENT_FUNDS
    if any(marker in text for marker in _NONCE_MARKERS):
        return TransportError.NONCE_EXPIRED
    if any(marker in text for marker in _REVERT_MARKERS):
        return TransportError.CALL_EXCEPTION
    return TransportError.UNKNOWN


def revert_reason(error: BaseException) -> Optional[str]:
    """Extract a revert reason from a transport error, if one was supplied."""
    data: Any = getattr(error, "data", None)
    if isinstance(data, dict):
        data = data.get("data") or data.get("message")
    if isinstance(data, str) and data.startswith("0x") and len(data) >= 10:
        selector, payload = data[2:10].lower(), data[10:]
        try:
            if selector == _ERROR_STRING_SELECTOR:
                return decode(["string"], bytes.fromhex(payload))[0]
            if selector == _PANIC_SELECTOR:
                return f"panic code {decode(['uint256'], bytes.fromhex(payload))[0]:#x}"
        except Exception:
            return None
    elif isinstance(data, str) and data and not data.startswith("0x"):
        return data

    message = getattr(error, "message", None) or str(error)
    marker = "execution reverted:"
    if marker in message:
        return message.split(marker, 1)[1].strip() or None
    return None


# ---------------------------------------------------------------------------
# Classification table
# ---------------------------------------------------------------------------

# transport identifier -> (domain code, message); None means "use fallback"
_CLASSIFICATION: dict[TransportError, Optional[tuple[str, str]]] = {
    TransportError.INSUFFICIENT_FUNDS: (
        "INSUFFICIENT_FUNDS",
        "Insufficient funds to pay for gas fees.",
    ),
    TransportError.ACTION_REJECTED: (
        "USER_REJECTED",
        "Transaction was rejected by user.",
    ),
    TransportError.NONCE_EXPIRED: (
        "NONCE_EXPIRED",
        "Transaction nonce expired. Please try again.",
    ),
    TransportError.CALL_EXCEPTION: (
        "CONTRACT_CALL_FAILED",
        "Contract call failed.",
    ),
    TransportError.UNKNOWN: None,
}


def classify(
    error: BaseException,
    fallback_code: str,
    message: Optional[str] = None,
    hint: Optional[str] = None,
    **context: Any,
) -> DDCError:
    """
    Convert any error into a ``DDCError``.

    Args:
        error: The raw error
        fallback_code: Code used when the error is not a known transport condition
        message: Prefix for the fallback message (default: "Operation failed")
        hint: Extra sentence appended to CONTRACT_CALL_FAILED messages
        **context: Diagnostic values added to ``details``

    Returns:
        The classified domain error (the input itself if already classified)
    """
    if isinstance(error, DDCError):
        return error

    kind = identify(error)
    entry = _CLASSIFICATION[kind]
    details: dict[str, Any] = dict(context)
    details["error"] = str(error)

    if entry is None:
        prefix = message or "Operation failed"
        return DDCError(f"{prefix}: {error}", fallback_code, details)

    code, text = entry
    if kind is TransportError.CALL_EXCEPTION:
        reason = revert_reason(error)
        if reason:
            details["reason"] = reason
            text = f"{text} Revert reason: {reason}."
        if hint:
            text = f"{text} {hint}"
    return DDCError(text, code, details)


__all__ = [
    "DDCError",
    "EXECUTION_REVERTED",
    "TransportError",
    "UNRECOGNIZED_CHAIN",
    "USER_REJECTED_REQUEST",
    "classify",
    "identify",
    "revert_reason",
]
