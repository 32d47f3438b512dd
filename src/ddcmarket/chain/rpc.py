"""
JSON-RPC client for EVM-compatible chains.

Lightweight alternative to web3.py: uses httpx for HTTP + eth-abi for encoding.
All calls are asynchronous; receipt polling suspends with ``asyncio.sleep``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Any, Optional

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 2.0


class RpcError(RuntimeError):
    """Error object returned by a JSON-RPC endpoint or an EIP-1193 provider."""

    def __init__(self, code: Any, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_payload(cls, payload: Any) -> "RpcError":
        if isinstance(payload, dict):
            return cls(payload.get("code"), str(payload.get("message", "")), payload.get("data"))
        return cls(None, str(payload))


class TransactionReverted(RuntimeError):
    """A mined transaction whose receipt reports ``status == 0``."""

    def __init__(self, tx_hash: str, receipt: dict) -> None:
        super().__init__(f"Transaction {tx_hash} reverted")
        self.tx_hash = tx_hash
        self.receipt = receipt


class JsonRpcClient:
    """
    Minimal asynchronous JSON-RPC 2.0 client.

    Args:
        url: RPC endpoint URL
        timeout: Per-request HTTP timeout in seconds
        client: Optional shared ``httpx.AsyncClient`` (not closed by us)
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client
        self._ids = itertools.count(1)

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name (e.g., "eth_call")
            params: RPC parameters

        Returns:
            Result field from the RPC response

        Raises:
            RpcError: If the endpoint answers with an error object
            httpx.HTTPError: On transport failure
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }

        if self._client is not None:
            response = await self._client.post(self.url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
        response.raise_for_status()
        data = response.json()

        if "error" in data:
            raise RpcError.from_payload(data["error"])

        return data.get("result")


def to_int(value: Any) -> int:
    """Convert a JSON-RPC quantity (hex string or int) to int."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
    raise TypeError(f"Not a quantity: {value!r}")


async def get_chain_id(rpc: Any) -> int:
    """Query ``eth_chainId`` directly on a connection."""
    return to_int(await rpc.request("eth_chainId", []))


async def get_nonce(rpc: Any, address: str, block: str = "pending") -> int:
    """Get transaction nonce for an address."""
    return to_int(await rpc.request("eth_getTransactionCount", [address, block]))


async def get_gas_price(rpc: Any) -> int:
    """Get current gas price in wei."""
    return to_int(await rpc.request("eth_gasPrice", []))


async def wait_for_receipt(
    rpc: Any,
    tx_hash: str,
    timeout: Optional[float] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> dict:
    """
    Wait for a transaction receipt.

    Args:
        rpc: Anything with an async ``request(method, params)``
        tx_hash: Transaction hash
        timeout: Maximum wait time in seconds (None waits indefinitely)
        poll_interval: Polling interval in seconds

    Returns:
        Raw receipt dict

    Raises:
        TimeoutError: If a timeout is given and the receipt is not found in time
    """
    start = time.monotonic()
    while True:
        receipt = await rpc.request("eth_getTransactionReceipt", [tx_hash])
        if receipt is not None:
            return receipt
        if timeout is not None and time.monotonic() - start >= timeout:
            raise TimeoutError(f"Transaction {tx_hash} not confirmed within {timeout}s")
        LOGGER.debug("Receipt for %s not available yet", tx_hash)
        await asyncio.sleep(poll_interval)
