"""
Signing authorities.

Two variants are supported and exactly one is bound per manager:

- ``DelegatedSigner`` wraps an EIP-1193 style provider (a wallet).  The
  wallet signs, asks the user for approval and can switch its active chain.
- ``FixedEndpointSigner`` signs locally with an eth-account key and sends
  raw transactions to one RPC endpoint.  It cannot change chains; a wrong
  endpoint can only be fixed by reconnecting.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Union, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from ..errors import DDCError
from .rpc import JsonRpcClient, get_chain_id, get_gas_price, get_nonce, to_int

LOGGER = logging.getLogger(__name__)

# Gas estimates are padded by 20% before signing.
GAS_MULTIPLIER_NUM = 12
GAS_MULTIPLIER_DEN = 10


@runtime_checkable
class Provider(Protocol):
    """Anything with an EIP-1193 ``request`` coroutine."""

    async def request(self, method: str, params: Optional[list] = None) -> Any: ...


@runtime_checkable
class SigningAuthority(Protocol):
    """Common surface of both signer variants."""

    can_switch_chain: bool

    async def address(self) -> str: ...

    async def request(self, method: str, params: Optional[list] = None) -> Any: ...

    async def send_transaction(self, tx: dict[str, Any]) -> str: ...


def _hex_quantity(value: int) -> str:
    return hex(value)


class DelegatedSigner:
    """
    Wallet-backed signer.

    Args:
        provider: EIP-1193 provider exposing ``async request(method, params)``
    """

    can_switch_chain = True

    def __init__(self, provider: Provider) -> None:
        self.provider = provider
        self._address: Optional[str] = None

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        return await self.provider.request(method, params or [])

    async def address(self) -> str:
        if self._address is None:
            accounts = await self.request("eth_accounts", [])
            if not accounts:
                accounts = await self.request("eth_requestAccounts", [])
            if not accounts:
                raise DDCError("Wallet exposes no accounts", "NO_SIGNER_ADDRESS")
            self._address = to_checksum_address(accounts[0])
        return self._address

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        """Hand the transaction to the wallet; the wallet fills nonce and gas."""
        payload: dict[str, Any] = {"from": await self.address()}
        for key, value in tx.items():
            if value is None:
                continue
            payload[key] = _hex_quantity(value) if isinstance(value, int) else value
        LOGGER.debug("eth_sendTransaction via wallet: to=%s", payload.get("to"))
        return await self.request("eth_sendTransaction", [payload])


class FixedEndpointSigner:
    """
    Private-key signer bound to one RPC endpoint.

    Args:
        private_key: 0x-prefixed hex private key
        rpc: RPC endpoint URL or an existing client
    """

    can_switch_chain = False

    def __init__(self, private_key: str, rpc: Union[str, Any]) -> None:
        try:
            self.account: LocalAccount = Account.from_key(private_key)
        except Exception as exc:
            raise DDCError(
                "Invalid private key", "INVALID_PARAMETER", {"parameter": "private_key"}
            ) from exc
        self.rpc = JsonRpcClient(rpc) if isinstance(rpc, str) else rpc

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        return await self.rpc.request(method, params or [])

    async def address(self) -> str:
        return self.account.address

    async def build_transaction(
        self,
        tx: dict[str, Any],
        gas_limit: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Fill nonce, gas price, gas limit and chain id for a transaction.

        Args:
            tx: Partial transaction (``to`` omitted for contract creation)
            gas_limit: Explicit gas limit (default: estimate and pad by 20%)

        Returns:
            Transaction dict ready for ``sign_transaction``
        """
        sender = self.account.address
        full: dict[str, Any] = {
            "data": tx.get("data", "0x"),
            "value": tx.get("value", 0),
            "nonce": await get_nonce(self.rpc, sender),
            "gasPrice": await get_gas_price(self.rpc),
            "chainId": await get_chain_id(self.rpc),
        }
        if tx.get("to"):
            full["to"] = to_checksum_address(tx["to"])

        if gas_limit is None:
            estimate_args: dict[str, Any] = {"from": sender, "data": full["data"]}
            if "to" in full:
                estimate_args["to"] = full["to"]
            if full["value"]:
                estimate_args["value"] = _hex_quantity(full["value"])
            estimated = to_int(await self.request("eth_estimateGas", [estimate_args]))
            gas_limit = estimated * GAS_MULTIPLIER_NUM // GAS_MULTIPLIER_DEN
        full["gas"] = gas_limit
        return full

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        full = await self.build_transaction(tx, tx.get("gas"))
        signed = self.account.sign_transaction(full)
        raw_tx = "0x" + signed.raw_transaction.hex().removeprefix("0x")
        LOGGER.debug("eth_sendRawTransaction: nonce=%s to=%s", full["nonce"], full.get("to"))
        return await self.request("eth_sendRawTransaction", [raw_tx])


__all__ = ["DelegatedSigner", "FixedEndpointSigner", "Provider", "SigningAuthority"]
