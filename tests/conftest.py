"""
Shared fakes for chain and configuration-service interaction.

``FakeChain`` answers the JSON-RPC / EIP-1193 methods the package uses and
records every request, so tests can assert exactly which calls were made.
Receipts and logs are built with real ABI encoding.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable, Optional

import pytest
from eth_abi import encode

from ddcmarket.chain.abi import canonical_type, event_topic, find_event, find_function, keccak256
from ddcmarket.chain.rpc import RpcError
from ddcmarket.errors import UNRECOGNIZED_CHAIN
from ddcmarket.models import ChainEndpoint, NativeCurrency, RemoteConfig

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
WALLET = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"  # address of TEST_PRIVATE_KEY
FACTORY = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
CHILD = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
OTHER = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"

ZERO_HASH = "0x" + "00" * 32
KEY_HASH = "0x" + "ab" * 32
MEMBER_HASH = "0x" + "cd" * 32


def to_abi_value(abi_type: str, value: Any) -> Any:
    if abi_type.startswith("bytes") and isinstance(value, str):
        return bytes.fromhex(value[2:])
    if abi_type.endswith("[]"):
        return [to_abi_value(abi_type[:-2], v) for v in value]
    return value


def event_log(
    abi: Any,
    event_name: str,
    values: dict[str, Any],
    address: str = CHILD,
    log_index: int = 0,
) -> dict[str, Any]:
    """Build a receipt log for ``event_name`` with real topic/data encoding."""
    entry = find_event(abi, event_name)
    topics = [event_topic(entry)]
    data_types: list[str] = []
    data_values: list[Any] = []
    for param in entry["inputs"]:
        abi_type = canonical_type(param)
        value = to_abi_value(abi_type, values[param["name"]])
        if param.get("indexed"):
            topics.append("0x" + encode([abi_type], [value]).hex())
        else:
            data_types.append(abi_type)
            data_values.append(value)
    return {
        "address": address,
        "topics": topics,
        "data": "0x" + encode(data_types, data_values).hex(),
        "logIndex": hex(log_index),
    }


def foreign_log(log_index: int = 0) -> dict[str, Any]:
    """A log from an unrelated contract that no shipped ABI decodes."""
    return {
        "address": OTHER,
        "topics": ["0x" + keccak256(b"Unrelated(uint256)").hex()],
        "data": "0x" + "00" * 32,
        "logIndex": hex(log_index),
    }


def selector(abi: Any, function_name: str) -> str:
    entry = find_function(abi, function_name)
    sig = f"{function_name}({','.join(canonical_type(p) for p in entry['inputs'])})"
    return "0x" + keccak256(sig.encode("utf-8"))[:4].hex()


class FakeChain:
    """
    In-process chain and wallet.

    Args:
        chain_id: Chain the connection starts on
        known_chains: Chains the wallet can switch to without adding them
    """

    def __init__(self, chain_id: int = 137, known_chains: Optional[set[int]] = None) -> None:
        self.chain_id = chain_id
        self.known_chains = set(known_chains or {chain_id})
        self.calls: list[tuple[str, list]] = []
        self.receipts: dict[str, dict] = {}
        self.pending: list[dict] = []
        self.call_results: dict[str, Any] = {}
        self.errors: dict[str, list[BaseException]] = {}
        self.handlers: dict[str, Callable[[list], Any]] = {}
        self.sent: list[Any] = []
        self._hashes = itertools.count(1)

    # -- configuration -------------------------------------------------

    def queue_receipt(
        self,
        logs: Optional[list[dict]] = None,
        status: int = 1,
        contract_address: Optional[str] = None,
        block_number: int = 100,
    ) -> None:
        self.pending.append(
            {
                "status": hex(status),
                "blockNumber": hex(block_number),
                "contractAddress": contract_address,
                "from": WALLET,
                "logs": list(logs or []),
            }
        )

    def fail(self, method: str, error: BaseException) -> None:
        """Make the next ``method`` request raise ``error``."""
        self.errors.setdefault(method, []).append(error)

    def set_call(self, abi: Any, function_name: str, value: Any) -> None:
        entry = find_function(abi, function_name)
        types = [canonical_type(p) for p in entry["outputs"]]
        encoded = encode(types, [to_abi_value(types[0], value)])
        self.call_results[selector(abi, function_name)] = "0x" + encoded.hex()

    def set_call_error(self, abi: Any, function_name: str, error: BaseException) -> None:
        self.call_results[selector(abi, function_name)] = error

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    # -- EIP-1193 / JSON-RPC -------------------------------------------

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        params = list(params or [])
        self.calls.append((method, params))

        queued = self.errors.get(method)
        if queued:
            raise queued.pop(0)
        if method in self.handlers:
            return self.handlers[method](params)

        if method == "eth_chainId":
            return hex(self.chain_id)
        if method in ("eth_accounts", "eth_requestAccounts"):
            return [WALLET.lower()]
        if method == "eth_getTransactionCount":
            return "0x7"
        if method == "eth_gasPrice":
            return hex(1_000_000_000)
        if method == "eth_estimateGas":
            return hex(100_000)
        if method in ("eth_sendTransaction", "eth_sendRawTransaction"):
            return self._mine(params[0])
        if method == "eth_getTransactionReceipt":
            return self.receipts.get(params[0])
        if method == "eth_getTransactionByHash":
            return {"hash": params[0], "from": WALLET, "nonce": "0x7"}
        if method == "eth_call":
            result = self.call_results[params[0]["data"][:10]]
            if isinstance(result, BaseException):
                raise result
            return result
        if method == "wallet_switchEthereumChain":
            target = int(params[0]["chainId"], 16)
            if target not in self.known_chains:
                raise RpcError(UNRECOGNIZED_CHAIN, "Unrecognized chain ID")
            self.chain_id = target
            return None
        if method == "wallet_addEthereumChain":
            self.known_chains.add(int(params[0]["chainId"], 16))
            return None
        raise RpcError(-32601, f"Method {method} not found")

    def _mine(self, tx: Any) -> str:
        self.sent.append(tx)
        tx_hash = "0x" + f"{next(self._hashes):064x}"
        receipt = self.pending.pop(0) if self.pending else {"status": "0x1", "logs": []}
        receipt.setdefault("blockNumber", "0x64")
        receipt["transactionHash"] = tx_hash
        self.receipts[tx_hash] = receipt
        return tx_hash


class FakeConfigService:
    """Configuration service double recording write-backs."""

    def __init__(
        self,
        network: ChainEndpoint,
        factory_address: Optional[str] = None,
        deployed: tuple[str, ...] = (),
        metadata_url: Optional[str] = "https://meta.example.com/",
    ) -> None:
        self.remote = RemoteConfig(network, factory_address, metadata_url, deployed)
        self.writes: list[tuple[str, tuple]] = []
        self.write_error: Optional[BaseException] = None
        self.get_error: Optional[BaseException] = None

    async def get_config(self, wallet_address: str, family: Any) -> RemoteConfig:
        if self.get_error is not None:
            raise self.get_error
        return self.remote

    async def _record(self, name: str, *args: Any) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((name, args))

    async def set_factory_address(self, *args: Any) -> None:
        await self._record("set_factory_address", *args)

    async def set_contract_address(self, *args: Any) -> None:
        await self._record("set_contract_address", *args)

    async def transfer_contract_owner(self, *args: Any) -> None:
        await self._record("transfer_contract_owner", *args)


@pytest.fixture()
def polygon() -> ChainEndpoint:
    return ChainEndpoint(
        chain_id=137,
        display_name="Polygon",
        rpc_url="https://polygon-rpc.example.com",
        native_currency=NativeCurrency("POL", "POL", 18),
        block_explorer="https://polygonscan.com",
    )


@pytest.fixture()
def chain() -> FakeChain:
    return FakeChain(chain_id=137)
