"""
Data models shared across the package.

All models are frozen dataclasses; ``from_rpc``/``from_dict`` constructors
accept the raw JSON shapes returned by nodes and the configuration service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int = 18

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "symbol": self.symbol, "decimals": self.decimals}


@dataclass(frozen=True)
class ChainEndpoint:
    """Network parameters a manager is bound to for its whole lifetime."""

    chain_id: int
    display_name: str
    rpc_url: str
    native_currency: NativeCurrency
    block_explorer: Optional[str] = None

    @property
    def chain_id_hex(self) -> str:
        return hex(self.chain_id)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ChainEndpoint":
        """Build from the configuration service's ``network`` object."""
        chain_id = int(payload["chain_id"])
        symbol = payload.get("token_symbol") or "ETH"
        return cls(
            chain_id=chain_id,
            display_name=payload.get("chain_name") or f"Chain {chain_id}",
            rpc_url=payload.get("rpc_url") or "",
            native_currency=NativeCurrency(
                name=payload.get("token_name") or symbol,
                symbol=symbol,
                decimals=int(payload.get("token_decimals") or 18),
            ),
            block_explorer=payload.get("explore_url") or payload.get("block_explorer"),
        )

    def to_add_chain_params(self) -> dict[str, Any]:
        """Parameters for ``wallet_addEthereumChain`` (EIP-3085)."""
        params: dict[str, Any] = {
            "chainId": self.chain_id_hex,
            "chainName": self.display_name,
            "rpcUrls": [self.rpc_url],
            "nativeCurrency": self.native_currency.to_dict(),
        }
        if self.block_explorer:
            params["blockExplorerUrls"] = [self.block_explorer]
        return params


@dataclass(frozen=True)
class DeploymentRecord:
    contract_address: str
    transaction_hash: str
    block_number: Optional[int] = None


@dataclass(frozen=True)
class MintResult:
    token_id: int
    to: str
    transaction_hash: str
    block_number: Optional[int] = None
    verified: bool = True


@dataclass(frozen=True)
class DestroyResult:
    token_id: int
    from_hash: str
    transaction_hash: str
    block_number: Optional[int] = None
    verified: bool = True


@dataclass(frozen=True)
class DecodedEvent:
    name: str
    args: dict[str, Any]
    address: Optional[str] = None
    log_index: Any = None


@dataclass(frozen=True)
class TxReceipt:
    transaction_hash: str
    block_number: Optional[int]
    status: int
    contract_address: Optional[str] = None
    sender: Optional[str] = None
    logs: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_rpc(cls, payload: dict[str, Any]) -> "TxReceipt":
        def _int(value: Any) -> Optional[int]:
            if value is None:
                return None
            if isinstance(value, int):
                return value
            return int(value, 16) if str(value).startswith("0x") else int(value)

        status = _int(payload.get("status"))
        return cls(
            transaction_hash=payload.get("transactionHash", ""),
            block_number=_int(payload.get("blockNumber")),
            status=1 if status is None else status,
            contract_address=payload.get("contractAddress") or None,
            sender=payload.get("from"),
            logs=tuple(payload.get("logs") or ()),
        )


@dataclass(frozen=True)
class RemoteConfig:
    """What the configuration service knows for one wallet and family."""

    network: ChainEndpoint
    factory_address: Optional[str] = None
    metadata_url: Optional[str] = None
    known_deployed_addresses: tuple[str, ...] = field(default_factory=tuple)


__all__ = [
    "ChainEndpoint",
    "DecodedEvent",
    "DeploymentRecord",
    "DestroyResult",
    "MintResult",
    "NativeCurrency",
    "RemoteConfig",
    "TxReceipt",
]
