"""
Contract lifecycle engine.

``ContractManager`` is one generic engine per contract family: it owns the
per-manager ``ManagerState``, deploys the family's factory and children,
reconciles the network before writes and reports addresses to the
configuration service.  Family-specific operations live in
``ddcmarket.operations`` and are composed on top of a manager.

A manager is created by ``await ContractManager.init(params)`` and handed
back to the caller; there is no process-wide instance.  State is mutated
in place without locking: deployments against one manager must be
serialized by the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .chain.abi import load_bytecode
from .chain.rpc import DEFAULT_POLL_INTERVAL
from .chain.tx import call_contract, deploy_contract, send_contract_tx
from .errors import DDCError, classify
from .families import ContractFamily
from .models import ChainEndpoint, DeploymentRecord, RemoteConfig, TxReceipt
from .network import ensure_network
from .utils import add_address, require_text, unique_addresses, validate_address
from .verify import TransactionVerifier

LOGGER = logging.getLogger(__name__)


@dataclass
class ManagerState:
    """
    Mutable per-manager record.

    ``network`` is fixed for the manager's lifetime; reconciliation changes
    the live connection, never this record.
    """

    network: ChainEndpoint
    factory_address: Optional[str] = None
    contract_address: Optional[str] = None
    deployed_addresses: list[str] = field(default_factory=list)
    metadata_url: Optional[str] = None

    def add_deployed(self, address: str) -> bool:
        return add_address(self.deployed_addresses, address)


@dataclass(frozen=True)
class ManagerParams:
    """
    Inputs to ``ContractManager.init``.

    Attributes:
        family: Contract family policy
        wallet_address: Address the configuration service is queried for
        signer: Signing authority bound to the manager
        config_service: Configuration service client
        debug: Lower the package logger to DEBUG
        artifacts_dir: Directory searched first for factory bytecode
        poll_interval: Receipt polling interval in seconds
        timeout: Receipt wait timeout (None waits indefinitely)
        remote_config: Configuration already fetched for ``wallet_address``
    """

    family: ContractFamily
    wallet_address: str
    signer: Any
    config_service: Any
    debug: bool = False
    artifacts_dir: Optional[Path] = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    timeout: Optional[float] = None
    remote_config: Optional[RemoteConfig] = None


class ContractManager:
    """Lifecycle engine for one contract family on one chain."""

    def __init__(
        self,
        family: ContractFamily,
        signer: Any,
        config_service: Any,
        state: ManagerState,
        artifacts_dir: Optional[Path] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
    ) -> None:
        self.family = family
        self.signer = signer
        self.config_service = config_service
        self.state = state
        self.artifacts_dir = artifacts_dir
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.verifier = TransactionVerifier(family.contract_abi)
        self.factory_verifier = TransactionVerifier(family.factory_abi)

    @classmethod
    async def init(cls, params: ManagerParams) -> "ContractManager":
        """
        Create a manager bound to the network the configuration service reports.

        Queries the configuration service, reconciles the signer's
        connection, then adopts the pre-supplied factory address if any.

        Raises:
            DDCError: INVALID_PARAMETER, DDC_CONFIG_ERROR, INVALID_ADDRESS or
                any network reconciliation error
        """
        if params.debug:
            logging.getLogger("ddcmarket").setLevel(logging.DEBUG)
        if not params.wallet_address:
            raise DDCError(
                "Wallet address is required to initialize a manager", "INVALID_PARAMETER"
            )

        remote = params.remote_config
        if remote is None:
            try:
                remote = await params.config_service.get_config(
                    params.wallet_address, params.family
                )
            except Exception as exc:
                raise classify(
                    exc, "DDC_CONFIG_ERROR", "Failed to get DDC config", wallet=params.wallet_address
                ) from exc

        state = ManagerState(
            network=remote.network,
            deployed_addresses=unique_addresses(remote.known_deployed_addresses),
            metadata_url=remote.metadata_url,
        )
        manager = cls(
            params.family,
            params.signer,
            params.config_service,
            state,
            artifacts_dir=params.artifacts_dir,
            poll_interval=params.poll_interval,
            timeout=params.timeout,
        )
        LOGGER.info(
            "Initializing %s manager on %s (chain %s)",
            params.family.display_name,
            remote.network.display_name,
            remote.network.chain_id,
        )
        await manager.ensure_network()

        if remote.factory_address:
            state.factory_address = validate_address(remote.factory_address, "Factory address")
        return manager

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    def get_network_config(self) -> ChainEndpoint:
        return self.state.network

    def get_default_metadata_url(self) -> str:
        if not self.state.metadata_url:
            raise DDCError("Metadata URL not available", "METADATA_URL_NOT_AVAILABLE")
        return self.state.metadata_url

    def get_contract_address(self) -> Optional[str]:
        return self.state.contract_address

    def set_contract_address(self, address: str) -> None:
        self.state.contract_address = validate_address(
            address, f"{self.family.display_name} contract address"
        )

    def get_factory_address(self) -> str:
        return self.state.factory_address or ""

    def set_factory_address(self, address: str) -> None:
        """Adopt an existing factory; only allowed while none is set."""
        checksummed = validate_address(address, "Factory address")
        if self.state.factory_address:
            raise DDCError(
                f"Factory address already set to {self.state.factory_address}",
                "FACTORY_ALREADY_SET",
                {"factory_address": self.state.factory_address, "requested": checksummed},
            )
        self.state.factory_address = checksummed

    def get_all_deployed_addresses(self) -> tuple[str, ...]:
        return tuple(self.state.deployed_addresses)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_factory(self) -> str:
        if not self.state.factory_address:
            raise DDCError(
                "Factory contract not deployed. Deploy it with deploy_factory() or "
                "adopt an existing one with set_factory_address().",
                "FACTORY_NOT_DEPLOYED",
            )
        return self.state.factory_address

    def _require_contract(self) -> str:
        if not self.state.contract_address:
            raise DDCError(
                "Contract not deployed. Deploy one with deploy_contract() or select "
                "one with set_contract_address().",
                "CONTRACT_NOT_DEPLOYED",
            )
        return self.state.contract_address

    def _resolve_contract(self, address: Optional[str] = None) -> str:
        target = address or self.state.contract_address
        if not target:
            raise DDCError(
                "No contract address available. Deploy a contract first or provide an address.",
                "NO_CONTRACT_ADDRESS",
            )
        return validate_address(target, f"{self.family.display_name} contract address")

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def ensure_network(self) -> None:
        await ensure_network(self.signer, self.state.network)

    async def signer_address(self) -> str:
        return await self.signer.address()

    async def send(
        self,
        function_name: str,
        args: list,
        fallback_code: str,
        message: Optional[str] = None,
        hint: Optional[str] = None,
        **context: Any,
    ) -> TxReceipt:
        """
        Submit a write on the active contract and wait for inclusion.

        The caller has already run its guards.  The network is reconciled
        first; any failure is classified with ``fallback_code``.
        """
        address = self._resolve_contract()
        await self.ensure_network()
        try:
            raw = await send_contract_tx(
                self.signer,
                address,
                self.family.contract_abi,
                function_name,
                args,
                timeout=self.timeout,
                poll_interval=self.poll_interval,
            )
        except Exception as exc:
            LOGGER.error("%s on %s failed: %s", function_name, address, exc)
            raise classify(exc, fallback_code, message, hint, **context) from exc
        return TxReceipt.from_rpc(raw)

    async def call(
        self,
        function_name: str,
        args: Optional[list] = None,
        fallback_code: str = "CONTRACT_CALL_ERROR",
        contract_address: Optional[str] = None,
        **context: Any,
    ) -> Any:
        """Read-only call on the active (or given) contract; no network reconciliation."""
        address = self._resolve_contract(contract_address)
        try:
            return await call_contract(
                self.signer, address, self.family.contract_abi, function_name, args
            )
        except Exception as exc:
            raise classify(
                exc, fallback_code, f"Failed to call {function_name}", **context
            ) from exc

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    async def deploy_factory(self) -> DeploymentRecord:
        """
        Deploy the family's factory contract.

        Returns:
            Deployment record of the factory

        Raises:
            DDCError: FACTORY_ALREADY_SET, MISSING_BYTECODE, network errors,
                classified transport errors (fallback FACTORY_DEPLOYMENT_ERROR),
                CONFIG_SERVICE_ERROR if the write-back fails
        """
        if self.state.factory_address:
            raise DDCError(
                f"Factory already deployed at {self.state.factory_address}",
                "FACTORY_ALREADY_SET",
                {"factory_address": self.state.factory_address},
            )
        bytecode = load_bytecode(self.family.factory_artifact, self.artifacts_dir)
        await self.ensure_network()

        LOGGER.info("Deploying %s factory contract", self.family.display_name)
        try:
            raw, factory_address = await deploy_contract(
                self.signer,
                self.family.factory_abi,
                bytecode,
                timeout=self.timeout,
                poll_interval=self.poll_interval,
            )
        except Exception as exc:
            LOGGER.error("Factory deployment failed: %s", exc)
            raise classify(
                exc,
                "FACTORY_DEPLOYMENT_ERROR",
                f"Failed to deploy {self.family.display_name} factory",
            ) from exc
        receipt = TxReceipt.from_rpc(raw)

        self.state.factory_address = factory_address
        await self.config_service.set_factory_address(
            await self.signer_address(), factory_address, self.family.tag
        )
        LOGGER.info("Factory deployed at %s", factory_address)
        return DeploymentRecord(factory_address, receipt.transaction_hash, receipt.block_number)

    async def deploy_contract(self, name: str, symbol: str) -> DeploymentRecord:
        """
        Deploy a child contract through the factory.

        The child's address is taken only from the factory's deployment
        event matching ``(name, symbol)``.

        Raises:
            DDCError: INVALID_PARAMETER, FACTORY_NOT_DEPLOYED (both before any
                network call), EVENT_PARSE_ERROR, classified transport errors
                (fallback DEPLOYMENT_ERROR), CONFIG_SERVICE_ERROR
        """
        require_text(name, "Contract name")
        require_text(symbol, "Contract symbol")
        factory_address = self._require_factory()

        await self.ensure_network()
        try:
            raw = await send_contract_tx(
                self.signer,
                factory_address,
                self.family.factory_abi,
                self.family.deploy_method,
                [name, symbol],
                timeout=self.timeout,
                poll_interval=self.poll_interval,
            )
        except Exception as exc:
            LOGGER.error("Contract deployment failed: %s", exc)
            raise classify(
                exc,
                "DEPLOYMENT_ERROR",
                f"Failed to deploy {self.family.display_name}",
                "The deployment might be rejected (duplicate name/symbol, or permission issue).",
                name=name,
                symbol=symbol,
            ) from exc
        receipt = TxReceipt.from_rpc(raw)

        address = self.factory_verifier.deployment_address(
            receipt, self.family.deployed_event, name, symbol
        )
        self.state.add_deployed(address)
        await self.config_service.set_contract_address(
            await self.signer_address(), address, self.family.tag
        )
        self.state.contract_address = address
        LOGGER.info("%s deployed at %s", self.family.display_name, address)
        return DeploymentRecord(address, receipt.transaction_hash, receipt.block_number)

    # ------------------------------------------------------------------
    # Common writes
    # ------------------------------------------------------------------

    async def transfer_ownership(self, new_owner: str) -> str:
        contract_address = self._require_contract()
        new_owner = validate_address(new_owner, "New owner address")
        receipt = await self.send(
            "transferOwnership",
            [new_owner],
            "TRANSFER_OWNERSHIP_ERROR",
            "Failed to transfer ownership",
            new_owner=new_owner,
        )
        await self.config_service.transfer_contract_owner(
            await self.signer_address(), contract_address, self.family.tag, new_owner
        )
        return receipt.transaction_hash

    async def set_base_uri(self, base_uri: str) -> str:
        self._require_contract()
        receipt = await self.send(
            "setBaseURI",
            [base_uri],
            "SET_BASE_URI_ERROR",
            "Failed to set base URI",
            "Please check if you have the required permissions.",
            base_uri=base_uri,
        )
        return receipt.transaction_hash

    # ------------------------------------------------------------------
    # Common reads
    # ------------------------------------------------------------------

    async def get_name(self, contract_address: Optional[str] = None) -> str:
        return await self.call("name", [], "GET_NAME_ERROR", contract_address)

    async def get_symbol(self, contract_address: Optional[str] = None) -> str:
        return await self.call("symbol", [], "GET_SYMBOL_ERROR", contract_address)

    async def get_owner(self, contract_address: Optional[str] = None) -> str:
        return await self.call("owner", [], "GET_OWNER_ERROR", contract_address)

    async def get_owner_of(self, token_id: int, contract_address: Optional[str] = None) -> str:
        return await self.call(
            "ownerOf", [token_id], "GET_OWNER_OF_ERROR", contract_address, token_id=token_id
        )

    async def get_token_uri(self, token_id: int, contract_address: Optional[str] = None) -> str:
        return await self.call(
            "tokenURI", [token_id], "GET_TOKEN_URI_ERROR", contract_address, token_id=token_id
        )


__all__ = ["ContractManager", "ManagerParams", "ManagerState"]
