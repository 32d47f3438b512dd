"""
ddcmarket CLI

Command-line interface for deploying and operating DDC NFT and Membership
contracts.

Chain commands sign with the fixed-endpoint signer built from PRIVATE_KEY
and use the network reported by the configuration service.

Commands:
  init             - Create a signer key if none exists
  whoami           - Show current wallet address
  key-hash         - Compute the key hash of a key
  config           - Show the configuration service's view of this wallet
  deploy-factory   - Deploy the family's factory contract
  deploy-contract  - Deploy a child contract through the factory
  addresses        - Show the factory and known deployed addresses
  info             - Show name, symbol and owner of a contract
  nft              - DDCNFT operations (mint, transfer, destroy, pause, unpause)
  membership       - Membership operations (mint, destroy, snapshot, members)
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import replace
from typing import Any, Awaitable, Optional

import click

from . import __version__
from .chain.signer import FixedEndpointSigner
from .config import Settings, generate_eoa, load_private_key, save_private_key
from .errors import DDCError, classify
from .families import FAMILIES, get_family
from .lifecycle import ContractManager, ManagerParams
from .operations import MembershipOperations, NFTOperations
from .service import HttpConfigService
from .utils import get_key_hash

LOGGER = logging.getLogger(__name__)

FAMILY_OPTION = click.option(
    "--family",
    type=click.Choice(sorted(FAMILIES)),
    default="nft",
    show_default=True,
    help="Contract family",
)


# ============ Helpers ============


def _fail(error: DDCError) -> None:
    click.secho(f"ERROR [{error.code}]: {error.message}", fg="red", err=True)
    sys.exit(error.exit_code)


def _run(coro: Awaitable[Any]) -> Any:
    try:
        return asyncio.run(coro)
    except DDCError as exc:
        _fail(exc)


async def _open_manager(
    settings: Settings,
    family_tag: str,
    contract: Optional[str] = None,
) -> ContractManager:
    """Build a fixed-endpoint signer and initialize a manager for it."""
    family = get_family(family_tag)
    signer_key = load_private_key()
    service = HttpConfigService(settings.config_service)

    wallet = FixedEndpointSigner(signer_key, "").account.address
    try:
        remote = await service.get_config(wallet, family)
    except Exception as exc:
        raise classify(exc, "DDC_CONFIG_ERROR", "Failed to get DDC config", wallet=wallet) from exc
    signer = FixedEndpointSigner(signer_key, settings.rpc_url or remote.network.rpc_url)

    manager = await ContractManager.init(
        ManagerParams(
            family=family,
            wallet_address=wallet,
            signer=signer,
            config_service=service,
            debug=settings.log_level == "DEBUG",
            artifacts_dir=settings.artifacts_dir,
            remote_config=remote,
        )
    )
    if contract:
        manager.set_contract_address(contract)
    return manager


# ============ Main CLI Group ============


@click.group()
@click.version_option(version=__version__, prog_name="ddcmarket")
@click.option(
    "--log-level",
    envvar="DDC_LOG_LEVEL",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level",
)
@click.option(
    "--config-service",
    envvar="DDC_CONFIG_SERVICE",
    default=None,
    help="Configuration service URL",
)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], config_service: Optional[str]) -> None:
    """ddcmarket - DDC NFT and Membership contract toolkit."""
    settings = Settings.load()
    if log_level:
        settings = replace(settings, log_level=log_level.upper())
    if config_service:
        settings = replace(settings, config_service=config_service)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = settings


# ============ Identity ============


@cli.command()
@click.option("--force", is_flag=True, help="Replace an existing key")
def init(force: bool) -> None:
    """Create a signer key in ~/.ddcmarket/.env if none exists."""
    if not force:
        try:
            existing = FixedEndpointSigner(load_private_key(), "")
        except DDCError as exc:
            if exc.code != "MISSING_PRIVATE_KEY":
                _fail(
                    DDCError(
                        "Configured PRIVATE_KEY is invalid. Use --force to replace it.",
                        exc.code,
                        exc.details,
                    )
                )
            existing = None
        if existing is not None:
            click.echo(f"Key already configured for {existing.account.address}")
            click.echo("Use --force to replace it.")
            return

    private_key, address = generate_eoa()
    env_path = save_private_key(private_key)
    click.secho("Signer key created", fg="green")
    click.echo(f"  Address: {address}")
    click.echo(f"  Saved:   {env_path}")


@cli.command()
def whoami() -> None:
    """Show current wallet identity."""
    try:
        signer = FixedEndpointSigner(load_private_key(), "")
    except DDCError as exc:
        _fail(exc)
    click.echo(f"Address: {signer.account.address}")


@cli.command("key-hash")
@click.argument("key")
def key_hash(key: str) -> None:
    """Print keccak256(KEY), the hash submitted instead of the key."""
    try:
        click.echo(get_key_hash(key))
    except DDCError as exc:
        _fail(exc)


@cli.command()
@FAMILY_OPTION
@click.pass_obj
def config(settings: Settings, family: str) -> None:
    """Show the configuration service's view of this wallet."""

    async def _show() -> None:
        signer = FixedEndpointSigner(load_private_key(), "")
        remote = await HttpConfigService(settings.config_service).get_config(
            signer.account.address, get_family(family)
        )
        network = remote.network
        click.echo(f"  Network:   {network.display_name} (chain {network.chain_id})")
        click.echo(f"  RPC:       {network.rpc_url}")
        click.echo(f"  Currency:  {network.native_currency.symbol}")
        if network.block_explorer:
            click.echo(f"  Explorer:  {network.block_explorer}")
        click.echo(f"  Factory:   {remote.factory_address or '(none)'}")
        click.echo(f"  Metadata:  {remote.metadata_url or '(none)'}")
        for address in remote.known_deployed_addresses:
            click.echo(f"  Deployed:  {address}")

    _run(_show())


# ============ Deployment ============


@cli.command("deploy-factory")
@FAMILY_OPTION
@click.pass_obj
def deploy_factory(settings: Settings, family: str) -> None:
    """Deploy the factory contract for a family."""

    async def _deploy() -> None:
        manager = await _open_manager(settings, family)
        record = await manager.deploy_factory()
        click.secho("Factory deployed", fg="green")
        click.echo(f"  Address: {record.contract_address}")
        click.echo(f"  Tx:      {record.transaction_hash}")
        click.echo(f"  Block:   {record.block_number}")

    _run(_deploy())


@cli.command("deploy-contract")
@click.argument("name")
@click.argument("symbol")
@FAMILY_OPTION
@click.pass_obj
def deploy_contract(settings: Settings, name: str, symbol: str, family: str) -> None:
    """Deploy a NAME/SYMBOL contract through the family's factory."""

    async def _deploy() -> None:
        manager = await _open_manager(settings, family)
        record = await manager.deploy_contract(name, symbol)
        click.secho(f"{manager.family.display_name} deployed", fg="green")
        click.echo(f"  Address: {record.contract_address}")
        click.echo(f"  Tx:      {record.transaction_hash}")
        click.echo(f"  Block:   {record.block_number}")

    _run(_deploy())


@cli.command()
@FAMILY_OPTION
@click.pass_obj
def addresses(settings: Settings, family: str) -> None:
    """Show the factory and known deployed addresses."""

    async def _show() -> None:
        manager = await _open_manager(settings, family)
        click.echo(f"  Factory: {manager.get_factory_address() or '(none)'}")
        for address in manager.get_all_deployed_addresses():
            click.echo(f"  {address}")

    _run(_show())


@cli.command()
@click.argument("contract")
@FAMILY_OPTION
@click.pass_obj
def info(settings: Settings, contract: str, family: str) -> None:
    """Show name, symbol and owner of CONTRACT."""

    async def _show() -> None:
        manager = await _open_manager(settings, family, contract)
        click.echo(f"  Name:   {await manager.get_name()}")
        click.echo(f"  Symbol: {await manager.get_symbol()}")
        click.echo(f"  Owner:  {await manager.get_owner()}")

    _run(_show())


# ============ NFT ============


CONTRACT_OPTION = click.option("--contract", required=True, help="Contract address")


@cli.group()
def nft() -> None:
    """DDCNFT operations."""


@nft.command("mint")
@click.argument("token_id", type=int)
@click.argument("key_hash")
@CONTRACT_OPTION
@click.pass_obj
def nft_mint(settings: Settings, token_id: int, key_hash: str, contract: str) -> None:
    """Mint TOKEN_ID bound to KEY_HASH."""

    async def _mint() -> None:
        ops = NFTOperations(await _open_manager(settings, "nft", contract))
        click.echo(f"Tx: {await ops.mint(token_id, key_hash)}")

    _run(_mint())


@nft.command("transfer")
@click.argument("to_hash")
@click.argument("token_id", type=int)
@click.argument("key")
@CONTRACT_OPTION
@click.pass_obj
def nft_transfer(settings: Settings, to_hash: str, token_id: int, key: str, contract: str) -> None:
    """Transfer TOKEN_ID to TO_HASH, authorized by KEY."""

    async def _transfer() -> None:
        ops = NFTOperations(await _open_manager(settings, "nft", contract))
        click.echo(f"Tx: {await ops.transfer(to_hash, token_id, key)}")

    _run(_transfer())


@nft.command("destroy")
@click.argument("token_id", type=int)
@click.argument("key")
@CONTRACT_OPTION
@click.pass_obj
def nft_destroy(settings: Settings, token_id: int, key: str, contract: str) -> None:
    """Destroy TOKEN_ID, authorized by KEY."""

    async def _destroy() -> None:
        ops = NFTOperations(await _open_manager(settings, "nft", contract))
        click.echo(f"Tx: {await ops.destroy(token_id, key)}")

    _run(_destroy())


@nft.command("pause")
@CONTRACT_OPTION
@click.pass_obj
def nft_pause(settings: Settings, contract: str) -> None:
    """Pause the contract."""

    async def _pause() -> None:
        ops = NFTOperations(await _open_manager(settings, "nft", contract))
        click.echo(f"Tx: {await ops.pause()}")

    _run(_pause())


@nft.command("unpause")
@CONTRACT_OPTION
@click.pass_obj
def nft_unpause(settings: Settings, contract: str) -> None:
    """Unpause the contract."""

    async def _unpause() -> None:
        ops = NFTOperations(await _open_manager(settings, "nft", contract))
        click.echo(f"Tx: {await ops.unpause()}")

    _run(_unpause())


# ============ Membership ============


@cli.group()
def membership() -> None:
    """Membership operations."""


@membership.command("mint")
@click.argument("token_id", type=int)
@click.argument("address_hash")
@CONTRACT_OPTION
@click.pass_obj
def membership_mint(settings: Settings, token_id: int, address_hash: str, contract: str) -> None:
    """Mint membership TOKEN_ID to ADDRESS_HASH."""

    async def _mint() -> None:
        ops = MembershipOperations(await _open_manager(settings, "membership", contract))
        result = await ops.mint_token(token_id, address_hash)
        click.echo(f"Token: {result.token_id} -> {result.to}")
        click.echo(f"Tx:    {result.transaction_hash}")
        if not result.verified:
            click.secho("Warning: mint could not be verified from events", fg="yellow")

    _run(_mint())


@membership.command("destroy")
@click.argument("token_id", type=int)
@click.argument("address_hash")
@CONTRACT_OPTION
@click.pass_obj
def membership_destroy(
    settings: Settings, token_id: int, address_hash: str, contract: str
) -> None:
    """Destroy membership TOKEN_ID held by ADDRESS_HASH."""

    async def _destroy() -> None:
        ops = MembershipOperations(await _open_manager(settings, "membership", contract))
        result = await ops.destroy_token(token_id, address_hash)
        click.echo(f"Token: {result.token_id} <- {result.from_hash}")
        click.echo(f"Tx:    {result.transaction_hash}")
        if not result.verified:
            click.secho("Warning: destroy could not be verified from events", fg="yellow")

    _run(_destroy())


@membership.command("snapshot")
@CONTRACT_OPTION
@click.pass_obj
def membership_snapshot(settings: Settings, contract: str) -> None:
    """Record the current member set."""

    async def _snapshot() -> None:
        ops = MembershipOperations(await _open_manager(settings, "membership", contract))
        click.echo(f"Snapshot: {await ops.create_snapshot()}")

    _run(_snapshot())


@membership.command("members")
@click.argument("snapshot_id", type=int, required=False)
@CONTRACT_OPTION
@click.pass_obj
def membership_members(settings: Settings, snapshot_id: Optional[int], contract: str) -> None:
    """List member hashes of SNAPSHOT_ID (default: latest)."""

    async def _members() -> None:
        ops = MembershipOperations(await _open_manager(settings, "membership", contract))
        target = snapshot_id if snapshot_id is not None else await ops.get_latest_snapshot_id()
        members = await ops.get_member_snapshot(target)
        click.echo(f"Snapshot {target}: {len(members)} member(s)")
        for member in members:
            click.echo(f"  {member}")

    _run(_members())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
