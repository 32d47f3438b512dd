"""
CLI integration tests using Click's test runner.

Chain commands run against the in-process ``FakeChain``: ``_open_manager``
is replaced with a manager bound to it, so no network access is needed.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Optional
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import (
    CHILD,
    FACTORY,
    KEY_HASH,
    MEMBER_HASH,
    TEST_PRIVATE_KEY,
    WALLET,
    ZERO_HASH,
    FakeChain,
    FakeConfigService,
    event_log,
)
from ddcmarket.chain.signer import DelegatedSigner
from ddcmarket.cli import cli
from ddcmarket.config import load_private_key
from ddcmarket.families import MEMBERSHIP_FAMILY, NFT_FAMILY, get_family
from ddcmarket.lifecycle import ContractManager, ManagerState
from ddcmarket.models import ChainEndpoint


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def ddcmarket_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point ~/.ddcmarket/.env at a temporary file with no key in the environment."""
    monkeypatch.delenv("PRIVATE_KEY", raising=False)
    env_path = tmp_path / ".ddcmarket" / ".env"
    with patch("ddcmarket.config.DDCMARKET_ENV", env_path):
        yield env_path


@pytest.fixture()
def fake_manager(
    chain: FakeChain, polygon: ChainEndpoint
) -> Iterator[tuple[FakeChain, FakeConfigService]]:
    """Replace manager construction with one bound to ``chain``."""
    service = FakeConfigService(polygon, factory_address=FACTORY)

    async def _open(settings: object, family_tag: str, contract: Optional[str] = None) -> ContractManager:
        manager = ContractManager(
            get_family(family_tag),
            DelegatedSigner(chain),
            service,
            ManagerState(network=polygon, factory_address=FACTORY),
            poll_interval=0,
        )
        if contract:
            manager.set_contract_address(contract)
        return manager

    with patch("ddcmarket.cli._open_manager", _open):
        yield chain, service


class TestVersionAndHelpers:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.3.0" in result.output

    def test_key_hash(self, runner: CliRunner, ddcmarket_env: Path) -> None:
        result = runner.invoke(cli, ["key-hash", "abc"])
        assert result.exit_code == 0
        assert "0x4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45" in result.output


class TestIdentity:
    def test_whoami(self, runner: CliRunner, ddcmarket_env: Path) -> None:
        with patch.dict(os.environ, {"PRIVATE_KEY": TEST_PRIVATE_KEY}):
            result = runner.invoke(cli, ["whoami"])
        assert result.exit_code == 0
        assert f"Address: {WALLET}" in result.output

    def test_whoami_without_key(self, runner: CliRunner, ddcmarket_env: Path) -> None:
        result = runner.invoke(cli, ["whoami"])
        assert result.exit_code == 1
        assert "ERROR [MISSING_PRIVATE_KEY]" in result.output

    def test_init_creates_key(self, runner: CliRunner, ddcmarket_env: Path) -> None:
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "Signer key created" in result.output
        assert ddcmarket_env.exists()
        assert load_private_key().startswith("0x")

    def test_init_keeps_existing_key(self, runner: CliRunner, ddcmarket_env: Path) -> None:
        with patch.dict(os.environ, {"PRIVATE_KEY": TEST_PRIVATE_KEY}):
            result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert f"Key already configured for {WALLET}" in result.output
        assert not ddcmarket_env.exists()

    def test_init_refuses_to_replace_invalid_key(
        self, runner: CliRunner, ddcmarket_env: Path
    ) -> None:
        ddcmarket_env.parent.mkdir(parents=True)
        ddcmarket_env.write_text("PRIVATE_KEY=0xnot-a-key\n", encoding="utf-8")

        result = runner.invoke(cli, ["init"])

        assert result.exit_code == 1
        assert "Use --force to replace it." in result.output
        assert "PRIVATE_KEY=0xnot-a-key" in ddcmarket_env.read_text(encoding="utf-8")

    def test_init_force_replaces_invalid_key(
        self, runner: CliRunner, ddcmarket_env: Path
    ) -> None:
        ddcmarket_env.parent.mkdir(parents=True)
        ddcmarket_env.write_text("PRIVATE_KEY=0xnot-a-key\n", encoding="utf-8")

        result = runner.invoke(cli, ["init", "--force"])

        assert result.exit_code == 0
        assert "0xnot-a-key" not in ddcmarket_env.read_text(encoding="utf-8")


class TestDeployment:
    def test_deploy_contract(
        self,
        runner: CliRunner,
        ddcmarket_env: Path,
        fake_manager: tuple[FakeChain, FakeConfigService],
    ) -> None:
        chain, service = fake_manager
        chain.queue_receipt(
            logs=[
                event_log(
                    NFT_FAMILY.factory_abi,
                    "DDCNFTDeployed",
                    {"contractAddress": CHILD, "owner": WALLET, "name": "X", "symbol": "Y"},
                    address=FACTORY,
                )
            ],
            block_number=55,
        )

        result = runner.invoke(cli, ["deploy-contract", "X", "Y"])

        assert result.exit_code == 0, result.output
        assert "DDCNFT deployed" in result.output
        assert f"Address: {CHILD}" in result.output
        assert "Block:   55" in result.output
        assert service.writes == [("set_contract_address", (WALLET, CHILD, "nft"))]

    def test_deploy_contract_failure_exit_code(
        self,
        runner: CliRunner,
        ddcmarket_env: Path,
        fake_manager: tuple[FakeChain, FakeConfigService],
    ) -> None:
        chain, _ = fake_manager
        chain.queue_receipt(logs=[])

        result = runner.invoke(cli, ["deploy-contract", "X", "Y"])

        assert result.exit_code == 1
        assert "ERROR [EVENT_PARSE_ERROR]" in result.output

    def test_addresses(
        self,
        runner: CliRunner,
        ddcmarket_env: Path,
        fake_manager: tuple[FakeChain, FakeConfigService],
    ) -> None:
        result = runner.invoke(cli, ["addresses", "--family", "membership"])
        assert result.exit_code == 0
        assert f"Factory: {FACTORY}" in result.output


class TestNFTCommands:
    def test_mint(
        self,
        runner: CliRunner,
        ddcmarket_env: Path,
        fake_manager: tuple[FakeChain, FakeConfigService],
    ) -> None:
        chain, _ = fake_manager
        chain.queue_receipt(
            logs=[
                event_log(
                    NFT_FAMILY.contract_abi,
                    "Transfer",
                    {"fromHash": ZERO_HASH, "toHash": KEY_HASH, "tokenId": 5},
                )
            ]
        )

        result = runner.invoke(cli, ["nft", "mint", "5", KEY_HASH, "--contract", CHILD])

        assert result.exit_code == 0, result.output
        assert "Tx: 0x" in result.output
        assert chain.sent[0]["to"] == CHILD

    def test_mint_invalid_key_hash(
        self,
        runner: CliRunner,
        ddcmarket_env: Path,
        fake_manager: tuple[FakeChain, FakeConfigService],
    ) -> None:
        chain, _ = fake_manager
        result = runner.invoke(cli, ["nft", "mint", "5", ZERO_HASH, "--contract", CHILD])
        assert result.exit_code == 1
        assert "ERROR [INVALID_KEY_HASH]" in result.output
        assert chain.sent == []

    def test_contract_option_required(self, runner: CliRunner, ddcmarket_env: Path) -> None:
        result = runner.invoke(cli, ["nft", "pause"])
        assert result.exit_code == 2


class TestMembershipCommands:
    def test_mint_unverified_warns(
        self,
        runner: CliRunner,
        ddcmarket_env: Path,
        fake_manager: tuple[FakeChain, FakeConfigService],
    ) -> None:
        chain, _ = fake_manager
        chain.queue_receipt(logs=[])

        result = runner.invoke(
            cli, ["membership", "mint", "3", MEMBER_HASH, "--contract", CHILD]
        )

        assert result.exit_code == 0, result.output
        assert f"Token: 3 -> {MEMBER_HASH}" in result.output
        assert "could not be verified" in result.output

    def test_members_of_latest_snapshot(
        self,
        runner: CliRunner,
        ddcmarket_env: Path,
        fake_manager: tuple[FakeChain, FakeConfigService],
    ) -> None:
        chain, _ = fake_manager
        abi = MEMBERSHIP_FAMILY.contract_abi
        chain.set_call(abi, "getLatestSnapshotId", 2)
        chain.set_call(abi, "getMemberSnapshot", [MEMBER_HASH])

        result = runner.invoke(cli, ["membership", "members", "--contract", CHILD])

        assert result.exit_code == 0, result.output
        assert "Snapshot 2: 1 member(s)" in result.output
        assert MEMBER_HASH in result.output
