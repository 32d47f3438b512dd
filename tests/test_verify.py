"""Tests for receipt event decoding and verification."""

from __future__ import annotations

import logging

import pytest

from conftest import (
    CHILD,
    FACTORY,
    KEY_HASH,
    MEMBER_HASH,
    OTHER,
    WALLET,
    ZERO_HASH,
    event_log,
    foreign_log,
)
from ddcmarket.chain.abi import event_topic, find_event
from ddcmarket.errors import DDCError
from ddcmarket.families import MEMBERSHIP_FAMILY, NFT_FAMILY
from ddcmarket.models import TxReceipt
from ddcmarket.verify import TransactionVerifier


def _receipt(*logs: dict) -> TxReceipt:
    return TxReceipt(transaction_hash="0xfeed", block_number=42, status=1, logs=tuple(logs))


def _transfer(from_hash: str, to_hash: str, token_id: int, log_index: int = 0) -> dict:
    return event_log(
        NFT_FAMILY.contract_abi,
        "Transfer",
        {"fromHash": from_hash, "toHash": to_hash, "tokenId": token_id},
        log_index=log_index,
    )


@pytest.fixture()
def verifier() -> TransactionVerifier:
    return TransactionVerifier(NFT_FAMILY.contract_abi)


class TestDecodeEvent:
    def test_skips_undecodable_log(self, verifier: TransactionVerifier) -> None:
        receipt = _receipt(foreign_log(0), _transfer(ZERO_HASH, KEY_HASH, 5, log_index=1))
        fields = verifier.verify_mint(receipt, 5)
        assert fields == {"from": ZERO_HASH, "to": KEY_HASH, "token_id": 5}

    def test_skips_malformed_log_with_matching_topic(self, verifier: TransactionVerifier) -> None:
        entry = find_event(NFT_FAMILY.contract_abi, "Transfer")
        malformed = {"topics": [event_topic(entry), "0x12", "0x34", "0x56"], "data": "0x"}
        receipt = _receipt(malformed, _transfer(ZERO_HASH, KEY_HASH, 5))
        assert verifier.decode_event(receipt, "Transfer").args["tokenId"] == 5

    def test_first_match_in_log_order_wins(self, verifier: TransactionVerifier) -> None:
        receipt = _receipt(_transfer(ZERO_HASH, KEY_HASH, 5), _transfer(ZERO_HASH, MEMBER_HASH, 6, 1))
        assert verifier.decode_event(receipt, "Transfer").args["tokenId"] == 5
        assert len(verifier.decode_events(receipt, "Transfer")) == 2

    def test_absent_event(self, verifier: TransactionVerifier) -> None:
        assert verifier.decode_event(_receipt(foreign_log()), "Transfer") is None


class TestMintChecks:
    def test_missing_event(self, verifier: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            verifier.verify_mint(_receipt(), 5)
        assert excinfo.value.code == "TRANSFER_EVENT_NOT_FOUND"
        assert excinfo.value.details["tx_hash"] == "0xfeed"

    def test_token_id_mismatch(self, verifier: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            verifier.verify_mint(_receipt(_transfer(ZERO_HASH, KEY_HASH, 6)), 5)
        assert excinfo.value.code == "TOKEN_ID_MISMATCH"
        assert excinfo.value.details["actual"] == 6

    def test_recipient_mismatch(self, verifier: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            verifier.verify_mint(_receipt(_transfer(ZERO_HASH, KEY_HASH, 5)), 5, MEMBER_HASH)
        assert excinfo.value.code == "RECIPIENT_MISMATCH"

    def test_recipient_compared_case_insensitively(self, verifier: TransactionVerifier) -> None:
        fields = verifier.verify_mint(
            _receipt(_transfer(ZERO_HASH, KEY_HASH, 5)), 5, KEY_HASH.upper().replace("0X", "0x")
        )
        assert fields["to"] == KEY_HASH

    def test_non_zero_from_only_warns(
        self, verifier: TransactionVerifier, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="ddcmarket.verify"):
            fields = verifier.verify_mint(_receipt(_transfer(MEMBER_HASH, KEY_HASH, 5)), 5)
        assert fields["from"] == MEMBER_HASH
        assert "'from'" in caplog.text


class TestTransferChecks:
    def test_transfer_ok(self, verifier: TransactionVerifier) -> None:
        fields = verifier.verify_transfer(_receipt(_transfer(KEY_HASH, MEMBER_HASH, 5)), 5, MEMBER_HASH)
        assert fields["from"] == KEY_HASH

    def test_transfer_wrong_recipient(self, verifier: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            verifier.verify_transfer(_receipt(_transfer(KEY_HASH, MEMBER_HASH, 5)), 5, KEY_HASH)
        assert excinfo.value.code == "RECIPIENT_MISMATCH"

    def test_generic_transfer_from_mismatch(self, verifier: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            verifier.verify_transfer_event(
                _receipt(_transfer(KEY_HASH, MEMBER_HASH, 5)), 5, expected_from=MEMBER_HASH
            )
        assert excinfo.value.code == "FROM_MISMATCH"

    def test_generic_transfer_to_mismatch(self, verifier: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            verifier.verify_transfer_event(
                _receipt(_transfer(KEY_HASH, MEMBER_HASH, 5)), 5, expected_to=KEY_HASH
            )
        assert excinfo.value.code == "TO_MISMATCH"


class TestDestroyChecks:
    def test_token_destroyed(self, verifier: TransactionVerifier) -> None:
        log = event_log(
            NFT_FAMILY.contract_abi, "TokenDestroyed", {"tokenId": 5, "ownerHash": KEY_HASH}
        )
        assert verifier.verify_token_destroyed(_receipt(log), 5) == {"token_id": 5, "key_hash": KEY_HASH}

    def test_token_destroyed_missing(self, verifier: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            verifier.verify_token_destroyed(_receipt(_transfer(KEY_HASH, ZERO_HASH, 5)), 5)
        assert excinfo.value.code == "TOKEN_DESTROYED_EVENT_NOT_FOUND"

    def test_destroy_transfer(self, verifier: TransactionVerifier) -> None:
        fields = verifier.verify_destroy_transfer(_receipt(_transfer(KEY_HASH, ZERO_HASH, 5)), 5)
        assert fields["to"] == ZERO_HASH


class TestMembershipChecks:
    @pytest.fixture()
    def membership(self) -> TransactionVerifier:
        return TransactionVerifier(MEMBERSHIP_FAMILY.contract_abi)

    def _burn(self, from_hash: str, token_id: int) -> dict:
        return event_log(
            MEMBERSHIP_FAMILY.contract_abi,
            "Transfer",
            {"from": from_hash, "to": ZERO_HASH, "tokenId": token_id},
        )

    def test_burn(self, membership: TransactionVerifier) -> None:
        fields = membership.verify_burn(_receipt(self._burn(MEMBER_HASH, 3)), 3, MEMBER_HASH)
        assert fields == {"from": MEMBER_HASH, "to": ZERO_HASH, "token_id": 3}

    def test_burn_owner_mismatch(self, membership: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            membership.verify_burn(_receipt(self._burn(KEY_HASH, 3)), 3, MEMBER_HASH)
        assert excinfo.value.code == "OWNER_MISMATCH"

    def test_burn_missing(self, membership: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            membership.verify_burn(_receipt(), 3, MEMBER_HASH)
        assert excinfo.value.code == "BURN_EVENT_NOT_FOUND"

    def test_snapshot_id(self, membership: TransactionVerifier) -> None:
        log = event_log(
            MEMBERSHIP_FAMILY.contract_abi, "SnapshotCreated", {"snapshotId": 7, "memberCount": 2}
        )
        assert membership.snapshot_id(_receipt(foreign_log(), log)) == 7

    def test_snapshot_missing_is_fatal(self, membership: TransactionVerifier) -> None:
        with pytest.raises(DDCError) as excinfo:
            membership.snapshot_id(_receipt(foreign_log()))
        assert excinfo.value.code == "SNAPSHOT_EVENT_NOT_FOUND"


class TestDeploymentAddress:
    @pytest.fixture()
    def factory(self) -> TransactionVerifier:
        return TransactionVerifier(NFT_FAMILY.factory_abi)

    def _deployed(self, child: str, name: str, symbol: str, log_index: int = 0) -> dict:
        return event_log(
            NFT_FAMILY.factory_abi,
            "DDCNFTDeployed",
            {"contractAddress": child, "owner": WALLET, "name": name, "symbol": symbol},
            address=FACTORY,
            log_index=log_index,
        )

    def test_matching_event(self, factory: TransactionVerifier) -> None:
        receipt = _receipt(
            self._deployed(OTHER, "Other", "OTH"), self._deployed(CHILD.lower(), "X", "Y", 1)
        )
        assert factory.deployment_address(receipt, "DDCNFTDeployed", "X", "Y") == CHILD

    def test_no_matching_event(self, factory: TransactionVerifier) -> None:
        receipt = _receipt(self._deployed(OTHER, "Other", "OTH"))
        with pytest.raises(DDCError) as excinfo:
            factory.deployment_address(receipt, "DDCNFTDeployed", "X", "Y")
        err = excinfo.value
        assert err.code == "EVENT_PARSE_ERROR"
        assert err.details == {"tx_hash": "0xfeed", "block_number": 42, "name": "X", "symbol": "Y"}
