"""
Family-specific operations composed over a ``ContractManager``.

Writes follow one shape: explicit guards and input validation, then the
transaction through the manager (network reconciliation, submission,
classification), then post-hoc verification.  Verification after a mined
transaction is best-effort and downgraded to a warning, except where the
event carries a value there is no substitute for (snapshot ids).
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import DDCError
from .lifecycle import ContractManager
from .models import DestroyResult, MintResult
from .utils import is_zero_hash, require_bytes32, require_text, require_token_id

LOGGER = logging.getLogger(__name__)


def _require_family(manager: ContractManager, tag: str) -> ContractManager:
    if manager.family.tag != tag:
        raise DDCError(
            f"{manager.family.display_name} manager cannot run {tag} operations",
            "INVALID_PARAMETER",
            {"family": manager.family.tag, "expected": tag},
        )
    return manager


class NFTOperations:
    """DDCNFT writes and reads."""

    def __init__(self, manager: ContractManager) -> None:
        self.manager = _require_family(manager, "nft")

    async def mint(self, token_id: int, key_hash: str) -> str:
        """
        Mint a token to the contract owner.

        Args:
            token_id: Non-zero token id
            key_hash: keccak256 of the holder's key (bytes32, non-zero)

        Returns:
            Transaction hash
        """
        self.manager._require_contract()
        token_id = require_token_id(token_id)
        key_hash = require_bytes32(key_hash, "keyHash")
        if is_zero_hash(key_hash):
            raise DDCError(
                "keyHash cannot be the bytes32 zero value. Provide a key hash "
                "generated from keccak256(key).",
                "INVALID_KEY_HASH",
                {"key_hash": key_hash},
            )

        receipt = await self.manager.send(
            "mint",
            [token_id, bytes.fromhex(key_hash[2:])],
            "MINT_ERROR",
            "Failed to mint NFT",
            "The token may already exist, you may not have minting permission, "
            "or the contract may be paused.",
            token_id=token_id,
            key_hash=key_hash,
        )
        try:
            self.manager.verifier.verify_mint(receipt, token_id)
        except DDCError as exc:
            LOGGER.warning("Mint completed but event verification failed: %s", exc)
        return receipt.transaction_hash

    async def transfer(self, to_hash: str, token_id: int, key: str) -> str:
        self.manager._require_contract()
        token_id = require_token_id(token_id)
        to_hash = require_bytes32(to_hash, "toHash")
        require_text(key, "Transfer key")

        receipt = await self.manager.send(
            "transfer",
            [bytes.fromhex(to_hash[2:]), token_id, key],
            "TRANSFER_ERROR",
            "Failed to transfer NFT",
            "You may not own this token, the key may be invalid, or the contract may be paused.",
            to_hash=to_hash,
            token_id=token_id,
        )
        try:
            self.manager.verifier.verify_transfer(receipt, token_id, to_hash)
        except DDCError as exc:
            LOGGER.warning("Transfer completed but event verification failed: %s", exc)
        return receipt.transaction_hash

    async def destroy(self, token_id: int, key: str) -> str:
        self.manager._require_contract()
        token_id = require_token_id(token_id)
        require_text(key, "Destroy key")

        receipt = await self.manager.send(
            "destroy",
            [token_id, key],
            "DESTROY_ERROR",
            "Failed to destroy NFT",
            "The token may not exist, the key may be invalid, you may not have destroy "
            "permission, or the contract may be paused.",
            token_id=token_id,
        )
        try:
            self.manager.verifier.verify_destroy_transfer(receipt, token_id)
        except DDCError as exc:
            LOGGER.warning("Destroy completed but Transfer event verification failed: %s", exc)
        try:
            self.manager.verifier.verify_token_destroyed(receipt, token_id)
        except DDCError as exc:
            LOGGER.warning(
                "Destroy completed but TokenDestroyed event verification failed: %s", exc
            )
        return receipt.transaction_hash

    async def pause(self) -> str:
        self.manager._require_contract()
        receipt = await self.manager.send(
            "pause", [], "PAUSE_ERROR", "Failed to pause contract",
            "Please check if you have the required permissions.",
        )
        return receipt.transaction_hash

    async def unpause(self) -> str:
        self.manager._require_contract()
        receipt = await self.manager.send(
            "unpause", [], "UNPAUSE_ERROR", "Failed to unpause contract",
            "Please check if you have the required permissions.",
        )
        return receipt.transaction_hash

    async def is_paused(self, contract_address: Optional[str] = None) -> bool:
        return await self.manager.call("paused", [], "CONTRACT_CALL_ERROR", contract_address)


class MembershipOperations:
    """Membership writes, snapshots and reads."""

    def __init__(self, manager: ContractManager) -> None:
        self.manager = _require_family(manager, "membership")

    async def mint_token(self, token_id: int, address_hash: str) -> MintResult:
        """
        Mint a membership token to a member's address hash.

        If the Transfer event cannot be verified the result is built from
        the requested values and marked ``verified=False``.
        """
        self.manager._require_contract()
        token_id = require_token_id(token_id)
        address_hash = require_bytes32(address_hash, "addressHash")

        receipt = await self.manager.send(
            "mint",
            [token_id, bytes.fromhex(address_hash[2:])],
            "MINT_ERROR",
            "Failed to mint membership",
            "The token may already exist or you may not have minting permission.",
            token_id=token_id,
            address_hash=address_hash,
        )
        try:
            fields = self.manager.verifier.verify_mint(receipt, token_id, address_hash)
        except DDCError as exc:
            LOGGER.warning("Mint completed but event verification failed: %s", exc)
            return MintResult(
                token_id, address_hash, receipt.transaction_hash, receipt.block_number, False
            )
        return MintResult(
            fields["token_id"], fields["to"], receipt.transaction_hash, receipt.block_number
        )

    async def destroy_token(self, token_id: int, address_hash: str) -> DestroyResult:
        self.manager._require_contract()
        token_id = require_token_id(token_id)
        address_hash = require_bytes32(address_hash, "addressHash")

        receipt = await self.manager.send(
            "destroy",
            [token_id, bytes.fromhex(address_hash[2:])],
            "DESTROY_ERROR",
            "Failed to destroy membership",
            "The token may not exist or you may not have permission to destroy it.",
            token_id=token_id,
            address_hash=address_hash,
        )
        try:
            fields = self.manager.verifier.verify_burn(receipt, token_id, address_hash)
        except DDCError as exc:
            LOGGER.warning("Destroy completed but event verification failed: %s", exc)
            return DestroyResult(
                token_id, address_hash, receipt.transaction_hash, receipt.block_number, False
            )
        return DestroyResult(
            fields["token_id"], fields["from"], receipt.transaction_hash, receipt.block_number
        )

    async def create_snapshot(self) -> int:
        """
        Record the current member set on-chain.

        Returns:
            The new snapshot id

        Raises:
            DDCError: SNAPSHOT_EVENT_NOT_FOUND if the id cannot be read from
                the receipt (the snapshot may exist regardless)
        """
        self.manager._require_contract()
        receipt = await self.manager.send(
            "createSnapshot",
            [],
            "CREATE_SNAPSHOT_ERROR",
            "Failed to create snapshot",
            "You may not have permission to create snapshots.",
        )
        snapshot_id = self.manager.verifier.snapshot_id(receipt)
        LOGGER.info("Snapshot %s created", snapshot_id)
        return snapshot_id

    async def get_total_supply(self) -> int:
        self.manager._require_contract()
        return await self.manager.call("totalSupply", [])

    async def get_member_snapshot(self, snapshot_id: int) -> list[str]:
        """Member hashes of a snapshot; an unknown snapshot reads as empty."""
        self.manager._require_contract()
        try:
            members = await self.manager.call(
                "getMemberSnapshot", [snapshot_id], snapshot_id=snapshot_id
            )
        except DDCError as exc:
            if exc.code != "CONTRACT_CALL_FAILED":
                raise
            LOGGER.warning("Snapshot #%s does not exist, returning empty list", snapshot_id)
            return []
        return list(members or [])

    async def get_latest_snapshot_id(self) -> int:
        contract_address = self.manager._require_contract()
        try:
            return await self.manager.call("getLatestSnapshotId", [])
        except DDCError as exc:
            if exc.code != "CONTRACT_CALL_FAILED":
                raise
            raise DDCError(
                "Contract does not exist or is not deployed at this address",
                "CONTRACT_NOT_FOUND",
                {"contract_address": contract_address},
            ) from exc

    async def is_member_in_snapshot(self, snapshot_id: int, address_hash: str) -> bool:
        self.manager._require_contract()
        address_hash = require_bytes32(address_hash, "addressHash")
        try:
            return await self.manager.call(
                "isMemberInSnapshot",
                [snapshot_id, bytes.fromhex(address_hash[2:])],
                snapshot_id=snapshot_id,
            )
        except DDCError as exc:
            if exc.code != "CONTRACT_CALL_FAILED":
                raise
            return False


__all__ = ["MembershipOperations", "NFTOperations"]
