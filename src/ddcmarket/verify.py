"""
Post-hoc verification of confirmed transactions.

``TransactionVerifier`` decodes the events of a mined receipt against one
contract interface and checks them against what the caller asked for.
Every check raises on mismatch or absence; whether that is fatal is the
calling operation's decision (best-effort operations catch and warn,
strict ones let it propagate).

Transfer-style events are read positionally as ``(from, to, tokenId)`` so
that contracts naming those fields differently share one set of checks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from eth_utils import to_checksum_address

from .chain.abi import decode_log
from .errors import DDCError
from .models import DecodedEvent, TxReceipt
from .utils import BYTES32_ZERO

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldCheck:
    """One constraint on a decoded field.

    A check with ``code=None`` only warns when it fails.
    """

    field: str
    expected: Any
    code: Optional[str]
    label: str


@dataclass(frozen=True)
class EventExpectation:
    event_name: str
    not_found_code: str
    not_found_message: str
    checks: tuple[FieldCheck, ...] = field(default_factory=tuple)


def _same(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.lower() == expected.lower()
    return actual == expected


def transfer_fields(event: DecodedEvent) -> dict[str, Any]:
    """Read a transfer-style event as ``{"from", "to", "token_id"}``."""
    values = list(event.args.values())
    return {"from": values[0], "to": values[1], "token_id": int(values[2])}


class TransactionVerifier:
    """
    Event decoding and checks for one contract interface.

    Args:
        abi: ABI the receipt logs are decoded against
    """

    def __init__(self, abi: Any) -> None:
        self.abi = abi

    def decode_event(self, receipt: TxReceipt, event_name: str) -> Optional[DecodedEvent]:
        """
        Return the first log in receipt order that decodes to ``event_name``.

        Logs that do not decode (other contracts, other events, malformed
        data) are skipped.

        Returns:
            The decoded event, or None if no log matches
        """
        for log in receipt.logs:
            try:
                event = decode_log(self.abi, log)
            except Exception as exc:
                LOGGER.debug("Skipping undecodable log %s: %s", log.get("logIndex"), exc)
                continue
            if event is not None and event.name == event_name:
                return event
        return None

    def decode_events(self, receipt: TxReceipt, event_name: str) -> list[DecodedEvent]:
        events = []
        for log in receipt.logs:
            try:
                event = decode_log(self.abi, log)
            except Exception:
                continue
            if event is not None and event.name == event_name:
                events.append(event)
        return events

    def verify(
        self,
        receipt: TxReceipt,
        expectation: EventExpectation,
        extract: Callable[[DecodedEvent], dict[str, Any]] = lambda e: dict(e.args),
        **context: Any,
    ) -> dict[str, Any]:
        """
        Find the expected event and apply its checks.

        Returns:
            The event's fields as produced by ``extract``

        Raises:
            DDCError: ``expectation.not_found_code`` if no event decodes, or
                the failing check's code on mismatch
        """
        event = self.decode_event(receipt, expectation.event_name)
        if event is None:
            raise DDCError(
                expectation.not_found_message,
                expectation.not_found_code,
                {"tx_hash": receipt.transaction_hash, **context},
            )

        fields = extract(event)
        LOGGER.debug("Found %s event: %s", expectation.event_name, fields)
        for check in expectation.checks:
            actual = fields.get(check.field)
            if _same(actual, check.expected):
                continue
            if check.code is None:
                LOGGER.warning(
                    "%s event '%s' is %s, expected %s",
                    expectation.event_name,
                    check.field,
                    actual,
                    check.expected,
                )
                continue
            raise DDCError(
                f"{check.label} ({actual}) does not match expected value ({check.expected})",
                check.code,
                {"expected": check.expected, "actual": actual, "tx_hash": receipt.transaction_hash},
            )
        return fields

    # ------------------------------------------------------------------
    # Semantic checks
    # ------------------------------------------------------------------

    def verify_transfer_event(
        self,
        receipt: TxReceipt,
        expected_token_id: int,
        expected_from: Optional[str] = None,
        expected_to: Optional[str] = None,
    ) -> dict[str, Any]:
        """Generic transfer check; ``from``/``to`` are only compared when given."""
        checks = [FieldCheck("token_id", expected_token_id, "TOKEN_ID_MISMATCH", "TokenId")]
        if expected_from is not None:
            checks.append(FieldCheck("from", expected_from, "FROM_MISMATCH", "From hash"))
        if expected_to is not None:
            checks.append(FieldCheck("to", expected_to, "TO_MISMATCH", "To hash"))
        return self.verify(
            receipt,
            EventExpectation(
                "Transfer",
                "TRANSFER_EVENT_NOT_FOUND",
                "Transfer event not found in transaction receipt.",
                tuple(checks),
            ),
            transfer_fields,
            expected_token_id=expected_token_id,
        )

    def verify_mint(
        self,
        receipt: TxReceipt,
        expected_token_id: int,
        expected_to: Optional[str] = None,
    ) -> dict[str, Any]:
        """Transfer from the zero hash (warning only) with the expected id and recipient."""
        checks = [
            FieldCheck("from", BYTES32_ZERO, None, "Minted from hash"),
            FieldCheck("token_id", expected_token_id, "TOKEN_ID_MISMATCH", "Minted tokenId"),
        ]
        if expected_to is not None:
            checks.append(FieldCheck("to", expected_to, "RECIPIENT_MISMATCH", "Minted to hash"))
        return self.verify(
            receipt,
            EventExpectation(
                "Transfer",
                "TRANSFER_EVENT_NOT_FOUND",
                "Transfer event not found in transaction receipt. The token may have "
                "been minted but could not be verified.",
                tuple(checks),
            ),
            transfer_fields,
            expected_token_id=expected_token_id,
        )

    def verify_transfer(
        self,
        receipt: TxReceipt,
        expected_token_id: int,
        expected_to: str,
    ) -> dict[str, Any]:
        return self.verify(
            receipt,
            EventExpectation(
                "Transfer",
                "TRANSFER_EVENT_NOT_FOUND",
                "Transfer event not found in transaction receipt. The token may have "
                "been transferred but could not be verified.",
                (
                    FieldCheck(
                        "token_id", expected_token_id, "TOKEN_ID_MISMATCH", "Transferred tokenId"
                    ),
                    FieldCheck("to", expected_to, "RECIPIENT_MISMATCH", "Transferred to hash"),
                ),
            ),
            transfer_fields,
            expected_token_id=expected_token_id,
            expected_to=expected_to,
        )

    def verify_destroy_transfer(self, receipt: TxReceipt, expected_token_id: int) -> dict[str, Any]:
        """Transfer to the zero hash (warning only) with the expected id."""
        return self.verify(
            receipt,
            EventExpectation(
                "Transfer",
                "TRANSFER_EVENT_NOT_FOUND",
                "Transfer event not found in transaction receipt. The token may have "
                "been destroyed but could not be verified.",
                (
                    FieldCheck("to", BYTES32_ZERO, None, "Destroyed to hash"),
                    FieldCheck(
                        "token_id", expected_token_id, "TOKEN_ID_MISMATCH", "Destroyed tokenId"
                    ),
                ),
            ),
            transfer_fields,
            expected_token_id=expected_token_id,
        )

    def verify_burn(
        self,
        receipt: TxReceipt,
        expected_token_id: int,
        expected_from: str,
    ) -> dict[str, Any]:
        """Transfer to the zero hash (warning only) from the expected owner hash."""
        return self.verify(
            receipt,
            EventExpectation(
                "Transfer",
                "BURN_EVENT_NOT_FOUND",
                "Transfer event not found in transaction receipt. The token may have "
                "been burned but could not be verified.",
                (
                    FieldCheck("to", BYTES32_ZERO, None, "Burned to hash"),
                    FieldCheck(
                        "token_id", expected_token_id, "TOKEN_ID_MISMATCH", "Burned tokenId"
                    ),
                    FieldCheck("from", expected_from, "OWNER_MISMATCH", "Burned from hash"),
                ),
            ),
            transfer_fields,
            expected_token_id=expected_token_id,
            expected_from=expected_from,
        )

    def verify_token_destroyed(self, receipt: TxReceipt, expected_token_id: int) -> dict[str, Any]:
        def extract(event: DecodedEvent) -> dict[str, Any]:
            values = list(event.args.values())
            return {"token_id": int(values[0]), "key_hash": values[1]}

        return self.verify(
            receipt,
            EventExpectation(
                "TokenDestroyed",
                "TOKEN_DESTROYED_EVENT_NOT_FOUND",
                "TokenDestroyed event not found in transaction receipt. The token may "
                "have been destroyed but could not be verified.",
                (
                    FieldCheck(
                        "token_id", expected_token_id, "TOKEN_ID_MISMATCH", "Destroyed tokenId"
                    ),
                ),
            ),
            extract,
            expected_token_id=expected_token_id,
        )

    def snapshot_id(self, receipt: TxReceipt) -> int:
        """Id of the snapshot created by this transaction; absence is fatal."""
        fields = self.verify(
            receipt,
            EventExpectation(
                "SnapshotCreated",
                "SNAPSHOT_EVENT_NOT_FOUND",
                "SnapshotCreated event not found in transaction receipt. The snapshot "
                "may have been created but its ID could not be determined.",
            ),
        )
        return int(fields["snapshotId"])

    def deployment_address(
        self,
        receipt: TxReceipt,
        event_name: str,
        name: str,
        symbol: str,
    ) -> str:
        """
        Address of the child announced by a factory deployment event.

        The first ``event_name`` log (in receipt order) whose name and symbol
        match the request wins.

        Raises:
            DDCError: EVENT_PARSE_ERROR if no matching event decodes
        """
        for event in self.decode_events(receipt, event_name):
            if event.args.get("name") == name and event.args.get("symbol") == symbol:
                address = to_checksum_address(event.args["contractAddress"])
                LOGGER.debug("%s event announces %s", event_name, address)
                return address

        raise DDCError(
            f"Failed to parse {event_name} event from transaction receipt",
            "EVENT_PARSE_ERROR",
            {
                "tx_hash": receipt.transaction_hash,
                "block_number": receipt.block_number,
                "name": name,
                "symbol": symbol,
            },
        )


__all__ = ["EventExpectation", "FieldCheck", "TransactionVerifier", "transfer_fields"]
