"""
Transaction helpers - submit contract calls and deployments through a
signing authority, wait for inclusion, and run read-only calls.

A mined transaction whose receipt reports ``status == 0`` raises
``TransactionReverted``; callers classify it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import rlp
from eth_utils import to_checksum_address

from ..errors import DDCError
from .abi import decode_result, encode_call, encode_constructor, keccak256
from .rpc import DEFAULT_POLL_INTERVAL, TransactionReverted, to_int, wait_for_receipt

LOGGER = logging.getLogger(__name__)


def compute_create_address(sender: str, nonce: int) -> str:
    """Address of a contract created by ``sender`` at ``nonce`` (CREATE opcode)."""
    encoded = rlp.encode([bytes.fromhex(sender[2:]), nonce])
    return to_checksum_address(keccak256(encoded)[12:])


async def _await_receipt(
    signer: Any, tx_hash: str, timeout: Optional[float], poll_interval: float
) -> dict:
    try:
        receipt = await wait_for_receipt(
            signer, tx_hash, timeout=timeout, poll_interval=poll_interval
        )
    except TimeoutError as exc:
        raise DDCError(
            "Transaction receipt not available",
            "TX_RECEIPT_ERROR",
            {"tx_hash": tx_hash, "timeout": timeout},
        ) from exc
    return _check_status(tx_hash, receipt)


def _check_status(tx_hash: str, receipt: dict) -> dict:
    status = receipt.get("status")
    if status is not None and to_int(status) == 0:
        raise TransactionReverted(tx_hash, receipt)
    return receipt


async def send_contract_tx(
    signer: Any,
    contract_address: str,
    abi: Any,
    function_name: str,
    args: list,
    value: int = 0,
    gas_limit: Optional[int] = None,
    timeout: Optional[float] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> dict:
    """
    Encode, submit and await a contract call transaction.

    Args:
        signer: Signing authority
        contract_address: Target contract
        abi: Contract ABI
        function_name: Function to call
        args: Function arguments
        value: Native value in wei
        gas_limit: Explicit gas limit (default: let the signer decide)
        timeout: Receipt wait timeout (default: wait indefinitely)
        poll_interval: Receipt polling interval in seconds

    Returns:
        Raw receipt dict of the mined transaction

    Raises:
        TransactionReverted: If the receipt reports a revert
        DDCError: TX_RECEIPT_ERROR if no receipt arrives within ``timeout``
    """
    tx: dict[str, Any] = {
        "to": to_checksum_address(contract_address),
        "data": encode_call(abi, function_name, args),
        "value": value,
    }
    if gas_limit is not None:
        tx["gas"] = gas_limit

    tx_hash = await signer.send_transaction(tx)
    LOGGER.info("%s sent: %s", function_name, tx_hash)
    return await _await_receipt(signer, tx_hash, timeout, poll_interval)


async def deploy_contract(
    signer: Any,
    abi: Any,
    bytecode: str,
    constructor_args: Optional[list] = None,
    gas_limit: Optional[int] = None,
    timeout: Optional[float] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> tuple[dict, str]:
    """
    Deploy a contract from creation bytecode.

    The deployed address is read from the receipt's ``contractAddress``.
    Some transports omit that field; the address is then derived from the
    creating transaction's sender and nonce.

    Returns:
        Tuple of (raw receipt, checksummed contract address)
    """
    deploy_data = encode_constructor(abi, bytecode, constructor_args)
    if not deploy_data.startswith("0x"):
        deploy_data = "0x" + deploy_data

    tx: dict[str, Any] = {"data": deploy_data, "value": 0}
    if gas_limit is not None:
        tx["gas"] = gas_limit

    tx_hash = await signer.send_transaction(tx)
    LOGGER.info("Deployment sent: %s", tx_hash)
    receipt = await _await_receipt(signer, tx_hash, timeout, poll_interval)

    contract_address = receipt.get("contractAddress")
    if not contract_address:
        LOGGER.debug("Receipt for %s has no contractAddress; deriving it", tx_hash)
        sent = await signer.request("eth_getTransactionByHash", [tx_hash])
        contract_address = compute_create_address(sent["from"], to_int(sent["nonce"]))

    return receipt, to_checksum_address(contract_address)


async def call_contract(
    rpc: Any,
    contract_address: str,
    abi: Any,
    function_name: str,
    args: Optional[list] = None,
) -> Any:
    """
    Run a read-only ``eth_call`` and decode its result.

    Args:
        rpc: Anything with an async ``request(method, params)``
        contract_address: Target contract
        abi: Contract ABI
        function_name: View function name
        args: Function arguments

    Returns:
        Decoded result (single value, tuple, or None)
    """
    args = list(args or [])
    calldata = encode_call(abi, function_name, args)
    result = await rpc.request(
        "eth_call",
        [{"to": to_checksum_address(contract_address), "data": calldata}, "latest"],
    )
    return decode_result(abi, function_name, result, len(args))
