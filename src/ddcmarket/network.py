"""
Network reconciliation.

``ensure_network`` guarantees that a signing authority's live connection is
on the chain a manager is bound to before any write.  Wallet-backed signers
are asked to switch (and, if the wallet does not know the chain, to add it
first); fixed-endpoint signers cannot switch, so a mismatch is fatal.
"""

from __future__ import annotations

import logging
from typing import Any

from .chain.rpc import get_chain_id
from .errors import UNRECOGNIZED_CHAIN, DDCError
from .models import ChainEndpoint

LOGGER = logging.getLogger(__name__)

_NETWORK_CHANGED_MARKERS = ("network changed", "network_changed", "underlying network changed")


def _is_unrecognized_chain(error: BaseException) -> bool:
    if getattr(error, "code", None) == UNRECOGNIZED_CHAIN:
        return True
    data = getattr(error, "data", None)
    if isinstance(data, dict):
        original = data.get("originalError")
        if isinstance(original, dict) and original.get("code") == UNRECOGNIZED_CHAIN:
            return True
    return False


def _is_network_changed(error: BaseException) -> bool:
    text = str(error).lower()
    return any(marker in text for marker in _NETWORK_CHANGED_MARKERS)


async def current_chain_id(connection: Any) -> int:
    """
    Read the live chain id with a direct ``eth_chainId`` query.

    A "network changed" failure is transient in long-lived sessions and is
    retried once before giving up.

    Raises:
        DDCError: NETWORK_VALIDATION_ERROR if the chain id cannot be read
    """
    try:
        try:
            return await get_chain_id(connection)
        except Exception as exc:
            if not _is_network_changed(exc):
                raise
            LOGGER.debug("Network changed while reading chain id; retrying once")
            return await get_chain_id(connection)
    except Exception as exc:
        LOGGER.error("Failed to read chain id: %s", exc)
        raise DDCError(
            f"Failed to validate network: {exc}",
            "NETWORK_VALIDATION_ERROR",
            {"error": str(exc)},
        ) from exc


async def _switch_chain(connection: Any, expected: ChainEndpoint) -> None:
    chain_id_hex = expected.chain_id_hex
    LOGGER.info("Requesting switch to chain %s (%s)", expected.chain_id, chain_id_hex)
    try:
        await connection.request("wallet_switchEthereumChain", [{"chainId": chain_id_hex}])
        return
    except Exception as exc:
        if not _is_unrecognized_chain(exc):
            LOGGER.error("Failed to switch network: %s", exc)
            raise DDCError(
                f"Failed to switch to network {expected.chain_id}: {exc}",
                "NETWORK_SWITCH_ERROR",
                {"expected_chain_id": expected.chain_id, "error": str(exc)},
            ) from exc

    LOGGER.info("Chain %s unknown to the wallet, adding it", expected.chain_id)
    if not expected.rpc_url:
        raise DDCError(
            "Cannot add network: rpc_url is required in network config",
            "NETWORK_ADD_ERROR",
            {"expected_chain_id": expected.chain_id},
        )
    try:
        await connection.request("wallet_addEthereumChain", [expected.to_add_chain_params()])
    except Exception as exc:
        LOGGER.error("Failed to add network: %s", exc)
        raise DDCError(
            f"Failed to add network {expected.chain_id}: {exc}",
            "NETWORK_ADD_ERROR",
            {"expected_chain_id": expected.chain_id, "error": str(exc)},
        ) from exc

    try:
        await connection.request("wallet_switchEthereumChain", [{"chainId": chain_id_hex}])
    except Exception as exc:
        LOGGER.error("Failed to switch network after adding it: %s", exc)
        raise DDCError(
            f"Failed to switch to network {expected.chain_id}: {exc}",
            "NETWORK_SWITCH_ERROR",
            {"expected_chain_id": expected.chain_id, "error": str(exc)},
        ) from exc


async def ensure_network(connection: Any, expected: ChainEndpoint) -> None:
    """
    Make sure ``connection`` is on ``expected.chain_id``.

    Args:
        connection: Signing authority (``can_switch_chain`` selects the strategy)
        expected: Chain the manager is bound to

    Raises:
        DDCError: NETWORK_MISMATCH (fixed endpoint on the wrong chain),
            NETWORK_SWITCH_ERROR / NETWORK_ADD_ERROR (wallet refused),
            NETWORK_SWITCH_FAILED (still wrong after switching),
            NETWORK_VALIDATION_ERROR (chain id unreadable),
            NETWORK_CHECK_FAILED (anything else)
    """
    try:
        current = await current_chain_id(connection)
        LOGGER.debug("Current chain id %s, expected %s", current, expected.chain_id)
        if current == expected.chain_id:
            return

        if not getattr(connection, "can_switch_chain", False):
            raise DDCError(
                f"Network mismatch: connected to chain {current} but chain "
                f"{expected.chain_id} ({expected.display_name}) is required. This "
                f"connection cannot switch networks; reconnect using an RPC endpoint "
                f"for chain {expected.chain_id}.",
                "NETWORK_MISMATCH",
                {"current_chain_id": current, "expected_chain_id": expected.chain_id},
            )

        LOGGER.warning(
            "Connected to chain %s, requesting switch to chain %s", current, expected.chain_id
        )
        await _switch_chain(connection, expected)

        after = await current_chain_id(connection)
        if after != expected.chain_id:
            raise DDCError(
                f"Failed to switch to the correct network. Expected chain "
                f"{expected.chain_id}, still on chain {after}",
                "NETWORK_SWITCH_FAILED",
                {"current_chain_id": after, "expected_chain_id": expected.chain_id},
            )
        LOGGER.info("Switched to chain %s", expected.chain_id)
    except DDCError:
        raise
    except Exception as exc:
        LOGGER.error("Network check failed: %s", exc)
        raise DDCError(
            f"Network check failed: {exc}",
            "NETWORK_CHECK_FAILED",
            {"expected_chain_id": expected.chain_id, "error": str(exc)},
        ) from exc


__all__ = ["current_chain_id", "ensure_network"]
