"""
Configuration service client.

The configuration service tells a manager which network to use, which
factory (if any) the wallet already has and which children it deployed, and
records new addresses.  Write-back failures are raised; no compensation
is attempted when the chain and the registry diverge.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from .errors import DDCError
from .models import ChainEndpoint, RemoteConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ConfigService(Protocol):
    async def get_config(self, wallet_address: str, family: Any) -> RemoteConfig:
        ...

    async def set_factory_address(
        self, signer_address: str, factory_address: str, family_tag: str
    ) -> None:
        ...

    async def set_contract_address(
        self, signer_address: str, contract_address: str, family_tag: str
    ) -> None:
        ...

    async def transfer_contract_owner(
        self, signer_address: str, contract_address: str, family_tag: str, new_owner: str
    ) -> None:
        ...


def parse_config(data: dict[str, Any], config_key: str) -> RemoteConfig:
    """
    Build a ``RemoteConfig`` from the service's ``data`` object.

    Args:
        data: Payload with ``network``, ``<key>_factory_address``,
            ``<key>_address`` and ``metadata_url``
        config_key: Family field prefix ("nft" | "membership")
    """
    network = data.get("network")
    if not isinstance(network, dict) or "chain_id" not in network:
        raise DDCError("DDC config has no network", "DDC_CONFIG_ERROR", {"data": data})
    return RemoteConfig(
        network=ChainEndpoint.from_dict(network),
        factory_address=data.get(f"{config_key}_factory_address") or None,
        metadata_url=data.get("metadata_url") or None,
        known_deployed_addresses=tuple(data.get(f"{config_key}_address") or ()),
    )


class HttpConfigService:
    """
    ``ConfigService`` over HTTP.

    Every response is an envelope ``{"code": 0, "data": {...}}``; a non-zero
    code is a failure.

    Args:
        base_url: Service root, e.g. "https://api.example.com"
        timeout: HTTP timeout in seconds
        client: Optional shared ``httpx.AsyncClient`` (not closed by us)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            response = await self._client.request(method, url, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict) or body.get("code", 0) != 0:
            raise RuntimeError(f"Service error on {path}: {body}")
        return body.get("data")

    async def get_config(self, wallet_address: str, family: Any) -> RemoteConfig:
        try:
            data = await self._request("GET", "/ddc/config", params={"address": wallet_address})
        except Exception as exc:
            LOGGER.error("Failed to get DDC config: %s", exc)
            raise DDCError(
                f"Failed to get DDC config: {exc}",
                "DDC_CONFIG_ERROR",
                {"wallet": wallet_address, "error": str(exc)},
            ) from exc
        return parse_config(data or {}, family.config_key)

    async def _write(self, path: str, payload: dict[str, Any]) -> None:
        try:
            await self._request("POST", path, json=payload)
        except Exception as exc:
            LOGGER.error("Config service write-back to %s failed: %s", path, exc)
            raise DDCError(
                f"Config service write-back failed: {exc}",
                "CONFIG_SERVICE_ERROR",
                {"path": path, "payload": payload, "error": str(exc)},
            ) from exc

    async def set_factory_address(
        self, signer_address: str, factory_address: str, family_tag: str
    ) -> None:
        await self._write(
            "/ddc/factory",
            {"address": signer_address, "factoryAddress": factory_address, "type": family_tag},
        )

    async def set_contract_address(
        self, signer_address: str, contract_address: str, family_tag: str
    ) -> None:
        await self._write(
            "/ddc/contract",
            {"address": signer_address, "contract": contract_address, "type": family_tag},
        )

    async def transfer_contract_owner(
        self, signer_address: str, contract_address: str, family_tag: str, new_owner: str
    ) -> None:
        await self._write(
            "/ddc/contract/owner",
            {
                "address": signer_address,
                "contract": contract_address,
                "type": family_tag,
                "ownerAddress": new_owner,
            },
        )


__all__ = ["ConfigService", "HttpConfigService", "parse_config"]
