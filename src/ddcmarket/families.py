"""
Contract family policies.

A family bundles everything the lifecycle engine needs to know about one
kind of child contract: its ABI, the factory that deploys it, the factory
entry point and the event that announces a new instance.  The engine is
instantiated once per family with one of these values; there is no
subclass per family.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .chain.abi import load_abi


@dataclass(frozen=True)
class ContractFamily:
    """
    Policy value describing one contract family.

    Attributes:
        tag: Family tag reported to the configuration service ("nft" | "membership")
        display_name: Human-readable name used in messages
        contract_name: ABI name of the child contract
        factory_artifact: Artifact name of the factory (ABI and bytecode)
        deploy_method: Factory entry point, ``deploy<Family>``
        deployed_event: Factory event carrying the new child address
        config_key: Prefix of the configuration-service fields
    """

    tag: str
    display_name: str
    contract_name: str
    factory_artifact: str
    deploy_method: str
    deployed_event: str
    config_key: str

    @property
    def contract_abi(self) -> tuple[dict[str, Any], ...]:
        return load_abi(self.contract_name)

    @property
    def factory_abi(self) -> tuple[dict[str, Any], ...]:
        return load_abi(self.factory_artifact)


NFT_FAMILY = ContractFamily(
    tag="nft",
    display_name="DDCNFT",
    contract_name="DDCNFT",
    factory_artifact="DDCNFTFactory",
    deploy_method="deployDDCNFT",
    deployed_event="DDCNFTDeployed",
    config_key="nft",
)

MEMBERSHIP_FAMILY = ContractFamily(
    tag="membership",
    display_name="Membership",
    contract_name="Membership",
    factory_artifact="MembershipFactory",
    deploy_method="deployMembership",
    deployed_event="MembershipDeployed",
    config_key="membership",
)

FAMILIES = {family.tag: family for family in (NFT_FAMILY, MEMBERSHIP_FAMILY)}


def get_family(tag: str) -> ContractFamily:
    """Look up a family by tag (raises ``KeyError`` for unknown tags)."""
    return FAMILIES[tag.lower()]


__all__ = ["ContractFamily", "FAMILIES", "MEMBERSHIP_FAMILY", "NFT_FAMILY", "get_family"]
