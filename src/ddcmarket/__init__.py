__version__ = "0.3.0"

__all__ = [
    # Errors
    "DDCError",
    "classify",
    # Models
    "ChainEndpoint",
    "DeploymentRecord",
    "DestroyResult",
    "MintResult",
    "NativeCurrency",
    "RemoteConfig",
    "TxReceipt",
    # Families
    "ContractFamily",
    "MEMBERSHIP_FAMILY",
    "NFT_FAMILY",
    # Signing authorities
    "DelegatedSigner",
    "FixedEndpointSigner",
    # Lifecycle
    "ContractManager",
    "ManagerParams",
    "ManagerState",
    "ensure_network",
    "TransactionVerifier",
    # Operations
    "MembershipOperations",
    "NFTOperations",
    # Configuration service
    "ConfigService",
    "HttpConfigService",
    # Utilities
    "BYTES32_ZERO",
    "add_address",
    "get_key_hash",
    "normalize_address",
    "validate_address",
]

from .errors import DDCError, classify
from .models import (
    ChainEndpoint,
    DeploymentRecord,
    DestroyResult,
    MintResult,
    NativeCurrency,
    RemoteConfig,
    TxReceipt,
)
from .families import MEMBERSHIP_FAMILY, NFT_FAMILY, ContractFamily
from .chain.signer import DelegatedSigner, FixedEndpointSigner
from .lifecycle import ContractManager, ManagerParams, ManagerState
from .network import ensure_network
from .verify import TransactionVerifier
from .operations import MembershipOperations, NFTOperations
from .service import ConfigService, HttpConfigService
from .utils import BYTES32_ZERO, add_address, get_key_hash, normalize_address, validate_address
