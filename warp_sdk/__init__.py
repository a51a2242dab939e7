"""
Warp SDK - Python SDK for cross-chain intents and ERC-4337 user operations.
"""
from .account import AccountProvider, OnchainAccount
from .batch import BatchResult, sign_batch, sign_sequential
from .bundler import BundlerClient
from .client import WarpClient
from .config import AccountConfig, Protocol, ProtocolConfig
from .exceptions import (
    AccountProviderMissingError,
    BundlerError,
    BundleSealedError,
    ExecutionCancelledError,
    ExecutionTimeoutError,
    IntentExpiredError,
    IntentFailedError,
    IntentStatusError,
    SigningError,
    StaleRouteError,
    UserOperationRevertedError,
    ValidatorUnavailableError,
    WarpConfigError,
    WarpError,
)
from .execution import TransactionExecutor
from .hashing import get_bundle_hash, hash_erc7739
from .models import (
    BundleResult,
    BundleStatus,
    Call,
    EcdsaOwners,
    EcdsaV0Owners,
    GuardianSigners,
    IntentResult,
    MultiFactorOwners,
    OwnerSigners,
    PasskeyOwners,
    PreparedTransaction,
    Session,
    SessionEnableData,
    SessionSigners,
    SettlementBundle,
    SignedTransaction,
    TokenRequest,
    Transaction,
    UserOpResult,
)
from .orchestrator import OrchestratorClient, OrchestratorError
from .signers import LocalSigner, SoftwarePasskey, resolve_signer
from .validators import get_multi_factor_validator
from .version import __version__

__all__ = [
    "WarpClient",
    "TransactionExecutor",
    "AccountConfig",
    "Protocol",
    "ProtocolConfig",
    "AccountProvider",
    "OnchainAccount",
    "OrchestratorClient",
    "BundlerClient",
    "LocalSigner",
    "SoftwarePasskey",
    "resolve_signer",
    "get_multi_factor_validator",
    "get_bundle_hash",
    "hash_erc7739",
    "BatchResult",
    "sign_batch",
    "sign_sequential",
    "Call",
    "TokenRequest",
    "Transaction",
    "EcdsaOwners",
    "EcdsaV0Owners",
    "MultiFactorOwners",
    "PasskeyOwners",
    "OwnerSigners",
    "Session",
    "SessionEnableData",
    "SessionSigners",
    "GuardianSigners",
    "SettlementBundle",
    "PreparedTransaction",
    "SignedTransaction",
    "UserOpResult",
    "IntentResult",
    "BundleResult",
    "BundleStatus",
    "WarpError",
    "WarpConfigError",
    "ValidatorUnavailableError",
    "AccountProviderMissingError",
    "SigningError",
    "BundleSealedError",
    "StaleRouteError",
    "BundlerError",
    "ExecutionCancelledError",
    "ExecutionTimeoutError",
    "IntentStatusError",
    "IntentFailedError",
    "IntentExpiredError",
    "UserOperationRevertedError",
    "OrchestratorError",
    "__version__",
]
