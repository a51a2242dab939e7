"""
Exceptions for the Warp SDK.

Backend (settlement API) errors live in :mod:`warp_sdk.orchestrator.errors`;
this module holds the local configuration, signing, bundler and terminal
status errors.
"""
from typing import Any, Dict, Optional


class WarpError(Exception):
    """Base exception for all Warp SDK errors."""
    pass


class WarpConfigError(WarpError):
    """Raised when the account configuration cannot satisfy a request."""
    pass


class ValidatorUnavailableError(WarpConfigError):
    """Raised when no validator can be resolved for the requested signer set."""
    pass


class AccountProviderMissingError(WarpConfigError):
    """Raised when an operation needs an account provider and none is configured."""
    pass


class SigningError(WarpError):
    """Raised when a signer returns an unusable signature."""
    pass


class BundleSealedError(WarpError):
    """Raised when a settlement bundle is modified after it has been hashed."""
    pass


class StaleRouteError(WarpError):
    """Raised when a signed bundle has expired before it could be submitted."""

    def __init__(self, message: str, expires: Optional[int] = None):
        self.expires = expires
        super().__init__(message)


class BundlerError(WarpError):
    """Raised when the ERC-4337 bundler rejects a request."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(message)


class ExecutionCancelledError(WarpError):
    """Raised when a wait is cancelled by the caller."""
    pass


class ExecutionTimeoutError(WarpError):
    """Raised when a wait exceeds its timeout without reaching a terminal state."""
    pass


class IntentStatusError(WarpError):
    """Base class for intents that reached a terminal failure state."""

    def __init__(self, message: str, intent_id: int, status: Optional[Dict[str, Any]] = None):
        self.intent_id = intent_id
        self.status = status or {}
        super().__init__(message)


class IntentFailedError(IntentStatusError):
    """Raised when an intent reaches the FAILED state."""
    pass


class IntentExpiredError(IntentStatusError):
    """Raised when an intent reaches the EXPIRED state without being filled."""
    pass


class UserOperationRevertedError(WarpError):
    """Raised when a user operation is included but its execution reverted."""

    def __init__(self, message: str, user_op_hash: str, receipt: Optional[Dict[str, Any]] = None):
        self.user_op_hash = user_op_hash
        self.receipt = receipt or {}
        super().__init__(message)
