"""
Settlement backend client and error taxonomy.
"""
from .client import OrchestratorClient
from .errors import (
    AuthenticationRequiredError,
    BadRequestError,
    BodyParserError,
    ConflictError,
    ForbiddenError,
    InsufficientBalanceError,
    IntentNotFoundError,
    InternalServerError,
    InvalidApiKeyError,
    InvalidIntentSignatureError,
    NoPathFoundError,
    OnlyOneTargetTokenAmountCanBeUnsetError,
    OrchestratorError,
    RateLimitedError,
    ResourceNotFoundError,
    ServiceUnavailableError,
    SimulationFailedError,
    TokenNotSupportedError,
    UnauthorizedError,
    UnsupportedChainError,
    UnsupportedChainIdError,
    UnsupportedTokenError,
    parse_error,
)

__all__ = [
    "OrchestratorClient",
    "parse_error",
    "OrchestratorError",
    "AuthenticationRequiredError",
    "BadRequestError",
    "BodyParserError",
    "ConflictError",
    "ForbiddenError",
    "InsufficientBalanceError",
    "IntentNotFoundError",
    "InternalServerError",
    "InvalidApiKeyError",
    "InvalidIntentSignatureError",
    "NoPathFoundError",
    "OnlyOneTargetTokenAmountCanBeUnsetError",
    "RateLimitedError",
    "ResourceNotFoundError",
    "ServiceUnavailableError",
    "SimulationFailedError",
    "TokenNotSupportedError",
    "UnauthorizedError",
    "UnsupportedChainError",
    "UnsupportedChainIdError",
    "UnsupportedTokenError",
]
