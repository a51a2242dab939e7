"""
Exceptions for the settlement backend (orchestrator) API.

:func:`parse_error` maps an HTTP status plus the backend's error body to
exactly one typed exception. Stable enumerated messages are matched exactly;
parameterised messages ("Unsupported chain 56") are parsed with fixed
patterns. Messages nobody recognises still produce an
:class:`OrchestratorError` carrying the original text and trace id.
"""
import re
from typing import Any, Dict, List, Optional

from ..exceptions import WarpError

STATUS_ERROR_TYPES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    503: "Service Unavailable",
}

_UNSUPPORTED_CHAIN_RE = re.compile(r"Unsupported chain (\d+)")
_UNSUPPORTED_TOKEN_RE = re.compile(r"Unsupported token (\w+) for chain (\d+)")
_TOKEN_NOT_SUPPORTED_RE = re.compile(r"Token (.+) not supported on chain (\d+)")


class OrchestratorError(WarpError):
    """Base exception for settlement backend errors."""

    default_message = "Orchestrator error"

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error_type: str = "Unknown",
        trace_id: str = "",
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.context = context or {}
        self.error_type = error_type
        self.trace_id = trace_id or ""
        self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.trace_id:
            return f"{self.message} (trace id: {self.trace_id})"
        return self.message


class InsufficientBalanceError(OrchestratorError):
    """Raised when the account cannot fund the route; carries the cost breakdown in ``context``."""
    default_message = "Insufficient balance"


class UnsupportedChainIdError(OrchestratorError):
    default_message = "Unsupported chain id"


class UnsupportedChainError(OrchestratorError):

    def __init__(self, chain_id: int, **kwargs):
        self.chain_id = chain_id
        kwargs.setdefault("message", f"Unsupported chain {chain_id}")
        super().__init__(**kwargs)


class UnsupportedTokenError(OrchestratorError):

    def __init__(self, token_symbol: str, chain_id: int, **kwargs):
        self.token_symbol = token_symbol
        self.chain_id = chain_id
        kwargs.setdefault("message", f"Unsupported token {token_symbol} for chain {chain_id}")
        super().__init__(**kwargs)


class TokenNotSupportedError(OrchestratorError):

    def __init__(self, token_address: str, chain_id: int, **kwargs):
        self.token_address = token_address
        self.chain_id = chain_id
        kwargs.setdefault("message", f"Token {token_address} not supported on chain {chain_id}")
        super().__init__(**kwargs)


class AuthenticationRequiredError(OrchestratorError):
    default_message = "Authentication is required"


class InvalidApiKeyError(OrchestratorError):
    default_message = "Invalid API key"


class InvalidIntentSignatureError(OrchestratorError):
    default_message = "Invalid bundle signature"


class OnlyOneTargetTokenAmountCanBeUnsetError(OrchestratorError):
    default_message = "Only one target token amount can be unset"


class NoPathFoundError(OrchestratorError):
    default_message = "No Path Found"


class IntentNotFoundError(OrchestratorError):
    default_message = "Order bundle not found"


class RateLimitedError(OrchestratorError):
    """Raised on HTTP 429; ``retry_after`` holds the backend's hint when given."""
    default_message = "Too many requests"

    def __init__(self, retry_after: Optional[str] = None, **kwargs):
        self.retry_after = retry_after
        super().__init__(**kwargs)

    @property
    def retry_after_seconds(self) -> Optional[float]:
        try:
            return float(self.retry_after) if self.retry_after is not None else None
        except ValueError:
            return None


class ServiceUnavailableError(OrchestratorError):
    default_message = "Service unavailable"


class InternalServerError(OrchestratorError):
    default_message = "Internal server error"


class BadRequestError(OrchestratorError):
    default_message = "Bad request"


class UnauthorizedError(OrchestratorError):
    default_message = "Unauthorized"


class ForbiddenError(OrchestratorError):
    default_message = "Forbidden"


class ResourceNotFoundError(OrchestratorError):
    default_message = "Resource not found"


class ConflictError(OrchestratorError):
    default_message = "Conflict"


class BodyParserError(OrchestratorError):
    default_message = "Request body could not be parsed"


class SimulationFailedError(OrchestratorError):
    default_message = "Bundle simulation failed"

    def __init__(self, simulations: Optional[List[Any]] = None, **kwargs):
        self.simulations = simulations or []
        super().__init__(**kwargs)


_EXACT_MESSAGES = {
    "Insufficient balance": InsufficientBalanceError,
    "Unsupported chain id": UnsupportedChainIdError,
    "Unsupported chain ids": UnsupportedChainIdError,
    "Unsupported token addresses": BadRequestError,
    "Authentication is required": AuthenticationRequiredError,
    "Invalid API key": InvalidApiKeyError,
    "Insufficient permissions": ForbiddenError,
    "Invalid bundle signature": InvalidIntentSignatureError,
    "Invalid checksum signature": InvalidIntentSignatureError,
    "Only one target token amount can be unset": OnlyOneTargetTokenAmountCanBeUnsetError,
    "Only one max-out transfer is allowed": OnlyOneTargetTokenAmountCanBeUnsetError,
    "No valid settlement plan found for the given transfers": NoPathFoundError,
    "No valid transfers sent for settlement quotes": NoPathFoundError,
    "No Path Found": NoPathFoundError,
    "Could not retrieve a valid quote from any aggregator": NoPathFoundError,
    "Emissary is not enabled": ForbiddenError,
    "Emissary is not the expected address": ForbiddenError,
    "Order bundle not found": IntentNotFoundError,
    "No aggregators available for swap": InternalServerError,
    "entity.parse.failed": BodyParserError,
    "entity.too.large": BodyParserError,
    "encoding.unsupported": BodyParserError,
}


def classify_message(message: str, **params) -> OrchestratorError:
    """
    Build the typed error for one backend message.

    Args:
        message: Message reported by the backend
        **params: context, error_type, trace_id and status_code

    Returns:
        The matching exception instance (not raised)
    """
    if message == "Bundle simulation failed":
        simulations = (params.get("context") or {}).get("error", {}).get("simulations")
        return SimulationFailedError(simulations=simulations, message=message, **params)

    error_cls = _EXACT_MESSAGES.get(message)
    if error_cls is not None:
        return error_cls(message=message, **params)

    if message.startswith("Unsupported chain "):
        match = _UNSUPPORTED_CHAIN_RE.search(message)
        if match:
            return UnsupportedChainError(int(match.group(1)), message=message, **params)
        return UnsupportedChainIdError(message=message, **params)

    if "Unsupported token" in message and "for chain" in message:
        match = _UNSUPPORTED_TOKEN_RE.search(message)
        if match:
            return UnsupportedTokenError(match.group(1), int(match.group(2)), message=message, **params)

    if "not supported on chain" in message:
        match = _TOKEN_NOT_SUPPORTED_RE.search(message)
        if match:
            return TokenNotSupportedError(match.group(1), int(match.group(2)), message=message, **params)

    if "No such intent with nonce" in message:
        return IntentNotFoundError(message=message, **params)

    return OrchestratorError(message=message, **params)


def parse_error(status: Optional[int], body: Any = None, retry_after: Optional[str] = None) -> None:
    """
    Raise the typed error for a failed backend response.

    Args:
        status: HTTP status code
        body: Decoded JSON body (``message``, ``errors``, ``traceId``), if any
        retry_after: Value of the ``Retry-After`` header, if any

    Raises:
        OrchestratorError: Always; one subclass per recognised condition
    """
    data = body if isinstance(body, dict) else {}
    errors = data.get("errors") or []
    trace_id = data.get("traceId") or ""
    message = data.get("message")
    error_type = STATUS_ERROR_TYPES.get(status, "Unknown")

    base = {
        "context": {"traceId": trace_id},
        "error_type": error_type,
        "trace_id": trace_id,
        "status_code": status,
    }

    if status == 429:
        raise RateLimitedError(retry_after=retry_after, **{**base, "context": {"traceId": trace_id, "retryAfter": retry_after}})
    if status == 503:
        raise ServiceUnavailableError(**base)

    if message:
        raise classify_message(str(message), **base)

    for err in errors:
        if not isinstance(err, dict) or not err.get("message"):
            continue
        context = {**(err.get("context") or {}), "traceId": trace_id}
        raise classify_message(str(err["message"]), **{**base, "context": context})

    if status == 400:
        raise BadRequestError(**{**base, "context": {"traceId": trace_id, "errors": errors}})
    if status == 401:
        raise UnauthorizedError(**base)
    if status == 403:
        raise ForbiddenError(**base)
    if status == 404:
        raise ResourceNotFoundError(**base)
    if status == 409:
        raise ConflictError(**base)
    if status == 500:
        raise InternalServerError(**base)
    raise OrchestratorError(message=error_type, **base)
