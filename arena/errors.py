"""Error taxonomy and the classifier that turns any failure into a TypedError."""

import asyncio
import json
import logging

import httpx

from arena.models import CANCELLED_CODE, TypedError

logger = logging.getLogger(__name__)


class ArenaError(Exception):
    """Base for failures raised inside the orchestration core."""

    code = "UNKNOWN_ERROR"
    retryable = False

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        self.message = message
        prefix = f"[{provider}] " if provider else ""
        super().__init__(f"{prefix}{message}")


class ConfigurationError(ArenaError):
    """Upstream credential missing. Fatal to the provider for this round."""

    code = "CONFIGURATION_ERROR"


class ValidationError(ArenaError):
    code = "VALIDATION_ERROR"


class RateLimitError(ArenaError):
    code = "RATE_LIMIT_ERROR"
    retryable = True

    def __init__(self, message: str, provider: str | None = None, retry_after: float | None = None) -> None:
        super().__init__(message, provider)
        self.retry_after = retry_after


class AuthError(ArenaError):
    code = "AUTH_ERROR"


class ModelUnavailableError(ArenaError):
    code = "MODEL_UNAVAILABLE"


class ContentPolicyError(ArenaError):
    code = "CONTENT_POLICY_ERROR"


class TokenLimitError(ArenaError):
    code = "TOKEN_LIMIT_ERROR"


class UpstreamTimeoutError(ArenaError):
    code = "TIMEOUT_ERROR"
    retryable = True


class NetworkError(ArenaError):
    code = "NETWORK_ERROR"
    retryable = True


class ServerError(ArenaError):
    code = "SERVER_ERROR"
    retryable = True


class StreamError(ArenaError):
    """The upstream reported an error event in the middle of a stream."""

    code = "STREAM_ERROR"
    retryable = True


class EmptyResponseError(ArenaError):
    """The stream finished cleanly but carried too little text to count as a pitch."""

    code = "EMPTY_RESPONSE"
    retryable = True


class ParseError(ArenaError):
    """Judge output could not be parsed or validated. Asking again may help."""

    code = "PARSE_ERROR"
    retryable = True


class CancellationError(ArenaError):
    """The operation's round was discarded. Not a failure; never retried or shown."""

    code = CANCELLED_CODE


# Envelope codes sent by the pitch/judge route handlers.
_ENVELOPE_CODES: dict[str, type[ArenaError]] = {
    "MISSING_API_KEY": ConfigurationError,
    "API_KEY_ERROR": ConfigurationError,
    "CONFIGURATION_ERROR": ConfigurationError,
    "VALIDATION_ERROR": ValidationError,
    "INVALID_JSON": ValidationError,
    "RATE_LIMIT_ERROR": RateLimitError,
    "AUTH_ERROR": AuthError,
    "MODEL_ERROR": ModelUnavailableError,
    "MODEL_UNAVAILABLE": ModelUnavailableError,
    "CONTENT_POLICY_ERROR": ContentPolicyError,
    "TOKEN_LIMIT_ERROR": TokenLimitError,
    "TIMEOUT_ERROR": UpstreamTimeoutError,
    "SERVER_OVERLOAD_ERROR": ServerError,
    "PARSE_ERROR": ParseError,
    "INVALID_RESPONSE_FORMAT": ParseError,
}

_STATUS_CODES: dict[int, type[ArenaError]] = {
    400: ValidationError,
    401: AuthError,
    403: AuthError,
    404: ModelUnavailableError,
    429: RateLimitError,
}


def _typed(exc_cls: type[ArenaError], message: str, provider: str | None, **extra) -> TypedError:
    return TypedError(
        code=exc_cls.code,
        message=message,
        retryable=exc_cls.retryable,
        provider=provider,
        **extra,
    )


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _read_envelope(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, httpx.ResponseNotRead):
        return {}
    return data if isinstance(data, dict) else {}


def _classify_status(exc: httpx.HTTPStatusError, provider: str | None) -> TypedError:
    response = exc.response
    status = response.status_code
    envelope = _read_envelope(response)
    message = str(envelope.get("message") or envelope.get("error") or response.reason_phrase or f"HTTP {status}")
    retry_after = _parse_retry_after(response.headers.get("retry-after"))

    exc_cls = _ENVELOPE_CODES.get(str(envelope.get("code", "")))
    if exc_cls is None:
        exc_cls = _STATUS_CODES.get(status)
    if exc_cls is None and status >= 500:
        exc_cls = ServerError

    if exc_cls is None:
        # Unknown status: trust the envelope's own verdict, default to not retrying
        return TypedError(
            code="HTTP_ERROR",
            message=f"HTTP {status}: {message}",
            retryable=bool(envelope.get("retryable", False)),
            provider=provider,
            status=status,
        )

    return _typed(
        exc_cls,
        message,
        provider,
        status=status,
        retry_after=retry_after if exc_cls is RateLimitError else None,
    )


def classify(raw: BaseException, provider: str | None = None) -> TypedError:
    """Map any raised failure to a TypedError.

    Cancellation yields code CANCELLED; callers must treat it as "stop",
    not as an error to retry or display.
    """
    if isinstance(raw, (CancellationError, asyncio.CancelledError)):
        return TypedError(code=CANCELLED_CODE, message="Operation cancelled", retryable=False, provider=provider)

    if isinstance(raw, ArenaError):
        return _typed(
            type(raw),
            raw.message,
            raw.provider or provider,
            retry_after=getattr(raw, "retry_after", None),
        )

    if isinstance(raw, httpx.HTTPStatusError):
        return _classify_status(raw, provider)

    # httpx.TimeoutException is a TransportError, check it first
    if isinstance(raw, (httpx.TimeoutException, TimeoutError)):
        return _typed(UpstreamTimeoutError, "Request timed out", provider)

    if isinstance(raw, httpx.TransportError):
        return _typed(NetworkError, f"Network connection failed: {raw}", provider)

    if isinstance(raw, json.JSONDecodeError):
        return _typed(ParseError, f"Invalid JSON: {raw.msg}", provider)

    logger.debug("Unclassified failure %s: %s", type(raw).__name__, raw)
    return TypedError(
        code="UNKNOWN_ERROR",
        message=str(raw) or type(raw).__name__,
        retryable=False,
        provider=provider,
    )
