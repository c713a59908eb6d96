"""
Uniform result envelope returned by every adapter call.

Every public adapter method resolves to an ``Envelope`` instead of raising,
so callers can check ``success`` without knowing which transport (REST,
JSON-RPC, PostgREST, websocket) sits behind the adapter.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

import aiohttp


logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_CODE = "UNKNOWN"
NOT_IMPLEMENTED_CODE = "NOT_IMPLEMENTED"


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class ProviderError(Exception):
    """Raised inside adapters when a provider reports a failure."""

    def __init__(self, message: str, code: Union[str, int] = UNKNOWN_CODE, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ConfigurationError(Exception):
    """Raised at adapter construction when required credentials are missing."""
    pass


@dataclass(frozen=True)
class ApiError:
    """Normalized error information carried by a failed envelope."""
    message: str
    code: Union[str, int] = UNKNOWN_CODE
    details: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


@dataclass(frozen=True)
class Envelope(Generic[T]):
    """Result of a single adapter call."""
    success: bool
    data: Optional[T] = None
    error: Optional[ApiError] = None
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Render the envelope as plain JSON-compatible data."""
        result: Dict[str, Any] = {
            "success": self.success,
            "data": _plain(self.data),
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def success(data: Any = None) -> Envelope:
    return Envelope(success=True, data=data)


def failure(message: str, code: Union[str, int] = UNKNOWN_CODE, details: Any = None) -> Envelope:
    return Envelope(
        success=False,
        error=ApiError(message=message or "Unknown error occurred", code=code, details=details),
    )


def not_implemented(feature: str) -> Envelope:
    """Envelope for operations that have no backing implementation yet."""
    return failure(
        f"{feature} is not implemented",
        code=NOT_IMPLEMENTED_CODE,
        details={"feature": feature},
    )


def normalize_error(error: BaseException) -> ApiError:
    """
    Translate any exception into an ``ApiError``.

    Provider errors keep their code and body; HTTP errors use the status;
    everything else (DNS, timeouts, refused connections) is ``UNKNOWN``.
    """
    message = str(error) or type(error).__name__

    if isinstance(error, ProviderError):
        return ApiError(message=message, code=error.code, details=error.details)

    if isinstance(error, aiohttp.ClientResponseError):
        return ApiError(message=message, code=error.status, details=None)

    if isinstance(error, asyncio.TimeoutError):
        return ApiError(message=message if str(error) else "Request timed out", code=UNKNOWN_CODE)

    return ApiError(message=message, code=UNKNOWN_CODE)


async def invoke(provider_call: Callable[[], Awaitable[T]], operation: Optional[str] = None) -> Envelope[T]:
    """
    Await a zero-argument provider call and wrap its outcome.

    Args:
        provider_call: Coroutine function performing the provider request
        operation: Optional name used in log messages

    Returns:
        Envelope holding the data on success or the normalized error on failure.
        Never raises, except for task cancellation.
    """
    try:
        data = await provider_call()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        error = normalize_error(e)
        logger.warning(
            f"Provider call {operation or getattr(provider_call, '__name__', 'call')} failed "
            f"(code={error.code}): {error.message}"
        )
        return Envelope(success=False, error=error)

    return Envelope(success=True, data=data)


def unwrap(envelope: Envelope[T]) -> T:
    """
    Return the envelope data or raise ``ProviderError`` for a failed envelope.

    Useful for callers that prefer exceptions, e.g. inside ``with_retry``.
    """
    if not envelope.success:
        error = envelope.error or ApiError(message="API request failed")
        raise ProviderError(error.message or "API request failed", code=error.code, details=error.details)
    return envelope.data


@dataclass
class CombinedResult:
    """Merged payload of several envelopes."""
    success: bool
    data: Dict[str, Any]
    errors: List[Tuple[int, ApiError]]


def combine(envelopes: Sequence[Envelope]) -> CombinedResult:
    """
    Merge the dict payloads of successful envelopes.

    Failed envelopes are collected as ``(index, error)`` pairs; the combined
    result is successful only when nothing failed.
    """
    data: Dict[str, Any] = {}
    errors: List[Tuple[int, ApiError]] = []

    for index, envelope in enumerate(envelopes):
        if envelope.success and envelope.data:
            data.update(envelope.data)
        elif envelope.error is not None:
            errors.append((index, envelope.error))

    return CombinedResult(success=not errors, data=data, errors=errors)
