"""
Base class for provider adapters: session handling, request plumbing and
error normalization shared by every provider.
"""

import json
import logging
from abc import ABC
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, TypeVar

import aiohttp

from ..config.models import HttpConfig
from ..envelope import ConfigurationError, Envelope, ProviderError, invoke
from ..utils.structured_logging import LogContext, get_logger


logger = logging.getLogger(__name__)

T = TypeVar("T")


def clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """
    Drop ``None`` values and coerce the rest into query-string values.

    Booleans become ``true``/``false`` and sequences are comma-joined.
    """
    cleaned: Dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple, set)):
            cleaned[key] = ",".join(str(v) for v in value)
        else:
            cleaned[key] = str(value)
    return cleaned


class BaseAdapter(ABC):
    """
    Abstract base for every provider adapter.

    Subclasses issue requests through ``_get``/``_post`` (which raise
    ``ProviderError`` on HTTP failures) and expose public methods that wrap
    the request in ``_call`` so they always return an ``Envelope``.
    """

    provider_name = "provider"

    def __init__(
        self,
        base_url: str,
        http_config: Optional[HttpConfig] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the adapter.

        Args:
            base_url: Provider base URL
            http_config: Timeout and user agent settings
            headers: Headers sent with every request
            params: Query parameters sent with every request
            session: Externally owned session; created lazily when omitted
        """
        self.base_url = base_url.rstrip("/")
        self.http_config = http_config or HttpConfig()
        self._headers = {"User-Agent": self.http_config.user_agent, **(headers or {})}
        self._params = dict(params or {})
        self._session = session
        self._owns_session = session is None
        self.log = get_logger(__name__, LogContext(provider=self.provider_name))

    @staticmethod
    def _require(value: Optional[str], name: str) -> str:
        """Fail fast when a required credential is missing."""
        if not value:
            raise ConfigurationError(f"{name} is required")
        return value

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.http_config.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this adapter created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Perform an HTTP request and return the decoded body.

        Raises:
            ProviderError: For any HTTP status of 400 or above, carrying the
                status as ``code`` and the decoded body as ``details``
        """
        body, _ = await self._request_with_headers(
            method, path, params=params, json_body=json_body, data=data, headers=headers
        )
        return body

    async def _request_with_headers(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[Any, Mapping[str, str]]:
        """Like ``_request`` but also return the response headers."""
        session = await self._ensure_session()
        url = self._url(path)
        request_headers = {**self._headers, **(headers or {})}
        query = clean_params({**self._params, **(params or {})})

        logger.debug(f"{self.provider_name} {method} {url}")

        async with session.request(
            method,
            url,
            params=query or None,
            json=json_body,
            data=data,
            headers=request_headers,
        ) as response:
            body = await self._read_body(response)

            if response.status >= 400:
                raise ProviderError(
                    self._error_message(response.status, body),
                    code=response.status,
                    details=body,
                )

            return body, response.headers

    @staticmethod
    async def _read_body(response) -> Any:
        text = await response.text()
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    @staticmethod
    def _error_message(status: int, body: Any) -> str:
        if isinstance(body, dict):
            for key in ("message", "error", "msg"):
                value = body.get(key)
                if isinstance(value, str) and value:
                    return value
                if isinstance(value, dict) and value.get("message"):
                    return str(value["message"])
        return f"Request failed with status code {status}"

    async def _get(self, path: str, **kwargs) -> Any:
        return await self._request("GET", path, **kwargs)

    async def _post(self, path: str, **kwargs) -> Any:
        return await self._request("POST", path, **kwargs)

    async def _call(self, operation: str, provider_call: Callable[[], Awaitable[T]]) -> Envelope[T]:
        """Run a provider call and wrap the outcome in an envelope."""
        envelope = await invoke(provider_call, operation=f"{self.provider_name}.{operation}")
        if envelope.success:
            self.log.debug(f"{operation} succeeded", operation=operation)
        else:
            self.log.debug(f"{operation} failed", operation=operation, code=envelope.error.code)
        return envelope
