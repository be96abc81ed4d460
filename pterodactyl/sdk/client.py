"""Async and sync root clients for the Pterodactyl panel API."""

from __future__ import annotations

import logging
import threading
from typing import Any, TypeVar

import httpx
import pydantic

from pterodactyl.config import Settings, settings as default_settings
from pterodactyl.exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from pterodactyl.models import ErrorDetail, ErrorEnvelope, RateLimitInfo
from pterodactyl.sdk.application import ApplicationAPI, AsyncApplicationAPI
from pterodactyl.sdk.client_api import AsyncClientAPI, ClientAPI
from pterodactyl.services.pagination import AsyncPaginator, ListOptions, Paginator
from pterodactyl.services.transport import (
    CANCEL_EXTENSION,
    DEFAULT_API_VERSION,
    DEFAULT_USER_AGENT,
    AsyncRetryTransport,
    RetryPolicy,
    RetryTransport,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Maps HTTP status codes to exception classes.
_STATUS_MAP: dict[int, type[APIError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    429: RateLimitError,
}


def _parse_errors(response: httpx.Response) -> list[ErrorDetail]:
    """Extract the ``errors`` list from a JSON error body, if there is one."""
    if not response.content:
        return []
    try:
        return ErrorEnvelope.model_validate(response.json()).errors
    except (ValueError, pydantic.ValidationError):
        return []


def _build_exception(response: httpx.Response, rate_limit: RateLimitInfo) -> APIError:
    """Construct the appropriate exception for a non-2xx *response*."""
    status_code = response.status_code
    if status_code >= 500:
        exc_cls: type[APIError] = ServerError
    else:
        exc_cls = _STATUS_MAP.get(status_code, APIError)
    return exc_cls(
        status_code,
        errors=_parse_errors(response),
        rate_limit=rate_limit,
        method=response.request.method,
        url=str(response.request.url),
    )


def _api_base_url(panel_url: str) -> str:
    if not panel_url:
        raise InvalidArgumentError("panel_url cannot be empty")
    return panel_url.rstrip("/") + "/api/"


def _decode_json(response: httpx.Response) -> Any:
    # 204 and other empty bodies decode to None
    if not response.content:
        return None
    return response.json()


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------


class AsyncPterodactylClient:
    """Async client for the panel API (backed by ``httpx.AsyncClient``).

    ``application`` exposes the admin (``ptla_`` key) endpoints and
    ``client_api`` the per-user (``ptlc_`` key) endpoints.
    """

    def __init__(
        self,
        panel_url: str,
        api_key: str,
        timeout: float = 30.0,
        *,
        retry_policy: RetryPolicy | None = None,
        api_version: str = DEFAULT_API_VERSION,
        user_agent: str = DEFAULT_USER_AGENT,
        _transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_url = _api_base_url(panel_url)
        self.panel_url = panel_url.rstrip("/")
        transport = AsyncRetryTransport(
            _transport or httpx.AsyncHTTPTransport(),
            api_key,
            api_version=api_version,
            user_agent=user_agent,
            policy=retry_policy,
        )
        self._client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=timeout,
        )
        self.last_rate_limit: RateLimitInfo | None = None
        self.application = AsyncApplicationAPI(self)
        self.client_api = AsyncClientAPI(self)

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        **kwargs: Any,
    ) -> AsyncPterodactylClient:
        config = config or default_settings
        return cls(
            config.panel_url,
            config.api_key,
            config.timeout,
            retry_policy=RetryPolicy.from_settings(config),
            api_version=config.api_version,
            user_agent=config.user_agent,
            **kwargs,
        )

    # -- context manager -----------------------------------------------------

    async def __aenter__(self) -> AsyncPterodactylClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # -- internal ------------------------------------------------------------

    def _handle_response(self, response: httpx.Response) -> None:
        self.last_rate_limit = RateLimitInfo.from_headers(response.headers)
        if not response.is_success:
            exc = _build_exception(response, self.last_rate_limit)
            logger.debug("API error: %s", exc)
            raise exc

    async def _fetch(self, path: str, params: dict[str, str]) -> Any:
        return await self.request_json("GET", path, params=params)

    # -- public methods ------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request relative to ``<panel>/api/`` and check the response."""
        resp = await self._client.request(method, path, params=params, json=json)
        self._handle_response(resp)
        return resp

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        resp = await self.request(method, path, params=params, json=json)
        return _decode_json(resp)

    async def paginate(
        self,
        path: str,
        model: type[T],
        options: ListOptions | None = None,
    ) -> tuple[list[T], AsyncPaginator[T]]:
        """Fetch the first page of *path* and return it with a cursor."""
        return await AsyncPaginator.start(self._fetch, path, model, options)


# ---------------------------------------------------------------------------
# Sync client
# ---------------------------------------------------------------------------


class PterodactylClient:
    """Synchronous client for the panel API (backed by ``httpx.Client``).

    *cancel_event*, when given, aborts any retry or rate-limit wait in
    progress with :class:`~pterodactyl.exceptions.RequestCancelledError`
    once set. Individual calls to :meth:`request` may pass their own event.
    """

    def __init__(
        self,
        panel_url: str,
        api_key: str,
        timeout: float = 30.0,
        *,
        retry_policy: RetryPolicy | None = None,
        api_version: str = DEFAULT_API_VERSION,
        user_agent: str = DEFAULT_USER_AGENT,
        cancel_event: threading.Event | None = None,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        base_url = _api_base_url(panel_url)
        self.panel_url = panel_url.rstrip("/")
        transport = RetryTransport(
            _transport or httpx.HTTPTransport(),
            api_key,
            api_version=api_version,
            user_agent=user_agent,
            policy=retry_policy,
            cancel_event=cancel_event,
        )
        self._client = httpx.Client(
            base_url=base_url,
            transport=transport,
            timeout=timeout,
        )
        self.last_rate_limit: RateLimitInfo | None = None
        self.application = ApplicationAPI(self)
        self.client_api = ClientAPI(self)

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        **kwargs: Any,
    ) -> PterodactylClient:
        config = config or default_settings
        return cls(
            config.panel_url,
            config.api_key,
            config.timeout,
            retry_policy=RetryPolicy.from_settings(config),
            api_version=config.api_version,
            user_agent=config.user_agent,
            **kwargs,
        )

    # -- context manager -----------------------------------------------------

    def __enter__(self) -> PterodactylClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # -- internal ------------------------------------------------------------

    def _handle_response(self, response: httpx.Response) -> None:
        self.last_rate_limit = RateLimitInfo.from_headers(response.headers)
        if not response.is_success:
            exc = _build_exception(response, self.last_rate_limit)
            logger.debug("API error: %s", exc)
            raise exc

    def _fetch(self, path: str, params: dict[str, str]) -> Any:
        return self.request_json("GET", path, params=params)

    # -- public methods ------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        cancel_event: threading.Event | None = None,
    ) -> httpx.Response:
        """Send a request relative to ``<panel>/api/`` and check the response."""
        extensions = {CANCEL_EXTENSION: cancel_event} if cancel_event is not None else None
        resp = self._client.request(
            method, path, params=params, json=json, extensions=extensions,
        )
        self._handle_response(resp)
        return resp

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        cancel_event: threading.Event | None = None,
    ) -> Any:
        resp = self.request(
            method, path, params=params, json=json, cancel_event=cancel_event,
        )
        return _decode_json(resp)

    def paginate(
        self,
        path: str,
        model: type[T],
        options: ListOptions | None = None,
    ) -> tuple[list[T], Paginator[T]]:
        """Fetch the first page of *path* and return it with a cursor."""
        return Paginator.start(self._fetch, path, model, options)
