"""Resilient httpx transports: auth headers, rate-limit waits and retries.

Every API call made by the SDK clients goes through ``RetryTransport`` (sync)
or ``AsyncRetryTransport`` (async). Both wrap an inner httpx transport and

- decorate each attempt with ``Accept``, ``Authorization`` and ``User-Agent``;
- retry transport errors and 5xx responses with capped exponential backoff
  plus up to 50% jitter;
- wait out 429 responses until ``X-RateLimit-Reset`` (bounded by
  ``rate_limit_max_wait``);
- share a single ``max_retries`` attempt budget between all of the above.

Non-429 4xx responses are returned untouched; turning them into exceptions
is the job of the client's response-checking layer.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Mapping

import httpx

from pterodactyl.config import Settings
from pterodactyl.exceptions import (
    InvalidArgumentError,
    RequestBodyNotReplayableError,
    RequestCancelledError,
)
from pterodactyl.models import RateLimitInfo
from pterodactyl.services.request_context import generate_request_id, request_id_var

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "v1"
DEFAULT_USER_AGENT = "pterodactyl-python/1.0"

# Request extension key for a per-request ``threading.Event`` (sync only).
CANCEL_EXTENSION = "cancel_event"

# Upper bound of the multiplicative jitter applied to backoff waits.
_JITTER_FRACTION = 0.5


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and wait bounds, in seconds."""

    max_retries: int = 3
    retry_wait_min: float = 1.0
    retry_wait_max: float = 5.0
    rate_limit_max_wait: float = 300.0

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise InvalidArgumentError(
                f"max_retries must be at least 1, got {self.max_retries}"
            )
        if self.retry_wait_min <= 0:
            raise InvalidArgumentError(
                f"retry_wait_min must be positive, got {self.retry_wait_min}"
            )
        if self.retry_wait_max < self.retry_wait_min:
            raise InvalidArgumentError(
                "retry_wait_max must not be smaller than retry_wait_min "
                f"({self.retry_wait_max} < {self.retry_wait_min})"
            )
        if self.rate_limit_max_wait <= 0:
            raise InvalidArgumentError(
                f"rate_limit_max_wait must be positive, got {self.rate_limit_max_wait}"
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_retries=settings.max_retries,
            retry_wait_min=settings.retry_wait_min,
            retry_wait_max=settings.retry_wait_max,
            rate_limit_max_wait=settings.rate_limit_max_wait,
        )


def parse_rate_limit(source: httpx.Response | Mapping[str, str] | None) -> RateLimitInfo:
    """Extract rate-limit info from a response (or bare headers)."""
    if source is None:
        return RateLimitInfo()
    headers = source.headers if isinstance(source, httpx.Response) else source
    return RateLimitInfo.from_headers(headers)


def backoff_delay(policy: RetryPolicy, attempt: int) -> float:
    """Wait after failed attempt number *attempt* (zero-based)."""
    base = min(policy.retry_wait_max, policy.retry_wait_min * (2 ** attempt))
    return base * (1 + random.random() * _JITTER_FRACTION)


def rate_limit_delay(
    policy: RetryPolicy,
    info: RateLimitInfo,
    now: float | None = None,
) -> float:
    """Seconds to wait before retrying a 429.

    A missing reset header and a reset time already in the past both fall
    back to ``retry_wait_min``.
    """
    if now is None:
        now = time.time()
    wait = info.reset - now
    if wait <= 0:
        return policy.retry_wait_min
    return min(wait, policy.rate_limit_max_wait)


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _check_replayable(request: httpx.Request) -> None:
    # Bodies built from bytes/str/json/form are ByteStreams and can be
    # re-sent; generator bodies are consumed by the first attempt.
    if not isinstance(request.stream, httpx.ByteStream):
        raise RequestBodyNotReplayableError(
            f"{request.method} {request.url}: request body is a one-shot "
            "stream and cannot be retried; pass bytes, str or json instead"
        )


class _HeaderDecorator:
    """Shared construction and header injection for both transports."""

    def __init__(
        self,
        api_key: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        user_agent: str = DEFAULT_USER_AGENT,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._headers = {
            "Accept": f"Application/vnd.pterodactyl.{api_version}+json",
            "Authorization": f"Bearer {api_key}",
            "User-Agent": user_agent,
        }

    def _decorate(self, request: httpx.Request) -> None:
        for name, value in self._headers.items():
            request.headers[name] = value


class RetryTransport(_HeaderDecorator, httpx.BaseTransport):
    """Synchronous retrying transport.

    Waits block on a ``threading.Event`` so they can be interrupted: either
    the transport-wide *cancel_event* or a per-request one passed as
    ``extensions={"cancel_event": event}``. A fired event raises
    :class:`RequestCancelledError`.
    """

    def __init__(
        self,
        transport: httpx.BaseTransport,
        api_key: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        user_agent: str = DEFAULT_USER_AGENT,
        policy: RetryPolicy | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        super().__init__(
            api_key, api_version=api_version, user_agent=user_agent, policy=policy,
        )
        self._transport = transport
        self._cancel_event = cancel_event

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        _check_replayable(request)
        cancel = request.extensions.get(CANCEL_EXTENSION, self._cancel_event)
        token = None
        if not request_id_var.get():
            token = request_id_var.set(generate_request_id())
        try:
            return self._send_with_retries(request, cancel)
        finally:
            if token is not None:
                request_id_var.reset(token)

    def _send_with_retries(
        self,
        request: httpx.Request,
        cancel: threading.Event | None,
    ) -> httpx.Response:
        policy = self.policy
        last_attempt = policy.max_retries - 1

        for attempt in range(policy.max_retries):
            if cancel is not None and cancel.is_set():
                raise RequestCancelledError(f"{request.method} {request.url} cancelled")

            self._decorate(request)
            logger.debug(
                "%s %s attempt %d/%d",
                request.method, request.url, attempt + 1, policy.max_retries,
            )
            try:
                response = self._transport.handle_request(request)
            except httpx.TransportError as exc:
                if attempt >= last_attempt:
                    logger.warning(
                        "%s %s failed after %d attempts: %s",
                        request.method, request.url, attempt + 1, exc,
                    )
                    raise
                wait = backoff_delay(policy, attempt)
                logger.warning(
                    "%s %s raised %s, retrying in %.2fs (attempt %d/%d)",
                    request.method, request.url, type(exc).__name__, wait,
                    attempt + 1, policy.max_retries,
                )
                self._wait(wait, cancel, request)
                continue

            if not _is_retryable_status(response.status_code) or attempt >= last_attempt:
                return response

            if response.status_code == 429:
                wait = rate_limit_delay(policy, parse_rate_limit(response))
            else:
                wait = backoff_delay(policy, attempt)
            logger.warning(
                "%s %s returned %d, retrying in %.2fs (attempt %d/%d)",
                request.method, request.url, response.status_code, wait,
                attempt + 1, policy.max_retries,
            )
            # Drain so the connection can go back to the pool
            response.read()
            response.close()
            self._wait(wait, cancel, request)

        raise AssertionError("unreachable: retry loop always returns or raises")

    @staticmethod
    def _wait(
        seconds: float,
        cancel: threading.Event | None,
        request: httpx.Request,
    ) -> None:
        if cancel is None:
            time.sleep(seconds)
            return
        if cancel.wait(seconds):
            raise RequestCancelledError(f"{request.method} {request.url} cancelled")

    def close(self) -> None:
        self._transport.close()


class AsyncRetryTransport(_HeaderDecorator, httpx.AsyncBaseTransport):
    """Asynchronous retrying transport.

    Waits use ``asyncio.sleep``; cancelling the calling task aborts a wait
    immediately with ``asyncio.CancelledError``.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        api_key: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        user_agent: str = DEFAULT_USER_AGENT,
        policy: RetryPolicy | None = None,
    ) -> None:
        super().__init__(
            api_key, api_version=api_version, user_agent=user_agent, policy=policy,
        )
        self._transport = transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        _check_replayable(request)
        token = None
        if not request_id_var.get():
            token = request_id_var.set(generate_request_id())
        try:
            return await self._send_with_retries(request)
        finally:
            if token is not None:
                request_id_var.reset(token)

    async def _send_with_retries(self, request: httpx.Request) -> httpx.Response:
        policy = self.policy
        last_attempt = policy.max_retries - 1

        for attempt in range(policy.max_retries):
            self._decorate(request)
            logger.debug(
                "%s %s attempt %d/%d",
                request.method, request.url, attempt + 1, policy.max_retries,
            )
            try:
                response = await self._transport.handle_async_request(request)
            except httpx.TransportError as exc:
                if attempt >= last_attempt:
                    logger.warning(
                        "%s %s failed after %d attempts: %s",
                        request.method, request.url, attempt + 1, exc,
                    )
                    raise
                wait = backoff_delay(policy, attempt)
                logger.warning(
                    "%s %s raised %s, retrying in %.2fs (attempt %d/%d)",
                    request.method, request.url, type(exc).__name__, wait,
                    attempt + 1, policy.max_retries,
                )
                await asyncio.sleep(wait)
                continue

            if not _is_retryable_status(response.status_code) or attempt >= last_attempt:
                return response

            if response.status_code == 429:
                wait = rate_limit_delay(policy, parse_rate_limit(response))
            else:
                wait = backoff_delay(policy, attempt)
            logger.warning(
                "%s %s returned %d, retrying in %.2fs (attempt %d/%d)",
                request.method, request.url, response.status_code, wait,
                attempt + 1, policy.max_retries,
            )
            await response.aread()
            await response.aclose()
            await asyncio.sleep(wait)

        raise AssertionError("unreachable: retry loop always returns or raises")

    async def aclose(self) -> None:
        await self._transport.aclose()
