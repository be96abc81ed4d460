"""Exception hierarchy for the Pterodactyl SDK."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pterodactyl.models import ErrorDetail, RateLimitInfo
    from pterodactyl.services.validation import FieldError


class PterodactylError(Exception):
    """Base exception for everything raised by the SDK."""


class APIError(PterodactylError):
    """A non-2xx response from the panel, with the parsed error envelope."""

    def __init__(
        self,
        status_code: int,
        errors: list[ErrorDetail] | None = None,
        rate_limit: RateLimitInfo | None = None,
        method: str = "",
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.errors = list(errors or [])
        self.rate_limit = rate_limit
        self.method = method
        self.url = url
        super().__init__(self._format())

    @property
    def detail(self) -> str:
        """All error details joined, or an empty string."""
        return "; ".join(e.detail for e in self.errors if e.detail)

    def _format(self) -> str:
        parts: list[str] = []
        if self.method and self.url:
            parts.append(f"{self.method} {self.url}")
        parts.append(f"status {self.status_code}")
        if self.errors:
            messages = []
            for err in self.errors:
                msg = err.detail
                if err.source is not None and err.source.field:
                    msg = f"{msg} (field: {err.source.field})"
                messages.append(msg)
            parts.append("; ".join(messages))
        return "pterodactyl: " + ": ".join(parts)


class ValidationError(APIError):
    """Raised on 400 or 422 responses."""


class AuthenticationError(APIError):
    """Raised on 401 or 403 responses."""


class NotFoundError(APIError):
    """Raised on 404 responses."""


class ConflictError(APIError):
    """Raised on 409 responses."""


class RateLimitError(APIError):
    """Raised on a 429 response that survived every retry."""


class ServerError(APIError):
    """Raised on 5xx responses that survived every retry."""


class InvalidArgumentError(PterodactylError, ValueError):
    """A caller-supplied argument was rejected before any network call."""


class RequestValidationError(PterodactylError, ValueError):
    """A request payload failed local validation."""

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = errors
        if errors:
            lines = "".join(f"\n  - {e.message}" for e in errors)
            message = f"validation failed:{lines}"
        else:
            message = "validation error"
        super().__init__(message)


class RequestBodyNotReplayableError(PterodactylError):
    """The request body is a one-shot stream and cannot be retried."""


class RequestCancelledError(PterodactylError):
    """The caller's cancel event fired while a request was waiting to retry."""


class ConnectionClosedError(PterodactylError):
    """No live WebSocket is currently held by the connection."""


class WebSocketConnectError(PterodactylError):
    """The initial WebSocket dial or auth handshake failed."""


class DownloadError(PterodactylError):
    """A signed-URL download returned a non-200 status."""

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"download failed with status {status_code}")
