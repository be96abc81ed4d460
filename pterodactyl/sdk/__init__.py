"""Pterodactyl Python SDK: typed clients for the panel's Application and Client APIs."""

from __future__ import annotations

from pterodactyl.exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    ConnectionClosedError,
    DownloadError,
    InvalidArgumentError,
    NotFoundError,
    PterodactylError,
    RateLimitError,
    RequestBodyNotReplayableError,
    RequestCancelledError,
    RequestValidationError,
    ServerError,
    ValidationError,
    WebSocketConnectError,
)
from pterodactyl.logging_config import setup_logging
from pterodactyl.models import RateLimitInfo
from pterodactyl.sdk.client import AsyncPterodactylClient, PterodactylClient
from pterodactyl.services.pagination import ListOptions
from pterodactyl.services.transport import RetryPolicy
from pterodactyl.services.websocket import ReconnectPolicy

__all__ = [
    "AsyncPterodactylClient",
    "PterodactylClient",
    "PterodactylError",
    "APIError",
    "AuthenticationError",
    "ConflictError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "ValidationError",
    "InvalidArgumentError",
    "RequestValidationError",
    "RequestBodyNotReplayableError",
    "RequestCancelledError",
    "ConnectionClosedError",
    "WebSocketConnectError",
    "DownloadError",
    "RateLimitInfo",
    "ListOptions",
    "RetryPolicy",
    "setup_logging",
    "ReconnectPolicy",
]
