"""Models used by the SDK: rate-limit metadata, wire envelopes and resource DTOs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generic, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

POWER_SIGNALS: tuple[str, ...] = ("start", "stop", "restart", "kill")


def _header_int(headers: Mapping[str, str], name: str) -> int:
    raw = headers.get(name)
    if raw is None:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0


def _header_float(headers: Mapping[str, str], name: str) -> float:
    raw = headers.get(name)
    if raw is None:
        return 0.0
    try:
        return float(raw)
    except ValueError:
        return 0.0


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate-limit metadata parsed from response headers.

    The zero value (all fields 0) means the response carried no
    rate-limit headers. ``reset`` is a unix timestamp in seconds.
    """

    limit: int = 0
    remaining: int = 0
    reset: float = 0.0

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> RateLimitInfo:
        """Parse ``X-RateLimit-*`` headers; unparsable values count as absent."""
        return cls(
            limit=_header_int(headers, "x-ratelimit-limit"),
            remaining=_header_int(headers, "x-ratelimit-remaining"),
            reset=_header_float(headers, "x-ratelimit-reset"),
        )

    @property
    def present(self) -> bool:
        return bool(self.limit or self.remaining or self.reset)

    @property
    def reset_at(self) -> datetime | None:
        if not self.reset:
            return None
        return datetime.fromtimestamp(self.reset, tz=timezone.utc)


# ---------------------------------------------------------------------------
# Wire envelopes
# ---------------------------------------------------------------------------


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ErrorSource(_Model):
    field: str = ""


class ErrorDetail(_Model):
    """A single item of the ``{"errors": [...]}`` envelope."""

    code: str = ""
    status: str = ""
    detail: str = ""
    source: ErrorSource | None = None


class ErrorEnvelope(_Model):
    errors: list[ErrorDetail] = Field(default_factory=list)


class Pagination(_Model):
    total: int = 0
    count: int = 0
    per_page: int = 0
    current_page: int = 0
    total_pages: int = 0


class Meta(_Model):
    pagination: Pagination = Field(default_factory=Pagination)


class ListItem(_Model, Generic[T]):
    object: str = ""
    attributes: T


class ListEnvelope(_Model, Generic[T]):
    """``{"object": "list", "data": [{object, attributes}], "meta": {...}}``."""

    object: str = "list"
    data: list[ListItem[T]] = Field(default_factory=list)
    meta: Meta = Field(default_factory=Meta)

    def items(self) -> list[T]:
        return [item.attributes for item in self.data]


class ItemEnvelope(_Model, Generic[T]):
    object: str = ""
    attributes: T


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class Resources(_Model):
    """Live resource usage of a server."""

    memory_bytes: int = 0
    memory_limit_bytes: int = 0
    cpu_absolute: float = 0.0
    disk_bytes: int = 0
    network_rx_bytes: int = 0
    network_tx_bytes: int = 0
    uptime: int = 0


class Stats(_Model):
    current_state: str = ""
    is_suspended: bool = False
    resources: Resources = Field(default_factory=Resources)


class Limits(_Model):
    memory: int = 0
    swap: int = 0
    disk: int = 0
    io: int = 0
    cpu: int = 0
    threads: str | None = None
    oom_disabled: bool | None = None


class FeatureLimits(_Model):
    databases: int = 0
    allocations: int = 0
    backups: int = 0


class Allocation(_Model):
    id: int = 0
    ip: str = ""
    ip_alias: str | None = None
    port: int = 0
    notes: str | None = None
    is_default: bool = False


class User(_Model):
    id: int = 0
    external_id: str | None = None
    uuid: str = ""
    username: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    language: str = ""
    root_admin: bool = False
    two_factor: bool = Field(False, alias="2fa")
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Server(_Model):
    id: int = 0
    external_id: str | None = None
    uuid: str = ""
    identifier: str = ""
    name: str = ""
    description: str = ""
    status: str | None = None
    suspended: bool = Field(False, alias="is_suspended")
    user: int = 0
    node: int | str = 0
    allocation: int = 0
    nest: int = 0
    egg: int = 0
    docker_image: str = ""
    limits: Limits = Field(default_factory=Limits)
    feature_limits: FeatureLimits = Field(default_factory=FeatureLimits)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Node(_Model):
    id: int = 0
    uuid: str = ""
    public: bool = False
    name: str = ""
    description: str | None = None
    location_id: int = 0
    fqdn: str = ""
    scheme: str = ""
    behind_proxy: bool = False
    maintenance_mode: bool = False
    memory: int = 0
    memory_overallocate: int = 0
    disk: int = 0
    disk_overallocate: int = 0
    upload_size: int = 0
    daemon_listen: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Location(_Model):
    id: int = 0
    short: str = ""
    long: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Backup(_Model):
    uuid: str = ""
    name: str = ""
    ignored_files: list[str] = Field(default_factory=list)
    sha256_hash: str | None = None
    bytes: int = 0
    created_at: datetime | None = None
    completed_at: datetime | None = None
    is_successful: bool = False
    is_locked: bool = False


class SignedURL(_Model):
    url: str


class WebsocketCredentials(_Model):
    token: str
    socket: str


def unwrap(model: type[T], body: object) -> T:
    """Return the ``attributes`` of a single ``{"object", "attributes"}`` response."""
    return ItemEnvelope[model].model_validate(body or {}).attributes  # type: ignore[valid-type]
