"""Local validation of request payloads before they are sent.

Request DTOs are plain pydantic models; :func:`validate_request` turns
pydantic's error list into :class:`FieldError` items with readable messages
and raises :class:`RequestValidationError`. Nothing here keeps state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from pterodactyl.exceptions import InvalidArgumentError, RequestValidationError

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class FieldError:
    field: str
    tag: str
    value: Any
    message: str


def _limit(ctx: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in ctx:
            return ctx[key]
    return "?"


def _message(field: str, err_type: str, ctx: Mapping[str, Any]) -> str:
    if err_type == "missing":
        return f"field '{field}' is required"
    if err_type == "string_too_short":
        return f"field '{field}' must be at least {_limit(ctx, 'min_length')} characters long"
    if err_type == "string_too_long":
        return f"field '{field}' must be at most {_limit(ctx, 'max_length')} characters long"
    if err_type == "too_short":
        return f"field '{field}' must have at least {_limit(ctx, 'min_length')} items"
    if err_type == "too_long":
        return f"field '{field}' must have at most {_limit(ctx, 'max_length')} items"
    if err_type == "greater_than_equal":
        return f"field '{field}' must be greater than or equal to {_limit(ctx, 'ge')}"
    if err_type == "less_than_equal":
        return f"field '{field}' must be less than or equal to {_limit(ctx, 'le')}"
    if err_type == "greater_than":
        return f"field '{field}' must be greater than {_limit(ctx, 'gt')}"
    if err_type == "less_than":
        return f"field '{field}' must be less than {_limit(ctx, 'lt')}"
    if err_type == "string_pattern_mismatch":
        return f"field '{field}' does not match the expected format"
    if err_type in ("literal_error", "enum"):
        return f"field '{field}' must be one of [{_limit(ctx, 'expected')}]"
    return f"field '{field}' failed validation '{err_type}'"


def field_errors(exc: pydantic.ValidationError) -> list[FieldError]:
    """Flatten a pydantic ``ValidationError`` into :class:`FieldError` items."""
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "__root__"
        ctx = err.get("ctx") or {}
        errors.append(
            FieldError(
                field=field,
                tag=err["type"],
                value=err.get("input"),
                message=_message(field, err["type"], ctx),
            )
        )
    return errors


def validate_request(model: type[M], data: M | Mapping[str, Any]) -> M:
    """Return *data* as a validated *model* instance or raise ``RequestValidationError``."""
    if isinstance(data, model):
        data = data.model_dump(by_alias=True)
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise RequestValidationError(field_errors(exc)) from exc


def require_id(value: int | str, name: str) -> str:
    """Path identifiers must be non-empty; returns the value as a string."""
    text = str(value).strip() if value is not None else ""
    if not text:
        raise InvalidArgumentError(f"{name} cannot be empty")
    return text


# ---------------------------------------------------------------------------
# Request DTOs
# ---------------------------------------------------------------------------

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, by_alias=True)


class CreateUserRequest(_Request):
    email: str = Field(..., pattern=_EMAIL_PATTERN)
    username: str = Field(..., min_length=1, max_length=191)
    first_name: str = Field(..., min_length=1, max_length=191)
    last_name: str = Field(..., min_length=1, max_length=191)
    external_id: str | None = Field(None, max_length=191)
    password: str | None = Field(None, min_length=8)
    root_admin: bool | None = None
    language: str | None = None


class UpdateUserRequest(_Request):
    email: str = Field(..., pattern=_EMAIL_PATTERN)
    username: str = Field(..., min_length=1, max_length=191)
    first_name: str = Field(..., min_length=1, max_length=191)
    last_name: str = Field(..., min_length=1, max_length=191)
    external_id: str | None = Field(None, max_length=191)
    password: str | None = Field(None, min_length=8)
    root_admin: bool | None = None
    language: str | None = None


class CreateLocationRequest(_Request):
    short: str = Field(..., min_length=1, max_length=60)
    long: str | None = Field(None, max_length=191)


class CreateBackupRequest(_Request):
    name: str | None = Field(None, min_length=1, max_length=191)
    ignored: str | None = None
    is_locked: bool | None = None
