"""Generic forward-only paginator over the panel's list envelope.

``Paginator.start`` fetches the first page and returns ``(items, cursor)``;
the cursor then walks the remaining pages one request at a time::

    users, cursor = Paginator.start(fetch, "application/users", User, ListOptions())
    while cursor.has_more():
        users = cursor.next_page()

A cursor keeps no previous pages and cannot be rewound. It is not safe to
share a cursor between threads or tasks; start a new one instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Iterator, Mapping, TypeVar

from pterodactyl.exceptions import InvalidArgumentError
from pterodactyl.models import ListEnvelope

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 50
MAX_PER_PAGE = 100

# (path, query params) -> decoded JSON body
Fetch = Callable[[str, dict[str, str]], Any]
AsyncFetch = Callable[[str, dict[str, str]], Awaitable[Any]]


@dataclass(frozen=True)
class ListOptions:
    """Query options for list endpoints. Zero means "use the default"."""

    page: int = 0
    per_page: int = 0
    include: tuple[str, ...] = ()
    filter: Mapping[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if self.per_page < 0:
            raise InvalidArgumentError(
                f"per_page must be non-negative, got {self.per_page}"
            )
        if self.per_page > MAX_PER_PAGE:
            raise InvalidArgumentError(
                f"per_page must not exceed {MAX_PER_PAGE}, got {self.per_page}"
            )
        if self.page < 0:
            raise InvalidArgumentError(f"page must be non-negative, got {self.page}")

    def normalized(self) -> ListOptions:
        """Validate and substitute defaults for zero values."""
        self.validate()
        return ListOptions(
            page=self.page or DEFAULT_PAGE,
            per_page=self.per_page or DEFAULT_PER_PAGE,
            include=tuple(self.include),
            filter=dict(self.filter),
        )

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.page > 0:
            params["page"] = str(self.page)
        if self.per_page > 0:
            params["per_page"] = str(self.per_page)
        if self.include:
            params["include"] = ",".join(self.include)
        for key, value in self.filter.items():
            params[f"filter[{key}]"] = value
        return params


class _Cursor(Generic[T]):
    """Page bookkeeping shared by the sync and async paginators."""

    def __init__(self, path: str, options: ListOptions, model: type[T]) -> None:
        self.path = path
        self.options = options
        self.per_page = options.per_page
        self.current_page = options.page
        self.total_pages = 0
        self._envelope = ListEnvelope[model]  # type: ignore[valid-type]

    def has_more(self) -> bool:
        return self.current_page < self.total_pages

    def _params(self, page: int) -> dict[str, str]:
        params = self.options.to_params()
        params["page"] = str(page)
        params["per_page"] = str(self.per_page)
        return params

    def _decode(self, payload: Any) -> tuple[list[T], int]:
        envelope = self._envelope.model_validate(payload or {})
        return envelope.items(), envelope.meta.pagination.total_pages

    def _record_first(self, items: list[T], total_pages: int) -> None:
        # Some panel versions report total_pages=0 alongside a non-empty page
        if total_pages == 0 and items:
            total_pages = 1
        self.total_pages = total_pages

    def _record_next(self, page: int, total_pages: int) -> None:
        self.current_page = page
        # A later page claiming zero pages ends iteration here
        self.total_pages = total_pages if total_pages > 0 else page


class Paginator(_Cursor[T]):
    """Synchronous cursor over a paginated listing."""

    def __init__(
        self,
        fetch: Fetch,
        path: str,
        options: ListOptions,
        model: type[T],
    ) -> None:
        super().__init__(path, options, model)
        self._fetch = fetch

    @classmethod
    def start(
        cls,
        fetch: Fetch,
        path: str,
        model: type[T],
        options: ListOptions | None = None,
    ) -> tuple[list[T], Paginator[T]]:
        """Validate *options*, fetch the first page, return it with a cursor."""
        opts = (options or ListOptions()).normalized()
        cursor = cls(fetch, path, opts, model)
        items, total_pages = cursor._fetch_page(opts.page)
        cursor._record_first(items, total_pages)
        return items, cursor

    def next_page(self) -> list[T]:
        """Fetch the next page; ``[]`` without a request once exhausted."""
        if not self.has_more():
            return []
        page = self.current_page + 1
        items, total_pages = self._fetch_page(page)
        self._record_next(page, total_pages)
        return items

    def iter_remaining(self) -> Iterator[T]:
        """Yield every item of every page after the current one."""
        while self.has_more():
            yield from self.next_page()

    def _fetch_page(self, page: int) -> tuple[list[T], int]:
        logger.debug("Fetching %s page %d (per_page=%d)", self.path, page, self.per_page)
        return self._decode(self._fetch(self.path, self._params(page)))


class AsyncPaginator(_Cursor[T]):
    """Asynchronous cursor over a paginated listing."""

    def __init__(
        self,
        fetch: AsyncFetch,
        path: str,
        options: ListOptions,
        model: type[T],
    ) -> None:
        super().__init__(path, options, model)
        self._fetch = fetch

    @classmethod
    async def start(
        cls,
        fetch: AsyncFetch,
        path: str,
        model: type[T],
        options: ListOptions | None = None,
    ) -> tuple[list[T], AsyncPaginator[T]]:
        opts = (options or ListOptions()).normalized()
        cursor = cls(fetch, path, opts, model)
        items, total_pages = await cursor._fetch_page(opts.page)
        cursor._record_first(items, total_pages)
        return items, cursor

    async def next_page(self) -> list[T]:
        if not self.has_more():
            return []
        page = self.current_page + 1
        items, total_pages = await self._fetch_page(page)
        self._record_next(page, total_pages)
        return items

    async def iter_remaining(self) -> AsyncIterator[T]:
        while self.has_more():
            for item in await self.next_page():
                yield item

    async def _fetch_page(self, page: int) -> tuple[list[T], int]:
        logger.debug("Fetching %s page %d (per_page=%d)", self.path, page, self.per_page)
        return self._decode(await self._fetch(self.path, self._params(page)))
