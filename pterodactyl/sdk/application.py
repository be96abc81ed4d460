"""Application API: admin endpoints under ``/api/application`` (``ptla_`` keys)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from pterodactyl.models import Location, Node, Server, User, unwrap
from pterodactyl.services.pagination import AsyncPaginator, ListOptions, Paginator
from pterodactyl.services.validation import (
    CreateLocationRequest,
    CreateUserRequest,
    UpdateUserRequest,
    require_id,
    validate_request,
)

if TYPE_CHECKING:
    from pterodactyl.sdk.client import AsyncPterodactylClient, PterodactylClient

_USERS = "application/users"
_SERVERS = "application/servers"
_NODES = "application/nodes"
_LOCATIONS = "application/locations"


def _server_delete_path(server_id: int | str, force: bool) -> str:
    path = f"{_SERVERS}/{require_id(server_id, 'server_id')}"
    return f"{path}/force" if force else path


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class Users:
    def __init__(self, client: PterodactylClient) -> None:
        self._client = client

    def list(self, options: ListOptions | None = None) -> tuple[list[User], Paginator[User]]:
        return self._client.paginate(_USERS, User, options)

    def list_all(self, options: ListOptions | None = None) -> list[User]:
        """Every user across all pages."""
        users, cursor = self.list(options)
        users.extend(cursor.iter_remaining())
        return users

    def get(self, user_id: int | str) -> User:
        body = self._client.request_json("GET", f"{_USERS}/{require_id(user_id, 'user_id')}")
        return unwrap(User, body)

    def get_external(self, external_id: str) -> User:
        path = f"{_USERS}/external/{require_id(external_id, 'external_id')}"
        return unwrap(User, self._client.request_json("GET", path))

    def create(self, request: CreateUserRequest | Mapping[str, Any]) -> User:
        payload = validate_request(CreateUserRequest, request).payload()
        return unwrap(User, self._client.request_json("POST", _USERS, json=payload))

    def update(self, user_id: int | str, request: UpdateUserRequest | Mapping[str, Any]) -> User:
        payload = validate_request(UpdateUserRequest, request).payload()
        path = f"{_USERS}/{require_id(user_id, 'user_id')}"
        return unwrap(User, self._client.request_json("PATCH", path, json=payload))

    def delete(self, user_id: int | str) -> None:
        self._client.request("DELETE", f"{_USERS}/{require_id(user_id, 'user_id')}")


class Servers:
    def __init__(self, client: PterodactylClient) -> None:
        self._client = client

    def list(self, options: ListOptions | None = None) -> tuple[list[Server], Paginator[Server]]:
        return self._client.paginate(_SERVERS, Server, options)

    def get(self, server_id: int | str) -> Server:
        path = f"{_SERVERS}/{require_id(server_id, 'server_id')}"
        return unwrap(Server, self._client.request_json("GET", path))

    def suspend(self, server_id: int | str) -> None:
        self._client.request("POST", f"{_SERVERS}/{require_id(server_id, 'server_id')}/suspend")

    def unsuspend(self, server_id: int | str) -> None:
        self._client.request("POST", f"{_SERVERS}/{require_id(server_id, 'server_id')}/unsuspend")

    def reinstall(self, server_id: int | str) -> None:
        self._client.request("POST", f"{_SERVERS}/{require_id(server_id, 'server_id')}/reinstall")

    def delete(self, server_id: int | str, force: bool = False) -> None:
        self._client.request("DELETE", _server_delete_path(server_id, force))


class Nodes:
    def __init__(self, client: PterodactylClient) -> None:
        self._client = client

    def list(self, options: ListOptions | None = None) -> tuple[list[Node], Paginator[Node]]:
        return self._client.paginate(_NODES, Node, options)

    def get(self, node_id: int | str) -> Node:
        path = f"{_NODES}/{require_id(node_id, 'node_id')}"
        return unwrap(Node, self._client.request_json("GET", path))


class Locations:
    def __init__(self, client: PterodactylClient) -> None:
        self._client = client

    def list(
        self, options: ListOptions | None = None,
    ) -> tuple[list[Location], Paginator[Location]]:
        return self._client.paginate(_LOCATIONS, Location, options)

    def get(self, location_id: int | str) -> Location:
        path = f"{_LOCATIONS}/{require_id(location_id, 'location_id')}"
        return unwrap(Location, self._client.request_json("GET", path))

    def create(self, request: CreateLocationRequest | Mapping[str, Any]) -> Location:
        payload = validate_request(CreateLocationRequest, request).payload()
        return unwrap(Location, self._client.request_json("POST", _LOCATIONS, json=payload))

    def delete(self, location_id: int | str) -> None:
        self._client.request("DELETE", f"{_LOCATIONS}/{require_id(location_id, 'location_id')}")


class ApplicationAPI:
    """Admin endpoints, grouped by resource."""

    def __init__(self, client: PterodactylClient) -> None:
        self.users = Users(client)
        self.servers = Servers(client)
        self.nodes = Nodes(client)
        self.locations = Locations(client)


# ---------------------------------------------------------------------------
# Async
# ---------------------------------------------------------------------------


class AsyncUsers:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self._client = client

    async def list(
        self, options: ListOptions | None = None,
    ) -> tuple[list[User], AsyncPaginator[User]]:
        return await self._client.paginate(_USERS, User, options)

    async def list_all(self, options: ListOptions | None = None) -> list[User]:
        users, cursor = await self.list(options)
        async for user in cursor.iter_remaining():
            users.append(user)
        return users

    async def get(self, user_id: int | str) -> User:
        path = f"{_USERS}/{require_id(user_id, 'user_id')}"
        return unwrap(User, await self._client.request_json("GET", path))

    async def get_external(self, external_id: str) -> User:
        path = f"{_USERS}/external/{require_id(external_id, 'external_id')}"
        return unwrap(User, await self._client.request_json("GET", path))

    async def create(self, request: CreateUserRequest | Mapping[str, Any]) -> User:
        payload = validate_request(CreateUserRequest, request).payload()
        return unwrap(User, await self._client.request_json("POST", _USERS, json=payload))

    async def update(
        self, user_id: int | str, request: UpdateUserRequest | Mapping[str, Any],
    ) -> User:
        payload = validate_request(UpdateUserRequest, request).payload()
        path = f"{_USERS}/{require_id(user_id, 'user_id')}"
        return unwrap(User, await self._client.request_json("PATCH", path, json=payload))

    async def delete(self, user_id: int | str) -> None:
        await self._client.request("DELETE", f"{_USERS}/{require_id(user_id, 'user_id')}")


class AsyncServers:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self._client = client

    async def list(
        self, options: ListOptions | None = None,
    ) -> tuple[list[Server], AsyncPaginator[Server]]:
        return await self._client.paginate(_SERVERS, Server, options)

    async def get(self, server_id: int | str) -> Server:
        path = f"{_SERVERS}/{require_id(server_id, 'server_id')}"
        return unwrap(Server, await self._client.request_json("GET", path))

    async def suspend(self, server_id: int | str) -> None:
        await self._client.request(
            "POST", f"{_SERVERS}/{require_id(server_id, 'server_id')}/suspend",
        )

    async def unsuspend(self, server_id: int | str) -> None:
        await self._client.request(
            "POST", f"{_SERVERS}/{require_id(server_id, 'server_id')}/unsuspend",
        )

    async def reinstall(self, server_id: int | str) -> None:
        await self._client.request(
            "POST", f"{_SERVERS}/{require_id(server_id, 'server_id')}/reinstall",
        )

    async def delete(self, server_id: int | str, force: bool = False) -> None:
        await self._client.request("DELETE", _server_delete_path(server_id, force))


class AsyncNodes:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self._client = client

    async def list(
        self, options: ListOptions | None = None,
    ) -> tuple[list[Node], AsyncPaginator[Node]]:
        return await self._client.paginate(_NODES, Node, options)

    async def get(self, node_id: int | str) -> Node:
        path = f"{_NODES}/{require_id(node_id, 'node_id')}"
        return unwrap(Node, await self._client.request_json("GET", path))


class AsyncLocations:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self._client = client

    async def list(
        self, options: ListOptions | None = None,
    ) -> tuple[list[Location], AsyncPaginator[Location]]:
        return await self._client.paginate(_LOCATIONS, Location, options)

    async def get(self, location_id: int | str) -> Location:
        path = f"{_LOCATIONS}/{require_id(location_id, 'location_id')}"
        return unwrap(Location, await self._client.request_json("GET", path))

    async def create(self, request: CreateLocationRequest | Mapping[str, Any]) -> Location:
        payload = validate_request(CreateLocationRequest, request).payload()
        body = await self._client.request_json("POST", _LOCATIONS, json=payload)
        return unwrap(Location, body)

    async def delete(self, location_id: int | str) -> None:
        await self._client.request(
            "DELETE", f"{_LOCATIONS}/{require_id(location_id, 'location_id')}",
        )


class AsyncApplicationAPI:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self.users = AsyncUsers(client)
        self.servers = AsyncServers(client)
        self.nodes = AsyncNodes(client)
        self.locations = AsyncLocations(client)
