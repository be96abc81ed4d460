"""Client API: per-user endpoints under ``/api/client`` (``ptlc_`` keys)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from pterodactyl.exceptions import InvalidArgumentError
from pterodactyl.models import (
    POWER_SIGNALS,
    Backup,
    Server,
    SignedURL,
    Stats,
    User,
    WebsocketCredentials,
    unwrap,
)
from pterodactyl.services.pagination import AsyncPaginator, ListOptions, Paginator
from pterodactyl.services.validation import CreateBackupRequest, require_id, validate_request
from pterodactyl.services.websocket import Connection, ReconnectPolicy, connect

if TYPE_CHECKING:
    from pterodactyl.sdk.client import AsyncPterodactylClient, PterodactylClient


def _server_path(server_id: str) -> str:
    return f"client/servers/{require_id(server_id, 'server_id')}"


def _backup_path(server_id: str, backup_id: str) -> str:
    return f"{_server_path(server_id)}/backups/{require_id(backup_id, 'backup_id')}"


def _power_payload(signal: str) -> dict[str, str]:
    if signal not in POWER_SIGNALS:
        raise InvalidArgumentError(
            f"invalid power signal {signal!r}, must be one of: {', '.join(POWER_SIGNALS)}"
        )
    return {"signal": signal}


def _command_payload(command: str) -> dict[str, str]:
    if not command:
        raise InvalidArgumentError("command cannot be empty")
    return {"command": command}


def _credentials(body: Any) -> WebsocketCredentials:
    # This endpoint wraps its payload in "data" rather than "attributes"
    return WebsocketCredentials.model_validate((body or {}).get("data") or {})


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class Account:
    def __init__(self, client: PterodactylClient) -> None:
        self._client = client

    def get(self) -> User:
        return unwrap(User, self._client.request_json("GET", "client/account"))


class ClientServers:
    def __init__(self, client: PterodactylClient) -> None:
        self._client = client

    def list(self, options: ListOptions | None = None) -> tuple[list[Server], Paginator[Server]]:
        return self._client.paginate("client", Server, options)

    def get(self, server_id: str) -> Server:
        return unwrap(Server, self._client.request_json("GET", _server_path(server_id)))

    def resources(self, server_id: str) -> Stats:
        path = f"{_server_path(server_id)}/resources"
        return unwrap(Stats, self._client.request_json("GET", path))

    def send_power_action(self, server_id: str, signal: str) -> None:
        payload = _power_payload(signal)
        self._client.request("POST", f"{_server_path(server_id)}/power", json=payload)

    def send_command(self, server_id: str, command: str) -> None:
        payload = _command_payload(command)
        self._client.request("POST", f"{_server_path(server_id)}/command", json=payload)

    def websocket_credentials(self, server_id: str) -> WebsocketCredentials:
        path = f"{_server_path(server_id)}/websocket"
        return _credentials(self._client.request_json("GET", path))


class Backups:
    def __init__(self, client: PterodactylClient) -> None:
        self._client = client

    def list(
        self, server_id: str, options: ListOptions | None = None,
    ) -> tuple[list[Backup], Paginator[Backup]]:
        return self._client.paginate(f"{_server_path(server_id)}/backups", Backup, options)

    def get(self, server_id: str, backup_id: str) -> Backup:
        return unwrap(Backup, self._client.request_json("GET", _backup_path(server_id, backup_id)))

    def create(
        self,
        server_id: str,
        request: CreateBackupRequest | Mapping[str, Any] | None = None,
    ) -> Backup:
        path = f"{_server_path(server_id)}/backups"
        payload = validate_request(CreateBackupRequest, request or {}).payload()
        return unwrap(Backup, self._client.request_json("POST", path, json=payload))

    def download_url(self, server_id: str, backup_id: str) -> str:
        path = f"{_backup_path(server_id, backup_id)}/download"
        return unwrap(SignedURL, self._client.request_json("GET", path)).url

    def delete(self, server_id: str, backup_id: str) -> None:
        self._client.request("DELETE", _backup_path(server_id, backup_id))


class Files:
    def __init__(self, client: PterodactylClient) -> None:
        self._client = client

    def download_url(self, server_id: str, file_path: str) -> str:
        """A one-time signed URL for *file_path* on the server."""
        path = f"{_server_path(server_id)}/files/download"
        params = {"file": require_id(file_path, "file_path")}
        return unwrap(SignedURL, self._client.request_json("GET", path, params=params)).url


class ClientAPI:
    """Per-user endpoints, grouped by resource."""

    def __init__(self, client: PterodactylClient) -> None:
        self.account = Account(client)
        self.servers = ClientServers(client)
        self.backups = Backups(client)
        self.files = Files(client)


# ---------------------------------------------------------------------------
# Async
# ---------------------------------------------------------------------------


class AsyncAccount:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self._client = client

    async def get(self) -> User:
        return unwrap(User, await self._client.request_json("GET", "client/account"))


class AsyncClientServers:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self._client = client

    async def list(
        self, options: ListOptions | None = None,
    ) -> tuple[list[Server], AsyncPaginator[Server]]:
        return await self._client.paginate("client", Server, options)

    async def get(self, server_id: str) -> Server:
        return unwrap(Server, await self._client.request_json("GET", _server_path(server_id)))

    async def resources(self, server_id: str) -> Stats:
        path = f"{_server_path(server_id)}/resources"
        return unwrap(Stats, await self._client.request_json("GET", path))

    async def send_power_action(self, server_id: str, signal: str) -> None:
        payload = _power_payload(signal)
        await self._client.request("POST", f"{_server_path(server_id)}/power", json=payload)

    async def send_command(self, server_id: str, command: str) -> None:
        payload = _command_payload(command)
        await self._client.request("POST", f"{_server_path(server_id)}/command", json=payload)

    async def websocket_credentials(self, server_id: str) -> WebsocketCredentials:
        path = f"{_server_path(server_id)}/websocket"
        return _credentials(await self._client.request_json("GET", path))

    async def connect_websocket(
        self,
        server_id: str,
        reconnect: ReconnectPolicy | None = None,
    ) -> Connection:
        """Fetch fresh credentials and open the server's console stream.

        The panel URL is sent as ``Origin``, which Wings requires.
        """
        creds = await self.websocket_credentials(server_id)
        return await connect(
            creds.socket, creds.token, reconnect, origin=self._client.panel_url,
        )


class AsyncBackups:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self._client = client

    async def list(
        self, server_id: str, options: ListOptions | None = None,
    ) -> tuple[list[Backup], AsyncPaginator[Backup]]:
        return await self._client.paginate(
            f"{_server_path(server_id)}/backups", Backup, options,
        )

    async def get(self, server_id: str, backup_id: str) -> Backup:
        body = await self._client.request_json("GET", _backup_path(server_id, backup_id))
        return unwrap(Backup, body)

    async def create(
        self,
        server_id: str,
        request: CreateBackupRequest | Mapping[str, Any] | None = None,
    ) -> Backup:
        path = f"{_server_path(server_id)}/backups"
        payload = validate_request(CreateBackupRequest, request or {}).payload()
        return unwrap(Backup, await self._client.request_json("POST", path, json=payload))

    async def download_url(self, server_id: str, backup_id: str) -> str:
        path = f"{_backup_path(server_id, backup_id)}/download"
        return unwrap(SignedURL, await self._client.request_json("GET", path)).url

    async def delete(self, server_id: str, backup_id: str) -> None:
        await self._client.request("DELETE", _backup_path(server_id, backup_id))


class AsyncFiles:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self._client = client

    async def download_url(self, server_id: str, file_path: str) -> str:
        path = f"{_server_path(server_id)}/files/download"
        params = {"file": require_id(file_path, "file_path")}
        body = await self._client.request_json("GET", path, params=params)
        return unwrap(SignedURL, body).url


class AsyncClientAPI:
    def __init__(self, client: AsyncPterodactylClient) -> None:
        self.account = AsyncAccount(client)
        self.servers = AsyncClientServers(client)
        self.backups = AsyncBackups(client)
        self.files = AsyncFiles(client)
