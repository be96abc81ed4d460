"""Tests for pterodactyl.sdk: async & sync clients, error mapping, resource endpoints."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from pterodactyl.config import Settings
from pterodactyl.sdk import (
    APIError,
    AsyncPterodactylClient,
    AuthenticationError,
    ConflictError,
    InvalidArgumentError,
    ListOptions,
    NotFoundError,
    PterodactylClient,
    PterodactylError,
    RateLimitError,
    RateLimitInfo,
    RequestValidationError,
    RetryPolicy,
    ServerError,
    ValidationError,
)
from pterodactyl.models import Backup, Server, Stats, User

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PANEL = "https://panel.test"

_NO_RETRY = RetryPolicy(max_retries=1)

_RATE_HEADERS = {
    "x-ratelimit-limit": "240",
    "x-ratelimit-remaining": "239",
    "x-ratelimit-reset": "1700000000",
}

_USER_ATTRS = {
    "id": 1,
    "external_id": None,
    "uuid": "c4022c6c-9bf1-4a23-bff9-519cceb38335",
    "username": "admin",
    "email": "admin@example.com",
    "first_name": "Ada",
    "last_name": "Admin",
    "language": "en",
    "root_admin": True,
    "2fa": False,
    "created_at": "2024-01-01T00:00:00+00:00",
    "updated_at": "2024-01-02T00:00:00+00:00",
}

_SERVER_ATTRS = {
    "id": 5,
    "uuid": "1a7ce997-259b-452e-8b4e-cecc464142ca",
    "identifier": "1a7ce997",
    "name": "Survival",
    "description": "",
    "is_suspended": False,
    "node": "Node 1",
    "limits": {"memory": 1024, "swap": 0, "disk": 5120, "io": 500, "cpu": 100},
    "feature_limits": {"databases": 1, "allocations": 1, "backups": 2},
}

_STATS_ATTRS = {
    "current_state": "running",
    "is_suspended": False,
    "resources": {
        "memory_bytes": 588701696,
        "cpu_absolute": 0.7,
        "disk_bytes": 130156361,
        "network_rx_bytes": 694220,
        "network_tx_bytes": 337090,
        "uptime": 100,
    },
}

_BACKUP_ATTRS = {
    "uuid": "904df120-a66f-4375-a4ec-a0b2d4d6f5e2",
    "name": "nightly",
    "ignored_files": [],
    "sha256_hash": None,
    "bytes": 0,
    "created_at": "2024-01-01T00:00:00+00:00",
    "completed_at": None,
    "is_successful": False,
    "is_locked": False,
}


def _item(obj: str, attrs: dict) -> dict:
    return {"object": obj, "attributes": attrs}


def _list(obj: str, items: list[dict], total_pages: int = 1, current_page: int = 1) -> dict:
    return {
        "object": "list",
        "data": [_item(obj, a) for a in items],
        "meta": {
            "pagination": {
                "total": len(items),
                "count": len(items),
                "per_page": 50,
                "current_page": current_page,
                "total_pages": total_pages,
            }
        },
    }


def _json_response(
    body: dict | None,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    hdrs = dict(_RATE_HEADERS)
    if headers:
        hdrs.update(headers)
    if body is None:
        return httpx.Response(status_code, headers=hdrs)
    return httpx.Response(status_code, json=body, headers=hdrs)


def _error_response(
    status_code: int,
    detail: str = "error",
    field: str | None = None,
) -> httpx.Response:
    error = {"code": "SomeException", "status": str(status_code), "detail": detail}
    if field:
        error["source"] = {"field": field}
    return httpx.Response(status_code, json={"errors": [error]}, headers=_RATE_HEADERS)


def _async_client(handler, **kwargs) -> AsyncPterodactylClient:
    kwargs.setdefault("retry_policy", _NO_RETRY)
    return AsyncPterodactylClient(
        _PANEL, "ptla_test", _transport=httpx.MockTransport(handler), **kwargs
    )


def _sync_client(handler, **kwargs) -> PterodactylClient:
    kwargs.setdefault("retry_policy", _NO_RETRY)
    return PterodactylClient(
        _PANEL, "ptla_test", _transport=httpx.MockTransport(handler), **kwargs
    )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_empty_panel_url_rejected(self):
        with pytest.raises(InvalidArgumentError):
            PterodactylClient("", "ptla_test")

    async def test_async_empty_panel_url_rejected(self):
        with pytest.raises(InvalidArgumentError):
            AsyncPterodactylClient("", "ptla_test")

    def test_requests_go_under_api_prefix(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(_item("user", _USER_ATTRS))

        with PterodactylClient(
            _PANEL + "/", "ptla_test", _transport=httpx.MockTransport(handler),
        ) as c:
            c.application.users.get(1)
        assert str(seen[0].url) == "https://panel.test/api/application/users/1"
        assert seen[0].headers["Authorization"] == "Bearer ptla_test"

    def test_from_settings(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(_item("user", _USER_ATTRS))

        config = Settings(
            panel_url="https://panel.example", api_key="ptlc_env", user_agent="ua/2",
        )
        with PterodactylClient.from_settings(
            config, _transport=httpx.MockTransport(handler),
        ) as c:
            c.client_api.account.get()
        assert seen[0].url.host == "panel.example"
        assert seen[0].headers["Authorization"] == "Bearer ptlc_env"
        assert seen[0].headers["User-Agent"] == "ua/2"


# ---------------------------------------------------------------------------
# Async client: success paths
# ---------------------------------------------------------------------------


class TestAsyncApplicationAPI:
    async def test_get_user(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/api/application/users/1"
            return _json_response(_item("user", _USER_ATTRS))

        async with _async_client(handler) as c:
            user = await c.application.users.get(1)
        assert isinstance(user, User)
        assert user.username == "admin"
        assert user.root_admin is True
        assert user.two_factor is False

    async def test_get_external_user(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/application/users/external/ext-7"
            return _json_response(_item("user", _USER_ATTRS))

        async with _async_client(handler) as c:
            await c.application.users.get_external("ext-7")

    async def test_create_user(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/api/application/users"
            body = json.loads(request.content)
            assert body == {
                "email": "new@example.com",
                "username": "newbie",
                "first_name": "New",
                "last_name": "User",
            }
            return _json_response(_item("user", {**_USER_ATTRS, "id": 2}), status_code=201)

        async with _async_client(handler) as c:
            user = await c.application.users.create(
                {
                    "email": "new@example.com",
                    "username": "newbie",
                    "first_name": "New",
                    "last_name": "User",
                }
            )
        assert user.id == 2

    async def test_create_user_validated_before_request(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _json_response({})

        async with _async_client(handler) as c:
            with pytest.raises(RequestValidationError) as exc_info:
                await c.application.users.create({"email": "not-an-email", "username": ""})
        assert calls == []
        fields = {e.field for e in exc_info.value.errors}
        assert {"email", "username", "first_name", "last_name"} <= fields

    async def test_list_all_users_walks_pages(self):
        pages = {
            "1": _list("user", [{**_USER_ATTRS, "id": 1}], total_pages=2),
            "2": _list("user", [{**_USER_ATTRS, "id": 2}], total_pages=2, current_page=2),
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response(pages[request.url.params["page"]])

        async with _async_client(handler) as c:
            users = await c.application.users.list_all()
        assert [u.id for u in users] == [1, 2]

    async def test_delete_server_force(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            assert request.url.path == "/api/application/servers/5/force"
            return _json_response(None, status_code=204)

        async with _async_client(handler) as c:
            assert await c.application.servers.delete(5, force=True) is None

    async def test_suspend_server(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/api/application/servers/5/suspend"
            return _json_response(None, status_code=204)

        async with _async_client(handler) as c:
            await c.application.servers.suspend(5)

    async def test_empty_id_rejected(self):
        async with _async_client(lambda req: _json_response({})) as c:
            with pytest.raises(InvalidArgumentError):
                await c.application.nodes.get("")


class TestAsyncClientAPI:
    async def test_list_servers(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/client"
            assert request.url.params["per_page"] == "10"
            return _json_response(_list("server", [_SERVER_ATTRS]))

        async with _async_client(handler) as c:
            servers, cursor = await c.client_api.servers.list(ListOptions(per_page=10))
        assert isinstance(servers[0], Server)
        assert servers[0].identifier == "1a7ce997"
        assert servers[0].node == "Node 1"
        assert not cursor.has_more()

    async def test_resources(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/client/servers/1a7ce997/resources"
            return _json_response(_item("stats", _STATS_ATTRS))

        async with _async_client(handler) as c:
            stats = await c.client_api.servers.resources("1a7ce997")
        assert isinstance(stats, Stats)
        assert stats.current_state == "running"
        assert stats.resources.memory_bytes == 588701696

    async def test_send_power_action(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/client/servers/1a7ce997/power"
            assert json.loads(request.content) == {"signal": "restart"}
            return _json_response(None, status_code=204)

        async with _async_client(handler) as c:
            await c.client_api.servers.send_power_action("1a7ce997", "restart")

    async def test_invalid_power_signal_no_request(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _json_response(None, status_code=204)

        async with _async_client(handler) as c:
            with pytest.raises(InvalidArgumentError):
                await c.client_api.servers.send_power_action("1a7ce997", "reboot")
        assert calls == []

    async def test_websocket_credentials(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/client/servers/1a7ce997/websocket"
            return _json_response(
                {"data": {"token": "jwt", "socket": "wss://node.test:8080/api/servers/x/ws"}}
            )

        async with _async_client(handler) as c:
            creds = await c.client_api.servers.websocket_credentials("1a7ce997")
        assert creds.token == "jwt"
        assert creds.socket.startswith("wss://")

    async def test_connect_websocket_uses_fresh_credentials(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response({"data": {"token": "jwt", "socket": "wss://node.test/ws"}})

        fake_conn = object()
        with patch(
            "pterodactyl.sdk.client_api.connect", new=AsyncMock(return_value=fake_conn),
        ) as mock_connect:
            async with _async_client(handler) as c:
                conn = await c.client_api.servers.connect_websocket("1a7ce997")
        assert conn is fake_conn
        mock_connect.assert_awaited_once_with(
            "wss://node.test/ws", "jwt", None, origin="https://panel.test",
        )

    async def test_create_backup(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/client/servers/1a7ce997/backups"
            assert json.loads(request.content) == {"name": "nightly", "is_locked": True}
            return _json_response(_item("backup", _BACKUP_ATTRS))

        async with _async_client(handler) as c:
            backup = await c.client_api.backups.create(
                "1a7ce997", {"name": "nightly", "is_locked": True},
            )
        assert isinstance(backup, Backup)
        assert backup.completed_at is None

    async def test_backup_download_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == (
                "/api/client/servers/1a7ce997/backups/904df120/download"
            )
            return _json_response(
                _item("signed_url", {"url": "https://node.test/download/backup?token=x"})
            )

        async with _async_client(handler) as c:
            url = await c.client_api.backups.download_url("1a7ce997", "904df120")
        assert url == "https://node.test/download/backup?token=x"

    async def test_file_download_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/client/servers/1a7ce997/files/download"
            assert request.url.params["file"] == "/logs/latest.log"
            return _json_response(_item("signed_url", {"url": "https://node.test/f"}))

        async with _async_client(handler) as c:
            url = await c.client_api.files.download_url("1a7ce997", "/logs/latest.log")
        assert url == "https://node.test/f"


# ---------------------------------------------------------------------------
# Async client: error mapping
# ---------------------------------------------------------------------------


class TestAsyncClientErrors:
    @pytest.mark.parametrize(
        ("status", "exc_type"),
        [
            (400, ValidationError),
            (401, AuthenticationError),
            (403, AuthenticationError),
            (404, NotFoundError),
            (409, ConflictError),
            (422, ValidationError),
            (429, RateLimitError),
            (500, ServerError),
            (503, ServerError),
            (418, APIError),
        ],
    )
    async def test_status_mapping(self, status, exc_type):
        async with _async_client(lambda req: _error_response(status)) as c:
            with pytest.raises(exc_type) as exc_info:
                await c.application.users.get(1)
        assert exc_info.value.status_code == status
        assert isinstance(exc_info.value, PterodactylError)

    async def test_error_message_format(self):
        transport_response = _error_response(
            422, "The email field is required.", field="email",
        )
        async with _async_client(lambda req: transport_response) as c:
            with pytest.raises(ValidationError) as exc_info:
                await c.request("POST", "application/users", json={"username": "x"})
        err = exc_info.value
        assert str(err) == (
            "pterodactyl: POST https://panel.test/api/application/users: status 422: "
            "The email field is required. (field: email)"
        )
        assert err.errors[0].source.field == "email"
        assert err.detail == "The email field is required."

    async def test_rate_limit_snapshot_on_error(self):
        async with _async_client(lambda req: _error_response(429)) as c:
            with pytest.raises(RateLimitError) as exc_info:
                await c.client_api.account.get()
        assert exc_info.value.rate_limit.limit == 240

    async def test_non_json_error_body(self):
        transport = lambda req: httpx.Response(502, text="<html>Bad Gateway</html>")  # noqa: E731
        async with _async_client(transport) as c:
            with pytest.raises(ServerError) as exc_info:
                await c.client_api.account.get()
        assert exc_info.value.errors == []
        assert "status 502" in str(exc_info.value)

    async def test_server_error_retried_before_raising(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _error_response(500)

        policy = RetryPolicy(max_retries=2, retry_wait_min=0.01, retry_wait_max=0.01)
        async with _async_client(handler, retry_policy=policy) as c:
            with pytest.raises(ServerError):
                await c.application.users.get(1)
        assert len(calls) == 2


# ---------------------------------------------------------------------------
# Async client: rate-limit tracking
# ---------------------------------------------------------------------------


class TestAsyncRateLimitTracking:
    async def test_last_rate_limit_set_on_success(self):
        async with _async_client(
            lambda req: _json_response(_item("user", _USER_ATTRS))
        ) as c:
            assert c.last_rate_limit is None
            await c.client_api.account.get()
            assert c.last_rate_limit == RateLimitInfo(limit=240, remaining=239, reset=1700000000.0)

    async def test_last_rate_limit_absent_without_headers(self):
        resp = httpx.Response(200, json=_item("user", _USER_ATTRS))
        async with _async_client(lambda req: resp) as c:
            await c.client_api.account.get()
            assert c.last_rate_limit is not None
            assert not c.last_rate_limit.present


# ---------------------------------------------------------------------------
# Async client: context manager lifecycle
# ---------------------------------------------------------------------------


class TestAsyncLifecycle:
    async def test_context_manager(self):
        client = _async_client(lambda req: _json_response(_item("user", _USER_ATTRS)))
        async with client as c:
            await c.client_api.account.get()
        assert client._client.is_closed

    async def test_explicit_close(self):
        client = _async_client(lambda req: _json_response(_item("user", _USER_ATTRS)))
        await client.client_api.account.get()
        await client.close()
        assert client._client.is_closed


# ---------------------------------------------------------------------------
# Sync client
# ---------------------------------------------------------------------------


class TestSyncClient:
    def test_get_server(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/application/servers/5"
            return _json_response(_item("server", _SERVER_ATTRS))

        with _sync_client(handler) as c:
            server = c.application.servers.get(5)
        assert server.name == "Survival"
        assert server.limits.memory == 1024
        assert server.suspended is False

    def test_update_user(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PATCH"
            assert request.url.path == "/api/application/users/1"
            assert json.loads(request.content)["language"] == "de"
            return _json_response(_item("user", {**_USER_ATTRS, "language": "de"}))

        with _sync_client(handler) as c:
            user = c.application.users.update(
                1,
                {
                    "email": "admin@example.com",
                    "username": "admin",
                    "first_name": "Ada",
                    "last_name": "Admin",
                    "language": "de",
                },
            )
        assert user.language == "de"

    def test_create_location_validation(self):
        with _sync_client(lambda req: _json_response({})) as c:
            with pytest.raises(RequestValidationError):
                c.application.locations.create({"short": "x" * 61})

    def test_send_command(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"command": "say hi"}
            return _json_response(None, status_code=204)

        with _sync_client(handler) as c:
            c.client_api.servers.send_command("1a7ce997", "say hi")

    def test_empty_command_rejected(self):
        with _sync_client(lambda req: _json_response(None, 204)) as c:
            with pytest.raises(InvalidArgumentError):
                c.client_api.servers.send_command("1a7ce997", "")

    def test_list_backups_cursor(self):
        pages = {
            "1": _list("backup", [_BACKUP_ATTRS], total_pages=2),
            "2": _list("backup", [{**_BACKUP_ATTRS, "name": "weekly"}], 2, 2),
        }
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _json_response(pages[request.url.params["page"]])

        with _sync_client(handler) as c:
            first, cursor = c.client_api.backups.list("1a7ce997")
            second = cursor.next_page()
            third = cursor.next_page()
        assert [b.name for b in first + second] == ["nightly", "weekly"]
        assert third == []
        assert len(calls) == 2

    def test_404_raises_not_found(self):
        with _sync_client(lambda req: _error_response(404, "Not found")) as c:
            with pytest.raises(NotFoundError) as exc_info:
                c.application.locations.get(99)
        assert exc_info.value.method == "GET"
        assert exc_info.value.url.endswith("/api/application/locations/99")

    def test_context_manager(self):
        client = _sync_client(lambda req: _json_response(_item("user", _USER_ATTRS)))
        with client as c:
            c.client_api.account.get()
        assert client._client.is_closed
