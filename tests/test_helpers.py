"""Tests for the async convenience workflows."""

from __future__ import annotations

import asyncio
import io

import httpx
import pytest

from pterodactyl.sdk import AsyncPterodactylClient, DownloadError, InvalidArgumentError, RetryPolicy
from pterodactyl.services.helpers import create_backup_and_wait, download_file, wait_for_state


def _client(handler) -> AsyncPterodactylClient:
    return AsyncPterodactylClient(
        "https://panel.test",
        "ptlc_test",
        retry_policy=RetryPolicy(max_retries=1),
        _transport=httpx.MockTransport(handler),
    )


def _stats(state: str) -> dict:
    return {"object": "stats", "attributes": {"current_state": state, "resources": {}}}


def _backup(completed: bool) -> dict:
    return {
        "object": "backup",
        "attributes": {
            "uuid": "b-1",
            "name": "nightly",
            "completed_at": "2024-01-01T00:05:00+00:00" if completed else None,
            "is_successful": completed,
        },
    }


class TestWaitForState:
    async def test_returns_when_state_reached(self):
        states = ["offline", "starting", "running"]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_stats(states.pop(0)))

        async with _client(handler) as c:
            stats = await wait_for_state(c, "abc", "running", poll_interval=0.01)
        assert stats.current_state == "running"
        assert states == []

    async def test_timeout(self):
        async with _client(lambda req: httpx.Response(200, json=_stats("offline"))) as c:
            with pytest.raises(asyncio.TimeoutError):
                await wait_for_state(c, "abc", "running", poll_interval=0.01, timeout=0.05)

    async def test_rejects_non_positive_interval(self):
        async with _client(lambda req: httpx.Response(200, json=_stats("running"))) as c:
            with pytest.raises(InvalidArgumentError):
                await wait_for_state(c, "abc", "running", poll_interval=0)


class TestCreateBackupAndWait:
    async def test_polls_until_completed(self):
        polls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                assert request.url.path == "/api/client/servers/abc/backups"
                return httpx.Response(200, json=_backup(completed=False))
            assert request.url.path == "/api/client/servers/abc/backups/b-1"
            polls.append(request.url.path)
            return httpx.Response(200, json=_backup(completed=len(polls) >= 2))

        async with _client(handler) as c:
            backup = await create_backup_and_wait(
                c, "abc", {"name": "nightly"}, poll_interval=0.01,
            )
        assert backup.completed_at is not None
        assert backup.is_successful
        assert len(polls) == 2

    async def test_timeout(self):
        async with _client(lambda req: httpx.Response(200, json=_backup(False))) as c:
            with pytest.raises(asyncio.TimeoutError):
                await create_backup_and_wait(c, "abc", poll_interval=0.01, timeout=0.05)


class TestDownloadFile:
    @staticmethod
    def _panel(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/client/servers/abc/files/download"
        return httpx.Response(
            200,
            json={"object": "signed_url", "attributes": {"url": "https://node.test/download/file?token=t"}},
        )

    async def test_streams_into_writer(self):
        payload = b"line one\nline two\n" * 1000

        def node(request: httpx.Request) -> httpx.Response:
            assert "Authorization" not in request.headers
            assert request.url.params["token"] == "t"
            return httpx.Response(200, content=payload)

        dest = io.BytesIO()
        async with _client(self._panel) as c, httpx.AsyncClient(
            transport=httpx.MockTransport(node)
        ) as http:
            written = await download_file(c, "abc", "/logs/latest.log", dest, http_client=http)
        assert written == len(payload)
        assert dest.getvalue() == payload

    async def test_non_200_raises(self):
        dest = io.BytesIO()
        async with _client(self._panel) as c, httpx.AsyncClient(
            transport=httpx.MockTransport(lambda req: httpx.Response(403))
        ) as http:
            with pytest.raises(DownloadError) as exc_info:
                await download_file(c, "abc", "/logs/latest.log", dest, http_client=http)
        assert exc_info.value.status_code == 403
        assert dest.getvalue() == b""
