"""Higher-level async workflows built on the client API.

All of these are plain coroutines: cancel the calling task to stop them.
Where a *timeout* is given, expiry raises ``asyncio.TimeoutError``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, BinaryIO, Mapping

import httpx

from pterodactyl.exceptions import DownloadError, InvalidArgumentError
from pterodactyl.models import Backup, Stats
from pterodactyl.services.validation import CreateBackupRequest

if TYPE_CHECKING:
    from pterodactyl.sdk.client import AsyncPterodactylClient

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _check_interval(poll_interval: float) -> None:
    if poll_interval <= 0:
        raise InvalidArgumentError(f"poll_interval must be positive, got {poll_interval}")


async def _poll_state(
    client: AsyncPterodactylClient,
    server_id: str,
    desired_state: str,
    poll_interval: float,
) -> Stats:
    while True:
        stats = await client.client_api.servers.resources(server_id)
        if stats.current_state == desired_state:
            return stats
        logger.debug(
            "Server %s is %s, waiting for %s", server_id, stats.current_state, desired_state,
        )
        await asyncio.sleep(poll_interval)


async def wait_for_state(
    client: AsyncPterodactylClient,
    server_id: str,
    desired_state: str,
    poll_interval: float = 2.0,
    timeout: float | None = None,
) -> Stats:
    """Poll a server's resources until ``current_state == desired_state``."""
    _check_interval(poll_interval)
    return await asyncio.wait_for(
        _poll_state(client, server_id, desired_state, poll_interval), timeout=timeout,
    )


async def _poll_backup(
    client: AsyncPterodactylClient,
    server_id: str,
    backup: Backup,
    poll_interval: float,
) -> Backup:
    while backup.completed_at is None:
        await asyncio.sleep(poll_interval)
        backup = await client.client_api.backups.get(server_id, backup.uuid)
    return backup


async def create_backup_and_wait(
    client: AsyncPterodactylClient,
    server_id: str,
    request: CreateBackupRequest | Mapping[str, Any] | None = None,
    poll_interval: float = 5.0,
    timeout: float | None = None,
) -> Backup:
    """Create a backup and poll until the panel reports it completed.

    The returned backup may still have ``is_successful=False``; callers
    decide what a failed backup means to them.
    """
    _check_interval(poll_interval)
    backup = await client.client_api.backups.create(server_id, request)
    logger.info("Backup %s started on server %s", backup.uuid, server_id)
    backup = await asyncio.wait_for(
        _poll_backup(client, server_id, backup, poll_interval), timeout=timeout,
    )
    logger.info(
        "Backup %s finished (successful=%s)", backup.uuid, backup.is_successful,
    )
    return backup


async def download_file(
    client: AsyncPterodactylClient,
    server_id: str,
    file_path: str,
    dest: BinaryIO,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> int:
    """Stream *file_path* from the server into *dest*; returns bytes written.

    The signed URL points at the node daemon, not the panel, so it is
    fetched without the panel's credentials.
    """
    url = await client.client_api.files.download_url(server_id, file_path)
    owns_client = http_client is None
    http = http_client or httpx.AsyncClient(follow_redirects=True)
    written = 0
    try:
        async with http.stream("GET", url) as resp:
            if resp.status_code != 200:
                raise DownloadError(resp.status_code, url)
            async for chunk in resp.aiter_bytes(_CHUNK_SIZE):
                dest.write(chunk)
                written += len(chunk)
    finally:
        if owns_client:
            await http.aclose()
    logger.debug("Downloaded %s from server %s (%d bytes)", file_path, server_id, written)
    return written
