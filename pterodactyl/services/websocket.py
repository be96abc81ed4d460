"""Reconnecting WebSocket client for a server's console/stats stream.

The panel hands out a short-lived JWT and a socket URL per server (see
``client_api.servers.websocket_credentials``). :func:`connect` dials the
socket, authenticates with ``{"event": "auth", "args": [token]}`` and starts
a background task that decodes incoming frames into :class:`Event` objects::

    async with await connect(creds.socket, creds.token, ReconnectPolicy.default()) as conn:
        await conn.send_command("say hello")
        async for event in conn.events():
            if isinstance(event, ConsoleOutput):
                print(event.line)

Connection states::

    CONNECTING -> OPEN -> RECONNECTING -> OPEN | CLOSED

When the stream drops and reconnection is enabled, the read task redials with
exponential backoff (plus up to 10% jitter) and replays the auth handshake.
``events()`` ends exactly once, when the read task exits for good.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import random
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol, Union

import pydantic
import websockets

from pterodactyl.config import settings
from pterodactyl.exceptions import (
    ConnectionClosedError,
    InvalidArgumentError,
    WebSocketConnectError,
)
from pterodactyl.models import POWER_SIGNALS, Resources

logger = logging.getLogger(__name__)

# Upper bound of the multiplicative jitter applied to reconnect delays.
_JITTER_FRACTION = 0.1

_AUTH_EXPIRY_EVENTS = frozenset({"jwt error", "token expiring", "token expired"})

# Errors that mean "this socket is gone" on read or while redialing.
_STREAM_ERRORS = (websockets.WebSocketException, OSError)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsoleOutput:
    line: str


@dataclass(frozen=True)
class Stats:
    resources: Resources


@dataclass(frozen=True)
class StatusChange:
    state: str


@dataclass(frozen=True)
class AuthExpired:
    """The socket token expired or is about to; call ``authenticate()``."""

    reason: str = "token expired"


Event = Union[ConsoleOutput, Stats, StatusChange, AuthExpired]


def decode_event(raw: str | bytes) -> Event | None:
    """Map one server frame to an :class:`Event`.

    Returns ``None`` for malformed frames, unknown event names and frames
    missing the argument an event needs.
    """
    try:
        frame = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(frame, dict):
        return None

    name = frame.get("event")
    args = frame.get("args") or []
    if not isinstance(name, str) or not isinstance(args, list):
        return None

    if name in _AUTH_EXPIRY_EVENTS:
        return AuthExpired(reason=name)
    if not args or not isinstance(args[0], str):
        return None

    arg = args[0]
    if name == "console output":
        return ConsoleOutput(line=arg)
    if name == "status":
        return StatusChange(state=arg)
    if name == "stats":
        try:
            return Stats(resources=Resources.model_validate_json(arg))
        except pydantic.ValidationError:
            return None
    return None


def encode_frame(event: str, *args: str) -> str:
    return json.dumps({"event": event, "args": list(args)})


# ---------------------------------------------------------------------------
# Policy and dialing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconnectPolicy:
    """Reconnection behaviour; delays in seconds, ``max_attempts=0`` is unlimited."""

    enabled: bool = True
    max_attempts: int = 10
    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise InvalidArgumentError(
                f"max_attempts must be non-negative, got {self.max_attempts}"
            )
        if self.initial_delay <= 0:
            raise InvalidArgumentError(
                f"initial_delay must be positive, got {self.initial_delay}"
            )
        if self.max_delay < self.initial_delay:
            raise InvalidArgumentError(
                f"max_delay ({self.max_delay}) must not be below "
                f"initial_delay ({self.initial_delay})"
            )
        if self.multiplier < 1:
            raise InvalidArgumentError(
                f"multiplier must be at least 1, got {self.multiplier}"
            )

    @classmethod
    def default(cls) -> ReconnectPolicy:
        return cls()

    @classmethod
    def disabled(cls) -> ReconnectPolicy:
        return cls(enabled=False)

    def next_delay(self, delay: float) -> float:
        return min(delay * self.multiplier, self.max_delay)


def jittered(delay: float) -> float:
    return delay * (1 + random.random() * _JITTER_FRACTION)


class StreamSocket(Protocol):
    """The slice of a websockets connection this module relies on."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


Dialer = Callable[[str], Awaitable[StreamSocket]]


def default_dialer(origin: str | None = None) -> Dialer:
    """Dial with the ``websockets`` client; Wings checks the ``Origin`` header."""

    async def dial(url: str) -> StreamSocket:
        kwargs: dict[str, Any] = {"max_size": settings.websocket_max_size}
        if origin:
            kwargs["origin"] = origin
        return await websockets.connect(url, **kwargs)

    return dial


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


_END = object()


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


class Connection:
    """A live, optionally self-healing, stream to one server.

    Only the background read task replaces the socket; ``send_command``,
    ``set_state``, ``authenticate`` and ``close`` may run concurrently with it
    and with each other. The event queue is bounded, so a slow consumer
    stalls the read task instead of growing memory.
    """

    def __init__(
        self,
        socket_url: str,
        token: str,
        reconnect: ReconnectPolicy | None = None,
        *,
        dial: Dialer | None = None,
        buffer_size: int | None = None,
        dial_timeout: float | None = None,
        send_timeout: float | None = None,
    ) -> None:
        self.socket_url = socket_url
        self._token = token
        self.reconnect = reconnect or ReconnectPolicy.disabled()
        self._dial = dial or default_dialer()
        self._dial_timeout = dial_timeout or settings.websocket_dial_timeout
        self._send_timeout = send_timeout or settings.websocket_send_timeout
        self._queue: asyncio.Queue[Any] = asyncio.Queue(
            maxsize=buffer_size or settings.websocket_buffer_size
        )
        self._socket: StreamSocket | None = None
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._closing = False
        self._finished = False
        self.state = ConnectionState.CONNECTING

    # -- lifecycle -----------------------------------------------------------

    async def _open(self) -> None:
        """Dial and authenticate, then publish the new socket."""
        sock = await self._dial(self.socket_url)
        try:
            await sock.send(encode_frame("auth", self._token))
        except BaseException:
            await sock.close()
            raise
        async with self._lock:
            self._socket = sock

    async def _start(self) -> None:
        try:
            await asyncio.wait_for(self._open(), timeout=self._dial_timeout)
        except (asyncio.TimeoutError, *_STREAM_ERRORS) as exc:
            self.state = ConnectionState.CLOSED
            self._finish()
            raise WebSocketConnectError(
                f"failed to connect to {self.socket_url}: {exc}"
            ) from exc
        self.state = ConnectionState.OPEN
        logger.info("WebSocket open: %s", self.socket_url)
        self._task = asyncio.create_task(self._read_loop())

    async def close(self) -> None:
        """Stop the read task and close the socket. Safe to call repeatedly."""
        if self._closing:
            return
        self._closing = True
        if self._task is not None:
            self._task.cancel()
        async with self._lock:
            sock, self._socket = self._socket, None
        if sock is not None:
            await sock.close()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        # A redial may have published a socket while the task was unwinding
        await self._drop_socket()
        self.state = ConnectionState.CLOSED
        self._finish()

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @property
    def is_reconnecting(self) -> bool:
        return self.state is ConnectionState.RECONNECTING

    # -- consuming -----------------------------------------------------------

    async def events(self) -> AsyncIterator[Event]:
        """Yield events until the stream terminates for good."""
        while True:
            if self._finished and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _END:
                # Leave the marker for any other consumer
                self._queue.put_nowait(_END)
                return
            yield item

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        try:
            self._queue.put_nowait(_END)
        except asyncio.QueueFull:
            # Consumers drain the backlog, then see _finished on an empty queue
            pass

    # -- sending -------------------------------------------------------------

    async def send_command(self, command: str) -> None:
        """Run *command* in the server console."""
        await self._send(encode_frame("send command", command))

    async def set_state(self, signal: str) -> None:
        """Send a power signal: start, stop, restart or kill."""
        if signal not in POWER_SIGNALS:
            raise InvalidArgumentError(
                f"invalid power signal {signal!r}, must be one of: {', '.join(POWER_SIGNALS)}"
            )
        await self._send(encode_frame("set state", signal))

    async def authenticate(self, token: str) -> None:
        """Re-authenticate with a fresh token, e.g. after :class:`AuthExpired`.

        The new token is also used for every later reconnect handshake.
        """
        self._token = token
        await self._send(encode_frame("auth", token))

    async def _send(self, frame: str) -> None:
        async with self._lock:
            sock = self._socket
            if sock is None:
                raise ConnectionClosedError("websocket connection is closed")
            try:
                await asyncio.wait_for(sock.send(frame), timeout=self._send_timeout)
            except _STREAM_ERRORS as exc:
                raise ConnectionClosedError("websocket connection is closed") from exc

    # -- read loop -----------------------------------------------------------

    async def _read_loop(self) -> None:
        try:
            while True:
                sock = self._socket
                if sock is None:
                    return
                try:
                    raw = await sock.recv()
                except _STREAM_ERRORS as exc:
                    logger.warning("WebSocket read failed: %s", exc)
                    if not self.reconnect.enabled:
                        return
                    if not await self._reconnect():
                        return
                    continue

                event = decode_event(raw)
                if event is None:
                    logger.debug("Dropping unrecognised frame: %.200r", raw)
                    continue
                await self._queue.put(event)
        finally:
            if not self._closing:
                await self._drop_socket()
            self.state = ConnectionState.CLOSED
            self._finish()
            logger.info("WebSocket closed: %s", self.socket_url)

    async def _drop_socket(self) -> None:
        async with self._lock:
            sock, self._socket = self._socket, None
        if sock is not None:
            try:
                await sock.close()
            except _STREAM_ERRORS:
                logger.debug("Error closing dead socket", exc_info=True)

    async def _reconnect(self) -> bool:
        """Redial until success (True) or the attempt budget is spent (False)."""
        self.state = ConnectionState.RECONNECTING
        await self._drop_socket()

        policy = self.reconnect
        delay = policy.initial_delay
        attempt = 0
        while policy.max_attempts == 0 or attempt < policy.max_attempts:
            await asyncio.sleep(jittered(delay))
            attempt += 1
            try:
                await asyncio.wait_for(self._open(), timeout=self._dial_timeout)
            except (asyncio.TimeoutError, *_STREAM_ERRORS) as exc:
                delay = policy.next_delay(delay)
                logger.warning(
                    "Reconnect attempt %d%s to %s failed: %s",
                    attempt,
                    f"/{policy.max_attempts}" if policy.max_attempts else "",
                    self.socket_url,
                    exc,
                )
                continue
            self.state = ConnectionState.OPEN
            logger.info("WebSocket reconnected after %d attempt(s)", attempt)
            return True

        logger.warning(
            "Giving up on %s after %d reconnect attempts", self.socket_url, attempt,
        )
        return False


async def connect(
    socket_url: str,
    token: str,
    reconnect: ReconnectPolicy | None = None,
    *,
    origin: str | None = None,
    dial: Dialer | None = None,
    buffer_size: int | None = None,
) -> Connection:
    """Open and authenticate a stream; raises :class:`WebSocketConnectError`.

    The initial connection is never retried; *reconnect* only applies once
    the stream has been opened successfully.
    """
    conn = Connection(
        socket_url,
        token,
        reconnect,
        dial=dial or default_dialer(origin),
        buffer_size=buffer_size,
    )
    await conn._start()
    return conn
