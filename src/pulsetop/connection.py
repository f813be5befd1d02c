"""
Resilient WebSocket channel for one telemetry topic.

The manager owns a single transport at a time and reconnects with capped
exponential backoff after every failed cycle. Payloads are delivered to the
message handler untouched; decoding is the caller's job.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosedOK, InvalidURI

from pulsetop.log import get_logger
from pulsetop.models import ConnectionState

logger = get_logger(__name__)

DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


class Transport(Protocol):
    """Subset of a websockets client connection the manager relies on."""

    def __aiter__(self) -> Any: ...

    async def send(self, message: str | bytes) -> None: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[Transport]]


def backoff_delay(
    attempt: int,
    base: float = DEFAULT_BASE_DELAY,
    maximum: float = DEFAULT_MAX_DELAY,
) -> float:
    """Delay in seconds before reconnect ``attempt`` (0-based)."""
    return min(base * 2**attempt, maximum)


class ConnectionManager:
    """
    One push channel with lifecycle events and automatic reconnection.

    disconnected -> connecting -> connected -> reconnecting -> connecting ...
    ``stop()`` is reachable from every state and is terminal until the next
    ``start()``.

    Must be started from a running asyncio event loop. All callbacks run on
    that loop.
    """

    def __init__(
        self,
        url: str,
        *,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        connector: Connector | None = None,
        name: str | None = None,
    ) -> None:
        self.url = url
        self.name = name or url
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._connector: Connector = connector or ws_connect
        self._status = ConnectionState.DISCONNECTED
        self._stopped = True
        self._attempts = 0
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._transport: Transport | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self.last_delay: float | None = None

        self._on_open: Callable[[], None] | None = None
        self._on_message: Callable[[str | bytes], None] | None = None
        self._on_error: Callable[[BaseException], None] | None = None
        self._on_close: Callable[[], None] | None = None
        self._on_status_change: Callable[[ConnectionState], None] | None = None

    @property
    def status(self) -> ConnectionState:
        return self._status

    @property
    def attempts(self) -> int:
        """Failed cycles since the last successful open."""
        return self._attempts

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def set_handlers(
        self,
        *,
        on_open: Callable[[], None] | None = None,
        on_message: Callable[[str | bytes], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        on_close: Callable[[], None] | None = None,
        on_status_change: Callable[[ConnectionState], None] | None = None,
    ) -> None:
        """Register event handlers, replacing any previous set."""
        self._on_open = on_open
        self._on_message = on_message
        self._on_error = on_error
        self._on_close = on_close
        self._on_status_change = on_status_change

    def start(self) -> None:
        """Begin connecting. A no-op while already running."""
        if not self._stopped:
            return
        self._stopped = False
        self._attempts = 0
        logger.info("channel_starting", channel=self.name, url=self.url)
        self._connect()

    def stop(self) -> None:
        """
        Tear the channel down and suppress reconnection.

        The in-flight transport is detached synchronously, so the close it
        triggers is never observed by handlers or the reconnect path.
        """
        if self._stopped and self._task is None and self._reconnect_handle is None:
            return
        self._stopped = True
        self._generation += 1
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._transport = None
        logger.info("channel_stopped", channel=self.name)
        self._set_status(ConnectionState.DISCONNECTED)

    async def send(self, payload: str | bytes) -> bool:
        """Transmit ``payload`` if connected. Returns whether it was sent."""
        transport = self._transport
        if self._status is not ConnectionState.CONNECTED or transport is None:
            logger.debug("send_skipped", channel=self.name, status=self._status.value)
            return False
        try:
            await transport.send(payload)
        except Exception as e:
            logger.warning("send_failed", channel=self.name, error=str(e))
            return False
        return True

    def _call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    def _connect(self) -> None:
        self._reconnect_handle = None
        if self._stopped:
            return
        self._generation += 1
        self._set_status(ConnectionState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation), name=f"channel:{self.name}"
        )

    def _current(self, generation: int) -> bool:
        return not self._stopped and generation == self._generation

    async def _run(self, generation: int) -> None:
        try:
            transport = await self._connector(self.url)
        except InvalidURI as e:
            if self._current(generation):
                logger.error("channel_invalid_url", channel=self.name, error=str(e))
                # Terminal until the next start()
                self._stopped = True
                self._set_status(ConnectionState.ERROR)
                self._emit(self._on_error, e)
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._current(generation):
                logger.warning("channel_connect_failed", channel=self.name, error=str(e))
                self._fail(e)
            return

        if not self._current(generation):
            await transport.close()
            return

        self._transport = transport
        self._attempts = 0
        self._set_status(ConnectionState.CONNECTED)
        logger.info("channel_connected", channel=self.name)
        self._emit(self._on_open)

        try:
            async for message in transport:
                if not self._current(generation):
                    break
                self._emit(self._on_message, message)
        except ConnectionClosedOK:
            pass
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._current(generation):
                logger.warning("channel_dropped", channel=self.name, error=str(e))
                self._transport = None
                self._fail(e)
            return
        finally:
            await transport.close()

        if self._current(generation):
            logger.info("channel_closed", channel=self.name)
            self._transport = None
            self._emit(self._on_close)
            self._schedule_reconnect()

    def _fail(self, error: BaseException) -> None:
        self._set_status(ConnectionState.RECONNECTING)
        self._emit(self._on_error, error)
        self._emit(self._on_close)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._stopped:
            return
        self._set_status(ConnectionState.RECONNECTING)
        delay = backoff_delay(self._attempts, self.base_delay, self.max_delay)
        self._attempts += 1
        self.last_delay = delay
        logger.info("channel_reconnect_scheduled", channel=self.name, delay=delay, attempt=self._attempts)
        self._reconnect_handle = self._call_later(delay, self._connect)

    def _set_status(self, status: ConnectionState) -> None:
        if status is self._status:
            return
        self._status = status
        self._emit(self._on_status_change, status)

    def _emit(self, handler: Callable[..., None] | None, *args: Any) -> None:
        if handler is None:
            return
        try:
            handler(*args)
        except Exception:
            logger.exception("channel_handler_failed", channel=self.name)
