"""In-memory fakes for channel and client tests."""

import asyncio

from pulsetop.connection import ConnectionManager


class FakeTransport:
    """In-memory stand-in for a websocket connection.

    Items put on ``incoming`` are yielded as messages; ``None`` ends the
    stream cleanly and an exception instance is raised from the iterator.
    """

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent = []
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, message):
        self.sent.append(message)

    async def close(self):
        self.closed = True


class ScriptedConnector:
    """Connector failing ``failures`` times before handing out transports."""

    def __init__(self, failures: int = 0, error: Exception | None = None):
        self.failures = failures
        self.error = error or OSError("connection refused")
        self.calls = []
        self.transports: list[FakeTransport] = []

    async def __call__(self, url):
        self.calls.append(url)
        if self.failures > 0:
            self.failures -= 1
            raise self.error
        transport = FakeTransport()
        self.transports.append(transport)
        return transport

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualManager(ConnectionManager):
    """Manager whose reconnect timers are fired by the test."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.handles: list[FakeHandle] = []

    def _call_later(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def delays(self) -> list[float]:
        return [h.delay for h in self.handles]

    def fire(self):
        handle = self.handles[-1]
        if not handle.cancelled:
            handle.callback()


async def settle(rounds: int = 10):
    """Let pending tasks on the loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
