"""User-triggered actions whose outcome is reported as a notification."""

import aiohttp

from pulsetop.backend import BackendClient
from pulsetop.errors import BackendError
from pulsetop.log import get_logger
from pulsetop.notifications import (
    Notification,
    NotificationCenter,
    notify_error,
    notify_success,
)

logger = get_logger(__name__)


class ProcessActions:
    """
    Termination and launch requests against the backend.

    Failures never propagate: every call ends in exactly one notification,
    which is also pushed to the notification center when one is attached.
    """

    def __init__(self, backend: BackendClient, notifications: NotificationCenter | None = None) -> None:
        self._backend = backend
        self._notifications = notifications

    def _report(self, notification: Notification) -> Notification:
        if self._notifications is not None:
            self._notifications.add(notification)
        return notification

    async def terminate(self, pid: int) -> Notification:
        try:
            message = await self._backend.kill_process(pid)
        except (BackendError, aiohttp.ClientError, ValueError, TimeoutError) as e:
            logger.warning("terminate_failed", pid=pid, error=str(e))
            return self._report(notify_error(str(e) or "Failed to terminate the process"))
        logger.info("process_terminated", pid=pid)
        return self._report(
            notify_success(message or f"Process {pid} terminated", "Process terminated")
        )

    async def launch(self, command: str, args: str = "", cwd: str = "") -> Notification:
        try:
            started = await self._backend.start_process(command, args, cwd)
        except (BackendError, aiohttp.ClientError, ValueError, TimeoutError) as e:
            logger.warning("launch_failed", command=command, error=str(e))
            return self._report(notify_error(str(e) or "Failed to start the process"))
        logger.info("process_launched", pid=started.pid, command=command)
        return self._report(
            notify_success(started.message or f"Started {command} (PID {started.pid})", "Process started")
        )
