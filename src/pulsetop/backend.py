"""HTTP client for the monitoring backend's control surface."""

from dataclasses import dataclass
from typing import Any

import aiohttp

from pulsetop.errors import BackendError
from pulsetop.log import get_logger

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class HostInfo:
    username: str
    hostname: str


@dataclass(slots=True, frozen=True)
class DeviceInfo:
    processor_name: str
    cores: int


@dataclass(slots=True, frozen=True)
class ListeningPort:
    port: int
    protocol: str
    pid: int
    process: str
    status: str
    local_addr: str
    remote_addr: str


@dataclass(slots=True, frozen=True)
class StartedProcess:
    pid: int
    command: str
    args: str
    cwd: str
    message: str


class BackendClient:
    """
    Thin JSON client for the backend's HTTP endpoints.

    Every call raises ``BackendError`` on a non-2xx status or an
    undecodable body; transport failures surface as ``aiohttp.ClientError``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def request(self, method: str, endpoint: str, body: dict[str, Any] | None = None) -> Any:
        """Issue one request and return the decoded JSON body."""
        session = await self._get_session()
        url = f"{self.base_url}{endpoint}"
        logger.debug("backend_request", method=method, url=url)
        async with session.request(method, url, json=body) as response:
            try:
                result = await response.json(content_type=None)
            except ValueError as e:
                raise BackendError(f"Invalid JSON from {endpoint}: {e}", response.status) from e
            if response.status >= 400:
                message = None
                if isinstance(result, dict):
                    message = result.get("message") or result.get("error")
                raise BackendError(message or f"HTTP error! status: {response.status}", response.status)
            return result

    async def get_monitoring_status(self) -> bool:
        result = await self.request("GET", "/api/monitoring-status")
        return bool(_as_dict(result).get("enabled", False))

    async def set_monitoring_status(self, enabled: bool) -> bool:
        result = await self.request("POST", "/api/monitoring-status", {"enabled": enabled})
        return bool(_as_dict(result).get("enabled", False))

    async def get_host_info(self) -> HostInfo:
        result = _as_dict(await self.request("GET", "/api/get-host-username"))
        return HostInfo(
            username=str(result.get("username", "")),
            hostname=str(result.get("hostname", "")),
        )

    async def get_device_info(self) -> DeviceInfo:
        result = _as_dict(await self.request("GET", "/api/get-device-info"))
        return DeviceInfo(
            processor_name=str(result.get("processname", "")),
            cores=int(result.get("cores") or 0),
        )

    async def kill_process(self, pid: int) -> str:
        """Ask the backend to terminate ``pid``. Returns the server's message."""
        if pid <= 0:
            raise ValueError(f"Invalid PID: {pid}")
        result = _as_dict(await self.request("POST", "/api/kill-process-by-id", {"pid": pid}))
        return str(result.get("message", ""))

    async def list_listening_ports(self) -> list[ListeningPort]:
        result = await self.request("GET", "/api/listening-ports")
        if not isinstance(result, list):
            raise BackendError("Expected a list of listening ports")
        return [
            ListeningPort(
                port=int(item.get("port") or 0),
                protocol=str(item.get("protocol", "")),
                pid=int(item.get("pid") or 0),
                process=str(item.get("process", "")),
                status=str(item.get("status", "")),
                local_addr=str(item.get("localAddr", "")),
                remote_addr=str(item.get("remoteAddr", "")),
            )
            for item in result
            if isinstance(item, dict)
        ]

    async def start_process(self, command: str, args: str = "", cwd: str = "") -> StartedProcess:
        if not command.strip():
            raise ValueError("Command must not be empty")
        result = _as_dict(
            await self.request(
                "POST",
                "/api/start-processes",
                {"command": command, "args": args, "cwd": cwd},
            )
        )
        return StartedProcess(
            pid=int(result.get("pid") or 0),
            command=str(result.get("command", command)),
            args=str(result.get("args", args)),
            cwd=str(result.get("cwd", cwd)),
            message=str(result.get("msg", "")),
        )


def _as_dict(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict):
        raise BackendError(f"Expected a JSON object, got {type(result).__name__}")
    return result
