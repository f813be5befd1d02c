"""Data models for pulsetop."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Topic(str, Enum):
    """Independent telemetry streams, one WebSocket channel each."""

    CPU = "cpu"
    MEMORY = "memory"
    PROCESSES = "processes"


class ConnectionState(str, Enum):
    """Externally observable state of a topic channel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ERROR = "error"


class SortKey(Enum):
    """Sort keys for the explicit sort override."""

    CPU = "cpu"
    MEMORY = "memory"
    NONE = "none"


class SortDirection(Enum):
    """Direction for the explicit sort override."""

    ASC = "asc"
    DESC = "desc"


class Severity(Enum):
    """Presentation-only load tier of a process row."""

    NORMAL = "normal"
    ELEVATED = "elevated"
    CRITICAL = "critical"


@dataclass(slots=True, frozen=True)
class TelemetrySample:
    """One labeled point of a cpu or memory series."""

    timestamp: str
    value: float  # 0.0 - 100.0


@dataclass(slots=True, frozen=True)
class MemorySample(TelemetrySample):
    """Memory point carrying absolute figures next to the percentage."""

    used_mb: float = 0.0
    total_mb: float = 0.0


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


def _as_float(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(part) for part in value)
    return str(value)


def _as_ports(value: Any) -> frozenset[int]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return frozenset()
    ports = set()
    for port in value:
        number = _as_int(port)
        if number > 0:
            ports.add(number)
    return frozenset(ports)


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable view of one process inside a snapshot."""

    pid: int
    name: str = ""
    username: str = ""
    exe: str = ""
    cmdline: str = ""
    ppid: int = 0
    create_time: int = 0  # Milliseconds since epoch, 0 when unknown
    cpu_percent: float = 0.0
    memory_rss: int = 0  # Bytes
    memory_percent: float = 0.0
    num_threads: int = 0
    priority: int = 0
    ports: frozenset[int] = field(default_factory=frozenset)
    io_read_bytes: int = 0
    io_write_bytes: int = 0
    status: str = ""

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ProcessRecord":
        """
        Build a record from one element of a processes frame.

        Missing or malformed fields fall back to empty defaults; only the
        shape of the whole snapshot is validated at the frame boundary.
        """
        ppid = data.get("ppid")
        if ppid is None:
            ppid = data.get("parentPid")
        return cls(
            pid=_as_int(data.get("pid")),
            name=_as_str(data.get("name")),
            username=_as_str(data.get("username")),
            exe=_as_str(data.get("exe")),
            cmdline=_as_str(data.get("cmdline")),
            ppid=_as_int(ppid),
            create_time=_as_int(data.get("createTime")),
            cpu_percent=_as_float(data.get("cpuPercent")),
            memory_rss=_as_int(data.get("memoryRss")),
            memory_percent=_as_float(data.get("memoryPercent")),
            num_threads=_as_int(data.get("numThreads")),
            priority=_as_int(data.get("priority")),
            ports=_as_ports(data.get("ports")),
            io_read_bytes=_as_int(data.get("ioReadBytes")),
            io_write_bytes=_as_int(data.get("ioWriteBytes")),
            status=_as_str(data.get("status")),
        )


@dataclass(slots=True, frozen=True)
class FilterCriteria:
    """Client-held narrowing filters for the process view. Empty means no-op."""

    pid_query: str = ""
    name_query: str = ""
    port_query: str = ""
    username_query: str = ""
    cpu_min: float | None = None
    cpu_max: float | None = None
    memory_min: float | None = None  # MB
    memory_max: float | None = None  # MB


@dataclass(slots=True, frozen=True)
class SortSpec:
    """Explicit single-key sort that overrides the base load ordering."""

    key: SortKey = SortKey.NONE
    direction: SortDirection = SortDirection.DESC
