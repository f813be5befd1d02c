"""
Decoding of raw telemetry frames.

Each text frame is decoded once, at the boundary, into a list of tagged
messages: an optional ``Control`` first, followed by at most one data
message for the topic. Downstream code never inspects raw dicts.
"""

import json
from dataclasses import dataclass
from typing import Any, Union

from pulsetop.errors import FrameError
from pulsetop.models import MemorySample, ProcessRecord, TelemetrySample, Topic
from pulsetop.timeseries import is_number

CONTROL_FIELD = "monitoringEnabled"


@dataclass(slots=True, frozen=True)
class Control:
    """In-band enablement flag sent by the backend."""

    enabled: bool


@dataclass(slots=True, frozen=True)
class CpuReading:
    """CPU load point, validated later by the cpu series."""

    sample: TelemetrySample


@dataclass(slots=True, frozen=True)
class MemoryReading:
    """Memory usage point, validated later by the memory series."""

    sample: MemorySample


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Full replacement set of processes."""

    records: tuple[ProcessRecord, ...]


Message = Union[Control, CpuReading, MemoryReading, Snapshot]


def _first_present(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _optional_number(value: Any) -> float:
    return float(value) if is_number(value) else 0.0


def _control(data: dict[str, Any]) -> list[Message]:
    flag = data.get(CONTROL_FIELD)
    if isinstance(flag, bool):
        return [Control(enabled=flag)]
    # Absent or non-boolean flag means "no change"
    return []


def _decode_cpu(data: dict[str, Any]) -> list[Message]:
    messages = _control(data)
    if "cpu" in data or "timestamp" in data:
        messages.append(
            CpuReading(TelemetrySample(timestamp=data.get("timestamp"), value=data.get("cpu")))
        )
    return messages


def _decode_memory(data: dict[str, Any]) -> list[Message]:
    messages = _control(data)
    percent = _first_present(data, "memoryUsage", "memory")
    if percent is not None or "timestamp" in data:
        sample = MemorySample(
            timestamp=data.get("timestamp"),
            value=percent,
            used_mb=_optional_number(data.get("usedMB")),
            total_mb=_optional_number(_first_present(data, "totalMemory", "totalmemory")),
        )
        messages.append(MemoryReading(sample))
    return messages


def _decode_processes(payload: Any) -> list[Message]:
    if isinstance(payload, dict):
        return _control(payload)
    if not isinstance(payload, list):
        raise FrameError(f"processes frame must be an object or array, got {type(payload).__name__}")
    records = tuple(
        ProcessRecord.from_payload(item) for item in payload if isinstance(item, dict)
    )
    return [Snapshot(records)]


def decode_frame(topic: Topic, raw: str | bytes) -> list[Message]:
    """
    Decode one frame received on ``topic``.

    Raises:
        FrameError: The payload is not JSON or has the wrong shape for the topic.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise FrameError(f"malformed {topic.value} frame: {e}") from e

    if topic is Topic.PROCESSES:
        return _decode_processes(payload)

    if not isinstance(payload, dict):
        raise FrameError(f"{topic.value} frame must be an object, got {type(payload).__name__}")
    if topic is Topic.CPU:
        return _decode_cpu(payload)
    return _decode_memory(payload)
