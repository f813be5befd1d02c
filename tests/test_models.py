"""Tests for pulsetop data models."""

import pytest

from pulsetop.models import MemorySample, ProcessRecord, TelemetrySample


def test_process_record_creation():
    """Test ProcessRecord dataclass creation."""
    record = ProcessRecord(
        pid=123,
        name="test_process",
        username="testuser",
        exe="/usr/bin/test",
        cmdline="/usr/bin/test --flag",
        cpu_percent=50.0,
        memory_rss=1024000,
        num_threads=4,
        ports=frozenset({80, 443}),
        status="running",
    )

    assert record.pid == 123
    assert record.name == "test_process"
    assert record.username == "testuser"
    assert record.cpu_percent == 50.0
    assert record.memory_rss == 1024000
    assert record.num_threads == 4
    assert record.ports == frozenset({80, 443})
    assert record.create_time == 0


def test_process_record_is_frozen():
    """Test that ProcessRecord is immutable (frozen)."""
    record = ProcessRecord(pid=1, name="init")

    with pytest.raises(AttributeError):
        record.pid = 999


def test_process_record_uses_slots():
    """Test that ProcessRecord uses __slots__ for memory efficiency."""
    record = ProcessRecord(pid=1, name="init")

    # Slots-based dataclasses don't have __dict__
    assert not hasattr(record, "__dict__")


def test_from_payload_maps_wire_keys():
    """Test camelCase wire keys are mapped onto record fields."""
    record = ProcessRecord.from_payload(
        {
            "pid": 42,
            "name": "nginx",
            "exe": "/usr/sbin/nginx",
            "cmdline": "nginx -g daemon off;",
            "username": "www-data",
            "status": "sleeping",
            "createTime": 1700000000000,
            "parentPid": 1,
            "cpuPercent": 3.5,
            "memoryPercent": 0.4,
            "memoryRss": 8 * 1024 * 1024,
            "numThreads": 2,
            "priority": 20,
            "ports": [80, 443, 80],
            "ioReadBytes": 10,
            "ioWriteBytes": 20,
        }
    )

    assert record.pid == 42
    assert record.ppid == 1
    assert record.create_time == 1700000000000
    assert record.cpu_percent == 3.5
    assert record.memory_rss == 8 * 1024 * 1024
    assert record.num_threads == 2
    assert record.priority == 20
    assert record.ports == frozenset({80, 443})
    assert record.io_read_bytes == 10
    assert record.io_write_bytes == 20


def test_from_payload_tolerates_missing_and_bad_values():
    """Test malformed fields fall back to empty defaults."""
    record = ProcessRecord.from_payload(
        {"pid": "17", "name": None, "cpuPercent": "abc", "memoryRss": None, "ports": None}
    )

    assert record.pid == 17
    assert record.name == ""
    assert record.cpu_percent == 0.0
    assert record.memory_rss == 0
    assert record.ports == frozenset()


def test_from_payload_joins_list_cmdline():
    """Test a cmdline sent as an argv list is joined with spaces."""
    record = ProcessRecord.from_payload({"pid": 5, "cmdline": ["python", "-m", "http.server"]})

    assert record.cmdline == "python -m http.server"


def test_memory_sample_extends_telemetry_sample():
    """Test MemorySample carries absolute figures next to the percentage."""
    sample = MemorySample(timestamp="12:00:00", value=50.0, used_mb=8192, total_mb=16384)

    assert isinstance(sample, TelemetrySample)
    assert sample.used_mb == 8192
    assert sample.total_mb == 16384
