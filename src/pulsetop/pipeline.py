"""
Process classification and query pipeline.

Every function here is pure: the input snapshot is never mutated and each
stage returns a new list. ``derive_view`` runs the stages in fixed order:

1. classify into unknown / active / inactive
2. base ordering (cpu desc, memory desc, name asc), active before inactive,
   unknown appended only on request
3. filter chain (pid, name, port, username, cpu range, memory range)
4. optional explicit single-key sort override
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from pulsetop.models import (
    FilterCriteria,
    ProcessRecord,
    Severity,
    SortDirection,
    SortKey,
    SortSpec,
)

BYTES_PER_MB = 1024 * 1024

# Names the backend uses when it could not resolve a process
PLACEHOLDER_NAMES = frozenset({"unknown", "неизвестно"})

CRITICAL_CPU = 60.0
CRITICAL_MEMORY_MB = 800.0
ELEVATED_CPU = 30.0
ELEVATED_MEMORY_MB = 400.0


@dataclass(slots=True, frozen=True)
class Classification:
    """Total, disjoint partition of a snapshot."""

    unknown: list[ProcessRecord]
    active: list[ProcessRecord]
    inactive: list[ProcessRecord]


def cpu_percent(record: ProcessRecord) -> float:
    """CPU load clamped to >= 0."""
    value = record.cpu_percent
    if not isinstance(value, (int, float)) or math.isnan(value):
        return 0.0
    return max(0.0, float(value))


def memory_mb(record: ProcessRecord) -> float:
    """Resident memory in MB clamped to >= 0."""
    rss = record.memory_rss
    if not isinstance(rss, (int, float)) or rss <= 0:
        return 0.0
    return rss / BYTES_PER_MB


def severity(record: ProcessRecord) -> Severity:
    """Presentation tier. Never used for filtering."""
    cpu = cpu_percent(record)
    mem = memory_mb(record)
    if cpu >= CRITICAL_CPU or mem >= CRITICAL_MEMORY_MB:
        return Severity.CRITICAL
    if cpu >= ELEVATED_CPU or mem >= ELEVATED_MEMORY_MB:
        return Severity.ELEVATED
    return Severity.NORMAL


def is_unknown(record: ProcessRecord) -> bool:
    """Placeholder name and no identifying metadata at all."""
    name = (record.name or "").strip().lower()
    placeholder_name = not name or name in PLACEHOLDER_NAMES
    empty_meta = (
        not record.exe
        and not record.cmdline
        and not record.username
        and not record.create_time
    )
    return placeholder_name and empty_meta


def is_active(record: ProcessRecord) -> bool:
    return cpu_percent(record) > 0 or memory_mb(record) > 0


def classify(snapshot: Iterable[ProcessRecord]) -> Classification:
    unknown: list[ProcessRecord] = []
    active: list[ProcessRecord] = []
    inactive: list[ProcessRecord] = []
    for record in snapshot:
        if is_unknown(record):
            unknown.append(record)
        elif is_active(record):
            active.append(record)
        else:
            inactive.append(record)
    return Classification(unknown=unknown, active=active, inactive=inactive)


def _load_key(record: ProcessRecord) -> tuple[float, float, str]:
    return (-cpu_percent(record), -memory_mb(record), (record.name or "").casefold())


def base_order(classification: Classification, show_unknown: bool = False) -> list[ProcessRecord]:
    """Active then inactive, each by load; unknown last if requested."""
    rows = sorted(classification.active, key=_load_key)
    rows.extend(sorted(classification.inactive, key=_load_key))
    if show_unknown:
        rows.extend(classification.unknown)
    return rows


def _parse_bound(value: float | str | None) -> float | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return float(value)
        except ValueError:
            return None
    return float(value)


def _within(value: float, low: float | None, high: float | None) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def filter_by_pid(rows: Sequence[ProcessRecord], query: str) -> list[ProcessRecord]:
    query = query.strip().lower()
    if not query:
        return list(rows)
    return [p for p in rows if query in str(p.pid)]


def filter_by_name(rows: Sequence[ProcessRecord], query: str) -> list[ProcessRecord]:
    query = query.strip().lower()
    if not query:
        return list(rows)
    return [p for p in rows if query in (p.name or "").lower()]


def filter_by_port(rows: Sequence[ProcessRecord], query: str) -> list[ProcessRecord]:
    query = query.strip().lower()
    if not query:
        return list(rows)
    return [p for p in rows if any(query in str(port) for port in p.ports)]


def filter_by_username(rows: Sequence[ProcessRecord], query: str) -> list[ProcessRecord]:
    query = query.strip().lower()
    if not query:
        return list(rows)
    return [p for p in rows if query in (p.username or "").lower()]


def filter_by_cpu(
    rows: Sequence[ProcessRecord], low: float | None, high: float | None
) -> list[ProcessRecord]:
    low, high = _parse_bound(low), _parse_bound(high)
    if low is None and high is None:
        return list(rows)
    return [p for p in rows if _within(cpu_percent(p), low, high)]


def filter_by_memory(
    rows: Sequence[ProcessRecord], low: float | None, high: float | None
) -> list[ProcessRecord]:
    low, high = _parse_bound(low), _parse_bound(high)
    if low is None and high is None:
        return list(rows)
    return [p for p in rows if _within(memory_mb(p), low, high)]


def apply_filters(rows: Sequence[ProcessRecord], criteria: FilterCriteria) -> list[ProcessRecord]:
    """Run the narrowing filter chain. Omitted criteria are no-ops."""
    result = filter_by_pid(rows, criteria.pid_query)
    result = filter_by_name(result, criteria.name_query)
    result = filter_by_port(result, criteria.port_query)
    result = filter_by_username(result, criteria.username_query)
    result = filter_by_cpu(result, criteria.cpu_min, criteria.cpu_max)
    result = filter_by_memory(result, criteria.memory_min, criteria.memory_max)
    return result


def apply_sort(rows: Sequence[ProcessRecord], sort: SortSpec) -> list[ProcessRecord]:
    """Re-sort by a single key, stable for ties. ``SortKey.NONE`` keeps order."""
    if sort.key is SortKey.CPU:
        key = cpu_percent
    elif sort.key is SortKey.MEMORY:
        key = memory_mb
    else:
        return list(rows)
    return sorted(rows, key=key, reverse=sort.direction is SortDirection.DESC)


def derive_view(
    snapshot: Iterable[ProcessRecord],
    filters: FilterCriteria | None = None,
    sort: SortSpec | None = None,
    show_unknown: bool = False,
) -> list[ProcessRecord]:
    """Full pipeline from a raw snapshot to ordered rows."""
    rows = base_order(classify(snapshot), show_unknown)
    rows = apply_filters(rows, filters or FilterCriteria())
    return apply_sort(rows, sort or SortSpec())
