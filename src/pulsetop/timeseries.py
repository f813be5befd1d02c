"""Bounded time-series stores for the cpu and memory topics."""

import math
from collections import deque
from typing import Any

from pulsetop.models import MemorySample, TelemetrySample

MAX_SAMPLES = 60


def is_number(value: Any) -> bool:
    """True for finite ints and floats. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class TimeSeriesBuffer:
    """
    Ring buffer of labeled samples with strict FIFO eviction.

    Holds at most ``capacity`` samples; appending beyond that drops the
    oldest one first. Invalid samples are rejected without touching state.
    """

    def __init__(self, capacity: int = MAX_SAMPLES) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._samples: deque[TelemetrySample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        """Maximum number of retained samples."""
        return self._samples.maxlen or 0

    def append(self, sample: TelemetrySample) -> bool:
        """Append a sample. Returns False (and changes nothing) if it is invalid."""
        if not isinstance(sample.timestamp, str) or not sample.timestamp:
            return False
        if not is_number(sample.value):
            return False
        self._samples.append(sample)
        return True

    def clear(self) -> None:
        """Drop every retained sample."""
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> list[TelemetrySample]:
        """Retained samples, oldest first."""
        return list(self._samples)

    @property
    def labels(self) -> list[str]:
        """Chart labels (timestamps), oldest first."""
        return [sample.timestamp for sample in self._samples]

    @property
    def values(self) -> list[float]:
        """Chart values (percentages), oldest first."""
        return [float(sample.value) for sample in self._samples]

    @property
    def latest(self) -> TelemetrySample | None:
        """Most recent sample, if any."""
        return self._samples[-1] if self._samples else None


class MemorySeries(TimeSeriesBuffer):
    """Memory buffer that keeps used/total figures and the latest full sample."""

    def __init__(self, capacity: int = MAX_SAMPLES) -> None:
        super().__init__(capacity)
        self._latest_sample: MemorySample | None = None

    def append(self, sample: TelemetrySample) -> bool:
        if not isinstance(sample, MemorySample):
            sample = MemorySample(timestamp=sample.timestamp, value=sample.value)
        accepted = super().append(sample)
        if accepted:
            self._latest_sample = sample
        return accepted

    def clear(self) -> None:
        super().clear()
        self._latest_sample = None

    @property
    def latest_sample(self) -> MemorySample | None:
        """Most recent accepted memory sample with its absolute figures."""
        return self._latest_sample
