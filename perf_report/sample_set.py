from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple


class InvalidSampleError(ValueError):
    """Raised when a sample cannot be added to a SampleSet."""


@dataclass(frozen=True)
class Sample:
    """A single timed request.

    Samples order by duration, then timestamp. An absent timestamp ranks below
    any present one and a naive timestamp is compared as UTC.
    """

    timestamp: Optional[datetime]
    duration: int
    response_code: str
    successful: bool
    error_obtained: bool = False

    def is_error(self) -> bool:
        return not self.successful or self.error_obtained

    def sort_key(self) -> Tuple:
        if self.timestamp is None:
            return self.duration, 0
        timestamp = self.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return self.duration, 1, timestamp

    def __lt__(self, other: "Sample") -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __le__(self, other: "Sample") -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return self.sort_key() <= other.sort_key()

    def __gt__(self, other: "Sample") -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return self.sort_key() > other.sort_key()

    def __ge__(self, other: "Sample") -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return self.sort_key() >= other.sort_key()


class SampleSet:
    """The samples recorded for one URI, with cached aggregates."""

    def __init__(self) -> None:
        self._samples: List[Sample] = []
        self._error_count: Optional[int] = None
        self._total_duration: Optional[int] = None
        self._sorted_durations: Optional[List[int]] = None

    def add(self, sample: Sample) -> None:
        """Append a sample, rejecting negative durations."""
        if sample.duration < 0:
            raise InvalidSampleError(f"Sample duration must not be negative, got {sample.duration}")
        self._samples.append(sample)
        self._invalidate()

    def _invalidate(self) -> None:
        self._error_count = None
        self._total_duration = None
        self._sorted_durations = None

    def size(self) -> int:
        return len(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    def samples(self) -> List[Sample]:
        return list(self._samples)

    def sort(self) -> None:
        """Order the samples by duration, then timestamp."""
        self._samples.sort()

    def sorted_by_latency(self) -> List[int]:
        """Durations in ascending order."""
        if self._sorted_durations is None:
            self._sorted_durations = sorted(sample.duration for sample in self._samples)
        return self._sorted_durations

    def error_count(self) -> int:
        if self._error_count is None:
            self._error_count = sum(1 for sample in self._samples if sample.is_error())
        return self._error_count

    def total_duration(self) -> int:
        if self._total_duration is None:
            self._total_duration = sum(sample.duration for sample in self._samples)
        return self._total_duration

    def status_distribution(self) -> Dict[str, int]:
        return dict(Counter(sample.response_code for sample in self._samples))
