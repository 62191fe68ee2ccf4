import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from perf_report.sample_set import Sample, SampleSet

DEFAULT_PERCENTILES: Tuple[float, ...] = (90, 95)


def validate_percentile(percentile: float) -> None:
    if not 0 < percentile <= 100:
        raise ValueError(f"Percentile must be in (0, 100], got {percentile}")


class StatisticsView:
    """Summary statistics computed over the samples of a single URI."""

    def __init__(
        self,
        uri: Optional[str] = None,
        sample_set: Optional[SampleSet] = None,
        percentiles: Iterable[float] = DEFAULT_PERCENTILES,
        build_failed: bool = False,
    ) -> None:
        """
        Initialize the StatisticsView.

        Args:
            uri (Optional[str]): The logical request the samples belong to.
            sample_set (Optional[SampleSet]): Samples to compute over. A new empty set is used if None.
            percentiles (Iterable[float]): Thresholds reported by percentiles(), each in (0, 100].
            build_failed (bool): Whether the run was marked failed by external criteria.
        """
        self.uri: Optional[str] = uri
        self.sample_set: SampleSet = sample_set if sample_set is not None else SampleSet()
        self.percentile_thresholds: List[float] = list(percentiles)
        for percentile in self.percentile_thresholds:
            validate_percentile(percentile)
        self.build_failed: bool = build_failed
        self.last_build_view: Optional["StatisticsView"] = None

    def add_sample(self, sample: Sample) -> None:
        self.sample_set.add(sample)

    def add_last_build_view(self, view: Optional["StatisticsView"]) -> None:
        """Set the view of the same URI from the previous run, used by diff()."""
        self.last_build_view = view

    def mark_build_failed(self) -> None:
        self.build_failed = True

    def size(self) -> int:
        return self.sample_set.size()

    def samples_count(self) -> int:
        return self.sample_set.size()

    def has_samples(self) -> bool:
        return self.sample_set.size() > 0

    def get_sample_list(self) -> List[Sample]:
        return self.sample_set.samples()

    def status_distribution(self) -> Dict[str, int]:
        return self.sample_set.status_distribution()

    def error_count(self) -> int:
        return self.sample_set.error_count()

    def count_errors(self) -> int:
        return self.error_count()

    def error_percent(self) -> float:
        count = self.sample_set.size()
        if count == 0:
            return 0.0
        return 100 * self.sample_set.error_count() / count

    def is_failed(self) -> bool:
        return self.build_failed or self.error_count() > 0

    def average(self) -> int:
        """Mean duration, rounded down."""
        count = self.sample_set.size()
        if count == 0:
            return 0
        return self.sample_set.total_duration() // count

    def min(self) -> int:
        durations = self.sample_set.sorted_by_latency()
        return durations[0] if durations else 0

    def max(self) -> int:
        durations = self.sample_set.sorted_by_latency()
        return durations[-1] if durations else 0

    def percentile(self, percentile: float) -> int:
        """
        Return the duration at the given percentile.

        The index is floor(count * percentile / 100) - 1, clamped to the sorted
        durations, so the result is always an observed duration. With three
        samples the 50th percentile is the smallest one.

        Args:
            percentile (float): Threshold in (0, 100].

        Returns:
            int: The selected duration, or 0 when there are no samples.
        """
        validate_percentile(percentile)
        durations = self.sample_set.sorted_by_latency()
        count = len(durations)
        if count == 0:
            return 0
        index = math.floor(count * percentile / 100) - 1
        index = max(0, min(index, count - 1))
        return durations[index]

    def median(self) -> int:
        return self.percentile(50)

    def get_90_line(self) -> int:
        return self.percentile(90)

    def get_95_line(self) -> int:
        return self.percentile(95)

    def percentiles(self) -> Dict[float, int]:
        return {threshold: self.percentile(threshold) for threshold in self.percentile_thresholds}

    def diff(self, previous: Optional["StatisticsView"] = None) -> "Diff":
        """Diff against previous, or against the last build view when not given."""
        if previous is None:
            previous = self.last_build_view
        return Diff.between(self, previous)

    def get_average_diff(self) -> int:
        return self.diff().average_diff

    def get_median_diff(self) -> int:
        return self.diff().median_diff

    def get_error_percent_diff(self) -> float:
        return self.diff().error_percent_diff

    def get_samples_count_diff(self) -> int:
        return self.diff().samples_count_diff


@dataclass(frozen=True)
class Diff:
    """Signed change of a URI's statistics relative to a previous run.

    Attributes:
        average_diff: current average minus previous average
        median_diff: current median minus previous median
        error_percent_diff: current error percent minus previous error percent
        samples_count_diff: previous sample count minus current sample count
    """

    average_diff: int
    median_diff: int
    error_percent_diff: float
    samples_count_diff: int

    @classmethod
    def between(cls, current: StatisticsView, previous: Optional[StatisticsView]) -> "Diff":
        if previous is None:
            previous = StatisticsView(current.uri)
        return cls(
            average_diff=current.average() - previous.average(),
            median_diff=current.median() - previous.median(),
            error_percent_diff=current.error_percent() - previous.error_percent(),
            samples_count_diff=previous.size() - current.size(),
        )
