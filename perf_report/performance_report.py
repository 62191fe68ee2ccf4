from typing import Dict, Iterable, Iterator, List, Optional

from perf_report.sample_set import Sample
from perf_report.uri_report import DEFAULT_PERCENTILES, StatisticsView, validate_percentile


class PerformanceReport:
    """The statistics of one test run, one StatisticsView per URI."""

    def __init__(self, percentiles: Iterable[float] = DEFAULT_PERCENTILES) -> None:
        self.percentiles: List[float] = list(percentiles)
        for percentile in self.percentiles:
            validate_percentile(percentile)
        self.uri_reports: Dict[str, StatisticsView] = {}
        self.build_failed: bool = False
        self.last_build_report: Optional["PerformanceReport"] = None

    def uri_report(self, uri: str) -> StatisticsView:
        """Return the view for a URI, creating an empty one if it has none yet."""
        if uri not in self.uri_reports:
            view = StatisticsView(uri, percentiles=self.percentiles, build_failed=self.build_failed)
            if self.last_build_report is not None:
                view.add_last_build_view(self.last_build_report.uri_reports.get(uri))
            self.uri_reports[uri] = view
        return self.uri_reports[uri]

    def add_sample(self, uri: str, sample: Sample) -> None:
        self.uri_report(uri).add_sample(sample)

    def add_last_build_report(self, previous: "PerformanceReport") -> None:
        """Diff every URI, including ones added later, against the same URI of a previous run."""
        self.last_build_report = previous
        for uri, view in self.uri_reports.items():
            view.add_last_build_view(previous.uri_reports.get(uri))

    def drop_last_build_report(self) -> None:
        """Forget the previous run so it can be garbage collected."""
        self.last_build_report = None
        for view in self.uri_reports.values():
            view.add_last_build_view(None)

    def mark_build_failed(self) -> None:
        self.build_failed = True
        for view in self.uri_reports.values():
            view.mark_build_failed()

    def __getitem__(self, uri: str) -> StatisticsView:
        return self.uri_reports[uri]

    def __contains__(self, uri: object) -> bool:
        return uri in self.uri_reports

    def __iter__(self) -> Iterator[str]:
        return iter(self.uri_reports)

    def __len__(self) -> int:
        return len(self.uri_reports)

    def has_samples(self) -> bool:
        return self.samples_count() > 0

    def samples_count(self) -> int:
        return sum(view.samples_count() for view in self.uri_reports.values())

    def error_count(self) -> int:
        return sum(view.error_count() for view in self.uri_reports.values())

    def error_percent(self) -> float:
        count = self.samples_count()
        if count == 0:
            return 0.0
        return 100 * self.error_count() / count
