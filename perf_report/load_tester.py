import asyncio
import sys
import aiohttp
import argparse
import time
from datetime import datetime, timezone
from typing import List, Optional, Set, Tuple

from perf_report.performance_report import PerformanceReport
from perf_report.sample_set import Sample
from perf_report.uri_report import DEFAULT_PERCENTILES, StatisticsView

class HTTPLoadTester:
    """A class for performing HTTP load testing and collecting per-URI performance statistics."""

    def __init__(self, url: str, qps: Optional[int] = None, verbose: bool = False, retries: int = 5,
                 percentiles: Tuple[float, ...] = DEFAULT_PERCENTILES) -> None:
        """
        Initialize the HTTPLoadTester.

        Args:
            url (str): The URL to test.
            qps (Optional[int]): The number of queries per second to perform (if running a single test).
            verbose (bool): Whether to print verbose output.
            retries (int): Number of retry attempts for a failed request.
            percentiles (Tuple[float, ...]): Percentile thresholds to report, each in (0, 100].
        """
        self.url: str = url
        self.qps: Optional[int] = qps
        self.verbose: bool = verbose
        self.retries: int = retries
        self.percentiles: Tuple[float, ...] = tuple(percentiles)
        self.performance_report = PerformanceReport(self.percentiles)
        self.error_set: Set[str] = set()

    @property
    def uri_report(self) -> StatisticsView:
        return self.performance_report.uri_report(self.url)

    async def make_request(self, session: aiohttp.ClientSession) -> None:
        """
        Make a single HTTP request and record it as a sample, with retry logic.

        Args:
            session (aiohttp.ClientSession): The session to use for the request.
        """
        timestamp = datetime.now(timezone.utc)
        start_time: float = time.perf_counter()
        for attempt in range(self.retries):
            try:
                async with session.get(self.url) as response:
                    await response.text()
                    duration = int(1000 * (time.perf_counter() - start_time))
                    self.performance_report.add_sample(
                        self.url, Sample(timestamp, duration, str(response.status), response.status < 400))
                    return
            except Exception as e:
                if attempt < self.retries - 1:
                    await asyncio.sleep(2 ** attempt)  # Exponential backoff
                else:
                    duration = int(1000 * (time.perf_counter() - start_time))
                    self.performance_report.add_sample(
                        self.url, Sample(timestamp, duration, 'error', False, error_obtained=True))
                    self.error_set.add(str(e))
                    if self.verbose:
                        print("Error received from request:", str(e))

    async def generate_load(self, duration: int, qps: Optional[int] = None) -> None:
        """
        Generate load by making multiple requests per second for a specified duration.

        Args:
            duration (int): The duration of the test in seconds.
            qps (Optional[int]): The number of queries per second to perform. If None, uses self.qps.
        """
        qps = qps or self.qps
        if qps is None:
            raise ValueError("QPS must be specified either in the constructor or as a method argument")

        tasks: List[asyncio.Task] = []
        async with aiohttp.ClientSession() as session:
            start_time = time.time()
            end_time = start_time + duration
            interval = 1 / qps
            next_request_time = start_time

            while time.time() < end_time:
                current_time = time.time()
                if current_time >= next_request_time:
                    if current_time < end_time:
                        tasks.append(asyncio.create_task(self.make_request(session)))
                        next_request_time += interval
                    await asyncio.sleep(0)  # Yield control to allow other tasks to run
                else:
                    await asyncio.sleep(next_request_time - current_time)

            # Requests must finish before the session closes
            await asyncio.gather(*tasks)

    async def run_test(self, duration: int, qps: Optional[int] = None) -> Tuple[float, int]:
        """
        Run a single load test with specified QPS and duration.

        The previous run's statistics become the baseline the new run is diffed against.

        Args:
            duration (int): The duration of the test in seconds.
            qps (Optional[int]): The number of queries per second to perform. If None, uses self.qps.

        Returns:
            Tuple[float, int]: The error percent and average latency in milliseconds of the test.
        """
        previous = self.performance_report
        # Keep a single run of history
        previous.drop_last_build_report()
        self.performance_report = PerformanceReport(self.percentiles)
        if previous.has_samples():
            self.performance_report.add_last_build_report(previous)
        await self.generate_load(duration, qps or self.qps)  # Use self.qps if qps is None
        return self.uri_report.error_percent(), self.uri_report.average()

    async def find_breaking_point(self, max_qps: int, duration: int, max_error_percent: float, max_latency: int) -> int:
        """
        Find the breaking point of the server using binary search and print the results of the search.

        Args:
            max_qps (int): The maximum QPS to test.
            duration (int): The duration of each test in seconds.
            max_error_percent (float): The maximum acceptable error percent.
            max_latency (int): The maximum acceptable average latency in milliseconds.

        Returns:
            int: The maximum QPS the server can handle without exceeding the error or latency thresholds.
        """
        low, high = 1, max_qps
        best_qps = 0
        print("Beginning search for breaking point.")

        while low <= high:
            mid = (low + high) // 2
            error_percent, average = await self.run_test(duration, mid)

            print(f"Tested QPS: {mid}, Error Percent: {error_percent:.2f}%, Average Latency: {average} ms")

            if error_percent <= max_error_percent and average <= max_latency:
                best_qps = mid
                low = mid + 1
            else:
                high = mid - 1

        if best_qps == 0:
            print("\nNo acceptable performance level found within the tested range.")
        elif best_qps == max_qps:
            print(
                "\nBreaking point not found within range. The server had adequate performance at all levels of queries per second tested.")
        else:
            print(f"\nBreaking point found: {best_qps} QPS")

        print("\nFinal test results:")
        # Only run the final test if we found a valid QPS
        if best_qps > 0:
            await self.run_test(duration, best_qps)
        # Search runs used different QPS, so there is no comparable previous run
        self.performance_report.drop_last_build_report()
        self.print_results()
        return best_qps

    def print_results(self) -> None:
        """Print the statistics of the last test and its change since the run before it."""
        report = self.uri_report
        print(f"Results for {self.url}")
        print(f"Total requests: {report.samples_count()}")
        print(f"Total errors: {report.error_count()}")
        print(f"Error percent: {report.error_percent():.3f}%")
        print(f"Average latency: {report.average()} ms")
        print(f"Median latency: {report.median()} ms")
        for threshold, value in report.percentiles().items():
            print(f"{threshold:g}th percentile latency: {value} ms")
        print(f"Min latency: {report.min()} ms")
        print(f"Max latency: {report.max()} ms")
        print("\nStatus code distribution:")
        for status, count in report.status_distribution().items():
            print(f"  {status}: {count}")
        if report.last_build_view is not None:
            diff = report.diff()
            print("\nChange since previous run:")
            print(f"Average latency: {diff.average_diff:+} ms")
            print(f"Median latency: {diff.median_diff:+} ms")
            print(f"Error percent: {diff.error_percent_diff:+.3f}%")
            print(f"Fewer requests: {diff.samples_count_diff:+}")

    async def run(self, args: argparse.Namespace) -> None:
        """Run the load test or find the breaking point based on the provided arguments."""
        if args.find_breaking_point:
            await self.find_breaking_point(args.max_qps, args.duration, args.max_error_percent, args.max_latency)
        else:
            await self.run_test(args.duration)
            self.print_results()

def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(description="HTTP load testing with per-URI performance statistics")
    parser.add_argument("--url", default="http://example.com", help="Target URL to test")
    parser.add_argument("--qps", type=int, default=20, help="Queries per second for a single test")
    parser.add_argument("--duration", type=int, default=5, help="Test duration in seconds")
    parser.add_argument("--find-breaking-point", action="store_true", help="Find the breaking point of the server")
    parser.add_argument("--max-qps", type=int, default=1000, help="Maximum queries per second to test when finding breaking point")
    parser.add_argument("--max-error-percent", type=float, default=1.0, help="Maximum acceptable error percent when finding breaking point")
    parser.add_argument("--max-latency", type=int, default=500, help="Maximum acceptable average latency in milliseconds when finding breaking point")
    parser.add_argument("--percentiles", type=float, nargs="+", default=list(DEFAULT_PERCENTILES), help="Percentile thresholds to report")
    parser.add_argument("--verbose", action="store_true", help="Print verbose output including error messages")
    parser.add_argument("--retries", type=int, default=5, help="Number of retry attempts for a failed request")
    args = parser.parse_args(argv)
    for percentile in args.percentiles:
        if not 0 < percentile <= 100:
            parser.error(f"percentiles must be in (0, 100], got {percentile:g}")
    return args

async def main() -> None:
    args = parse_arguments()
    tester = HTTPLoadTester(args.url, args.qps, args.verbose, args.retries, tuple(args.percentiles))
    await tester.run(args)

def cli() -> None:
    if sys.platform.startswith('win'):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main())

if __name__ == "__main__":
    cli()
