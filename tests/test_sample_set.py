import unittest
from datetime import datetime, timedelta, timezone

from perf_report.sample_set import InvalidSampleError, Sample, SampleSet

HTTP_200 = "200"


class TestSampleSet(unittest.TestCase):
    def setUp(self):
        self.sample_set = SampleSet()
        self.sample_set.add(Sample(None, 10, HTTP_200, False))
        self.sample_set.add(Sample(None, 5, HTTP_200, True))
        self.sample_set.add(Sample(None, 0, "500", True, error_obtained=True))

    def test_empty(self):
        sample_set = SampleSet()
        self.assertEqual(0, sample_set.size())
        self.assertEqual([], sample_set.samples())
        self.assertEqual([], sample_set.sorted_by_latency())
        self.assertEqual(0, sample_set.error_count())
        self.assertEqual(0, sample_set.total_duration())

    def test_size(self):
        self.assertEqual(3, self.sample_set.size())
        self.assertEqual(3, len(self.sample_set))

    def test_sorted_by_latency(self):
        self.assertEqual([0, 5, 10], self.sample_set.sorted_by_latency())
        # Insertion order is untouched
        self.assertEqual([10, 5, 0], [sample.duration for sample in self.sample_set])

    def test_error_count_ors_both_flags(self):
        self.sample_set.add(Sample(None, 1, "500", False, error_obtained=True))
        self.assertEqual(3, self.sample_set.error_count())

    def test_total_duration(self):
        self.assertEqual(15, self.sample_set.total_duration())

    def test_cache_reflects_new_samples(self):
        self.assertEqual([0, 5, 10], self.sample_set.sorted_by_latency())
        self.assertEqual(2, self.sample_set.error_count())
        self.sample_set.add(Sample(None, 3, HTTP_200, False))
        self.assertEqual([0, 3, 5, 10], self.sample_set.sorted_by_latency())
        self.assertEqual(3, self.sample_set.error_count())
        self.assertEqual(18, self.sample_set.total_duration())

    def test_add_negative_duration(self):
        with self.assertRaises(InvalidSampleError):
            self.sample_set.add(Sample(None, -1, HTTP_200, True))
        self.assertEqual(3, self.sample_set.size())

    def test_add_zero_duration(self):
        self.sample_set.add(Sample(None, 0, HTTP_200, True))
        self.assertEqual(4, self.sample_set.size())

    def test_invalid_sample_error_is_value_error(self):
        self.assertTrue(issubclass(InvalidSampleError, ValueError))

    def test_status_distribution(self):
        self.assertDictEqual({HTTP_200: 2, "500": 1}, self.sample_set.status_distribution())

    def test_samples_returns_copy(self):
        samples = self.sample_set.samples()
        samples.clear()
        self.assertEqual(3, self.sample_set.size())

    def test_sort(self):
        self.sample_set.sort()
        self.assertEqual([0, 5, 10], [sample.duration for sample in self.sample_set.samples()])


class TestSampleOrdering(unittest.TestCase):
    def test_same_date_different_duration(self):
        # Shortest duration is ordered first
        date = datetime(2024, 1, 1)
        samples = [Sample(date, 2, HTTP_200, True), Sample(date, 1, HTTP_200, True)]
        samples.sort()
        self.assertEqual([1, 2], [sample.duration for sample in samples])

    def test_different_date_same_duration(self):
        # Oldest date is ordered first
        first = datetime(2024, 1, 1)
        second = first + timedelta(milliseconds=1)
        samples = [Sample(second, 1, HTTP_200, True), Sample(first, 1, HTTP_200, True)]
        samples.sort()
        self.assertEqual([first, second], [sample.timestamp for sample in samples])

    def test_different_date_different_duration(self):
        # Shortest duration is ordered first
        first = datetime(2024, 1, 1)
        second = first + timedelta(milliseconds=1)
        samples = [Sample(first, 2, HTTP_200, True), Sample(second, 1, HTTP_200, True)]
        samples.sort()
        self.assertEqual([1, 2], [sample.duration for sample in samples])

    def test_null_date_same_duration(self):
        samples = [Sample(None, 1, HTTP_200, True), Sample(None, 1, HTTP_200, True)]
        samples.sort()
        self.assertEqual(2, len(samples))
        self.assertFalse(samples[0] < samples[1])
        self.assertFalse(samples[1] < samples[0])

    def test_null_date_ranks_below_present_date(self):
        dated = Sample(datetime(2024, 1, 1), 1, HTTP_200, True)
        undated = Sample(None, 1, HTTP_200, True)
        self.assertTrue(undated < dated)
        self.assertTrue(dated > undated)
        self.assertEqual([undated, dated], sorted([dated, undated]))

    def test_many_null_dates_mixed(self):
        date = datetime(2024, 1, 1)
        samples = [
            Sample(None, 3, HTTP_200, True),
            Sample(date, 1, HTTP_200, True),
            Sample(None, 1, HTTP_200, True),
            Sample(None, 3, HTTP_200, True),
            Sample(date, 3, HTTP_200, True),
        ]
        samples.sort()
        self.assertEqual(
            [(1, None), (1, date), (3, None), (3, None), (3, date)],
            [(sample.duration, sample.timestamp) for sample in samples])

    def test_ties_with_different_fields_are_ordered_consistently(self):
        first = Sample(None, 1, HTTP_200, True)
        second = Sample(None, 1, "500", False, error_obtained=True)
        self.assertTrue(first <= second and second <= first)
        self.assertTrue(first >= second and second >= first)
        self.assertFalse(first < second or second < first)
        self.assertFalse(first > second or second > first)

        date = datetime(2024, 1, 1)
        dated_first = Sample(date, 1, HTTP_200, True)
        dated_second = Sample(date, 1, "404", False)
        self.assertTrue(dated_first <= dated_second and dated_second <= dated_first)

    def test_naive_and_aware_dates(self):
        naive = Sample(datetime(2024, 1, 1, 12), 1, HTTP_200, True)
        aware = Sample(datetime(2024, 1, 1, 11, tzinfo=timezone.utc), 1, HTTP_200, True)
        samples = sorted([naive, aware])
        self.assertEqual([aware, naive], samples)

    def test_samples_are_immutable(self):
        sample = Sample(None, 1, HTTP_200, True)
        with self.assertRaises(AttributeError):
            sample.duration = 2


if __name__ == '__main__':
    unittest.main()
