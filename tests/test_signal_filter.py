"""Tests for the median filter and time binner."""

from datetime import timedelta

import pytest

from tests.helpers import START_WALL_TIME
from ve_monitor.services.signal_filter import MedianFilter, TimeBinner


def _at(seconds):
    return START_WALL_TIME + timedelta(seconds=seconds)


class TestMedianFilter:
    def test_partial_window_median(self):
        """Before the window fills the median of what is there is returned."""
        f = MedianFilter()
        assert f.push(5) == 5.0
        assert f.push(1) == 3.0
        assert f.push(3) == 3.0
        assert not f.is_warmed_up()

    def test_even_count_averages_middle_pair(self):
        f = MedianFilter()
        for value in (10, 20, 30):
            f.push(value)
        assert f.push(40) == 25.0

    def test_rejects_single_outlier(self):
        """One spike in a full window does not move the median."""
        f = MedianFilter()
        for _ in range(8):
            f.push(60)
        assert f.push(250) == 60.0

    def test_window_evicts_oldest(self):
        f = MedianFilter(window=9)
        outputs = [f.push(v) for v in range(1, 11)]
        # Window now holds 2..10
        assert outputs[-1] == 6.0
        assert len(f) == 9
        assert f.is_warmed_up()

    def test_latest_before_push_raises(self):
        """Querying an empty filter is a sequencing error."""
        with pytest.raises(RuntimeError):
            MedianFilter().latest

    def test_reset_empties_window(self):
        f = MedianFilter()
        for v in range(9):
            f.push(v)
        f.reset()
        assert len(f) == 0
        assert not f.is_warmed_up()
        with pytest.raises(RuntimeError):
            f.latest

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            MedianFilter(window=0)


class TestTimeBinner:
    def test_closes_after_bin_size(self):
        """Samples spanning 4.0 + epsilon close exactly one bin."""
        binner = TimeBinner()
        values = [10, 20, 30, 40, 50]
        times = [0.0, 1.0, 2.0, 3.0, 4.001]

        results = [binner.push(v, _at(t), t) for v, t in zip(values, times)]

        assert results[:4] == [None] * 4
        completed = results[4]
        assert completed.avg_ve == pytest.approx(30.0)
        assert completed.elapsed_seconds == 4.001
        assert completed.timestamp == _at(4.001)

    def test_no_bin_under_bin_size(self):
        binner = TimeBinner()
        for t in (0.0, 1.3, 2.6, 3.9):
            assert binner.push(60.0, _at(t), t) is None
        assert binner.pending_count == 4

    def test_next_bin_starts_at_closing_sample(self):
        """The closing sample's time opens the next bin; its value is not carried over."""
        binner = TimeBinner()
        for t in (0.0, 2.0, 4.0):
            binner.push(100.0, _at(t), t)
        assert binner.bin_start_time == _at(4.0)
        assert binner.pending_count == 0

        assert binner.push(40.0, _at(6.0), 6.0) is None
        completed = binner.push(60.0, _at(8.0), 8.0)
        assert completed.avg_ve == pytest.approx(50.0)

    def test_reset(self):
        binner = TimeBinner()
        binner.push(60.0, _at(0.0), 0.0)
        binner.reset()
        assert binner.bin_start_time is None
        assert binner.pending_count == 0

    def test_invalid_bin_size(self):
        with pytest.raises(ValueError):
            TimeBinner(bin_size=0)
