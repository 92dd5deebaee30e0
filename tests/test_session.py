"""Tests for the live monitoring pipeline."""

import threading

import pytest

from tests.helpers import START_WALL_TIME, breath_frames, make_frame
from ve_monitor.models.enums import WorkoutPhase, Zone
from ve_monitor.models.params import PhaseConfig
from ve_monitor.services.csv_parser import parse_recording_csv
from ve_monitor.services.recorder import RecordingMetadata, WorkoutRecorder
from ve_monitor.services.session import MonitoringSession


def _session(config, clock, wall_clock, recorder=None):
    session = MonitoringSession(
        config, recorder=recorder, wall_clock=wall_clock, monotonic_clock=clock
    )
    session.start()
    return session


def _feed(session, frames):
    return [session.ingest_frame(frame) for frame in frames]


class TestLifecycle:
    def test_ingest_before_start(self, continuous_config, clock, wall_clock):
        session = MonitoringSession(
            continuous_config, wall_clock=wall_clock, monotonic_clock=clock
        )
        with pytest.raises(RuntimeError):
            session.ingest_frame(make_frame(1000, 60))

    def test_ingest_after_stop(self, continuous_config, clock, wall_clock):
        session = _session(continuous_config, clock, wall_clock)
        clock.advance(30.0)
        progress = session.stop()

        assert progress.phase_complete
        assert session.is_complete
        with pytest.raises(RuntimeError):
            session.ingest_frame(make_frame(1000, 60))

    def test_natural_completion_via_poll(self, continuous_config, clock, wall_clock):
        session = _session(continuous_config, clock, wall_clock)
        clock.advance(600.0)
        assert session.poll().phase_complete
        assert session.is_complete


class TestPipeline:
    def test_dropped_frame_returns_none(self, continuous_config, clock, wall_clock):
        session = _session(continuous_config, clock, wall_clock)
        assert session.ingest_frame(make_frame(1000, 60, packet_type=0x03)) is None
        status = session.status()
        assert status.frames_dropped == 1
        assert status.frames_accepted == 0
        assert status.latest_filtered_ve is None

    def test_bins_close_every_four_seconds(self, continuous_config, clock, wall_clock):
        """Breaths 1.2 s apart close bins on breaths 4, 8 and 12."""
        session = _session(continuous_config, clock, wall_clock)
        updates = _feed(session, breath_frames([70] * 13))

        closing = [i for i, u in enumerate(updates) if u.bin is not None]
        assert closing == [4, 8, 12]
        assert [b.elapsed_seconds for b in session.bins] == pytest.approx([4.8, 9.6, 14.4])

    def test_cusum_waits_for_full_median_window(self, continuous_config, clock, wall_clock):
        """The first bin is built from a partial window and never reaches the CUSUM."""
        session = _session(continuous_config, clock, wall_clock)
        updates = _feed(session, breath_frames([120] * 9))

        assert updates[4].bin is not None
        assert updates[4].cusum.score == 0.0
        assert not updates[4].cusum.alarm_triggered

        # Second bin: 120 - 80 - 2 = 38 >= h = 20
        assert updates[8].bin is not None
        assert updates[8].cusum.score == pytest.approx(38.0)
        assert updates[8].cusum.alarm_triggered
        assert updates[8].zone == Zone.RED
        assert updates[8].cusum.alarm_time == updates[8].bin.timestamp

    def test_baseline_breathing_stays_green(self, continuous_config, clock, wall_clock):
        session = _session(continuous_config, clock, wall_clock)
        updates = _feed(session, breath_frames([78, 80, 82, 79, 81] * 6))

        assert all(u.zone == Zone.GREEN for u in updates)
        assert session.status().cusum.score == 0.0
        assert session.status().warmed_up

    def test_filtered_value_is_running_median(self, continuous_config, clock, wall_clock):
        session = _session(continuous_config, clock, wall_clock)
        updates = _feed(session, breath_frames([60, 62, 200]))
        assert [u.filtered_ve for u in updates] == [60.0, 61.0, 62.0]
        assert session.status().latest_filtered_ve == 62.0


class TestIntervals:
    def test_recovery_keeps_detection_state(self, interval_config, clock, wall_clock):
        session = _session(interval_config, clock, wall_clock)
        _feed(session, breath_frames([120] * 9))
        assert session.status().cusum.alarm_triggered

        clock.advance(65.0)
        progress = session.poll()
        assert progress.in_recovery
        assert not progress.new_interval

        update = session.ingest_frame(make_frame(1000 + 30 * 9, 120))
        assert update.in_recovery
        assert update.zone == Zone.RECOVERY
        assert update.cusum.alarm_triggered
        assert update.current_interval == 1

    def test_new_interval_resets_detection(self, interval_config, clock, wall_clock):
        session = _session(interval_config, clock, wall_clock)
        _feed(session, breath_frames([120] * 9))

        clock.advance(90.0)
        progress = session.poll()
        assert progress.new_interval
        assert progress.current_interval == 2

        status = session.status()
        assert status.cusum.score == 0.0
        assert status.cusum.peak == 0.0
        assert not status.cusum.alarm_triggered
        assert status.bin_count == 0
        assert status.latest_filtered_ve is None
        assert not status.warmed_up

        # Phase time keeps running; interval-local time restarts
        update = session.ingest_frame(make_frame(1000 + 25 * 90, 70))
        assert update.sample.elapsed_seconds == pytest.approx(90.0)
        assert update.interval_elapsed_seconds == 0.0
        assert update.current_interval == 2

    def test_interval_trend_uses_local_time(self, interval_config, clock, wall_clock):
        session = _session(interval_config, clock, wall_clock)
        clock.advance(90.0)
        session.poll()

        _feed(session, breath_frames([70] * 13, start_ticks=1000 + 25 * 90))
        trend = session.trend()

        assert trend.x_min == 0.0
        assert trend.x_max == pytest.approx(90.0)
        assert trend.x_values == pytest.approx([4.8, 9.6, 14.4])
        assert len(trend.loess_values) == 3


class TestTrend:
    def test_empty_trend(self, continuous_config, clock, wall_clock):
        session = _session(continuous_config, clock, wall_clock)
        trend = session.trend()
        assert trend.x_values == []
        assert trend.loess_values == []
        assert (trend.x_min, trend.x_max) == (0.0, 600.0)

    def test_continuous_trend_rolls(self, clock, wall_clock):
        """Continuous phases keep only the last 10 minutes on the chart."""
        config = PhaseConfig(
            phase=WorkoutPhase.WARMUP,
            duration_sec=1200.0,
            baseline_ve=60.0,
            sigma_pct=10.0,
        )
        session = _session(config, clock, wall_clock)
        _feed(session, breath_frames([55] * 600))

        trend = session.trend()
        assert trend.x_max == pytest.approx(session.bins[-1].elapsed_seconds)
        assert trend.x_max - trend.x_min == pytest.approx(600.0)
        assert min(trend.x_values) >= trend.x_min
        assert len(trend.x_values) < len(session.bins)
        assert len(trend.loess_values) == len(trend.x_values)


class TestHeartRateAndRecording:
    def test_heart_rate_attached_to_breaths(self, continuous_config, clock, wall_clock):
        recorder = WorkoutRecorder(
            RecordingMetadata.for_phase(continuous_config, 60.0, 80.0, START_WALL_TIME)
        )
        session = _session(continuous_config, clock, wall_clock, recorder=recorder)

        session.ingest_frame(make_frame(1000, 60))
        session.update_heart_rate(152)
        update = session.ingest_frame(make_frame(1030, 62))
        session.update_heart_rate(0)
        session.ingest_frame(make_frame(1060, 64))

        assert update.hr == 152
        assert [r.hr for r in recorder.records] == [None, 152, None]

    def test_recorder_gets_accepted_breaths_only(self, continuous_config, clock, wall_clock):
        recorder = WorkoutRecorder(
            RecordingMetadata.for_phase(continuous_config, 60.0, 80.0, START_WALL_TIME)
        )
        session = _session(continuous_config, clock, wall_clock, recorder=recorder)

        frames = breath_frames([60, 61, 62])
        frames.insert(1, make_frame(1010, 99, length=12))
        _feed(session, frames)

        assert len(recorder) == 3
        assert [r.ve_raw for r in recorder.records] == [60, 61, 62]
        assert all(r.phase == "workout" for r in recorder.records)
        assert recorder.records[0].speed == 7.0

    def test_speed_change_applies_to_later_breaths(self, continuous_config, clock, wall_clock):
        """A mid-phase speed change shows up in the exported speed column."""
        recorder = WorkoutRecorder(
            RecordingMetadata.for_phase(continuous_config, 60.0, 80.0, START_WALL_TIME)
        )
        session = _session(continuous_config, clock, wall_clock, recorder=recorder)

        frames = breath_frames([60, 61, 62, 63, 64])
        _feed(session, frames[:3])
        session.update_speed(9.5)
        _feed(session, frames[3:])

        assert session.status().speed_mph == 9.5
        assert [r.speed for r in recorder.records] == [7.0, 7.0, 7.0, 9.5, 9.5]

        breath_df, _, _ = parse_recording_csv(recorder.generate_csv())
        assert list(breath_df["speed"]) == [7.0, 7.0, 7.0, 9.5, 9.5]

    @pytest.mark.parametrize("speed", [-1.0, float("nan")])
    def test_invalid_speed(self, continuous_config, clock, wall_clock, speed):
        session = _session(continuous_config, clock, wall_clock)
        with pytest.raises(ValueError):
            session.update_speed(speed)
        assert session.speed_mph == 7.0


class TestConcurrency:
    def test_ingest_and_poll_from_two_threads(self, continuous_config, clock, wall_clock):
        """Frames and timer ticks arriving on different threads give the same result as serial use."""
        session = _session(continuous_config, clock, wall_clock)
        frames = breath_frames([120] * 200)
        start = threading.Barrier(2)
        done = threading.Event()
        errors = []

        def ingest():
            try:
                start.wait()
                for frame in frames:
                    session.ingest_frame(frame)
            except Exception as e:
                errors.append(e)
            finally:
                done.set()

        def tick():
            try:
                start.wait()
                while not done.is_set():
                    session.poll()
                    session.status()
                    session.trend()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=ingest), threading.Thread(target=tick)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert errors == []
        status = session.status()
        assert status.frames_accepted == 200
        # Bins close on breaths 4, 8, ..., 196; CUSUM sees all but the first
        assert status.bin_count == 49
        assert status.cusum.score == pytest.approx(48 * 38.0)
        assert status.cusum.alarm_triggered
        assert not session.is_complete
