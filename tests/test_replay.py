"""Tests for reading recordings and replaying them through detection."""

from datetime import timedelta

import pytest

from tests.helpers import START_WALL_TIME
from ve_monitor.models.enums import RunType, WorkoutPhase, Zone
from ve_monitor.models.params import PhaseConfig
from ve_monitor.services.csv_parser import detect_csv_format, parse_recording_csv
from ve_monitor.services.orchestrator import interval_position
from ve_monitor.services.recorder import BreathRecord, RecordingMetadata, WorkoutRecorder
from ve_monitor.services.replay import phase_config_from_run_params, replay_recording


def build_recording(config, work_ve, recovery_ve=40, vt1=60.0, vt2=80.0):
    """One breath per second for the whole phase."""
    recorder = WorkoutRecorder(RecordingMetadata.for_phase(config, vt1, vt2, START_WALL_TIME))
    for second in range(int(config.duration_sec)):
        in_recovery = False
        if config.is_interval_mode:
            _, _, in_recovery = interval_position(
                second, config.interval_duration_sec, config.recovery_duration_sec
            )
        recorder.add(BreathRecord(
            timestamp=START_WALL_TIME + timedelta(seconds=second),
            elapsed_seconds=float(second),
            ve_raw=recovery_ve if in_recovery else work_ve,
            hr=None,
            phase=config.phase.value,
            is_recovery=in_recovery,
            speed=config.speed_mph,
        ))
    return recorder.generate_csv()


@pytest.fixture
def warmup_config():
    return PhaseConfig(
        phase=WorkoutPhase.WARMUP,
        duration_sec=120.0,
        baseline_ve=60.0,
        sigma_pct=10.0,
        speed_mph=5.0,
    )


class TestParseRecording:
    def test_detect_format(self, interval_config):
        assert detect_csv_format(build_recording(interval_config, 120)) == "recording"
        assert detect_csv_format("Time,VE\n0,50\n") == "unknown"

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            parse_recording_csv("Time,VE\n0,50\n")

    def test_missing_columns_rejected(self):
        with pytest.raises(ValueError):
            parse_recording_csv("# Date: 2026-01-31\n#\nfoo,bar\n1,2\n")

    def test_interval_metadata(self, interval_config):
        breath_df, _, run_params = parse_recording_csv(build_recording(interval_config, 120))

        assert len(breath_df) == 270
        assert run_params["phase"] == WorkoutPhase.WORKOUT
        assert run_params["run_type"] == RunType.HEAVY
        assert run_params["speed"] == 9.0
        assert run_params["phase_duration"] == 4.5
        assert set(breath_df["phase"]) == {"workout", "recovery"}

    def test_continuous_defaults(self, warmup_config):
        breath_df, _, run_params = parse_recording_csv(build_recording(warmup_config, 50))

        assert run_params["phase"] == WorkoutPhase.WARMUP
        assert run_params["run_type"] == RunType.MODERATE
        assert run_params["num_intervals"] == 1
        assert run_params["recovery_duration"] == 0.0
        assert run_params["interval_duration"] == 2.0
        assert breath_df["hr"].isna().all()


class TestPhaseConfigFromRecording:
    def test_vt2_intervals(self, interval_config):
        _, _, run_params = parse_recording_csv(build_recording(interval_config, 120))
        config = phase_config_from_run_params(run_params)

        assert config.baseline_ve == 80.0
        assert config.sigma_pct == 5.0
        assert config.num_intervals == 3
        assert config.interval_duration_sec == pytest.approx(60.0)
        assert config.recovery_duration_sec == pytest.approx(30.0)
        assert config.duration_sec == pytest.approx(270.0)
        assert config.run_type_label == "vt2"

    def test_warmup_uses_vt1(self, warmup_config):
        _, _, run_params = parse_recording_csv(build_recording(warmup_config, 50))
        config = phase_config_from_run_params(run_params, sigma_pct=8.0)

        assert config.baseline_ve == 60.0
        assert config.sigma_pct == 8.0
        assert not config.is_interval_mode
        assert config.duration_sec == pytest.approx(120.0)

    def test_missing_threshold(self):
        with pytest.raises(ValueError):
            phase_config_from_run_params({
                "phase": WorkoutPhase.WORKOUT,
                "run_type": RunType.HEAVY,
            })


class TestReplay:
    def test_each_interval_detected_separately(self, interval_config):
        """Detection resets at every interval, so each one alarms on its own."""
        breath_df, _, run_params = parse_recording_csv(build_recording(interval_config, 120))
        result = replay_recording(breath_df, phase_config_from_run_params(run_params))

        assert result.total_breaths == 270
        assert [r.interval_num for r in result.intervals] == [1, 2, 3]
        assert all(r.alarm_triggered for r in result.intervals)
        # First full-window bin closes 8 s into each interval
        assert [r.alarm_time for r in result.intervals] == pytest.approx([8.0, 98.0, 188.0])
        assert all(r.peak_zone == Zone.RED for r in result.intervals)

        first = result.intervals[0]
        assert first.cusum_values[0] == 0.0
        assert first.cusum_threshold == pytest.approx(20.0)
        assert any(first.in_recovery)
        assert len(first.loess_values) == len(first.bin_times)

    def test_below_baseline_never_alarms(self, warmup_config):
        breath_df, _, run_params = parse_recording_csv(build_recording(warmup_config, 50))
        result = replay_recording(breath_df, phase_config_from_run_params(run_params))

        assert result.num_intervals == 1
        assert len(result.intervals) == 1
        interval = result.intervals[0]
        assert not interval.alarm_triggered
        assert interval.alarm_time is None
        assert interval.peak_cusum == 0.0
        assert interval.peak_zone == Zone.GREEN
