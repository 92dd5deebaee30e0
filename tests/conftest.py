import pytest

from tests.helpers import FakeClock, FakeWallClock
from ve_monitor.models.enums import RunType, WorkoutPhase
from ve_monitor.models.params import PhaseConfig, RunConfig


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeWallClock()


@pytest.fixture
def heavy_run():
    """12 x 4 min intervals with 1 min recovery, plus warmup and cooldown."""
    return RunConfig(
        run_type=RunType.HEAVY,
        speed_mph=8.5,
        num_intervals=12,
        interval_duration_min=4.0,
        recovery_duration_min=1.0,
        vt1_ve=60.0,
        vt2_ve=80.0,
        warmup_duration_min=10.0,
        cooldown_duration_min=5.0,
    )


@pytest.fixture
def moderate_run():
    return RunConfig(
        run_type=RunType.MODERATE,
        speed_mph=6.0,
        interval_duration_min=30.0,
        vt1_ve=60.0,
        vt2_ve=80.0,
    )


@pytest.fixture
def continuous_config():
    """10 minute continuous phase against 80 L/min at 5% sigma."""
    return PhaseConfig(
        phase=WorkoutPhase.WORKOUT,
        duration_sec=600.0,
        baseline_ve=80.0,
        sigma_pct=5.0,
        speed_mph=7.0,
        run_type_label="vt2",
    )


@pytest.fixture
def interval_config():
    """3 x 60 s intervals with 30 s recovery against 80 L/min at 5% sigma."""
    return PhaseConfig(
        phase=WorkoutPhase.WORKOUT,
        duration_sec=270.0,
        baseline_ve=80.0,
        sigma_pct=5.0,
        speed_mph=9.0,
        num_intervals=3,
        interval_duration_sec=60.0,
        recovery_duration_sec=30.0,
        run_type_label="vt2",
    )
