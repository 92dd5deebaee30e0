"""
Interval / Phase Orchestrator for VE Threshold Monitor

Tracks where a phase is in time and decides when the detection core must
be reset. The host polls it on a regular cadence; nothing here blocks or
schedules work.

Interval arithmetic for a multi-interval workout:
- cycle = work + recovery
- cycle index = floor(elapsed / cycle), interval = cycle index + 1
- in recovery once the time inside the cycle reaches the work duration

A new interval resets the filter, binner and CUSUM. Entering or leaving
recovery does not: recovery VE pulls the score back down through the
slack term instead.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..models.enums import WorkoutPhase
from ..models.params import PhaseConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseProgress:
    """Result of one orchestrator poll."""
    phase: WorkoutPhase
    elapsed_sec: float
    remaining_sec: float
    current_interval: int
    num_intervals: int
    in_recovery: bool
    cycle_elapsed_sec: float
    block_remaining_sec: float
    new_interval: bool = False
    recovery_changed: bool = False
    phase_complete: bool = False


def interval_position(
    elapsed_sec: float,
    interval_duration_sec: float,
    recovery_duration_sec: float
) -> Tuple[int, float, bool]:
    """
    Locate an elapsed time inside the interval/recovery cycle.

    Returns:
        Tuple of (current_interval, cycle_elapsed_sec, in_recovery)
        - current_interval: 1-indexed interval number
        - cycle_elapsed_sec: Seconds since the current cycle began
        - in_recovery: True once the work part of the cycle is over
    """
    cycle_duration = interval_duration_sec + recovery_duration_sec
    if cycle_duration <= 0:
        raise ValueError("Cycle duration must be positive")
    cycle_index = math.floor(elapsed_sec / cycle_duration)
    cycle_elapsed = elapsed_sec - cycle_index * cycle_duration
    return cycle_index + 1, cycle_elapsed, cycle_elapsed >= interval_duration_sec


def interval_windows(config: PhaseConfig) -> List[Tuple[int, float, float]]:
    """
    Work windows of a phase as (interval_num, start_sec, end_sec).

    A continuous phase is a single window spanning the whole phase.
    """
    if not config.is_interval_mode:
        return [(1, 0.0, config.duration_sec)]

    windows = []
    current_time = 0.0
    for i in range(config.num_intervals):
        start_time = current_time
        end_time = start_time + config.interval_duration_sec
        windows.append((i + 1, start_time, end_time))
        current_time = end_time + config.recovery_duration_sec
    return windows


class PhaseOrchestrator:
    """
    Polling state machine for one phase.

    Args:
        config: Phase configuration
        clock: Monotonic seconds clock (defaults to time.monotonic)
        on_new_interval: Called with the new interval number when a new work
            interval begins
        on_phase_complete: Called once when the phase ends, naturally or early
    """

    def __init__(
        self,
        config: PhaseConfig,
        clock: Optional[Callable[[], float]] = None,
        on_new_interval: Optional[Callable[[int], None]] = None,
        on_phase_complete: Optional[Callable[[PhaseProgress], None]] = None
    ):
        if config.is_interval_mode and config.interval_duration_sec <= 0:
            raise ValueError("Interval duration must be positive for an interval phase")

        self.config = config
        self._clock = clock or time.monotonic
        self._on_new_interval = on_new_interval
        self._on_phase_complete = on_phase_complete

        self._start_time: Optional[float] = None
        self._current_interval = 1
        self._in_recovery = False
        self._final_progress: Optional[PhaseProgress] = None

    @property
    def started(self) -> bool:
        return self._start_time is not None

    @property
    def finished(self) -> bool:
        return self._final_progress is not None

    @property
    def current_interval(self) -> int:
        return self._current_interval

    @property
    def in_recovery(self) -> bool:
        return self._in_recovery

    def start(self) -> None:
        self._start_time = self._clock()
        self._current_interval = 1
        self._in_recovery = False
        self._final_progress = None
        logger.info(
            "Started %s phase: %.0fs, %d interval(s), baseline %.1f L/min, sigma %.1f%%",
            self.config.phase.value, self.config.duration_sec, self.config.num_intervals,
            self.config.baseline_ve, self.config.sigma_pct
        )

    def elapsed(self) -> float:
        if self._start_time is None:
            raise RuntimeError("Orchestrator polled before start()")
        return self._clock() - self._start_time

    def poll(self) -> PhaseProgress:
        """Advance the state machine to the clock's current time."""
        if self._final_progress is not None:
            return self._final_progress

        elapsed = self.elapsed()
        if elapsed >= self.config.duration_sec:
            return self._complete(elapsed)

        config = self.config
        new_interval = False
        recovery_changed = False

        if config.is_interval_mode:
            interval_num, cycle_elapsed, in_recovery = interval_position(
                elapsed, config.interval_duration_sec, config.recovery_duration_sec
            )

            if interval_num != self._current_interval:
                new_interval = True
                recovery_changed = in_recovery != self._in_recovery
                self._current_interval = interval_num
                self._in_recovery = in_recovery
                logger.info("Interval %d/%d started at %.1fs", interval_num, config.num_intervals, elapsed)
                if self._on_new_interval is not None:
                    self._on_new_interval(interval_num)
            elif in_recovery != self._in_recovery:
                recovery_changed = True
                self._in_recovery = in_recovery
                logger.info(
                    "Interval %d: %s recovery at %.1fs",
                    interval_num, "entering" if in_recovery else "leaving", elapsed
                )

            if in_recovery:
                block_remaining = config.cycle_duration_sec - cycle_elapsed
            else:
                block_remaining = config.interval_duration_sec - cycle_elapsed
        else:
            cycle_elapsed = elapsed
            block_remaining = config.duration_sec - elapsed

        return PhaseProgress(
            phase=config.phase,
            elapsed_sec=elapsed,
            remaining_sec=config.duration_sec - elapsed,
            current_interval=self._current_interval,
            num_intervals=config.num_intervals,
            in_recovery=self._in_recovery,
            cycle_elapsed_sec=cycle_elapsed,
            block_remaining_sec=block_remaining,
            new_interval=new_interval,
            recovery_changed=recovery_changed,
        )

    def finish(self) -> PhaseProgress:
        """End the phase early; same path as natural completion."""
        if self._final_progress is not None:
            return self._final_progress
        return self._complete(self.elapsed())

    def _complete(self, elapsed: float) -> PhaseProgress:
        self._final_progress = PhaseProgress(
            phase=self.config.phase,
            elapsed_sec=elapsed,
            remaining_sec=max(0.0, self.config.duration_sec - elapsed),
            current_interval=self._current_interval,
            num_intervals=self.config.num_intervals,
            in_recovery=self._in_recovery,
            cycle_elapsed_sec=0.0,
            block_remaining_sec=0.0,
            phase_complete=True,
        )
        logger.info("%s phase complete at %.1fs", self.config.phase.value, elapsed)
        if self._on_phase_complete is not None:
            self._on_phase_complete(self._final_progress)
        return self._final_progress
