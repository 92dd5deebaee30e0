"""
Live Monitoring Session for VE Threshold Monitor

Wires the detection core for one phase:

    frame -> PacketParser -> MedianFilter -> TimeBinner -> CusumDetector -> zone
                                                  \\-> bin history -> LOESS trend

Frame arrival and the host's polling tick come from different sources, so
every mutation goes through one lock.
"""

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

import numpy as np

from ..constants import CHART_WINDOW_SEC
from ..models.enums import Zone
from ..models.params import PhaseConfig
from .cusum_detector import CusumDetector, CusumStatus
from .loess import loess_smooth
from .orchestrator import PhaseOrchestrator, PhaseProgress
from .packet_parser import BreathSample, PacketParser, elapsed_between
from .recorder import BreathRecord, WorkoutRecorder
from .signal_filter import Bin, MedianFilter, TimeBinner
from .zones import classify_zone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartBin:
    """A completed bin with both of its chart time bases."""
    timestamp: datetime
    elapsed_seconds: float            # since phase anchor
    interval_elapsed_seconds: float   # since the current interval's first breath
    avg_ve: float


@dataclass(frozen=True)
class BreathUpdate:
    """Everything produced by one accepted breath."""
    sample: BreathSample
    hr: Optional[int]
    filtered_ve: float
    interval_elapsed_seconds: float
    bin: Optional[ChartBin]
    cusum: CusumStatus
    zone: Zone
    current_interval: int
    in_recovery: bool


@dataclass(frozen=True)
class Trend:
    """Bin series and LOESS trend line for the chart."""
    x_values: List[float]
    ve_binned: List[float]
    loess_values: List[float]
    x_min: float
    x_max: float


@dataclass(frozen=True)
class SessionStatus:
    cusum: CusumStatus
    zone: Zone
    progress: Optional[PhaseProgress]
    current_interval: int
    in_recovery: bool
    bin_count: int
    latest_filtered_ve: Optional[float]
    heart_rate: Optional[int]
    speed_mph: float
    frames_accepted: int
    frames_dropped: int
    warmed_up: bool


class MonitoringSession:
    """
    Real-time VE monitoring for one phase.

    Args:
        config: Phase configuration (baseline, sigma, durations)
        recorder: Optional recorder receiving every accepted breath
        wall_clock: Wall clock for the parser anchor and alarm times
        monotonic_clock: Seconds clock driving the orchestrator
    """

    def __init__(
        self,
        config: PhaseConfig,
        recorder: Optional[WorkoutRecorder] = None,
        wall_clock: Optional[Callable[[], datetime]] = None,
        monotonic_clock: Optional[Callable[[], float]] = None
    ):
        self.config = config
        self.recorder = recorder

        self.parser = PacketParser(clock=wall_clock)
        self.median_filter = MedianFilter()
        self.binner = TimeBinner()
        self.cusum = CusumDetector(config.baseline_ve, config.sigma_pct, clock=wall_clock)
        self.orchestrator = PhaseOrchestrator(
            config,
            clock=monotonic_clock,
            on_new_interval=self._on_new_interval,
            on_phase_complete=self._on_phase_complete,
        )

        # Re-entrant: orchestrator callbacks run while poll() holds the lock
        self._lock = threading.RLock()
        self._bins: List[ChartBin] = []
        self._heart_rate: Optional[int] = None
        self._speed_mph = config.speed_mph
        self._interval_origin_ticks: Optional[int] = None
        self._latest_progress: Optional[PhaseProgress] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> PhaseProgress:
        with self._lock:
            self.parser.reset()
            self._reset_interval_state()
            self.orchestrator.start()
            self._latest_progress = self.orchestrator.poll()
            return self._latest_progress

    def stop(self) -> PhaseProgress:
        """End the phase early (user stop)."""
        with self._lock:
            self._latest_progress = self.orchestrator.finish()
            return self._latest_progress

    @property
    def is_complete(self) -> bool:
        return self.orchestrator.finished

    def poll(self) -> PhaseProgress:
        """Host timer tick: advance interval/recovery state."""
        with self._lock:
            self._latest_progress = self.orchestrator.poll()
            return self._latest_progress

    # -------------------------------------------------------------------------
    # Data input
    # -------------------------------------------------------------------------

    def update_heart_rate(self, bpm: Optional[int]) -> None:
        """Last known heart rate; attached to the next accepted breath."""
        with self._lock:
            self._heart_rate = bpm if bpm is not None and bpm > 0 else None

    def update_speed(self, speed_mph: float) -> None:
        """Treadmill speed change; recorded with every later breath of the phase."""
        if not math.isfinite(speed_mph) or speed_mph < 0:
            raise ValueError(f"Speed must be a non-negative number, got {speed_mph}")
        with self._lock:
            previous = self._speed_mph
            self._speed_mph = float(speed_mph)
        logger.info("Speed changed from %.1f to %.1f mph", previous, speed_mph)

    @property
    def speed_mph(self) -> float:
        with self._lock:
            return self._speed_mph

    def ingest_frame(self, raw_bytes) -> Optional[BreathUpdate]:
        """
        Process one frame from the strap.

        Returns:
            BreathUpdate for an accepted breath, None for a dropped frame
        """
        with self._lock:
            if not self.orchestrator.started:
                raise RuntimeError("Session received data before start()")
            if self.orchestrator.finished:
                raise RuntimeError(f"{self.config.phase.value} phase already complete")

            sample = self.parser.parse(raw_bytes)
            if sample is None:
                return None

            if self._interval_origin_ticks is None:
                self._interval_origin_ticks = sample.adjusted_ticks
            interval_elapsed = elapsed_between(sample.adjusted_ticks, self._interval_origin_ticks)

            filtered_ve = self.median_filter.push(sample.ve_raw)
            completed = self.binner.push(filtered_ve, sample.timestamp, sample.elapsed_seconds)

            chart_bin = None
            if completed is not None:
                chart_bin = self._record_bin(completed, interval_elapsed)
                # CUSUM never consumes bins built from a partial median window
                if self.median_filter.is_warmed_up():
                    self.cusum.update(completed.avg_ve, at=completed.timestamp)

            in_recovery = self.orchestrator.in_recovery
            cusum_status = self.cusum.status(self._bins[-1].avg_ve if self._bins else None)

            if self.recorder is not None:
                self.recorder.add(BreathRecord(
                    timestamp=sample.timestamp,
                    elapsed_seconds=sample.elapsed_seconds,
                    ve_raw=sample.ve_raw,
                    hr=self._heart_rate,
                    phase=self.config.phase.value,
                    is_recovery=in_recovery,
                    speed=self._speed_mph,
                ))

            return BreathUpdate(
                sample=sample,
                hr=self._heart_rate,
                filtered_ve=filtered_ve,
                interval_elapsed_seconds=interval_elapsed,
                bin=chart_bin,
                cusum=cusum_status,
                zone=classify_zone(cusum_status.normalized_score, in_recovery),
                current_interval=self.orchestrator.current_interval,
                in_recovery=in_recovery,
            )

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    @property
    def bins(self) -> List[ChartBin]:
        with self._lock:
            return list(self._bins)

    def status(self) -> SessionStatus:
        with self._lock:
            in_recovery = self.orchestrator.in_recovery
            cusum_status = self.cusum.status(self._bins[-1].avg_ve if self._bins else None)
            latest_filtered = self.median_filter.latest if len(self.median_filter) else None
            return SessionStatus(
                cusum=cusum_status,
                zone=classify_zone(cusum_status.normalized_score, in_recovery),
                progress=self._latest_progress,
                current_interval=self.orchestrator.current_interval,
                in_recovery=in_recovery,
                bin_count=len(self._bins),
                latest_filtered_ve=latest_filtered,
                heart_rate=self._heart_rate,
                speed_mph=self._speed_mph,
                frames_accepted=self.parser.frames_accepted,
                frames_dropped=self.parser.frames_dropped,
                warmed_up=self.median_filter.is_warmed_up(),
            )

    def trend(self) -> Trend:
        """
        Bin series and LOESS trend for the chart.

        Interval phases chart interval-local time over one full cycle;
        continuous phases chart phase time over a rolling 10 minute window.
        """
        with self._lock:
            bins = list(self._bins)

        if self.config.is_interval_mode:
            x = np.array([b.interval_elapsed_seconds for b in bins], dtype=float)
            x_min, x_max = 0.0, self.config.cycle_duration_sec
        else:
            x = np.array([b.elapsed_seconds for b in bins], dtype=float)
            x_max = max(CHART_WINDOW_SEC, float(x[-1])) if len(x) else CHART_WINDOW_SEC
            x_min = x_max - CHART_WINDOW_SEC
            in_window = x >= x_min
            x = x[in_window]
            bins = [b for b, keep in zip(bins, in_window) if keep]

        y = np.array([b.avg_ve for b in bins], dtype=float)
        return Trend(
            x_values=x.tolist(),
            ve_binned=y.tolist(),
            loess_values=loess_smooth(x, y).tolist(),
            x_min=x_min,
            x_max=x_max,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _record_bin(self, completed: Bin, interval_elapsed: float) -> ChartBin:
        chart_bin = ChartBin(
            timestamp=completed.timestamp,
            elapsed_seconds=completed.elapsed_seconds,
            interval_elapsed_seconds=interval_elapsed,
            avg_ve=completed.avg_ve,
        )
        self._bins.append(chart_bin)
        return chart_bin

    def _reset_interval_state(self) -> None:
        self.median_filter.reset()
        self.binner.reset()
        self.cusum.reset()
        self._bins.clear()
        self._interval_origin_ticks = None

    def _on_new_interval(self, interval_num: int) -> None:
        with self._lock:
            peak = self.cusum.peak
            alarm = self.cusum.alarm_triggered
            self._reset_interval_state()
        logger.info(
            "Reset detection for interval %d (previous peak %.1f, alarm %s)",
            interval_num, peak, alarm
        )

    def _on_phase_complete(self, progress: PhaseProgress) -> None:
        logger.info(
            "Phase %s finished after %.1fs: peak CUSUM %.1f / h %.1f, alarm %s, %d breaths",
            progress.phase.value, progress.elapsed_sec, self.cusum.peak, self.cusum.h,
            self.cusum.alarm_triggered, self.parser.frames_accepted
        )
