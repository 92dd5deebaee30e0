"""
Replay Service for VE Threshold Monitor

Runs a recorded breath series back through the same median filter, time
binner and CUSUM used live, keyed on the recorded elapsed times instead
of strap ticks. Interval boundaries reset detection exactly as the live
orchestrator does.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from ..constants import SIGMA_PCT_HEAVY, SIGMA_PCT_MODERATE
from ..models.enums import RunType, WorkoutPhase
from ..models.params import PhaseConfig
from ..models.schemas import ReplayIntervalResult, ReplayResponse
from .cusum_detector import CusumDetector, normalize_score
from .loess import loess_smooth
from .orchestrator import interval_position
from .signal_filter import MedianFilter, TimeBinner
from .zones import classify_zone

logger = logging.getLogger(__name__)

_REPLAY_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def phase_config_from_run_params(
    run_params: Dict[str, Any],
    sigma_pct: Optional[float] = None
) -> PhaseConfig:
    """
    Rebuild the phase configuration a recording was made with.

    Warmup, cooldown and VT1 recordings are held against VT1 with the
    moderate sigma; VT2 workout recordings against VT2 with the heavy sigma.
    """
    phase = run_params.get('phase', WorkoutPhase.WORKOUT)
    run_type = run_params.get('run_type', RunType.MODERATE)
    use_vt1 = phase != WorkoutPhase.WORKOUT or run_type == RunType.MODERATE

    threshold_key = 'vt1_threshold' if use_vt1 else 'vt2_threshold'
    if threshold_key not in run_params:
        raise ValueError(f"Recording has no {threshold_key.replace('_', ' ').upper()} to use as baseline")

    num_intervals = run_params.get('num_intervals', 1) if not use_vt1 else 1
    interval_sec = run_params.get('interval_duration', 0.0) * 60.0
    recovery_sec = run_params.get('recovery_duration', 0.0) * 60.0
    if num_intervals > 1:
        duration_sec = num_intervals * (interval_sec + recovery_sec)
    else:
        duration_sec = run_params.get('phase_duration', run_params.get('interval_duration', 0.0)) * 60.0

    return PhaseConfig(
        phase=phase,
        duration_sec=duration_sec,
        baseline_ve=run_params[threshold_key],
        sigma_pct=sigma_pct or (SIGMA_PCT_MODERATE if use_vt1 else SIGMA_PCT_HEAVY),
        speed_mph=run_params.get('speed', 0.0),
        num_intervals=num_intervals,
        interval_duration_sec=interval_sec,
        recovery_duration_sec=recovery_sec,
        run_type_label='vt1' if use_vt1 else 'vt2',
    )


class _IntervalTrace:
    """Per-interval accumulation during replay."""

    def __init__(self, interval_num: int):
        self.interval_num = interval_num
        self.bin_times: List[float] = []
        self.ve_binned: List[float] = []
        self.cusum_values: List[float] = []
        self.in_recovery: List[bool] = []

    def to_result(self, cusum: CusumDetector) -> ReplayIntervalResult:
        alarm_time = None
        if cusum.alarm_time is not None:
            alarm_time = (cusum.alarm_time - _REPLAY_EPOCH).total_seconds()
        return ReplayIntervalResult(
            interval_num=self.interval_num,
            bin_times=self.bin_times,
            ve_binned=self.ve_binned,
            cusum_values=self.cusum_values,
            loess_values=loess_smooth(self.bin_times, self.ve_binned).tolist(),
            in_recovery=self.in_recovery,
            peak_cusum=cusum.peak,
            final_cusum=cusum.score,
            cusum_threshold=cusum.h,
            alarm_triggered=cusum.alarm_triggered,
            alarm_time=alarm_time,
            peak_zone=classify_zone(normalize_score(cusum.peak, cusum.h)),
        )


def replay_recording(breath_df: pd.DataFrame, config: PhaseConfig) -> ReplayResponse:
    """
    Replay recorded breaths through the detection core.

    Args:
        breath_df: DataFrame with 'elapsed_sec' and 've_raw' columns
        config: Phase configuration for the recording

    Returns:
        ReplayResponse with one result per interval
    """
    median_filter = MedianFilter()
    binner = TimeBinner()
    cusum = CusumDetector(config.baseline_ve, config.sigma_pct)

    results: List[ReplayIntervalResult] = []
    trace = _IntervalTrace(1)
    n_breaths = 0

    for elapsed, ve in zip(breath_df['elapsed_sec'].to_numpy(dtype=float),
                           breath_df['ve_raw'].to_numpy(dtype=float)):
        if config.duration_sec > 0 and elapsed >= config.duration_sec:
            break

        in_recovery = False
        if config.is_interval_mode:
            interval_num, _, in_recovery = interval_position(
                elapsed, config.interval_duration_sec, config.recovery_duration_sec
            )
            if interval_num != trace.interval_num:
                results.append(trace.to_result(cusum))
                median_filter.reset()
                binner.reset()
                cusum.reset()
                trace = _IntervalTrace(interval_num)

        n_breaths += 1
        timestamp = _REPLAY_EPOCH + timedelta(seconds=float(elapsed))
        filtered_ve = median_filter.push(ve)
        completed = binner.push(filtered_ve, timestamp, float(elapsed))
        if completed is None:
            continue

        if median_filter.is_warmed_up():
            cusum.update(completed.avg_ve, at=completed.timestamp)
        trace.bin_times.append(completed.elapsed_seconds)
        trace.ve_binned.append(completed.avg_ve)
        trace.cusum_values.append(cusum.score)
        trace.in_recovery.append(in_recovery)

    results.append(trace.to_result(cusum))
    logger.info(
        "Replayed %d breaths over %d interval(s) against %.1f L/min",
        n_breaths, len(results), config.baseline_ve
    )

    return ReplayResponse(
        success=True,
        phase=config.phase,
        run_type_label=config.run_type_label,
        baseline_ve=config.baseline_ve,
        sigma_pct=config.sigma_pct,
        num_intervals=config.num_intervals,
        total_breaths=n_breaths,
        intervals=results,
    )
