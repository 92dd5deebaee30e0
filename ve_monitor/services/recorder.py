"""
Workout Recording Service for VE Threshold Monitor

Buffers accepted breaths for export and runs the post-processing passes
that sit outside the detection core:
- gap interpolation for stretches with no accepted breaths
- terminal VE slope over the last 30 seconds of each work interval
- the phase summary (average VE and HR, terminal drift as % per minute)

Export format (read back by csv_parser.parse_recording_csv):

    # Date: 2026-01-31
    # Phase: workout
    # Run Type: vt2
    # Speed: 8.5 mph
    ...
    #
    timestamp,elapsed_sec,VE,HR,phase,speed
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from ..constants import GAP_FILL_SPACING_SEC, GAP_THRESHOLD_SEC, TERMINAL_WINDOW_SEC
from ..models.enums import WorkoutPhase
from ..models.params import PhaseConfig
from ..models.schemas import PhaseSummary, TerminalSlope
from .orchestrator import interval_windows
from .regression import fit_single_slope

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["timestamp", "elapsed_sec", "VE", "HR", "phase", "speed"]


@dataclass(frozen=True)
class BreathRecord:
    """One exported breath row."""
    timestamp: datetime
    elapsed_seconds: float
    ve_raw: int
    hr: Optional[int]
    phase: str
    is_recovery: bool
    speed: float
    interpolated: bool = False

    @property
    def phase_label(self) -> str:
        return "recovery" if self.is_recovery else self.phase


@dataclass(frozen=True)
class RecordingMetadata:
    """Header written above the breath rows."""
    date: datetime
    phase: str
    run_type: str
    speed_mph: float
    vt1_threshold: float
    vt2_threshold: float
    phase_duration_min: float
    num_intervals: Optional[int] = None
    interval_duration_min: Optional[float] = None
    recovery_duration_min: Optional[float] = None

    @classmethod
    def for_phase(
        cls,
        config: PhaseConfig,
        vt1_threshold: float,
        vt2_threshold: float,
        date: datetime
    ) -> "RecordingMetadata":
        interval_fields = {}
        if config.is_interval_mode:
            interval_fields = dict(
                num_intervals=config.num_intervals,
                interval_duration_min=config.interval_duration_sec / 60.0,
                recovery_duration_min=config.recovery_duration_sec / 60.0,
            )
        return cls(
            date=date,
            phase=config.phase.value,
            run_type=config.run_type_label,
            speed_mph=config.speed_mph,
            vt1_threshold=vt1_threshold,
            vt2_threshold=vt2_threshold,
            phase_duration_min=config.duration_sec / 60.0,
            **interval_fields,
        )

    def to_header_lines(self) -> List[str]:
        lines = [
            f"# Date: {self.date.date().isoformat()}",
            f"# Phase: {self.phase}",
            f"# Run Type: {self.run_type}",
            f"# Speed: {self.speed_mph:.1f} mph",
            f"# VT1 Threshold: {self.vt1_threshold:.1f} L/min",
            f"# VT2 Threshold: {self.vt2_threshold:.1f} L/min",
            f"# Phase Duration: {self.phase_duration_min:.1f} min",
        ]
        if self.num_intervals is not None:
            lines.append(f"# Intervals: {self.num_intervals}")
            lines.append(f"# Interval Duration: {self.interval_duration_min:.1f} min")
            lines.append(f"# Recovery Duration: {self.recovery_duration_min:.1f} min")
        return lines


def interpolate_gaps(
    records: Sequence[BreathRecord],
    max_gap_sec: float = GAP_THRESHOLD_SEC,
    spacing_sec: float = GAP_FILL_SPACING_SEC
) -> List[BreathRecord]:
    """
    Fill temporal gaps with linearly interpolated rows.

    When consecutive elapsed times are more than `max_gap_sec` apart, rows
    are inserted every `spacing_sec` strictly inside the gap. VE is
    interpolated between the two known breaths; everything else is copied
    from the earlier one.
    """
    if len(records) < 2:
        return list(records)

    filled = [records[0]]
    for prev, cur in zip(records, records[1:]):
        gap = cur.elapsed_seconds - prev.elapsed_seconds
        if gap > max_gap_sec:
            offset = spacing_sec
            while prev.elapsed_seconds + offset < cur.elapsed_seconds:
                fraction = offset / gap
                ve = prev.ve_raw + fraction * (cur.ve_raw - prev.ve_raw)
                filled.append(replace(
                    prev,
                    timestamp=prev.timestamp + timedelta(seconds=offset),
                    elapsed_seconds=prev.elapsed_seconds + offset,
                    ve_raw=int(round(ve)),
                    interpolated=True,
                ))
                offset += spacing_sec
            logger.debug(
                "Filled %.1fs gap after %.1fs", gap, prev.elapsed_seconds
            )
        filled.append(cur)
    return filled


def records_to_dataframe(records: Sequence[BreathRecord]) -> pd.DataFrame:
    """Breath rows as a DataFrame with the export column names."""
    df = pd.DataFrame({
        "timestamp": [r.timestamp.isoformat() for r in records],
        "elapsed_sec": [round(r.elapsed_seconds, 3) for r in records],
        "VE": [r.ve_raw for r in records],
        "HR": pd.array([r.hr for r in records], dtype="Int64"),
        "phase": [r.phase_label for r in records],
        "speed": [r.speed for r in records],
    }, columns=CSV_COLUMNS)
    df["interpolated"] = [r.interpolated for r in records]
    return df


def compute_terminal_slopes(
    breath_df: pd.DataFrame,
    config: PhaseConfig,
    window_sec: float = TERMINAL_WINDOW_SEC
) -> List[TerminalSlope]:
    """
    Robust VE slope over the final seconds of each work interval.

    Args:
        breath_df: DataFrame with 'elapsed_sec' and 'VE' columns
        config: Phase the breaths were recorded in
        window_sec: Length of the terminal window (seconds)

    Returns:
        One TerminalSlope per work interval (slope in L/min per minute)
    """
    results = []
    if breath_df.empty:
        return results

    elapsed = breath_df["elapsed_sec"].to_numpy(dtype=float)
    ve = breath_df["VE"].to_numpy(dtype=float)

    for interval_num, start_time, end_time in interval_windows(config):
        window_start = max(start_time, end_time - window_sec)
        mask = (elapsed >= window_start) & (elapsed < end_time)
        n_points = int(np.sum(mask))

        if n_points >= 2:
            slope, _ = fit_single_slope(elapsed[mask] / 60.0, ve[mask])
        else:
            slope = 0.0

        results.append(TerminalSlope(
            interval_num=interval_num,
            window_start=window_start,
            window_end=end_time,
            slope=slope,
            n_points=n_points,
            mean_ve=float(np.mean(ve[mask])) if n_points else 0.0,
        ))
    return results


def summarize_phase(breath_df: pd.DataFrame, config: PhaseConfig) -> PhaseSummary:
    """
    Averages for the end-of-phase summary.

    Args:
        breath_df: Recorded breaths with 'elapsed_sec', 'VE' and optionally 'HR'
            (interpolated rows should already be excluded)
        config: Phase the breaths were recorded in

    Returns:
        PhaseSummary. The terminal slope is only reported for VT2 work phases,
        as the mean over intervals of slope / window mean VE, in % per minute.
    """
    n_breaths = len(breath_df)
    if n_breaths == 0:
        return PhaseSummary(phase=config.phase, breath_count=0, duration_sec=0.0)

    avg_hr = None
    if "HR" in breath_df.columns:
        hr = breath_df["HR"].dropna().astype(float)
        hr = hr[hr > 0]
        if len(hr) > 0:
            avg_hr = float(hr.mean())

    terminal_slope_pct = None
    if config.phase == WorkoutPhase.WORKOUT and config.run_type_label == "vt2":
        pct = [
            s.slope / s.mean_ve * 100.0
            for s in compute_terminal_slopes(breath_df, config)
            if s.n_points >= 2 and s.mean_ve > 0
        ]
        if pct:
            terminal_slope_pct = float(np.mean(pct))

    return PhaseSummary(
        phase=config.phase,
        breath_count=n_breaths,
        duration_sec=float(breath_df["elapsed_sec"].max()),
        avg_ve=float(breath_df["VE"].mean()),
        avg_hr=avg_hr,
        terminal_slope_pct=terminal_slope_pct,
    )


class WorkoutRecorder:
    """Buffers breath records for one phase and renders them for export."""

    def __init__(self, metadata: RecordingMetadata):
        self.metadata = metadata
        self._records: List[BreathRecord] = []

    def add(self, record: BreathRecord) -> None:
        self._records.append(record)

    @property
    def records(self) -> List[BreathRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def to_dataframe(self, fill_gaps: bool = True) -> pd.DataFrame:
        records = interpolate_gaps(self._records) if fill_gaps else self._records
        return records_to_dataframe(records)

    def generate_csv(self) -> str:
        """Metadata header, a bare '#' line, then the breath rows."""
        df = self.to_dataframe()
        header = "\n".join(self.metadata.to_header_lines() + ["#"])
        body = df[CSV_COLUMNS].to_csv(index=False, lineterminator="\n")
        return f"{header}\n{body}"

    def generate_filename(self) -> str:
        date = self.metadata.date.date().isoformat()
        return f"{date}_{self.metadata.run_type}_{self.metadata.phase}.csv"

    def terminal_slopes(self, config: PhaseConfig) -> List[TerminalSlope]:
        return compute_terminal_slopes(self.to_dataframe(fill_gaps=False), config)

    def summary(self, config: PhaseConfig) -> PhaseSummary:
        return summarize_phase(self.to_dataframe(fill_gaps=False), config)

    def clear(self) -> None:
        self._records.clear()
