"""
Request/Response Schemas for VE Threshold Monitor API
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from .enums import WorkoutPhase, Zone
from .params import PhaseConfig, RunConfig


# =============================================================================
# Data Models
# =============================================================================

class BinSchema(BaseModel):
    """A completed 4-second bin."""
    timestamp: datetime = Field(description="Wall-clock time of the closing breath")
    elapsed_sec: float = Field(description="Seconds since phase anchor")
    interval_elapsed_sec: float = Field(description="Seconds since interval start")
    avg_ve: float = Field(description="Average filtered VE in the bin (L/min)")


class CusumSchema(BaseModel):
    """CUSUM detector snapshot."""
    score: float = Field(description="Current CUSUM score")
    peak: float = Field(description="Peak CUSUM score this interval")
    threshold: float = Field(description="CUSUM threshold (H)")
    normalized_score: float = Field(description="Score / H, clamped to [0, 1.5]")
    alarm_triggered: bool = Field(description="True once the score reached H this interval")
    alarm_time: Optional[datetime] = Field(
        default=None,
        description="Time when CUSUM alarm triggered"
    )
    bin_avg_ve: Optional[float] = Field(
        default=None,
        description="Latest bin average (L/min)"
    )


class BreathUpdateSchema(BaseModel):
    """Result of one accepted breath."""
    timestamp: datetime
    elapsed_sec: float = Field(description="Seconds since phase anchor")
    interval_elapsed_sec: float = Field(description="Seconds since interval start")
    ve_raw: int = Field(description="Raw VE (L/min)")
    adjusted_ticks: int = Field(description="Strap tick count with rollover applied")
    hr: Optional[int] = Field(default=None, description="Heart rate (bpm)")
    filtered_ve: float = Field(description="Median-filtered VE (L/min)")
    bin: Optional[BinSchema] = Field(default=None, description="Bin closed by this breath")
    cusum: CusumSchema
    zone: Zone
    current_interval: int
    in_recovery: bool


class PhaseProgressSchema(BaseModel):
    """Orchestrator poll result."""
    phase: WorkoutPhase
    elapsed_sec: float
    remaining_sec: float
    current_interval: int
    num_intervals: int
    in_recovery: bool
    cycle_elapsed_sec: float
    block_remaining_sec: float = Field(description="Seconds left in the current interval or recovery")
    new_interval: bool = False
    recovery_changed: bool = False
    phase_complete: bool = False


class TerminalSlope(BaseModel):
    """VE drift over the closing seconds of a work interval."""
    interval_num: int = Field(description="1-indexed interval number")
    window_start: float = Field(description="Window start (seconds)")
    window_end: float = Field(description="Window end (seconds)")
    slope: float = Field(description="VE slope (L/min per minute)")
    n_points: int = Field(description="Breaths in the window")
    mean_ve: float = Field(default=0.0, description="Mean VE in the window (L/min)")


class PhaseSummary(BaseModel):
    """Averages shown when a phase ends."""
    phase: WorkoutPhase
    breath_count: int = Field(description="Recorded breaths, excluding interpolated rows")
    duration_sec: float = Field(description="Elapsed time of the last recorded breath")
    avg_ve: Optional[float] = Field(default=None, description="Average VE (L/min)")
    avg_hr: Optional[float] = Field(default=None, description="Average heart rate (bpm)")
    terminal_slope_pct: Optional[float] = Field(
        default=None,
        description="VT2 work only: VE drift in the last 30 s of each interval (% of window mean per minute)"
    )


# =============================================================================
# Session Request/Response Schemas
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Start monitoring one phase of a run."""
    run_config: RunConfig
    phase: WorkoutPhase = Field(default=WorkoutPhase.WORKOUT, description="Phase to monitor")


class SessionInfo(BaseModel):
    session_id: str
    created_at: datetime
    phase_config: PhaseConfig
    progress: PhaseProgressSchema


class FramesRequest(BaseModel):
    """Frames in arrival order, hex encoded."""
    frames: List[str] = Field(description="Hex-encoded frames")


class FramesResponse(BaseModel):
    accepted: List[BreathUpdateSchema]
    dropped: int = Field(description="Frames dropped by the parser in this request")


class HeartRateRequest(BaseModel):
    """Either a decoded BPM or a raw Heart Rate Measurement payload."""
    bpm: Optional[int] = Field(default=None, description="Heart rate (bpm)")
    payload_hex: Optional[str] = Field(
        default=None,
        description="Hex-encoded Heart Rate Measurement payload"
    )


class HeartRateResponse(BaseModel):
    success: bool
    bpm: Optional[int] = None


class SpeedRequest(BaseModel):
    """Treadmill speed change; applies to every later breath of the phase."""
    speed_mph: float = Field(ge=0, description="Treadmill speed (mph)")


class SpeedResponse(BaseModel):
    success: bool
    speed_mph: float


class SessionStatusResponse(BaseModel):
    session_id: str
    phase: WorkoutPhase
    cusum: CusumSchema
    zone: Zone
    zone_color: str
    progress: Optional[PhaseProgressSchema] = None
    current_interval: int
    in_recovery: bool
    bin_count: int
    latest_filtered_ve: Optional[float] = None
    heart_rate: Optional[int] = None
    speed_mph: float = Field(description="Current treadmill speed (mph)")
    frames_accepted: int
    frames_dropped: int
    warmed_up: bool = Field(description="True once the median window is full")
    is_complete: bool


class TrendResponse(BaseModel):
    """Chart series for the current interval."""
    x_values: List[float] = Field(description="Bin x positions (seconds)")
    ve_binned: List[float] = Field(description="Bin averages (L/min)")
    loess_values: List[float] = Field(description="LOESS trend line (L/min)")
    x_min: float = Field(description="Chart x-axis minimum")
    x_max: float = Field(description="Chart x-axis maximum")


class ExportResponse(BaseModel):
    filename: str
    csv_content: str
    total_rows: int = Field(description="Rows written, including interpolated ones")
    interpolated_rows: int
    terminal_slopes: List[TerminalSlope]
    summary: PhaseSummary


class StopResponse(BaseModel):
    progress: PhaseProgressSchema
    summary: PhaseSummary


# =============================================================================
# Recording Request/Response Schemas
# =============================================================================

class ParseCSVRequest(BaseModel):
    """Request to parse a recording."""
    csv_content: str = Field(description="Raw CSV content as string")


class ParseCSVResponse(BaseModel):
    """Response from recording parsing."""
    success: bool
    format: str = Field(description="Detected format")
    total_breaths: int = Field(description="Total number of breaths parsed")
    duration_seconds: float = Field(description="Total recording duration")

    detected_phase: Optional[WorkoutPhase] = None
    detected_run_type: Optional[str] = None
    detected_intervals: Optional[int] = None
    detected_interval_duration: Optional[float] = None
    detected_recovery_duration: Optional[float] = None
    detected_vt1_threshold: Optional[float] = None
    detected_vt2_threshold: Optional[float] = None
    detected_speed: Optional[float] = None
    has_heart_rate: bool = False


class ReplayRequest(BaseModel):
    """Replay a recording through the detection core."""
    csv_content: str = Field(description="Raw CSV content")
    sigma_pct: Optional[float] = Field(
        default=None,
        gt=0,
        description="Override sigma percentage. If None, use the domain default."
    )


class ReplayIntervalResult(BaseModel):
    """Replay output for one work interval."""
    interval_num: int
    bin_times: List[float] = Field(description="Bin times (seconds since phase start)")
    ve_binned: List[float]
    cusum_values: List[float]
    loess_values: List[float]
    in_recovery: List[bool]
    peak_cusum: float
    final_cusum: float
    cusum_threshold: float
    alarm_triggered: bool
    alarm_time: Optional[float] = Field(
        default=None,
        description="Time when CUSUM alarm triggered (seconds)"
    )
    peak_zone: Zone = Field(description="Highest zone reached")


class ReplayResponse(BaseModel):
    success: bool
    phase: WorkoutPhase
    run_type_label: str
    baseline_ve: float
    sigma_pct: float
    num_intervals: int
    total_breaths: int
    intervals: List[ReplayIntervalResult]
