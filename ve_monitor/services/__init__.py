"""
Services for VE Threshold Monitor
"""

from .packet_parser import (
    BreathSample,
    PacketParser,
    elapsed_between,
)
from .signal_filter import (
    Bin,
    MedianFilter,
    TimeBinner,
)
from .cusum_detector import (
    CusumDetector,
    CusumStatus,
    normalize_score,
)
from .zones import (
    classify_zone,
)
from .loess import (
    loess_smooth,
    smooth,
    smooth_bins,
)
from .orchestrator import (
    PhaseOrchestrator,
    PhaseProgress,
    interval_position,
    interval_windows,
)
from .session import (
    MonitoringSession,
    BreathUpdate,
    SessionStatus,
    Trend,
)
from .recorder import (
    BreathRecord,
    RecordingMetadata,
    WorkoutRecorder,
    interpolate_gaps,
    compute_terminal_slopes,
    summarize_phase,
)
from .regression import (
    fit_single_slope,
)
from .heart_rate import (
    decode_heart_rate,
)
from .csv_parser import (
    detect_csv_format,
    parse_recording_csv,
)
from .replay import (
    phase_config_from_run_params,
    replay_recording,
)

__all__ = [
    # Packet Parser
    "BreathSample",
    "PacketParser",
    "elapsed_between",
    # Signal Filter
    "Bin",
    "MedianFilter",
    "TimeBinner",
    # CUSUM
    "CusumDetector",
    "CusumStatus",
    "normalize_score",
    "classify_zone",
    # Trend line
    "loess_smooth",
    "smooth",
    "smooth_bins",
    # Orchestrator
    "PhaseOrchestrator",
    "PhaseProgress",
    "interval_position",
    "interval_windows",
    # Session
    "MonitoringSession",
    "BreathUpdate",
    "SessionStatus",
    "Trend",
    # Recording
    "BreathRecord",
    "RecordingMetadata",
    "WorkoutRecorder",
    "interpolate_gaps",
    "compute_terminal_slopes",
    "summarize_phase",
    "fit_single_slope",
    "decode_heart_rate",
    # Recordings
    "detect_csv_format",
    "parse_recording_csv",
    "phase_config_from_run_params",
    "replay_recording",
]
