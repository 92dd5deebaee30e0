"""
API Models for VE Threshold Monitor
"""

from .enums import RunType, WorkoutPhase, Zone
from .params import PhaseConfig, RunConfig
from .schemas import (
    BinSchema,
    CusumSchema,
    BreathUpdateSchema,
    PhaseProgressSchema,
    TerminalSlope,
    PhaseSummary,
    CreateSessionRequest,
    SessionInfo,
    FramesRequest,
    FramesResponse,
    HeartRateRequest,
    HeartRateResponse,
    SpeedRequest,
    SpeedResponse,
    StopResponse,
    SessionStatusResponse,
    TrendResponse,
    ExportResponse,
    ParseCSVRequest,
    ParseCSVResponse,
    ReplayRequest,
    ReplayIntervalResult,
    ReplayResponse,
)

__all__ = [
    "RunType",
    "WorkoutPhase",
    "Zone",
    "PhaseConfig",
    "RunConfig",
    "BinSchema",
    "CusumSchema",
    "BreathUpdateSchema",
    "PhaseProgressSchema",
    "TerminalSlope",
    "PhaseSummary",
    "CreateSessionRequest",
    "SessionInfo",
    "FramesRequest",
    "FramesResponse",
    "HeartRateRequest",
    "HeartRateResponse",
    "SpeedRequest",
    "SpeedResponse",
    "StopResponse",
    "SessionStatusResponse",
    "TrendResponse",
    "ExportResponse",
    "ParseCSVRequest",
    "ParseCSVResponse",
    "ReplayRequest",
    "ReplayIntervalResult",
    "ReplayResponse",
]
