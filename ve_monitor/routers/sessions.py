"""
Live Session Router for VE Threshold Monitor API

Handles real-time monitoring: frame ingestion, heart rate passthrough,
polling, status, trend line and export.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from ..models.schemas import (
    BinSchema,
    BreathUpdateSchema,
    CreateSessionRequest,
    CusumSchema,
    ExportResponse,
    FramesRequest,
    FramesResponse,
    HeartRateRequest,
    HeartRateResponse,
    PhaseProgressSchema,
    SessionInfo,
    SessionStatusResponse,
    SpeedRequest,
    SpeedResponse,
    StopResponse,
    TrendResponse,
)
from ..services.cusum_detector import CusumStatus
from ..services.heart_rate import decode_heart_rate
from ..services.orchestrator import PhaseProgress
from ..services.registry import SessionEntry, SessionRegistry
from ..services.session import BreathUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

# Live sessions for this process
registry = SessionRegistry()


def _get_entry(session_id: str) -> SessionEntry:
    entry = registry.get(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return entry


def _decode_hex(value: str, what: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid hex {what}: {value!r}")


def _cusum_schema(status: CusumStatus) -> CusumSchema:
    return CusumSchema(
        score=status.score,
        peak=status.peak,
        threshold=status.threshold,
        normalized_score=status.normalized_score,
        alarm_triggered=status.alarm_triggered,
        alarm_time=status.alarm_time,
        bin_avg_ve=status.bin_avg_ve,
    )


def _progress_schema(progress: Optional[PhaseProgress]) -> Optional[PhaseProgressSchema]:
    if progress is None:
        return None
    return PhaseProgressSchema(
        phase=progress.phase,
        elapsed_sec=progress.elapsed_sec,
        remaining_sec=progress.remaining_sec,
        current_interval=progress.current_interval,
        num_intervals=progress.num_intervals,
        in_recovery=progress.in_recovery,
        cycle_elapsed_sec=progress.cycle_elapsed_sec,
        block_remaining_sec=progress.block_remaining_sec,
        new_interval=progress.new_interval,
        recovery_changed=progress.recovery_changed,
        phase_complete=progress.phase_complete,
    )


def _breath_schema(update: BreathUpdate) -> BreathUpdateSchema:
    bin_schema = None
    if update.bin is not None:
        bin_schema = BinSchema(
            timestamp=update.bin.timestamp,
            elapsed_sec=update.bin.elapsed_seconds,
            interval_elapsed_sec=update.bin.interval_elapsed_seconds,
            avg_ve=update.bin.avg_ve,
        )
    return BreathUpdateSchema(
        timestamp=update.sample.timestamp,
        elapsed_sec=update.sample.elapsed_seconds,
        interval_elapsed_sec=update.interval_elapsed_seconds,
        ve_raw=update.sample.ve_raw,
        adjusted_ticks=update.sample.adjusted_ticks,
        hr=update.hr,
        filtered_ve=update.filtered_ve,
        bin=bin_schema,
        cusum=_cusum_schema(update.cusum),
        zone=update.zone,
        current_interval=update.current_interval,
        in_recovery=update.in_recovery,
    )


@router.post("", response_model=SessionInfo)
def create_session(request: CreateSessionRequest):
    """
    Start monitoring one phase of a run.

    Warmup and cooldown are monitored against VT1; the workout phase
    against VT1 or VT2 depending on the run type.
    """
    try:
        entry = registry.create(request.run_config, request.phase)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SessionInfo(
        session_id=entry.session_id,
        created_at=entry.created_at,
        phase_config=entry.session.config,
        progress=_progress_schema(entry.session.status().progress),
    )


@router.post("/{session_id}/frames", response_model=FramesResponse)
def ingest_frames(session_id: str, request: FramesRequest):
    """
    Feed strap frames in arrival order.

    Frames that are not valid Type 1 frames are dropped and counted.
    """
    entry = _get_entry(session_id)
    frames = [_decode_hex(f, "frame") for f in request.frames]

    accepted = []
    dropped = 0
    try:
        for frame in frames:
            update = entry.session.ingest_frame(frame)
            if update is None:
                dropped += 1
            else:
                accepted.append(_breath_schema(update))
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return FramesResponse(accepted=accepted, dropped=dropped)


@router.post("/{session_id}/heart-rate", response_model=HeartRateResponse)
def update_heart_rate(session_id: str, request: HeartRateRequest):
    """Attach the latest heart rate to subsequent breaths."""
    entry = _get_entry(session_id)

    bpm = request.bpm
    if request.payload_hex is not None:
        bpm = decode_heart_rate(_decode_hex(request.payload_hex, "payload"))
        if bpm is None:
            raise HTTPException(status_code=400, detail="Heart rate payload too short")

    entry.session.update_heart_rate(bpm)
    return HeartRateResponse(success=True, bpm=bpm)


@router.post("/{session_id}/speed", response_model=SpeedResponse)
def update_speed(session_id: str, request: SpeedRequest):
    """Change treadmill speed for the rest of the phase."""
    entry = _get_entry(session_id)
    try:
        entry.session.update_speed(request.speed_mph)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SpeedResponse(success=True, speed_mph=entry.session.speed_mph)


@router.post("/{session_id}/poll", response_model=PhaseProgressSchema)
def poll_session(session_id: str):
    """Host timer tick: advance interval/recovery state and report progress."""
    entry = _get_entry(session_id)
    return _progress_schema(entry.session.poll())


@router.get("/{session_id}/status", response_model=SessionStatusResponse)
def get_status(session_id: str):
    entry = _get_entry(session_id)
    status = entry.session.status()
    return SessionStatusResponse(
        session_id=session_id,
        phase=entry.session.config.phase,
        cusum=_cusum_schema(status.cusum),
        zone=status.zone,
        zone_color=status.zone.color,
        progress=_progress_schema(status.progress),
        current_interval=status.current_interval,
        in_recovery=status.in_recovery,
        bin_count=status.bin_count,
        latest_filtered_ve=status.latest_filtered_ve,
        heart_rate=status.heart_rate,
        speed_mph=status.speed_mph,
        frames_accepted=status.frames_accepted,
        frames_dropped=status.frames_dropped,
        warmed_up=status.warmed_up,
        is_complete=entry.session.is_complete,
    )


@router.get("/{session_id}/trend", response_model=TrendResponse)
def get_trend(session_id: str):
    """Bin averages and LOESS trend line for the current interval."""
    entry = _get_entry(session_id)
    trend = entry.session.trend()
    return TrendResponse(
        x_values=trend.x_values,
        ve_binned=trend.ve_binned,
        loess_values=trend.loess_values,
        x_min=trend.x_min,
        x_max=trend.x_max,
    )


@router.post("/{session_id}/stop", response_model=StopResponse)
def stop_session(session_id: str):
    """End the phase early and summarise it."""
    entry = _get_entry(session_id)
    progress = entry.session.stop()
    return StopResponse(
        progress=_progress_schema(progress),
        summary=entry.recorder.summary(entry.session.config),
    )


@router.get("/{session_id}/export", response_model=ExportResponse)
def export_session(session_id: str):
    """
    Export recorded breaths as CSV.

    Temporal gaps are filled with interpolated rows; terminal slopes are
    computed from the recorded breaths only.
    """
    entry = _get_entry(session_id)
    recorder = entry.recorder
    if len(recorder) == 0:
        raise HTTPException(status_code=409, detail="No breath data recorded")

    try:
        df = recorder.to_dataframe()
        csv_content = recorder.generate_csv()
        slopes = recorder.terminal_slopes(entry.session.config)
        summary = recorder.summary(entry.session.config)
    except Exception as e:
        logger.exception("Export failed for session %s", session_id)
        raise HTTPException(status_code=500, detail=f"Export failed: {str(e)}")

    logger.info("Exported %d rows for session %s", len(df), session_id)
    return ExportResponse(
        filename=recorder.generate_filename(),
        csv_content=csv_content,
        total_rows=len(df),
        interpolated_rows=int(df["interpolated"].sum()),
        terminal_slopes=slopes,
        summary=summary,
    )


@router.delete("/{session_id}")
def delete_session(session_id: str):
    if not registry.remove(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"success": True, "message": f"Deleted {session_id}"}
