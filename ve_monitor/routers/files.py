"""
Recording Router for VE Threshold Monitor API

Handles parsing exported recordings and replaying them through the
detection core.
"""

import logging

from fastapi import APIRouter, HTTPException

from ..models.schemas import (
    ParseCSVRequest,
    ParseCSVResponse,
    ReplayRequest,
    ReplayResponse,
)
from ..services.csv_parser import detect_csv_format, parse_recording_csv
from ..services.replay import phase_config_from_run_params, replay_recording

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


@router.post("/parse", response_model=ParseCSVResponse)
def parse_csv(request: ParseCSVRequest):
    """
    Parse a recording and return metadata about its contents.
    """
    try:
        csv_format = detect_csv_format(request.csv_content)
        if csv_format == "unknown":
            raise HTTPException(
                status_code=400,
                detail="Unknown CSV format. Expected a monitor recording."
            )

        breath_df, metadata, run_params = parse_recording_csv(request.csv_content)

        total_breaths = len(breath_df)
        duration_seconds = float(breath_df['elapsed_sec'].max()) if total_breaths > 0 else 0.0
        has_heart_rate = 'hr' in breath_df.columns and bool(breath_df['hr'].notna().any())

        return ParseCSVResponse(
            success=True,
            format=csv_format,
            total_breaths=total_breaths,
            duration_seconds=duration_seconds,
            detected_phase=run_params.get('phase'),
            detected_run_type=run_params['run_type'].value,
            detected_intervals=run_params.get('num_intervals'),
            detected_interval_duration=run_params.get('interval_duration'),
            detected_recovery_duration=run_params.get('recovery_duration'),
            detected_vt1_threshold=run_params.get('vt1_threshold'),
            detected_vt2_threshold=run_params.get('vt2_threshold'),
            detected_speed=run_params.get('speed'),
            has_heart_rate=has_heart_rate,
        )

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Failed to parse recording")
        raise HTTPException(status_code=500, detail=f"Failed to parse CSV: {str(e)}")


@router.post("/replay", response_model=ReplayResponse)
def replay_csv(request: ReplayRequest):
    """
    Replay a recording through the median filter, time binner and CUSUM.

    Baseline and interval structure come from the recording's header.
    """
    try:
        breath_df, metadata, run_params = parse_recording_csv(request.csv_content)

        if len(breath_df) == 0:
            raise HTTPException(status_code=400, detail="No breath data found in CSV")

        config = phase_config_from_run_params(run_params, request.sigma_pct)
        return replay_recording(breath_df, config)

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Replay failed")
        raise HTTPException(status_code=500, detail=f"Replay failed: {str(e)}")
