"""
CSV Parsing Service for VE Threshold Monitor

Reads recordings exported by WorkoutRecorder:
- Header comments starting with # containing metadata
- Data columns: timestamp, elapsed_sec, VE, HR, phase, speed
"""

import logging
from io import StringIO
from typing import Any, Dict, Tuple

import pandas as pd

from ..models.enums import RunType, WorkoutPhase

logger = logging.getLogger(__name__)


def detect_csv_format(csv_content: str) -> str:
    """
    Detect whether the CSV is a monitor recording.

    Returns:
        'recording' or 'unknown'
    """
    if csv_content.startswith('# Date:') or '# Run Type:' in csv_content[:500]:
        return 'recording'
    return 'unknown'


def _strip_unit(value: str, unit: str) -> str:
    return value.replace(unit, '').strip()


def parse_recording_csv(csv_content: str) -> Tuple[pd.DataFrame, Dict[str, Any], Dict[str, Any]]:
    """
    Parse a recording and extract breath-by-breath data with metadata.

    Args:
        csv_content: Raw CSV content as string

    Returns:
        Tuple of (breath_df, metadata, run_params)
        - breath_df: DataFrame with 'elapsed_sec', 've_raw' and, when present, 'hr', 'phase', 'speed'
        - metadata: Dict with raw metadata values keyed by lower-case name
        - run_params: Dict with typed run parameters (phase, run_type, thresholds, durations)
    """
    if detect_csv_format(csv_content) != 'recording':
        raise ValueError("Unknown CSV format. Expected a monitor recording with '# Key: Value' header.")

    lines = csv_content.replace('\r\n', '\n').replace('\r', '\n').split('\n')

    metadata: Dict[str, Any] = {}
    run_params: Dict[str, Any] = {}

    for line in lines:
        if line.startswith('#'):
            key_value = line[1:].strip()
            colon_idx = key_value.find(':')
            if colon_idx <= 0:
                continue
            key = key_value[:colon_idx].strip().lower()
            value = key_value[colon_idx + 1:].strip()
            metadata[key] = value

            if key == 'phase':
                run_params['phase'] = WorkoutPhase.from_string(value)
            elif key == 'run type':
                run_params['run_type'] = RunType.from_string(value)
            elif key == 'speed':
                run_params['speed'] = float(_strip_unit(value, 'mph'))
            elif key == 'vt1 threshold':
                run_params['vt1_threshold'] = float(_strip_unit(value, 'L/min'))
            elif key == 'vt2 threshold':
                run_params['vt2_threshold'] = float(_strip_unit(value, 'L/min'))
            elif key == 'intervals':
                run_params['num_intervals'] = int(value)
            elif key == 'interval duration':
                run_params['interval_duration'] = float(_strip_unit(value, 'min'))
            elif key == 'recovery duration':
                run_params['recovery_duration'] = float(_strip_unit(value, 'min'))
            elif key == 'phase duration':
                run_params['phase_duration'] = float(_strip_unit(value, 'min'))
        elif line.strip():
            # Found data header row
            break

    df = pd.read_csv(StringIO(csv_content), comment='#', skip_blank_lines=True)
    df.columns = df.columns.str.strip().str.lower()

    if 'elapsed_sec' not in df.columns or 've' not in df.columns:
        raise ValueError("Recording is missing 'elapsed_sec' or 'VE' columns")

    result = pd.DataFrame()
    result['elapsed_sec'] = pd.to_numeric(df['elapsed_sec'], errors='coerce')
    result['ve_raw'] = pd.to_numeric(df['ve'], errors='coerce')

    if 'hr' in df.columns:
        result['hr'] = pd.to_numeric(df['hr'], errors='coerce')
    if 'speed' in df.columns:
        result['speed'] = pd.to_numeric(df['speed'], errors='coerce')
    if 'phase' in df.columns:
        result['phase'] = df['phase'].astype(str)

    n_rows = len(result)
    result = result.dropna(subset=['elapsed_sec', 've_raw']).reset_index(drop=True)
    if len(result) < n_rows:
        logger.debug("Skipped %d unparseable rows", n_rows - len(result))

    if 'run_type' not in run_params:
        run_params['run_type'] = RunType.MODERATE

    if 'num_intervals' not in run_params:
        run_params['num_intervals'] = 1
        run_params['recovery_duration'] = 0.0
        if 'phase_duration' in run_params:
            run_params['interval_duration'] = run_params['phase_duration']
        elif len(result) > 0:
            run_params['interval_duration'] = result['elapsed_sec'].max() / 60.0
        else:
            run_params['interval_duration'] = 0.0

    return result, metadata, run_params
