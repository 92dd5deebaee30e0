"""
In-process registry of live monitoring sessions.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from ..models.enums import WorkoutPhase
from ..models.params import RunConfig
from .recorder import RecordingMetadata, WorkoutRecorder
from .session import MonitoringSession

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    session_id: str
    created_at: datetime
    run_config: RunConfig
    session: MonitoringSession
    recorder: WorkoutRecorder


class SessionRegistry:
    """Thread-safe map of session id to live session."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, SessionEntry] = {}

    def create(self, run_config: RunConfig, phase: WorkoutPhase) -> SessionEntry:
        """Build, start and register a session for one phase of a run."""
        phase_config = run_config.phase_config(phase)
        if phase_config.duration_sec <= 0:
            raise ValueError(f"{phase.value} phase has no duration configured")
        created_at = datetime.now(timezone.utc)
        recorder = WorkoutRecorder(RecordingMetadata.for_phase(
            phase_config, run_config.vt1_ve, run_config.vt2_ve, created_at
        ))
        session = MonitoringSession(phase_config, recorder=recorder)
        session.start()

        entry = SessionEntry(
            session_id=uuid.uuid4().hex,
            created_at=created_at,
            run_config=run_config,
            session=session,
            recorder=recorder,
        )
        with self._lock:
            self._entries[entry.session_id] = entry
        logger.info("Created session %s (%s)", entry.session_id, phase.value)
        return entry

    def get(self, session_id: str) -> Optional[SessionEntry]:
        with self._lock:
            return self._entries.get(session_id)

    def remove(self, session_id: str) -> bool:
        with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is not None and not entry.session.is_complete:
            entry.session.stop()
        return entry is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
