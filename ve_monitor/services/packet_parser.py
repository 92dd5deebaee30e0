"""
VitalPro Packet Parser for VE Threshold Monitor

Decodes Type 1 (respiratory event) frames from the VitalPro strap.

Frame layout (17 bytes, little-endian):
- Byte 0: Packet type (must be 0x01)
- Bytes 1-4: Tick counter (uint32)
- Bytes 5-12: Not used
- Bytes 13-14: VE raw (uint16, L/min)
- Bytes 15-16: Not used (smoothed duplicates)

The strap's tick counter is the only trustworthy clock: BLE delivery is
bursty, so elapsed time is derived from ticks and anchored to the wall
clock once, on the first valid frame.
"""

import logging
import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..constants import (
    FRAME_LENGTH,
    FRAME_TYPE_RESPIRATORY,
    TICK_OFFSET,
    TICK_ROLLOVER,
    TICKS_PER_SECOND,
    VE_OFFSET,
)

logger = logging.getLogger(__name__)

_UINT32_LE = struct.Struct("<I")
_UINT16_LE = struct.Struct("<H")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BreathSample:
    """One parsed respiratory event."""
    timestamp: datetime      # anchor wall time + elapsed_seconds
    elapsed_seconds: float   # time since anchor, from the tick counter
    ve_raw: int              # L/min
    adjusted_ticks: int      # tick count with rollover applied


def elapsed_between(adjusted_ticks: int, origin_ticks: int) -> float:
    """Seconds between two adjusted tick counts."""
    return (adjusted_ticks - origin_ticks) / TICKS_PER_SECOND


class PacketParser:
    """
    Stateful parser for one device's frame stream.

    Maintains a rollover-tolerant tick accumulator and the phase's time
    anchor. Invalid frames are dropped without touching any of that state.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utc_now
        self.frames_accepted = 0
        self.frames_dropped = 0
        self.reset()

    def reset(self) -> None:
        """Clear rollover and anchor state; the next valid frame re-anchors at zero."""
        self._accumulator = 0
        self._previous_raw_ticks: Optional[int] = None
        self._anchor_wall_time: Optional[datetime] = None
        self._anchor_ticks: Optional[int] = None

    @property
    def is_anchored(self) -> bool:
        return self._anchor_wall_time is not None

    @property
    def anchor_wall_time(self) -> Optional[datetime]:
        return self._anchor_wall_time

    @property
    def anchor_ticks(self) -> Optional[int]:
        return self._anchor_ticks

    @staticmethod
    def is_valid_frame(raw_bytes: bytes) -> bool:
        """Type 1 frame with the exact expected length."""
        if not raw_bytes:
            return False
        if raw_bytes[0] != FRAME_TYPE_RESPIRATORY:
            return False
        return len(raw_bytes) == FRAME_LENGTH

    def parse(self, raw_bytes) -> Optional[BreathSample]:
        """
        Parse one frame.

        Args:
            raw_bytes: Frame payload (bytes, bytearray or a sequence of ints)

        Returns:
            BreathSample, or None if the frame is not a valid Type 1 frame
        """
        raw_bytes = bytes(raw_bytes)
        if not self.is_valid_frame(raw_bytes):
            self.frames_dropped += 1
            logger.debug("Dropped frame (%d bytes)", len(raw_bytes))
            return None

        (raw_ticks,) = _UINT32_LE.unpack_from(raw_bytes, TICK_OFFSET)
        (ve_raw,) = _UINT16_LE.unpack_from(raw_bytes, VE_OFFSET)

        # Only a single wrap between consecutive frames is detected
        if self._previous_raw_ticks is not None and raw_ticks < self._previous_raw_ticks:
            self._accumulator += TICK_ROLLOVER
            logger.debug(
                "Tick counter went backwards (%d -> %d), accumulator now %d",
                self._previous_raw_ticks, raw_ticks, self._accumulator
            )
        self._previous_raw_ticks = raw_ticks

        adjusted_ticks = raw_ticks + self._accumulator

        if self._anchor_wall_time is None:
            self._anchor_wall_time = self._clock()
            self._anchor_ticks = adjusted_ticks
            logger.info(
                "Anchored tick clock at %d ticks (%s)",
                adjusted_ticks, self._anchor_wall_time.isoformat()
            )

        elapsed_seconds = elapsed_between(adjusted_ticks, self._anchor_ticks)
        timestamp = self._anchor_wall_time + timedelta(seconds=elapsed_seconds)

        self.frames_accepted += 1
        return BreathSample(
            timestamp=timestamp,
            elapsed_seconds=elapsed_seconds,
            ve_raw=ve_raw,
            adjusted_ticks=adjusted_ticks,
        )
