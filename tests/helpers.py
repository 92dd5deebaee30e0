"""
Helpers for building strap frames and driving clocks in tests.
"""

import struct
from datetime import datetime, timedelta, timezone

START_WALL_TIME = datetime(2026, 1, 31, 8, 0, 0, tzinfo=timezone.utc)


def make_frame(ticks: int, ve: int, packet_type: int = 0x01, length: int = 17) -> bytes:
    """Build a Type 1 frame; bytes the parser ignores are filled with noise."""
    frame = bytearray(b"\xaa" * 17)
    frame[0] = packet_type
    struct.pack_into("<I", frame, 1, ticks)
    struct.pack_into("<H", frame, 13, ve)
    frame[15:17] = b"\xbb\xbb"
    if length <= 17:
        return bytes(frame[:length])
    return bytes(frame) + b"\x00" * (length - 17)


def breath_frames(ve_values, start_ticks: int = 1000, ticks_per_breath: int = 30):
    """One frame per VE value, ~1.2 s apart at 25 Hz."""
    return [
        make_frame(start_ticks + i * ticks_per_breath, int(ve))
        for i, ve in enumerate(ve_values)
    ]


class FakeClock:
    """Monotonic seconds clock advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """Wall clock advanced by hand."""

    def __init__(self, start: datetime = START_WALL_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
