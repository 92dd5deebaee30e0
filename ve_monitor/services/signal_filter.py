"""
Signal Filtering Service for VE Threshold Monitor

Implements the two-stage streaming filter:
1. Rolling median filter (breath domain) - removes single-breath outliers
2. Time binning (time domain) - standardizes accumulation rate
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import numpy as np

from ..constants import BIN_SIZE_SEC, MEDIAN_WINDOW

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bin:
    """One completed time bin."""
    timestamp: datetime
    elapsed_seconds: float
    avg_ve: float


class MedianFilter:
    """
    Stage 1: rolling median over the most recent breaths.

    A 9-breath window at ~55 br/min covers ~10 seconds, providing
    robust outlier rejection while preserving physiological trends.
    Until the window fills, the median of the partial window is returned.
    """

    def __init__(self, window: int = MEDIAN_WINDOW):
        if window < 1:
            raise ValueError(f"Median window must be at least 1, got {window}")
        self.window = window
        self._buffer: deque = deque(maxlen=window)
        self._latest: Optional[float] = None

    def push(self, ve_raw: float) -> float:
        """Add a raw VE value and return the median of the current window."""
        self._buffer.append(float(ve_raw))
        self._latest = float(np.median(self._buffer))
        return self._latest

    @property
    def latest(self) -> float:
        """Most recent filtered value."""
        if self._latest is None:
            raise RuntimeError("MedianFilter queried before any value was pushed")
        return self._latest

    def is_warmed_up(self) -> bool:
        return len(self._buffer) >= self.window

    def __len__(self) -> int:
        return len(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()
        self._latest = None


class TimeBinner:
    """
    Stage 2: average filtered VE over fixed-duration bins.

    A 4-second bin at ~55 br/min captures ~3-4 breaths per bin.
    A bin closes on the first sample at least `bin_size` seconds after the
    bin opened; that sample is included in the closing bin and also opens
    the next one.
    """

    def __init__(self, bin_size: float = BIN_SIZE_SEC):
        if bin_size <= 0:
            raise ValueError(f"Bin size must be positive, got {bin_size}")
        self.bin_size = bin_size
        self._values: List[float] = []
        self._bin_start_time: Optional[datetime] = None

    @property
    def bin_start_time(self) -> Optional[datetime]:
        return self._bin_start_time

    @property
    def pending_count(self) -> int:
        return len(self._values)

    def push(
        self,
        filtered_ve: float,
        sample_timestamp: datetime,
        elapsed_seconds: float
    ) -> Optional[Bin]:
        """
        Add a filtered sample.

        Args:
            filtered_ve: Median-filtered VE (L/min)
            sample_timestamp: Wall-clock time of the breath
            elapsed_seconds: Breath time since phase start (seconds)

        Returns:
            Completed Bin, or None while the bin is still accumulating
        """
        if self._bin_start_time is None:
            self._bin_start_time = sample_timestamp
        self._values.append(float(filtered_ve))

        bin_elapsed = (sample_timestamp - self._bin_start_time).total_seconds()
        if bin_elapsed < self.bin_size:
            return None

        avg_ve = float(np.mean(self._values))
        completed = Bin(
            timestamp=sample_timestamp,
            elapsed_seconds=elapsed_seconds,
            avg_ve=avg_ve,
        )
        logger.debug(
            "Closed bin at %.2fs: %d samples, avg %.1f L/min",
            elapsed_seconds, len(self._values), avg_ve
        )

        self._values.clear()
        self._bin_start_time = sample_timestamp
        return completed

    def reset(self) -> None:
        self._values.clear()
        self._bin_start_time = None
