"""
CUSUM Detection Service for VE Threshold Monitor

One-sided upper CUSUM against a user-supplied baseline VE:

    S_n = max(0, S_{n-1} + (VE_n - baseline) - k)

with sigma = sigma_pct% of baseline, k = 0.5 * sigma and h = 5 * sigma.
The alarm latches once S_n >= h and is only cleared by reset().
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from ..constants import NORMALIZED_SCORE_CEILING, SLACK_MULTIPLIER, THRESHOLD_MULTIPLIER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CusumStatus:
    """Snapshot of the detector after an update."""
    score: float
    peak: float
    threshold: float
    normalized_score: float
    alarm_triggered: bool
    alarm_time: Optional[datetime]
    bin_avg_ve: Optional[float] = None


def normalize_score(score: float, threshold: float) -> float:
    """Score as a fraction of h, clamped to [0, 1.5] for display scaling."""
    if threshold <= 0:
        return 0.0
    return min(max(score / threshold, 0.0), NORMALIZED_SCORE_CEILING)


class CusumDetector:
    """
    Streaming one-sided CUSUM over bin averages.

    Baseline and sigma come from configuration and survive reset();
    only the accumulated score, peak and alarm are cleared.
    """

    def __init__(
        self,
        baseline_ve: float,
        sigma_pct: float,
        clock: Optional[Callable[[], datetime]] = None
    ):
        if not math.isfinite(baseline_ve) or baseline_ve <= 0:
            raise ValueError(f"Baseline VE must be a positive number, got {baseline_ve}")
        if not math.isfinite(sigma_pct) or sigma_pct <= 0:
            raise ValueError(f"Sigma percentage must be a positive number, got {sigma_pct}")

        self.baseline_ve = float(baseline_ve)
        self.sigma_pct = float(sigma_pct)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        # Derived once
        self.sigma = (self.sigma_pct / 100.0) * self.baseline_ve
        self.k = SLACK_MULTIPLIER * self.sigma
        self.h = THRESHOLD_MULTIPLIER * self.sigma

        self.reset()

    @property
    def score(self) -> float:
        return self._score

    @property
    def peak(self) -> float:
        return self._peak

    @property
    def alarm_triggered(self) -> bool:
        return self._alarm_triggered

    @property
    def alarm_time(self) -> Optional[datetime]:
        return self._alarm_time

    @property
    def normalized_score(self) -> float:
        return normalize_score(self._score, self.h)

    def update(self, bin_avg_ve: float, at: Optional[datetime] = None) -> CusumStatus:
        """
        Fold one bin average into the score.

        Args:
            bin_avg_ve: Bin-averaged VE (L/min)
            at: Time to record if this update raises the alarm (defaults to the clock)

        Returns:
            CusumStatus after the update
        """
        if not math.isfinite(bin_avg_ve):
            raise ValueError(f"Bin average must be finite, got {bin_avg_ve}")

        residual = bin_avg_ve - self.baseline_ve
        self._score = max(0.0, self._score + residual - self.k)
        self._peak = max(self._peak, self._score)

        if self._score >= self.h and not self._alarm_triggered:
            self._alarm_triggered = True
            self._alarm_time = at or self._clock()
            logger.info(
                "CUSUM alarm: score %.1f >= h %.1f (baseline %.1f L/min)",
                self._score, self.h, self.baseline_ve
            )

        return self.status(bin_avg_ve)

    def status(self, bin_avg_ve: Optional[float] = None) -> CusumStatus:
        return CusumStatus(
            score=self._score,
            peak=self._peak,
            threshold=self.h,
            normalized_score=self.normalized_score,
            alarm_triggered=self._alarm_triggered,
            alarm_time=self._alarm_time,
            bin_avg_ve=bin_avg_ve,
        )

    def reset(self) -> None:
        """Clear accumulated state for a new work interval."""
        self._score = 0.0
        self._peak = 0.0
        self._alarm_triggered = False
        self._alarm_time: Optional[datetime] = None
