"""
LOESS Trend Line Service for VE Threshold Monitor

Degree-1 locally weighted regression with a tricube kernel, re-run over
the whole retained bin series each time it is called. Used only for the
visual trend line; detection never reads it.
"""

import math
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from ..constants import LOESS_FRAC, LOESS_MIN_WINDOW
from .signal_filter import Bin


def _tricube(u: np.ndarray) -> np.ndarray:
    """(1 - u^3)^3 for u < 1, zero at and beyond the bandwidth."""
    return np.where(u < 1.0, (1.0 - u ** 3) ** 3, 0.0)


def loess_smooth(x: np.ndarray, y: np.ndarray, frac: float = LOESS_FRAC) -> np.ndarray:
    """
    Smooth y against x.

    For every x_i the k = ceil(frac * n) nearest points (at least 2) are
    weighted by the tricube of their distance over the k-th neighbour's
    distance, and a weighted straight line is evaluated at x_i.

    Args:
        x: Point positions (elapsed seconds), any order
        y: Values at those positions (L/min)
        frac: Fraction of points in each local window

    Returns:
        Smoothed values, same length and order as the input
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"x and y must have the same length ({len(x)} != {len(y)})")

    n = len(x)
    if n < 2:
        return y.copy()

    k = min(n, max(LOESS_MIN_WINDOW, math.ceil(frac * n)))
    smoothed = np.empty(n)

    for i in range(n):
        distances = np.abs(x - x[i])
        neighbors = np.argsort(distances, kind="stable")[:k]
        x_nb = x[neighbors]
        y_nb = y[neighbors]
        d_max = distances[neighbors].max()

        if d_max <= 0:
            # Duplicate x: nothing to regress on
            smoothed[i] = y_nb.mean()
            continue

        w = _tricube(distances[neighbors] / d_max)
        w_sum = w.sum()
        if w_sum <= 0:
            smoothed[i] = y_nb.mean()
            continue

        x_mean = np.dot(w, x_nb) / w_sum
        y_mean = np.dot(w, y_nb) / w_sum
        sxx = np.dot(w, (x_nb - x_mean) ** 2)

        if sxx <= 1e-12 * max(1.0, d_max ** 2):
            # All the weight sits on one x value
            smoothed[i] = y_mean
            continue

        slope = np.dot(w, (x_nb - x_mean) * (y_nb - y_mean)) / sxx
        smoothed[i] = y_mean + slope * (x[i] - x_mean)

    return smoothed


def smooth(points: Sequence[Tuple[float, float]], frac: float = LOESS_FRAC) -> List[float]:
    """Smooth a sequence of (elapsed_seconds, avg_ve) points."""
    if len(points) == 0:
        return []
    x, y = zip(*points)
    return loess_smooth(np.array(x), np.array(y), frac).tolist()


def smooth_bins(bins: Iterable[Bin], frac: float = LOESS_FRAC) -> List[float]:
    """Trend values for a bin history, keyed on each bin's elapsed time."""
    return smooth([(b.elapsed_seconds, b.avg_ve) for b in bins], frac)
