"""
Regression Service for VE Threshold Monitor

Robust single-slope fitting (Huber regression), used to measure VE drift
over the closing seconds of each work interval.
"""

from typing import Tuple
import numpy as np
from scipy.optimize import minimize


def _huber_loss_linear(params, t_arr, ve_arr, delta=5.0):
    """Huber loss for robust linear regression."""
    intercept, slope = params
    pred = intercept + slope * t_arr
    residuals = ve_arr - pred
    abs_res = np.abs(residuals)
    loss = np.where(
        abs_res <= delta,
        0.5 * residuals**2,
        delta * (abs_res - 0.5 * delta)
    )
    return np.sum(loss)


def fit_single_slope(t: np.ndarray, ve: np.ndarray, delta: float = 5.0) -> Tuple[float, float]:
    """
    Fit a single linear slope using robust Huber regression.

    Args:
        t: Time values (can be seconds or minutes)
        ve: VE values
        delta: Huber threshold (L/min); residuals beyond it count linearly

    Returns:
        Tuple of (slope, intercept)
    """
    t = np.asarray(t, dtype=float)
    ve = np.asarray(ve, dtype=float)

    if len(t) < 2:
        return 0.0, float(np.mean(ve)) if len(ve) > 0 else 0.0

    # Initial guess from the end points
    slope_init = (ve[-1] - ve[0]) / (t[-1] - t[0]) if (t[-1] - t[0]) > 0 else 0.0
    intercept_init = ve[0] - slope_init * t[0]

    result = minimize(
        _huber_loss_linear,
        [intercept_init, slope_init],
        args=(t, ve, delta),
        method='L-BFGS-B',
        options={'maxiter': 1000}
    )
    intercept, slope = result.x
    return float(slope), float(intercept)
