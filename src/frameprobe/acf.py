"""Normalized autocorrelation for periodicity detection in IFI series.

Looped media or repeated-frame artifacts show up as a strong correlation at
a non-zero lag of the (mean-removed) inter-frame-interval series.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .stats import ArrayLike, variance

VARIANCE_FLOOR = 1e-12
# Lags within this relative distance of the maximum count as tied
TIE_TOLERANCE = 1e-9


@dataclass(frozen=True)
class AcfPeak:
    lag: int  # frames
    corr: float


def autocorr(x: ArrayLike, max_lag: int) -> np.ndarray:
    """Normalized autocorrelation of a zero-centered series.

    Args:
        x: mean-removed 1D series.
        max_lag: largest lag to evaluate (inclusive).

    Returns:
        Array of length ``max_lag + 1``. Index 0 is 1.0; lag ``l`` is
        ``sum(x[i] * x[i-l]) / ((N - l) * var)`` with ``var`` floored at
        ``VARIANCE_FLOOR`` so constant series give 0 instead of NaN.
    """
    a = np.asarray(x, dtype=np.float64).reshape(-1)
    n = a.size
    max_lag = max(0, int(max_lag))
    var = variance(a) or VARIANCE_FLOOR
    out = np.zeros(max_lag + 1, dtype=np.float64)
    out[0] = 1.0
    for lag in range(1, max_lag + 1):
        m = n - lag
        if m <= 0:
            break
        s = float(np.dot(a[lag:], a[:m]))
        out[lag] = s / (m * var)
    return out


def best_lag(acf: np.ndarray) -> AcfPeak:
    """Strongest non-zero lag of an autocorrelation array.

    Lag 0 is excluded since it is trivially 1. A periodic series correlates
    equally at every multiple of its period, so lags within
    ``TIE_TOLERANCE`` (relative) of the maximum are treated as tied and the
    smallest one wins. Returns ``AcfPeak(0, 0.0)`` when there is no lag >= 1.
    """
    a = np.asarray(acf, dtype=np.float64).reshape(-1)
    if a.size < 2:
        return AcfPeak(0, 0.0)
    lags = a[1:]
    top = float(lags.max())
    tol = TIE_TOLERANCE * max(1.0, abs(top))
    lag = int(np.flatnonzero(lags >= top - tol)[0]) + 1
    return AcfPeak(lag, float(a[lag]))
