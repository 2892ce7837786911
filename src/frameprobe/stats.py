"""Statistics kernel for frame-timing series.

Every function here is total: degenerate input (empty or singleton series,
zero denominators, non-finite values) falls back to 0 instead of raising or
returning NaN, so results can go straight into a report.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

ArrayLike = Union[Sequence[float], np.ndarray]


def _as_array(x: ArrayLike) -> np.ndarray:
    return np.asarray(x, dtype=np.float64).reshape(-1)


def diffs(x: ArrayLike) -> np.ndarray:
    """Consecutive differences ``x[i] - x[i-1]`` (length ``n-1``, or 0)."""
    a = _as_array(x)
    if a.size < 2:
        return np.zeros(0, dtype=np.float64)
    return np.diff(a)


def subtract(a: ArrayLike, b: ArrayLike) -> np.ndarray:
    """Elementwise ``a - b`` over the common length."""
    xa = _as_array(a)
    xb = _as_array(b)
    n = min(xa.size, xb.size)
    return xa[:n] - xb[:n]


def mean(x: ArrayLike) -> float:
    a = _as_array(x)
    return float(np.mean(a)) if a.size else 0.0


def median(x: ArrayLike) -> float:
    a = np.sort(_as_array(x))
    n = a.size
    if n == 0:
        return 0.0
    m = n // 2
    if n % 2:
        return float(a[m])
    return float((a[m - 1] + a[m]) / 2.0)


def variance(x: ArrayLike) -> float:
    """Sample variance (divides by ``n-1``); 0 when fewer than two values."""
    a = _as_array(x)
    if a.size < 2:
        return 0.0
    return float(np.var(a, ddof=1))


def stddev(x: ArrayLike) -> float:
    # max() guards against tiny negative rounding noise
    return math.sqrt(max(0.0, variance(x)))


def percentile(x: ArrayLike, p: float) -> float:
    """Nearest-rank percentile with ``p`` in [0, 1] (no interpolation).

    The index is ``floor(p * (n - 1))`` clamped to the valid range, so
    ``p=0`` is the minimum and ``p=1`` the maximum.
    """
    a = np.sort(_as_array(x))
    n = a.size
    if n == 0:
        return 0.0
    idx = min(n - 1, max(0, int(math.floor(p * (n - 1)))))
    return float(a[idx])


def safe_div(a: float, b: float) -> float:
    """Return ``a / b``, or 0 when ``b`` is zero or NaN."""
    if b == 0 or math.isnan(b):
        return 0.0
    return float(a) / float(b)


def round_metric(x: float, digits: int = 3) -> float:
    """Fixed-decimal rounding; non-finite input becomes 0."""
    x = float(x)
    if not math.isfinite(x):
        return 0.0
    return round(x, digits)


def center(x: ArrayLike) -> np.ndarray:
    """Return a fresh copy of ``x`` with its mean removed."""
    a = _as_array(x)
    return a - mean(a)


@dataclass(frozen=True)
class Summary:
    mean: float
    median: float
    std: float
    p90: float


def summarize(x: ArrayLike) -> Summary:
    a = _as_array(x)
    return Summary(
        mean=mean(a),
        median=median(a),
        std=stddev(a),
        p90=percentile(a, 0.9),
    )
