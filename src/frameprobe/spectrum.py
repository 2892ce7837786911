"""Magnitude spectrum and dominant-frequency extraction for IFI series.

The FFT is an iterative radix-2 Cooley-Tukey transform over separate real and
imaginary float64 buffers. Butterflies of one stage are applied to all blocks
at once through a reshaped view, and each stage's twiddle factors come from
a complex recurrence rather than per-butterfly trig calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .stats import ArrayLike

DEFAULT_SAMPLE_RATE = 30.0
ENERGY_EPS = 1e-9


@dataclass(frozen=True)
class SpectrumPeak:
    freq_hz: float
    strength: float  # peak magnitude over total magnitude, roughly 0..1
    bin: int


def next_pow2(n: int) -> int:
    """Smallest power of two >= max(2, n)."""
    m = 2
    while m < n:
        m <<= 1
    return m


def _stage_twiddles(half: int, step_re: float, step_im: float) -> Tuple[np.ndarray, np.ndarray]:
    w_re = np.empty(half, dtype=np.float64)
    w_im = np.empty(half, dtype=np.float64)
    cr, ci = 1.0, 0.0
    for k in range(half):
        w_re[k] = cr
        w_im[k] = ci
        cr, ci = cr * step_re - ci * step_im, cr * step_im + ci * step_re
    return w_re, w_im


def _bit_reverse(re: np.ndarray, im: np.ndarray) -> None:
    n = re.size
    j = 0
    for i in range(1, n):
        bit = n >> 1
        while j & bit:
            j ^= bit
            bit >>= 1
        j |= bit
        if i < j:
            re[i], re[j] = re[j], re[i]
            im[i], im[j] = im[j], im[i]


def fft_inplace(re: np.ndarray, im: np.ndarray) -> None:
    """In-place forward FFT of ``re + 1j*im``.

    Both arrays must be contiguous float64 of the same power-of-two length.
    """
    n = re.size
    if n != im.size:
        raise ValueError("real and imaginary parts differ in length")
    if n < 1 or n & (n - 1):
        raise ValueError(f"FFT length must be a power of two, got {n}")
    _bit_reverse(re, im)
    size = 2
    while size <= n:
        half = size // 2
        ang = -2.0 * math.pi / size
        w_re, w_im = _stage_twiddles(half, math.cos(ang), math.sin(ang))
        blocks_re = re.reshape(-1, size)
        blocks_im = im.reshape(-1, size)
        u_re = blocks_re[:, :half].copy()
        u_im = blocks_im[:, :half].copy()
        b_re = blocks_re[:, half:]
        b_im = blocks_im[:, half:]
        v_re = b_re * w_re - b_im * w_im
        v_im = b_re * w_im + b_im * w_re
        blocks_re[:, :half] = u_re + v_re
        blocks_im[:, :half] = u_im + v_im
        blocks_re[:, half:] = u_re - v_re
        blocks_im[:, half:] = u_im - v_im
        size <<= 1


def magnitude_fft(x: ArrayLike) -> np.ndarray:
    """One-sided magnitude spectrum of a real series, zero-padded.

    Returns an array of length ``N/2`` for padded length ``N``. Entry ``k`` is
    ``|X[k]|`` for ``k`` in ``1..N/2-1``; entry 0 (DC) is left at 0 and the
    Nyquist bin is not included.
    """
    a = np.asarray(x, dtype=np.float64).reshape(-1)
    n = next_pow2(a.size)
    re = np.zeros(n, dtype=np.float64)
    im = np.zeros(n, dtype=np.float64)
    re[: a.size] = a
    fft_inplace(re, im)
    mag = np.zeros(n // 2, dtype=np.float64)
    mag[1:] = np.hypot(re[1 : n // 2], im[1 : n // 2])
    return mag


def dominant_frequency(mag: np.ndarray, sample_rate: float) -> SpectrumPeak:
    """Strongest bin of a one-sided spectrum from :func:`magnitude_fft`.

    Args:
        mag: magnitude spectrum, bin ``k`` at ``k * sample_rate / N`` with
            ``N = 2 * len(mag)``.
        sample_rate: sampling rate of the series (Hz); a falsy value falls
            back to ``DEFAULT_SAMPLE_RATE``.
    """
    m = np.asarray(mag, dtype=np.float64).reshape(-1)
    if m.size < 2:
        return SpectrumPeak(0.0, 0.0, 0)
    k = int(np.argmax(m[1:])) + 1
    peak = float(m[k])
    if not peak > 0.0:
        return SpectrumPeak(0.0, 0.0, 0)
    fs = sample_rate or DEFAULT_SAMPLE_RATE
    n = 2 * m.size
    freq = k * fs / n
    strength = peak / (float(np.sum(m)) + ENERGY_EPS)
    return SpectrumPeak(float(freq), float(strength), k)
