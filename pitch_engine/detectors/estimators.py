"""
pitch_engine/detectors/estimators.py — Single-frame F0 estimators.

Two classic time-domain estimators, both computed with FFT correlation:

    McLeod (MPM)
        Normalised square difference function n'(τ) = 2·r(τ) / m(τ), where
        r is the autocorrelation and m the summed energy of the overlapping
        parts. Key maxima are the highest peaks between positive-going and
        negative-going zero crossings; the first key maximum reaching
        ``cutoff × best`` wins. Its (interpolated) height is the clarity.

    YIN
        Difference function d(τ), cumulative-mean normalisation d'(τ), and
        the first dip below an absolute threshold, followed down to its
        local minimum.

Both refine the winning lag with parabolic interpolation. Neither applies
the detector's frequency range: callers validate the returned frequency.

References:
    McLeod, P. & Wyvill, G. (2005). A smarter way to find pitch. ICMC.
    de Cheveigné, A. & Kawahara, H. (2002). YIN, a fundamental frequency
    estimator for speech and music. JASA 111(4).
"""

from __future__ import annotations

import numpy as np
from scipy.signal import correlate

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MPM_KEY_MAXIMUM_CUTOFF: float = 0.9
"""Fraction of the highest key maximum the chosen peak must reach.
Picking the first such peak instead of the global one avoids sub-octave errors."""

YIN_DEFAULT_THRESHOLD: float = 0.15
"""Absolute threshold on d'(τ). Lower = stricter periodicity requirement."""


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _parabolic_peak(values: np.ndarray, index: int) -> tuple[float, float]:
    """Fit a parabola through ``values[index-1:index+2]``.

    Returns:
        (refined_index, refined_value). Falls back to the integer position
        at the array edges or when the three points are collinear.
    """
    if index <= 0 or index >= len(values) - 1:
        return float(index), float(values[index])
    a, b, c = float(values[index - 1]), float(values[index]), float(values[index + 1])
    denom = a - 2.0 * b + c
    if denom == 0.0:
        return float(index), b
    shift = 0.5 * (a - c) / denom
    return index + shift, b - 0.25 * (a - c) * shift


def _energy_prefix(frame: np.ndarray) -> np.ndarray:
    """Prefix sums of x² with a leading zero: ``cs[k] = Σ_{j<k} x[j]²``."""
    return np.concatenate(([0.0], np.cumsum(frame * frame)))


# ---------------------------------------------------------------------------
# McLeod pitch method
# ---------------------------------------------------------------------------


def nsdf(frame: np.ndarray, max_lag: int | None = None) -> np.ndarray:
    """Normalised square difference function for lags ``0 .. max_lag-1``.

    Values lie in [-1, 1]; n'(0) == 1 for any non-silent frame. Lags with
    zero energy evaluate to 0.
    """
    x = np.asarray(frame, dtype=np.float64)
    n = len(x)
    if max_lag is None:
        max_lag = n
    r = correlate(x, x, mode="full", method="fft")[n - 1 : n - 1 + max_lag]
    cs = _energy_prefix(x)
    lags = np.arange(max_lag)
    m = cs[n - lags] + (cs[n] - cs[lags])
    out = np.zeros(max_lag)
    np.divide(2.0 * r, m, out=out, where=m > 0)
    return out


def _key_maxima(values: np.ndarray) -> list[int]:
    """Indices of the highest value in each positive lobe after lag 0's lobe."""
    positive = values > 0
    if positive.all():
        return []
    # Skip the lobe around lag 0: everything before the first non-positive value
    first_non_positive = int(np.argmin(positive))
    positive[:first_non_positive] = False

    edges = np.diff(positive.astype(np.int8))
    starts = np.flatnonzero(edges == 1) + 1
    ends = np.flatnonzero(edges == -1) + 1
    if positive[-1]:
        ends = np.append(ends, len(values))

    return [int(s + np.argmax(values[s:e])) for s, e in zip(starts, ends)]


def mcleod_pitch(
    frame: np.ndarray,
    sample_rate: int,
    cutoff: float = MPM_KEY_MAXIMUM_CUTOFF,
) -> tuple[float | None, float]:
    """Estimate F0 of one frame with the McLeod pitch method.

    Args:
        frame: 1-D samples.
        sample_rate: Sample rate in Hz.
        cutoff: Key-maximum selection ratio (see MPM_KEY_MAXIMUM_CUTOFF).

    Returns:
        (frequency_hz, clarity). ``(None, 0.0)`` when no key maximum exists
        (silence, DC, noise with no positive lobe). Clarity is clamped to [0, 1].
    """
    x = np.asarray(frame, dtype=np.float64)
    if len(x) < 4:
        return None, 0.0
    values = nsdf(x, max_lag=len(x) // 2)
    maxima = _key_maxima(values)
    if not maxima:
        return None, 0.0

    best = max(values[i] for i in maxima)
    chosen = next(i for i in maxima if values[i] >= cutoff * best)
    lag, clarity = _parabolic_peak(values, chosen)
    if lag <= 0:
        return None, 0.0
    return sample_rate / lag, float(min(max(clarity, 0.0), 1.0))


# ---------------------------------------------------------------------------
# YIN
# ---------------------------------------------------------------------------


def difference_function(frame: np.ndarray) -> np.ndarray:
    """d(τ) = Σ_{j<W} (x[j] − x[j+τ])² for τ in [0, W), W = len(frame) // 2.

    Expanded as  Σx[j]² + Σx[j+τ]² − 2·Σx[j]·x[j+τ]  so the cross term can be
    computed with one FFT correlation and the energies with prefix sums.
    """
    x = np.asarray(frame, dtype=np.float64)
    window = len(x) // 2
    cs = _energy_prefix(x)
    lags = np.arange(window)
    cross = correlate(x, x[:window], mode="valid", method="fft")[:window]
    diff = cs[window] + (cs[lags + window] - cs[lags]) - 2.0 * cross
    # FFT round-off can push exact zeros slightly negative
    return np.maximum(diff, 0.0)


def cumulative_mean_normalized_difference(diff: np.ndarray) -> np.ndarray:
    """d'(0) = 1, d'(τ) = d(τ) · τ / Σ_{k=1..τ} d(k)."""
    out = np.ones_like(diff)
    running = np.cumsum(diff[1:])
    lags = np.arange(1, len(diff))
    np.divide(diff[1:] * lags, running, out=out[1:], where=running > 0)
    return out


def yin_pitch(
    frame: np.ndarray,
    sample_rate: int,
    threshold: float = YIN_DEFAULT_THRESHOLD,
) -> float | None:
    """Estimate F0 of one frame with YIN.

    Returns:
        Frequency in Hz, or None when no lag dips below ``threshold``.
    """
    x = np.asarray(frame, dtype=np.float64)
    if len(x) < 6:
        return None
    cmndf = cumulative_mean_normalized_difference(difference_function(x))
    below = np.flatnonzero(cmndf[2:] < threshold)
    if len(below) == 0:
        return None

    tau = int(below[0]) + 2
    while tau + 1 < len(cmndf) and cmndf[tau + 1] < cmndf[tau]:
        tau += 1

    refined, _ = _parabolic_peak(-cmndf, tau)
    if refined <= 0:
        return None
    return sample_rate / refined


# ---------------------------------------------------------------------------
# Estimator objects
# ---------------------------------------------------------------------------


class McLeodEstimator:
    """MPM bound to a sample rate and frame size."""

    def __init__(
        self, sample_rate: int, buffer_size: int, cutoff: float = MPM_KEY_MAXIMUM_CUTOFF
    ) -> None:
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.cutoff = cutoff

    def estimate(self, frame: np.ndarray) -> tuple[float | None, float]:
        return mcleod_pitch(frame, self.sample_rate, self.cutoff)


class YinEstimator:
    """YIN bound to a sample rate and absolute threshold."""

    def __init__(
        self, sample_rate: int, buffer_size: int, threshold: float = YIN_DEFAULT_THRESHOLD
    ) -> None:
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.threshold = threshold

    def estimate(self, frame: np.ndarray) -> float | None:
        return yin_pitch(frame, self.sample_rate, self.threshold)
