"""Hybrid MPM + YIN pitch detector for the singing range.

Per frame:

    RMS gate ──→ MPM (clarity ≥ gate?) ──→ YIN fallback ──→ range check
        ──→ octave-jump correction ──→ median smoothing ──→ Detection

Octave correction tracks a slowly-adapting "stable pitch". Once a note has
held for ``min_stable_frames`` frames, a candidate that lands an octave (or
two octaves) away from it is folded back, because a sung note does not jump
exactly an octave in 11 ms but the estimators routinely do.

Smoothing is a median over the last ``history_size`` corrected values, with
candidates far from the preliminary median (ratio outside 0.7–1.4) ignored
so a single surviving octave error cannot drag the median.

Usage::

    detector = HybridPitchDetector(DetectorConfig(buffer_size=2048))
    detector.initialize()
    for frame in frames:
        result = detector.detect(frame)
        if result.is_voiced:
            print(result.frequency, result.algorithm)
    detector.dispose()
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any

import numpy as np

from pitch_engine.config import DEFAULT_DETECTOR_CONFIG, DetectorConfig
from pitch_engine.detectors.base import Readiness, TraceHook
from pitch_engine.detectors.estimators import McLeodEstimator, YinEstimator
from pitch_engine.errors import DetectorNotReadyError, FrameSizeError
from pitch_engine.frequency import semitones_between
from pitch_engine.types import Algorithm, Detection

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Octave-jump bands (ratio candidate / stable pitch)
# ---------------------------------------------------------------------------

_STABLE_BAND: tuple[float, float] = (0.97, 1.03)
_OCTAVE_UP_BAND: tuple[float, float] = (1.8, 2.2)
_OCTAVE_DOWN_BAND: tuple[float, float] = (0.45, 0.55)
_DOUBLE_OCTAVE_UP_BAND: tuple[float, float] = (3.6, 4.4)

_STABLE_PITCH_DECAY: float = 0.9
"""EMA weight kept by the stable pitch on each stable frame."""

_NEW_NOTE_SEMITONES: float = 2.0
"""A non-octave move larger than this restarts stability tracking."""

# ---------------------------------------------------------------------------
# Smoothing
# ---------------------------------------------------------------------------

_MIN_SMOOTHING_WINDOW: int = 3
_MIN_OUTLIER_FILTER_WINDOW: int = 4
_OUTLIER_RATIO_BAND: tuple[float, float] = (0.7, 1.4)


def _in_band(value: float, band: tuple[float, float]) -> bool:
    return band[0] < value < band[1]


def median(values: list[float]) -> float:
    """Median; mean of the two central values for even counts."""
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2.0
    return ordered[mid]


def filter_octave_outliers(pitches: list[float]) -> list[float]:
    """Drop values whose ratio to the preliminary median is outside (0.7, 1.4).

    Windows shorter than 4 are returned unchanged, and so is the whole window
    when fewer than 3 values would survive.

    Example:
        >>> filter_octave_outliers([440.0, 440.0, 880.0, 440.0, 440.0])
        [440.0, 440.0, 440.0, 440.0]
    """
    if len(pitches) < _MIN_OUTLIER_FILTER_WINDOW:
        return list(pitches)
    center = median(pitches)
    kept = [p for p in pitches if _in_band(p / center, _OUTLIER_RATIO_BAND)]
    return kept if len(kept) >= _MIN_SMOOTHING_WINDOW else list(pitches)


def _frame_rms(frame: np.ndarray) -> float:
    return float(np.sqrt(np.mean(frame * frame)))


@dataclass
class _DetectorState:
    """Rolling per-instance state, mutated only by sequential detect() calls."""

    history: deque[float]
    stable_pitch: float | None = None
    stable_frames: int = 0
    last_clarity: float = 0.0
    last_algorithm: Algorithm | None = None
    frames_seen: int = 0

    def clear_rolling(self) -> None:
        """Forget smoothing history and the last estimate (silence / no pitch)."""
        self.history.clear()
        self.last_clarity = 0.0
        self.last_algorithm = None


class HybridPitchDetector:
    """MPM-first pitch detector with YIN fallback, octave correction and smoothing.

    Satisfies the ``PitchDetector`` protocol. One instance serves one stream:
    ``detect()`` mutates smoothing state and must be called sequentially.

    Args:
        config: Detector parameters. Defaults to DEFAULT_DETECTOR_CONFIG.
        trace: Optional ``hook(event, payload)`` called for per-frame decisions:
            ``silence``, ``estimate``, ``rejected``, ``octave_corrected``,
            ``new_note``.
        name: Identifier used in logs, errors and ``describe()``.
    """

    def __init__(
        self,
        config: DetectorConfig = DEFAULT_DETECTOR_CONFIG,
        *,
        trace: TraceHook | None = None,
        name: str = "hybrid",
    ) -> None:
        self.config = config
        self.name = name
        self._trace = trace
        self._mpm: McLeodEstimator | None = None
        self._yin: YinEstimator | None = None
        self._readiness = Readiness(name)
        self._state = self._new_state()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._readiness.is_resolved

    @property
    def readiness(self) -> Readiness:
        """Completion signal for callers that initialise on another thread."""
        return self._readiness

    def initialize(self) -> bool:
        """Build both estimators for the configured frame size. Idempotent."""
        cfg = self.config
        self._mpm = McLeodEstimator(cfg.sample_rate, cfg.buffer_size)
        self._yin = YinEstimator(cfg.sample_rate, cfg.buffer_size, cfg.yin_threshold)
        self._readiness.resolve()
        logger.info(
            "HybridPitchDetector '%s' initialized (sr=%d, buffer=%d, range=%.0f-%.0f Hz)",
            self.name,
            cfg.sample_rate,
            cfg.buffer_size,
            cfg.min_frequency,
            cfg.max_frequency,
        )
        return True

    def reset(self) -> None:
        """Clear smoothing and octave-tracking state; estimators stay ready."""
        self._state = self._new_state()

    def dispose(self) -> None:
        """Release estimators and state. Safe to call more than once."""
        if self._mpm is None and self._yin is None and not self.is_ready:
            return
        self._mpm = None
        self._yin = None
        self._state = self._new_state()
        self._readiness.reset()
        logger.debug("HybridPitchDetector '%s' disposed", self.name)

    def describe(self) -> dict[str, Any]:
        cfg = self.config
        return {
            "name": self.name,
            "sample_rate": cfg.sample_rate,
            "min_frequency": cfg.min_frequency,
            "max_frequency": cfg.max_frequency,
            "is_ready": self.is_ready,
            "buffer_size": cfg.buffer_size,
            "threshold": cfg.threshold,
            "clarity_threshold": cfg.clarity_threshold,
            "last_clarity": self._state.last_clarity,
            "last_algorithm": (
                self._state.last_algorithm.value if self._state.last_algorithm else None
            ),
            "history_size": len(self._state.history),
        }

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect(self, frame: np.ndarray) -> Detection:
        """Estimate the smoothed pitch of one frame.

        Args:
            frame: 1-D samples of exactly ``config.buffer_size`` length.
                Never modified.

        Returns:
            Detection; ``frequency`` is None for silent, aperiodic or
            out-of-range frames.

        Raises:
            DetectorNotReadyError: Before ``initialize()`` or after ``dispose()``.
            FrameSizeError: If the frame length differs from ``buffer_size``.
        """
        if self._mpm is None or self._yin is None:
            raise DetectorNotReadyError(self.name)
        samples = np.asarray(frame, dtype=np.float64)
        if samples.shape != (self.config.buffer_size,):
            raise FrameSizeError(self.config.buffer_size, samples.size)

        timestamp = int(time.time() * 1000)
        state = self._state
        state.frames_seen += 1
        cfg = self.config

        rms = _frame_rms(samples)
        if rms < cfg.threshold:
            state.clear_rolling()
            self._emit("silence", {"rms": rms})
            return Detection(frequency=None, confidence=0.0, timestamp=timestamp)

        candidate, clarity, algorithm = self._estimate(self._mpm, self._yin, samples)
        if candidate is None or algorithm is None:
            state.clear_rolling()
            self._emit("rejected", {"reason": "no_candidate", "rms": rms})
            return Detection(frequency=None, confidence=0.0, timestamp=timestamp)

        if not cfg.min_frequency <= candidate <= cfg.max_frequency:
            # Keep last_algorithm: the estimator did produce something
            state.history.clear()
            state.last_clarity = 0.0
            self._emit(
                "rejected",
                {"reason": "out_of_range", "frequency": candidate, "algorithm": algorithm.value},
            )
            return Detection(frequency=None, confidence=0.0, timestamp=timestamp)

        self._emit(
            "estimate",
            {"frequency": candidate, "clarity": clarity, "algorithm": algorithm.value},
        )
        corrected = self._correct_octave_jump(candidate)
        state.last_clarity = clarity
        smoothed = self._smooth(corrected)

        return Detection(
            frequency=smoothed,
            confidence=clarity,
            timestamp=timestamp,
            raw_frequency=corrected,
            algorithm=algorithm,
        )

    def _estimate(
        self, mpm: McLeodEstimator, yin: YinEstimator, samples: np.ndarray
    ) -> tuple[float | None, float, Algorithm | None]:
        """Run MPM, then YIN when MPM has no confident answer."""
        state = self._state

        frequency, clarity = mpm.estimate(samples)
        if frequency is not None and clarity >= self.config.clarity_threshold:
            state.last_algorithm = Algorithm.MPM
            return frequency, clarity, Algorithm.MPM

        yin_frequency = yin.estimate(samples)
        if yin_frequency is not None:
            state.last_algorithm = Algorithm.YIN
            return yin_frequency, self.config.yin_clarity, Algorithm.YIN

        logger.debug(
            "No pitch candidate (mpm=%s, clarity=%.2f)",
            frequency,
            clarity,
        )
        return None, 0.0, None

    def _correct_octave_jump(self, frequency: float) -> float:
        """Fold octave errors back onto the stable pitch.

        Returns:
            The corrected frequency, or ``frequency`` unchanged.
        """
        state = self._state
        cfg = self.config

        if state.stable_pitch is None:
            state.stable_pitch = frequency
            state.stable_frames = 1
            return frequency

        ratio = frequency / state.stable_pitch

        if _in_band(ratio, _STABLE_BAND):
            state.stable_frames += 1
            state.stable_pitch = (
                state.stable_pitch * _STABLE_PITCH_DECAY + frequency * (1.0 - _STABLE_PITCH_DECAY)
            )
            return frequency

        if state.stable_frames >= cfg.min_stable_frames:
            corrected: float | None = None
            if _in_band(ratio, _OCTAVE_UP_BAND):
                corrected = frequency / 2.0
                if corrected < cfg.min_frequency:
                    corrected = None
            elif _in_band(ratio, _OCTAVE_DOWN_BAND):
                corrected = frequency * 2.0
                if corrected > cfg.max_frequency:
                    corrected = None
            elif _in_band(ratio, _DOUBLE_OCTAVE_UP_BAND):
                corrected = frequency / 4.0
                if corrected < cfg.min_frequency:
                    corrected = None
            if corrected is not None:
                self._emit(
                    "octave_corrected",
                    {"frequency": frequency, "corrected": corrected, "ratio": ratio},
                )
                return corrected

        if semitones_between(frequency, state.stable_pitch) > _NEW_NOTE_SEMITONES:
            self._emit(
                "new_note",
                {"previous": state.stable_pitch, "frequency": frequency},
            )
            state.stable_pitch = frequency
            state.stable_frames = 1

        return frequency

    def _smooth(self, frequency: float) -> float:
        history = self._state.history
        history.append(frequency)
        if len(history) < _MIN_SMOOTHING_WINDOW:
            return frequency
        return median(filter_octave_outliers(list(history)))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_state(self) -> _DetectorState:
        return _DetectorState(history=deque(maxlen=self.config.history_size))

    def _emit(self, event: str, payload: dict[str, Any]) -> None:
        if self._trace is None:
            return
        payload = {"frame": self._state.frames_seen, **payload}
        self._trace(event, payload)

    def __repr__(self) -> str:
        return (
            f"HybridPitchDetector(name={self.name!r}, ready={self.is_ready}, "
            f"clarity_threshold={self.config.clarity_threshold})"
        )
