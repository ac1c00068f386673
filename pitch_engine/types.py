"""
pitch_engine/types.py — Frozen data types shared by detectors and the harness.

All types are frozen dataclasses — immutable value objects that can be
safely passed between the detector, the onset segmenter and the evaluator.

Design principles:
    - No I/O, no state, no side effects.
    - `frequency is None` means unvoiced. Zero and NaN are never used as
      "no pitch" markers in engine output.
    - Sample buffers inside frozen types are marked read-only numpy arrays;
      they are excluded from equality so instances stay comparable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class Algorithm(str, Enum):
    """Estimator that produced a detection."""

    MPM = "MPM"
    YIN = "YIN"


@dataclass(frozen=True)
class Detection:
    """Result of one ``detect(frame)`` call.

    Invariants:
        frequency is None or frequency > 0
        0.0 <= confidence <= 1.0
    """

    frequency: float | None
    """Smoothed fundamental frequency in Hz. None when unvoiced."""

    confidence: float
    """Clarity of the accepted estimate. 0.0 for unvoiced frames."""

    timestamp: int
    """Wall-clock time of the call in milliseconds."""

    raw_frequency: float | None = None
    """Octave-corrected frequency before temporal smoothing."""

    algorithm: Algorithm | None = None
    """Estimator that produced the candidate (MPM or the YIN fallback)."""

    @property
    def is_voiced(self) -> bool:
        return self.frequency is not None


@dataclass(frozen=True)
class GroundTruthPoint:
    """Reference pitch at an instant.

    ``frequency`` is None (or <= 0) for unvoiced reference frames.
    ``note_name`` / ``note_index`` are only set by scale fixtures.
    """

    time: float
    frequency: float | None
    note_name: str | None = None
    note_index: int | None = None


@dataclass(frozen=True)
class Note:
    """A note region found by the onset detector.

    Invariants:
        end_time > start_time   (guaranteed by duration filtering)
        start_sample == start_frame * hop_size
    """

    start_time: float
    end_time: float
    start_sample: int
    end_sample: int
    start_frame: int
    end_frame: int

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class NoteTiming:
    """Timing-only view of a Note, for external QA tooling."""

    start_time: float
    end_time: float
    duration: float


@dataclass(frozen=True)
class SegmentationCheck:
    """Detected vs expected note count."""

    detected_count: int
    expected_count: int
    is_correct: bool
    difference: int


@dataclass(frozen=True)
class FrameSample:
    """One analysis frame produced by ``generate_frames``."""

    frame: np.ndarray = field(compare=False, repr=False)
    time: float = 0.0
    expected_frequency: float | None = None


@dataclass(frozen=True)
class FrameDetection:
    """One row of a runner detection track (time in seconds)."""

    time: float
    frequency: float | None
    confidence: float | None


@dataclass(frozen=True)
class SignalResult:
    """Synthesised buffer plus its exact ground truth."""

    buffer: np.ndarray = field(compare=False, repr=False)
    ground_truth: tuple[GroundTruthPoint, ...] = ()
    num_notes: int | None = None


@dataclass(frozen=True)
class TestCase:
    """A named fixture of the canonical evaluation corpus.

    ``type`` is one of ``sine``, ``voice``, ``scale``, ``sweep``, ``noisy``.
    ``snr`` is only set for noise-degraded variants.
    """

    __test__ = False  # not a pytest class

    name: str
    type: str
    buffer: np.ndarray = field(compare=False, repr=False)
    ground_truth: tuple[GroundTruthPoint, ...] = ()
    snr: float | None = None


def frozen_buffer(samples: np.ndarray) -> np.ndarray:
    """Return a read-only float64 copy of ``samples``."""
    arr = np.array(samples, dtype=np.float64)
    arr.setflags(write=False)
    return arr
