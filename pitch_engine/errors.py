"""
pitch_engine/errors.py — Exception taxonomy for the pitch engine.

Only programmer errors raise. Degenerate-but-valid audio (silence, empty
histories, zero-length statistics) never raises — those paths return
``None`` / ``0.0`` sentinels instead.

Hierarchy:
    PitchEngineError
    ├── DetectorNotReadyError   detect() before initialize()
    ├── DetectorInitError       readiness failed or timed out
    ├── FrameSizeError          frame length != configured buffer size
    ├── LengthMismatchError     evaluate() got sequences of unequal length
    └── UnknownDetectorError    registry lookup miss
"""

from __future__ import annotations


class PitchEngineError(Exception):
    """Base class for all pitch engine errors."""


class DetectorNotReadyError(PitchEngineError, RuntimeError):
    """Raised when a detector is used before ``initialize()``.

    Args:
        name: Detector name for context.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Detector '{name}' not initialized. Call initialize() first.")


class DetectorInitError(PitchEngineError, RuntimeError):
    """Raised when a detector's readiness signal fails or times out."""


class FrameSizeError(PitchEngineError, ValueError):
    """Raised when a frame does not match the configured buffer size.

    Args:
        expected: Configured buffer size in samples.
        actual: Length of the frame that was passed in.
    """

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Frame size mismatch: expected {expected} samples, got {actual}")


class LengthMismatchError(PitchEngineError, ValueError):
    """Raised when detections and ground truth have different lengths."""

    def __init__(self, n_detections: int, n_ground_truth: int) -> None:
        self.n_detections = n_detections
        self.n_ground_truth = n_ground_truth
        super().__init__(
            f"Length mismatch: {n_detections} detections vs {n_ground_truth} ground truth"
        )


class UnknownDetectorError(PitchEngineError, KeyError):
    """Raised when a detector name is not in the runner registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Detector not registered: {name}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])
