"""
Configuration dataclasses for the pitch engine and evaluation harness.

These immutable config objects decouple parameter passing from constructor
signatures, making it easy to define named detector variants for A/B runs
and reuse them across the runner, the CLI and the tests.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_SAMPLE_RATE: int = 44100
DEFAULT_FRAME_SIZE: int = 2048
DEFAULT_HOP_SIZE: int = 512


def _require_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


@dataclass(frozen=True)
class DetectorConfig:
    """
    Configuration for HybridPitchDetector.

    Attributes:
        sample_rate: Sample rate of incoming frames in Hz.
        buffer_size: Exact frame length accepted by ``detect()``.
        min_frequency: Lowest accepted pitch in Hz. Defaults to 60 (low bass voice).
        max_frequency: Highest accepted pitch in Hz. Defaults to 1200 (soprano range).
        threshold: RMS level below which a frame is treated as silence.
        clarity_threshold: Minimum MPM clarity to accept the primary estimate.
        history_size: Capacity of the median smoothing window.
        min_stable_frames: Stable frames required before octave jumps are corrected.
        yin_threshold: Absolute threshold on the YIN cumulative-mean difference.
        yin_clarity: Clarity reported for YIN fallback estimates. Heuristic
            constant, not a measured periodicity score.

    Example:
        >>> config = DetectorConfig(clarity_threshold=0.85)
        >>> detector = HybridPitchDetector(config)
    """

    sample_rate: int = DEFAULT_SAMPLE_RATE
    buffer_size: int = DEFAULT_FRAME_SIZE
    min_frequency: float = 60.0
    max_frequency: float = 1200.0
    threshold: float = 0.005
    clarity_threshold: float = 0.75
    history_size: int = 7
    min_stable_frames: int = 3
    yin_threshold: float = 0.15
    yin_clarity: float = 0.7

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        _require_positive("sample_rate", self.sample_rate)
        _require_positive("min_frequency", self.min_frequency)
        if self.max_frequency <= self.min_frequency:
            raise ValueError(
                f"max_frequency ({self.max_frequency}) must be greater than "
                f"min_frequency ({self.min_frequency})"
            )
        if self.max_frequency >= self.sample_rate / 2:
            raise ValueError(
                f"max_frequency ({self.max_frequency}) must be below Nyquist "
                f"({self.sample_rate / 2})"
            )
        # Two periods of the lowest pitch must fit in one frame
        min_buffer = 2 * int(self.sample_rate / self.min_frequency)
        if self.buffer_size < min_buffer:
            raise ValueError(
                f"buffer_size ({self.buffer_size}) too small for min_frequency "
                f"{self.min_frequency} Hz; need at least {min_buffer} samples"
            )
        if self.threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {self.threshold}")
        for name in ("clarity_threshold", "yin_threshold", "yin_clarity"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")
        if self.history_size < 1:
            raise ValueError(f"history_size must be at least 1, got {self.history_size}")
        if self.min_stable_frames < 1:
            raise ValueError(
                f"min_stable_frames must be at least 1, got {self.min_stable_frames}"
            )


@dataclass(frozen=True)
class OnsetConfig:
    """
    Configuration for OnsetDetector.

    Attributes:
        sample_rate: Sample rate in Hz.
        frame_size: Analysis frame length in samples.
        hop_size: Distance between frame starts in samples.
        energy_threshold: Absolute floor of the adaptive onset threshold.
            Half of it is the silence level used to end notes early.
        onset_threshold: Multiplier applied to the ±100 ms local mean of the
            onset function.
        min_note_duration: Notes shorter than this (seconds) are discarded.
        min_silence_duration: Onsets closer than this are merged, and a run of
            silent frames this long ends a note.
        spectral_bins: Number of low-frequency DFT bins used for spectral flux.
        energy_weight: Weight of the normalised RMS envelope.
        flux_weight: Weight of the normalised spectral flux.
    """

    sample_rate: int = DEFAULT_SAMPLE_RATE
    frame_size: int = DEFAULT_FRAME_SIZE
    hop_size: int = DEFAULT_HOP_SIZE
    energy_threshold: float = 0.01
    onset_threshold: float = 1.2
    min_note_duration: float = 0.1
    min_silence_duration: float = 0.05
    spectral_bins: int = 64
    energy_weight: float = 0.4
    flux_weight: float = 0.6

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        _require_positive("sample_rate", self.sample_rate)
        _require_positive("frame_size", self.frame_size)
        _require_positive("hop_size", self.hop_size)
        _require_positive("onset_threshold", self.onset_threshold)
        _require_positive("spectral_bins", self.spectral_bins)
        if self.spectral_bins > self.frame_size // 2:
            raise ValueError(
                f"spectral_bins ({self.spectral_bins}) must not exceed frame_size // 2"
            )
        if self.energy_threshold < 0:
            raise ValueError(
                f"energy_threshold must be non-negative, got {self.energy_threshold}"
            )
        if self.min_note_duration < 0 or self.min_silence_duration < 0:
            raise ValueError("durations must be non-negative")
        if self.energy_weight < 0 or self.flux_weight < 0:
            raise ValueError("onset weights must be non-negative")


@dataclass(frozen=True)
class EvaluatorConfig:
    """
    Tolerances for PitchEvaluator.

    Attributes:
        tolerance_cents: Max |error| counted as correct (RPA). Also the
            window around 2x / 0.5x used to flag octave errors.
        gross_error_threshold: |error| above this counts as a gross error.
    """

    tolerance_cents: float = 50.0
    gross_error_threshold: float = 50.0

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        _require_positive("tolerance_cents", self.tolerance_cents)
        _require_positive("gross_error_threshold", self.gross_error_threshold)


@dataclass(frozen=True)
class RunnerConfig:
    """
    Framing parameters for EvaluationRunner.

    The same sample rate and frame size must be used to build the detectors
    registered with the runner.
    """

    sample_rate: int = DEFAULT_SAMPLE_RATE
    frame_size: int = DEFAULT_FRAME_SIZE
    hop_size: int = DEFAULT_HOP_SIZE

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        _require_positive("sample_rate", self.sample_rate)
        _require_positive("frame_size", self.frame_size)
        _require_positive("hop_size", self.hop_size)


# Pre-defined configurations for common use cases

DEFAULT_DETECTOR_CONFIG = DetectorConfig()
"""Default hybrid detector: clarity gate 0.75, 7-frame median window."""

STRICT_DETECTOR_CONFIG = DetectorConfig(clarity_threshold=0.85, history_size=5)
"""Stricter MPM gate and shorter window — fewer YIN fallbacks, faster response."""

DEFAULT_ONSET_CONFIG = OnsetConfig()
"""Default onset segmentation: 2048/512 framing, 100 ms minimum note."""

DEFAULT_EVALUATOR_CONFIG = EvaluatorConfig()
"""Default evaluator: 50 cent tolerance and gross-error threshold."""

DEFAULT_RUNNER_CONFIG = RunnerConfig()
"""Default runner framing: 44.1 kHz, 2048-sample frames, 512 hop."""
