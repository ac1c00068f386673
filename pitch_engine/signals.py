"""
pitch_engine/signals.py — Synthetic test signals with exact ground truth.

Every generator returns a SignalResult: a read-only float64 buffer plus a
tuple of GroundTruthPoint on a 10 ms grid. Everything is deterministic except
``add_noise``, which takes an optional ``numpy.random.Generator``.

The canonical evaluation corpus (``test_suite``) is 16 fixtures:

    sine   × 5   pure tones, A3 … E5
    voice  × 3   fundamental + 4 decaying harmonics
    scale  × 3   major / minor / chromatic from C4, 0.4 s per note
    sweep  × 2   one-octave log glissandi, 2 s
    noisy  × 3   440 Hz voice at 30 / 20 / 10 dB SNR
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence

import numpy as np

from pitch_engine.config import DEFAULT_FRAME_SIZE, DEFAULT_HOP_SIZE, DEFAULT_SAMPLE_RATE
from pitch_engine.frequency import NOTE_NAMES
from pitch_engine.types import (
    FrameSample,
    GroundTruthPoint,
    SignalResult,
    TestCase,
    frozen_buffer,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GROUND_TRUTH_INTERVAL: float = 0.01
"""Spacing of ground-truth points in seconds."""

DEFAULT_AMPLITUDE: float = 0.8

DEFAULT_HARMONICS: tuple[float, ...] = (1.0, 0.5, 0.25, 0.125)
"""Relative harmonic weights (fundamental first), normalised to sum 1."""

VOICE_HARMONICS: tuple[float, ...] = (1.0, 0.6, 0.3, 0.15, 0.08)
"""Harmonic profile used for the ``voice`` fixtures."""

SCALE_INTERVALS: dict[str, tuple[int, ...]] = {
    "major": (0, 2, 4, 5, 7, 9, 11, 12),
    "minor": (0, 2, 3, 5, 7, 8, 10, 12),
    "chromatic": tuple(range(13)),
    "pentatonic": (0, 2, 4, 7, 9, 12),
    "blues": (0, 3, 5, 6, 7, 10, 12),
}
"""Semitone offsets from the root. Unknown names fall back to major."""

_ENVELOPE_SEC: float = 0.01
"""Linear attack and release length per scale note (click suppression)."""

_SCALE_TRUTH_MARGIN_SEC: float = 0.02
"""Ground truth is omitted this close to scale note boundaries."""

_SUITE_SINES: tuple[float, ...] = (220.0, 330.0, 440.0, 523.25, 659.25)
_SUITE_VOICES: tuple[float, ...] = (220.0, 330.0, 440.0)
_SUITE_SCALES: tuple[str, ...] = ("major", "minor", "chromatic")
_SUITE_SCALE_ROOT: float = 261.63  # C4
_SUITE_SCALE_NOTE_SEC: float = 0.4
_SUITE_SWEEPS: tuple[tuple[str, float, float], ...] = (
    ("sweep_A3_A4", 220.0, 440.0),
    ("sweep_E4_E5", 330.0, 660.0),
)
_SUITE_SNRS: tuple[int, ...] = (30, 20, 10)


def _grid(start: float, stop: float) -> np.ndarray:
    """Times ``start, start+10ms, ...`` strictly below ``stop``."""
    count = max(0, math.ceil((stop - start) / GROUND_TRUTH_INTERVAL - 1e-6))
    return start + np.arange(count) * GROUND_TRUTH_INTERVAL


def _sweep_frequency(
    start: float, end: float, progress: np.ndarray, logarithmic: bool
) -> np.ndarray:
    if logarithmic:
        return start * (end / start) ** progress
    return start + (end - start) * progress


class TestSignalGenerator:
    """Factory for synthetic signals with known pitch.

    Args:
        sample_rate: Output sample rate in Hz.
    """

    __test__ = False  # not a pytest class

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate

    def _time_axis(self, duration: float) -> np.ndarray:
        return np.arange(int(math.floor(self.sample_rate * duration))) / self.sample_rate

    # ------------------------------------------------------------------
    # Generators
    # ------------------------------------------------------------------

    def sine_wave(
        self,
        frequency: float,
        duration: float,
        amplitude: float = DEFAULT_AMPLITUDE,
    ) -> SignalResult:
        """Pure tone with constant ground truth."""
        t = self._time_axis(duration)
        buffer = amplitude * np.sin(2.0 * np.pi * frequency * t)
        truth = tuple(GroundTruthPoint(float(ts), frequency) for ts in _grid(0.0, duration))
        return SignalResult(frozen_buffer(buffer), truth)

    def with_harmonics(
        self,
        fundamental: float,
        duration: float,
        harmonic_amplitudes: Sequence[float] = DEFAULT_HARMONICS,
        amplitude: float = DEFAULT_AMPLITUDE,
    ) -> SignalResult:
        """Harmonic tone (voice-like). Ground truth is the fundamental.

        Args:
            fundamental: F0 in Hz.
            duration: Length in seconds.
            harmonic_amplitudes: Relative weights of harmonics 1, 2, 3, ...
                Normalised to sum 1 so peak level stays ≤ ``amplitude``.
            amplitude: Overall scale.
        """
        weights = np.asarray(harmonic_amplitudes, dtype=np.float64)
        weights = weights / weights.sum()
        t = self._time_axis(duration)
        buffer = np.zeros_like(t)
        for h, weight in enumerate(weights, start=1):
            buffer += weight * np.sin(2.0 * np.pi * fundamental * h * t)
        truth = tuple(GroundTruthPoint(float(ts), fundamental) for ts in _grid(0.0, duration))
        return SignalResult(frozen_buffer(amplitude * buffer), truth)

    def scale(
        self,
        scale_name: str,
        root_frequency: float,
        note_duration: float = 0.5,
        amplitude: float = DEFAULT_AMPLITUDE,
    ) -> SignalResult:
        """Consecutive sine notes of a scale with 10 ms attack and release.

        Ground truth skips the first and last 20 ms of each note and carries
        ``note_name`` and ``note_index``.

        Returns:
            SignalResult with ``num_notes`` set.
        """
        intervals = SCALE_INTERVALS.get(scale_name, SCALE_INTERVALS["major"])
        sr = self.sample_rate
        num_notes = len(intervals)
        total_samples = int(math.floor(sr * num_notes * note_duration))
        buffer = np.zeros(total_samples)
        attack = int(math.floor(_ENVELOPE_SEC * sr))
        release = int(math.floor(_ENVELOPE_SEC * sr))
        truth: list[GroundTruthPoint] = []

        for index, semitones in enumerate(intervals):
            note_hz = root_frequency * 2.0 ** (semitones / 12.0)
            start = int(math.floor(index * note_duration * sr))
            end = min(int(math.floor((index + 1) * note_duration * sr)), total_samples)
            length = int(math.floor((index + 1) * note_duration * sr)) - start

            local = np.arange(end - start)
            envelope = np.ones(end - start)
            if attack > 0:
                rising = local < attack
                envelope[rising] = local[rising] / attack
            if release > 0:
                falling = (local >= attack) & (local > length - release)
                envelope[falling] = (length - local[falling]) / release

            t = np.arange(start, end) / sr
            buffer[start:end] = amplitude * envelope * np.sin(2.0 * np.pi * note_hz * t)

            note_start = index * note_duration
            name = NOTE_NAMES[semitones % 12]
            for ts in _grid(
                note_start + _SCALE_TRUTH_MARGIN_SEC,
                note_start + note_duration - _SCALE_TRUTH_MARGIN_SEC,
            ):
                truth.append(GroundTruthPoint(float(ts), note_hz, note_name=name, note_index=index))

        return SignalResult(frozen_buffer(buffer), tuple(truth), num_notes=num_notes)

    def sweep(
        self,
        start_frequency: float,
        end_frequency: float,
        duration: float,
        logarithmic: bool = True,
        amplitude: float = DEFAULT_AMPLITUDE,
    ) -> SignalResult:
        """Glissando via phase accumulation. Ground truth is the analytic curve.

        A logarithmic sweep passes the geometric mean of its endpoints at the
        halfway point (220 → 440 Hz over 2 s is 220·√2 Hz at t = 1 s).
        """
        t = self._time_axis(duration)
        inst = _sweep_frequency(start_frequency, end_frequency, t / duration, logarithmic)
        phase = np.cumsum(2.0 * np.pi * inst / self.sample_rate)
        buffer = amplitude * np.sin(phase)

        times = _grid(0.0, duration)
        freqs = _sweep_frequency(start_frequency, end_frequency, times / duration, logarithmic)
        truth = tuple(GroundTruthPoint(float(ts), float(f)) for ts, f in zip(times, freqs))
        return SignalResult(frozen_buffer(buffer), truth)

    def add_noise(
        self,
        buffer: np.ndarray,
        snr_db: float,
        rng: np.random.Generator | None = None,
    ) -> np.ndarray:
        """Return a copy of ``buffer`` with white Gaussian noise at ``snr_db``.

        Noise power is mean signal power / 10^(snr/10). Gaussian samples come
        from the Box–Muller transform over ``rng`` uniforms.

        Args:
            buffer: Clean signal. Not modified.
            snr_db: Target signal-to-noise ratio in dB.
            rng: Source of randomness; a fresh unseeded generator by default.
        """
        clean = np.asarray(buffer, dtype=np.float64)
        if clean.size == 0:
            return clean.copy()
        rng = rng if rng is not None else np.random.default_rng()

        signal_power = float(np.mean(clean * clean))
        noise_amplitude = math.sqrt(signal_power / 10.0 ** (snr_db / 10.0))

        # 1 - U keeps u1 in (0, 1] so log() stays finite
        u1 = 1.0 - rng.random(clean.size)
        u2 = rng.random(clean.size)
        gaussian = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
        return clean + noise_amplitude * gaussian

    # ------------------------------------------------------------------
    # Corpus and framing
    # ------------------------------------------------------------------

    def test_suite(self, rng: np.random.Generator | None = None) -> list[TestCase]:
        """Build the 16-fixture canonical corpus (see module docstring)."""
        cases: list[TestCase] = []

        for freq in _SUITE_SINES:
            result = self.sine_wave(freq, 1.0)
            cases.append(
                TestCase(f"sine_{round(freq)}Hz", "sine", result.buffer, result.ground_truth)
            )

        for freq in _SUITE_VOICES:
            result = self.with_harmonics(freq, 1.0, VOICE_HARMONICS)
            cases.append(
                TestCase(f"voice_{round(freq)}Hz", "voice", result.buffer, result.ground_truth)
            )

        for scale_name in _SUITE_SCALES:
            result = self.scale(scale_name, _SUITE_SCALE_ROOT, _SUITE_SCALE_NOTE_SEC)
            cases.append(
                TestCase(f"scale_{scale_name}_C4", "scale", result.buffer, result.ground_truth)
            )

        for name, start, end in _SUITE_SWEEPS:
            result = self.sweep(start, end, 2.0)
            cases.append(TestCase(name, "sweep", result.buffer, result.ground_truth))

        reference = self.with_harmonics(440.0, 1.0)
        for snr in _SUITE_SNRS:
            noisy = frozen_buffer(self.add_noise(reference.buffer, snr, rng=rng))
            cases.append(
                TestCase(f"noisy_440Hz_{snr}dB", "noisy", noisy, reference.ground_truth, snr=snr)
            )

        return cases

    def extract_frame(
        self, buffer: np.ndarray, time: float, frame_size: int = DEFAULT_FRAME_SIZE
    ) -> np.ndarray:
        """Slice ``frame_size`` samples starting at ``time``; shorter at the end."""
        start = int(math.floor(time * self.sample_rate))
        return np.asarray(buffer)[start : start + frame_size]

    def generate_frames(
        self,
        buffer: np.ndarray,
        ground_truth: Sequence[GroundTruthPoint],
        frame_size: int = DEFAULT_FRAME_SIZE,
        hop_size: int = DEFAULT_HOP_SIZE,
    ) -> FrameSequence:
        """Lazy frames of ``buffer`` paired with the nearest ground-truth pitch."""
        return FrameSequence(buffer, ground_truth, self.sample_rate, frame_size, hop_size)


class FrameSequence:
    """Restartable, finite iterable of FrameSample.

    Frames start every ``hop_size`` samples while a full frame fits. Each
    frame's expected frequency is the ground-truth point closest in time to
    the frame start (earliest wins on ties, None if there is no ground truth).
    """

    def __init__(
        self,
        buffer: np.ndarray,
        ground_truth: Sequence[GroundTruthPoint],
        sample_rate: int,
        frame_size: int,
        hop_size: int,
    ) -> None:
        if frame_size <= 0 or hop_size <= 0:
            raise ValueError("frame_size and hop_size must be positive")
        self._buffer = np.asarray(buffer)
        self._truth_times = np.array([gt.time for gt in ground_truth], dtype=np.float64)
        self._truth_freqs = [gt.frequency for gt in ground_truth]
        self._sample_rate = sample_rate
        self._frame_size = frame_size
        self._hop_size = hop_size

    def __len__(self) -> int:
        span = len(self._buffer) - self._frame_size
        return 0 if span < 0 else span // self._hop_size + 1

    def __iter__(self) -> Iterator[FrameSample]:
        for index in range(len(self)):
            start = index * self._hop_size
            time = start / self._sample_rate
            yield FrameSample(
                frame=self._buffer[start : start + self._frame_size],
                time=time,
                expected_frequency=self._nearest_frequency(time),
            )

    def _nearest_frequency(self, time: float) -> float | None:
        if len(self._truth_times) == 0:
            return None
        return self._truth_freqs[int(np.argmin(np.abs(self._truth_times - time)))]
