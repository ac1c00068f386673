"""Pitch accuracy metrics.

Metrics
-------
RPA (raw pitch accuracy)
    Fraction of voiced reference frames whose estimate is within
    ``tolerance_cents`` of the reference.

GPE (gross pitch error)
    Fraction of voiced reference frames that were missed (estimated
    unvoiced) or are off by more than ``gross_error_threshold`` cents.

Octave error rate
    Fraction of voiced reference frames whose estimate is within tolerance
    of 2× or ½× the reference.

Voicing accuracy / recall
    Voiced-vs-unvoiced agreement over all frames, and the fraction of voiced
    reference frames the detector reported as voiced.

Ratios whose denominator is zero are ``None``, not 0: an all-silent
reference has no RPA, which is different from an RPA of zero.

The evaluator is stateless. Inputs may be Detection / FrameDetection /
GroundTruthPoint objects, mappings with a ``frequency`` key, or bare
floats / None.
"""

from __future__ import annotations

import logging
import math
import numbers
import statistics
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pitch_engine.config import DEFAULT_EVALUATOR_CONFIG, EvaluatorConfig
from pitch_engine.errors import LengthMismatchError
from pitch_engine.frequency import cents_between

logger = logging.getLogger(__name__)

COMPARED_METRICS: tuple[str, ...] = (
    "rpa",
    "gpe",
    "octave_error_rate",
    "voicing_accuracy",
    "mean_abs_cents_error",
)
"""Metrics diffed by ``compare``, in report order."""

HIGHER_IS_BETTER: frozenset[str] = frozenset({"rpa", "voicing_accuracy"})

DETECTOR1 = "detector1"
DETECTOR2 = "detector2"
TIE = "tie"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FrameEvaluation:
    """Outcome for one frame."""

    detected_frequency: float | None
    expected_frequency: float | None
    confidence: float | None
    cents: float | None
    """Signed error in cents; None unless both frames are voiced."""
    is_correct: bool
    is_gross_error: bool
    voicing_correct: bool
    is_octave_error: bool


@dataclass(frozen=True)
class Metrics:
    """Aggregate accuracy over a frame sequence."""

    rpa: float | None
    gpe: float | None
    octave_error_rate: float | None
    voicing_accuracy: float | None
    voicing_recall: float | None
    mean_cents_error: float | None
    std_cents_error: float | None
    median_cents_error: float | None
    mean_abs_cents_error: float | None
    mean_confidence_correct: float | None
    mean_confidence_incorrect: float | None
    confidence_discriminates: bool | None
    """True when correct frames carry higher mean confidence than gross errors.
    None unless both groups are non-empty."""
    total_frames: int
    total_voiced_frames: int
    correct_frames: int
    gross_errors: int
    octave_errors: int


@dataclass(frozen=True)
class Evaluation:
    metrics: Metrics
    frame_results: tuple[FrameEvaluation, ...]


@dataclass(frozen=True)
class LatencyMetrics:
    """Onset-to-first-correct-detection latency in seconds."""

    mean_latency: float | None
    median_latency: float | None
    min_latency: float | None
    max_latency: float | None
    detected_notes: int
    total_notes: int
    detection_rate: float | None


@dataclass(frozen=True)
class Comparison:
    """Head-to-head result of two detection tracks on the same reference.

    ``differences[m]`` is detector2 − detector1 (None if either side is None);
    ``winner[m]`` is ``"detector1"``, ``"detector2"`` or ``"tie"``.
    """

    detector1: Metrics
    detector2: Metrics
    differences: dict[str, float | None]
    winner: dict[str, str]


# ---------------------------------------------------------------------------
# Input coercion and small statistics
# ---------------------------------------------------------------------------


def _field(item: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an object; None when absent."""
    if item is None:
        return None
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _frequency_of(item: Any) -> float | None:
    if item is None:
        return None
    if isinstance(item, numbers.Real):
        return float(item)
    value = _field(item, "frequency")
    return None if value is None else float(value)


def _confidence_of(item: Any) -> float | None:
    if item is None or isinstance(item, numbers.Real):
        return None
    value = _field(item, "confidence")
    return None if value is None else float(value)


def _is_voiced(frequency: float | None) -> bool:
    return frequency is not None and frequency > 0


def _ratio(numerator: int, denominator: int) -> float | None:
    return numerator / denominator if denominator > 0 else None


def _mean(values: Sequence[float]) -> float | None:
    return sum(values) / len(values) if values else None


def _median(values: Sequence[float]) -> float | None:
    return statistics.median(values) if values else None


def _pstdev(values: Sequence[float]) -> float | None:
    return statistics.pstdev(values) if values else None


def _winner(metric: str, difference: float | None) -> str:
    if difference is None or difference == 0:
        return TIE
    improved = difference > 0 if metric in HIGHER_IS_BETTER else difference < 0
    return DETECTOR2 if improved else DETECTOR1


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class PitchEvaluator:
    """Stateless pitch-accuracy evaluator.

    Args:
        tolerance_cents: Max |error| counted as correct; also the window
            around 2× / ½× used to flag octave errors.
        gross_error_threshold: |error| above this is a gross error.
        config: Alternative to the two keyword arguments.
    """

    def __init__(
        self,
        tolerance_cents: float | None = None,
        gross_error_threshold: float | None = None,
        *,
        config: EvaluatorConfig = DEFAULT_EVALUATOR_CONFIG,
    ) -> None:
        if tolerance_cents is not None or gross_error_threshold is not None:
            config = EvaluatorConfig(
                tolerance_cents=(
                    tolerance_cents if tolerance_cents is not None else config.tolerance_cents
                ),
                gross_error_threshold=(
                    gross_error_threshold
                    if gross_error_threshold is not None
                    else config.gross_error_threshold
                ),
            )
        self.config = config

    @property
    def tolerance_cents(self) -> float:
        return self.config.tolerance_cents

    @property
    def gross_error_threshold(self) -> float:
        return self.config.gross_error_threshold

    @staticmethod
    def cents_difference(detected: float | None, expected: float | None) -> float:
        """1200·log2(detected / expected); ``inf`` if either is missing or ≤ 0."""
        return cents_between(detected, expected)

    def evaluate_frame(
        self,
        detected: float | None,
        expected: float | None,
        confidence: float | None = None,
    ) -> FrameEvaluation:
        """Score one frame.

        Rules:
            expected unvoiced → correct iff detected unvoiced.
            expected voiced, detected unvoiced → gross error (a miss).
            both voiced → correct if |cents| ≤ tolerance, gross error if
            |cents| > gross threshold, octave error if within tolerance of
            2× or ½× the reference.
        """
        detected_voiced = _is_voiced(detected)
        expected_voiced = _is_voiced(expected)
        voicing_correct = detected_voiced == expected_voiced

        if expected is None or not expected_voiced:
            return FrameEvaluation(
                detected, expected, confidence, None,
                is_correct=not detected_voiced,
                is_gross_error=False,
                voicing_correct=voicing_correct,
                is_octave_error=False,
            )

        if detected is None or not detected_voiced:
            return FrameEvaluation(
                detected, expected, confidence, None,
                is_correct=False,
                is_gross_error=True,
                voicing_correct=voicing_correct,
                is_octave_error=False,
            )

        cents = self.cents_difference(detected, expected)
        tol = self.config.tolerance_cents
        octave_up = abs(self.cents_difference(detected, expected * 2.0))
        octave_down = abs(self.cents_difference(detected, expected / 2.0))
        return FrameEvaluation(
            detected, expected, confidence, cents,
            is_correct=abs(cents) <= tol,
            is_gross_error=abs(cents) > self.config.gross_error_threshold,
            voicing_correct=voicing_correct,
            is_octave_error=octave_up <= tol or octave_down <= tol,
        )

    def evaluate(self, detections: Sequence[Any], ground_truth: Sequence[Any]) -> Evaluation:
        """Score a detection track against an aligned reference track.

        Raises:
            LengthMismatchError: If the two sequences differ in length.
        """
        if len(detections) != len(ground_truth):
            raise LengthMismatchError(len(detections), len(ground_truth))

        frames: list[FrameEvaluation] = []
        correct = gross = octave = voicing_ok = voiced = detected_voiced = 0
        cents_errors: list[float] = []
        conf_correct: list[float] = []
        conf_incorrect: list[float] = []

        for detection, reference in zip(detections, ground_truth):
            detected = _frequency_of(detection)
            expected = _frequency_of(reference)
            confidence = _confidence_of(detection)
            frame = self.evaluate_frame(detected, expected, confidence)
            frames.append(frame)

            if frame.voicing_correct:
                voicing_ok += 1
            if _is_voiced(expected):
                voiced += 1
                if _is_voiced(detected):
                    detected_voiced += 1

            # Unvoiced reference frames count towards voicing accuracy only
            if frame.is_correct and _is_voiced(expected):
                correct += 1
                if confidence is not None:
                    conf_correct.append(confidence)
            elif frame.is_gross_error:
                gross += 1
                if confidence is not None:
                    conf_incorrect.append(confidence)

            if frame.is_octave_error:
                octave += 1
            if frame.cents is not None and math.isfinite(frame.cents):
                cents_errors.append(frame.cents)

        mean_correct = _mean(conf_correct)
        mean_incorrect = _mean(conf_incorrect)
        discriminates: bool | None = None
        if mean_correct is not None and mean_incorrect is not None:
            discriminates = mean_correct > mean_incorrect

        metrics = Metrics(
            rpa=_ratio(correct, voiced),
            gpe=_ratio(gross, voiced),
            octave_error_rate=_ratio(octave, voiced),
            voicing_accuracy=_ratio(voicing_ok, len(frames)),
            voicing_recall=_ratio(detected_voiced, voiced),
            mean_cents_error=_mean(cents_errors),
            std_cents_error=_pstdev(cents_errors),
            median_cents_error=_median(cents_errors),
            mean_abs_cents_error=_mean([abs(c) for c in cents_errors]),
            mean_confidence_correct=mean_correct,
            mean_confidence_incorrect=mean_incorrect,
            confidence_discriminates=discriminates,
            total_frames=len(frames),
            total_voiced_frames=voiced,
            correct_frames=correct,
            gross_errors=gross,
            octave_errors=octave,
        )
        logger.debug(
            "Evaluated %d frames (%d voiced): rpa=%s gpe=%s",
            len(frames),
            voiced,
            metrics.rpa,
            metrics.gpe,
        )
        return Evaluation(metrics=metrics, frame_results=tuple(frames))

    def evaluate_latency(self, detections: Sequence[Any], notes: Sequence[Any]) -> LatencyMetrics:
        """Time from each note onset to the first detection within tolerance.

        Args:
            detections: Items with ``time`` (s) and ``frequency``, in time order.
            notes: Items with ``start_time`` (s) and the expected ``frequency``.
        """
        latencies: list[float] = []
        tol = self.config.tolerance_cents

        for note in notes:
            start = float(_field(note, "start_time"))
            expected = _frequency_of(note)
            for detection in detections:
                time = float(_field(detection, "time"))
                if time < start:
                    continue
                detected = _frequency_of(detection)
                if detected is not None and abs(self.cents_difference(detected, expected)) <= tol:
                    latencies.append(time - start)
                    break

        return LatencyMetrics(
            mean_latency=_mean(latencies),
            median_latency=_median(latencies),
            min_latency=min(latencies) if latencies else None,
            max_latency=max(latencies) if latencies else None,
            detected_notes=len(latencies),
            total_notes=len(notes),
            detection_rate=_ratio(len(latencies), len(notes)),
        )

    def compare(
        self,
        detections1: Sequence[Any],
        detections2: Sequence[Any],
        ground_truth: Sequence[Any],
    ) -> Comparison:
        """Evaluate both tracks and pick a winner per metric.

        Higher is better for rpa and voicing_accuracy; lower is better for
        gpe, octave_error_rate and mean_abs_cents_error. A zero (or
        undefined) difference is a tie, so swapping the inputs negates every
        difference and swaps every winner label.
        """
        m1 = self.evaluate(detections1, ground_truth).metrics
        m2 = self.evaluate(detections2, ground_truth).metrics

        differences: dict[str, float | None] = {}
        winner: dict[str, str] = {}
        for metric in COMPARED_METRICS:
            v1, v2 = getattr(m1, metric), getattr(m2, metric)
            diff = None if v1 is None or v2 is None else v2 - v1
            differences[metric] = diff
            winner[metric] = _winner(metric, diff)

        return Comparison(detector1=m1, detector2=m2, differences=differences, winner=winner)

    @staticmethod
    def generate_report(metrics: Metrics, name: str = "Detector") -> str:
        """Render ``metrics`` as a fixed-layout text block."""

        def pct(value: float | None) -> str:
            return "N/A" if value is None else f"{value * 100:.1f}%"

        def num(value: float | None, digits: int = 1) -> str:
            return "N/A" if value is None else f"{value:.{digits}f}"

        lines: list[str] = [
            f"=== {name} Evaluation Report ===",
            "",
            "Accuracy Metrics:",
            f"  Raw Pitch Accuracy (RPA): {pct(metrics.rpa)}",
            f"  Gross Pitch Error (GPE):  {pct(metrics.gpe)}",
            f"  Octave Error Rate:        {pct(metrics.octave_error_rate)}",
            f"  Voicing Accuracy:         {pct(metrics.voicing_accuracy)}",
            f"  Voicing Recall:           {pct(metrics.voicing_recall)}",
            "",
            "Pitch Error Statistics:",
            f"  Mean Cents Error:    {num(metrics.mean_cents_error)} cents",
            f"  Median Cents Error:  {num(metrics.median_cents_error)} cents",
            f"  Mean Abs Error:      {num(metrics.mean_abs_cents_error)} cents",
            f"  Std Dev:             {num(metrics.std_cents_error)} cents",
            "",
            "Frame Counts:",
            f"  Total Frames:        {metrics.total_frames}",
            f"  Voiced Frames:       {metrics.total_voiced_frames}",
            f"  Correct Frames:      {metrics.correct_frames}",
            f"  Gross Errors:        {metrics.gross_errors}",
            f"  Octave Errors:       {metrics.octave_errors}",
        ]

        if metrics.confidence_discriminates is not None:
            lines += [
                "",
                "Confidence Analysis:",
                f"  Mean (correct):   {num(metrics.mean_confidence_correct, 3)}",
                f"  Mean (incorrect): {num(metrics.mean_confidence_incorrect, 3)}",
                f"  Discriminates:    {'Yes' if metrics.confidence_discriminates else 'No'}",
            ]

        return "\n".join(lines)
