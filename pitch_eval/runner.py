"""Evaluation runner — drive registered detectors over test audio.

Ties the pieces together::

    TestSignalGenerator ──→ buffer + ground truth
         │
         ▼
    frame (frame_size / hop_size) ──→ detector.detect() per frame
         │
         ▼
    align ground truth by nearest time ──→ PitchEvaluator ──→ results

For real recordings, OnsetDetector segments the buffer first and stability
is reported per note instead of against a reference.

Usage
-----
    runner = EvaluationRunner()
    runner.register_detector("hybrid", HybridPitchDetector())
    run = runner.run_synthetic_tests("hybrid")
    print(run.summary.overall_rpa)
"""

from __future__ import annotations

import logging
import math
import statistics
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from pitch_engine.config import (
    DEFAULT_RUNNER_CONFIG,
    EvaluatorConfig,
    OnsetConfig,
    RunnerConfig,
)
from pitch_engine.detectors.base import PitchDetector
from pitch_engine.errors import UnknownDetectorError
from pitch_engine.frequency import cents_between
from pitch_engine.onset import OnsetDetector
from pitch_engine.signals import TestSignalGenerator
from pitch_engine.types import FrameDetection, GroundTruthPoint, SegmentationCheck

from .evaluator import DETECTOR1, DETECTOR2, Comparison, Metrics, PitchEvaluator

logger = logging.getLogger(__name__)

AGREEMENT_TOLERANCE_CENTS: float = 50.0
"""Two detectors agree on a frame when both are voiced and this close."""

TALLIED_METRICS: tuple[str, ...] = ("rpa", "gpe", "octave_error_rate")
"""Metrics whose per-test winners are counted in an A/B summary."""


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TestResult:
    """Metrics for one fixture of the synthetic suite."""

    __test__ = False  # not a pytest class

    name: str
    type: str
    metrics: Metrics
    snr: float | None = None


@dataclass(frozen=True)
class TypeSummary:
    count: int
    mean_rpa: float | None
    mean_gpe: float | None


@dataclass(frozen=True)
class RunSummary:
    total_tests: int
    by_type: dict[str, TypeSummary]
    overall_rpa: float | None
    overall_gpe: float | None


@dataclass(frozen=True)
class SyntheticRun:
    """Result of ``run_synthetic_tests``."""

    detector_name: str
    tests: tuple[TestResult, ...]
    summary: RunSummary


@dataclass(frozen=True)
class NoteStability:
    """Pitch steadiness of the detections inside one segmented note."""

    start_time: float
    end_time: float
    duration: float
    mean_frequency: float
    std_dev_cents: float
    """Population std of the note's frequencies, expressed as
    1200·log2((mean + std) / mean)."""
    detection_rate: float
    num_frames: int


@dataclass(frozen=True)
class StabilitySummary:
    mean_cents_std: float
    mean_detection_rate: float
    num_notes: int


@dataclass(frozen=True)
class RecordingEvaluation:
    """Result of ``evaluate_user_recording``."""

    detector_name: str
    segmentation: SegmentationCheck
    notes: tuple[NoteStability, ...]
    overall_stability: StabilitySummary | None


@dataclass(frozen=True)
class AgreementResult:
    """Reference-free comparison: how often two detectors agree."""

    detector1: str
    detector2: str
    agreement_rate: float | None
    total_voiced_frames: int
    agreements: int


@dataclass(frozen=True)
class DetectorComparison:
    """Reference-based comparison of two registered detectors."""

    detector1: str
    detector2: str
    metrics1: Metrics
    metrics2: Metrics
    differences: dict[str, float | None]
    winner: dict[str, str]
    reports: dict[str, str]


@dataclass(frozen=True)
class ABTestResult:
    test_name: str
    test_type: str
    comparison: DetectorComparison


@dataclass(frozen=True)
class MetricTally:
    detector1_wins: int = 0
    detector2_wins: int = 0
    ties: int = 0


@dataclass(frozen=True)
class ABSummary:
    by_metric: dict[str, MetricTally]
    overall_winner: str
    """Name of the detector with more RPA wins, or ``"tie"``."""
    total_tests: int


@dataclass(frozen=True)
class ABComparison:
    """Result of ``run_ab_comparison``."""

    detector1: str
    detector2: str
    tests: tuple[ABTestResult, ...]
    summary: ABSummary


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _safe_mean(values: Sequence[float | None]) -> float | None:
    valid = [v for v in values if v is not None and not math.isnan(v)]
    return sum(valid) / len(valid) if valid else None


def align_ground_truth(
    ground_truth: Sequence[GroundTruthPoint], times: Sequence[float]
) -> list[GroundTruthPoint]:
    """For each time, the reference point nearest to it (earliest on ties).

    Points carry the query time, so the result lines up 1:1 with ``times``.
    An empty reference yields unvoiced points.
    """
    if not ground_truth:
        return [GroundTruthPoint(time=t, frequency=None) for t in times]
    gt_times = np.array([gt.time for gt in ground_truth], dtype=np.float64)
    aligned: list[GroundTruthPoint] = []
    for t in times:
        nearest = ground_truth[int(np.argmin(np.abs(gt_times - t)))]
        aligned.append(GroundTruthPoint(time=t, frequency=nearest.frequency))
    return aligned


def _tally(results: Sequence[ABTestResult], metric: str) -> MetricTally:
    labels = [r.comparison.winner.get(metric) for r in results]
    d1 = sum(1 for label in labels if label == DETECTOR1)
    d2 = sum(1 for label in labels if label == DETECTOR2)
    return MetricTally(detector1_wins=d1, detector2_wins=d2, ties=len(labels) - d1 - d2)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class EvaluationRunner:
    """Registry of named detectors plus the orchestration around them.

    All registered detectors must accept frames of ``config.frame_size``
    samples at ``config.sample_rate``.

    Parameters
    ----------
    config:
        Framing parameters shared by the generator, onset detector and runs.
    evaluator_config:
        Tolerances handed to the PitchEvaluator.
    """

    def __init__(
        self,
        config: RunnerConfig = DEFAULT_RUNNER_CONFIG,
        evaluator_config: EvaluatorConfig | None = None,
    ) -> None:
        self.config = config
        self.generator = TestSignalGenerator(config.sample_rate)
        self.evaluator = (
            PitchEvaluator(config=evaluator_config) if evaluator_config else PitchEvaluator()
        )
        self.onset_detector = OnsetDetector(
            OnsetConfig(
                sample_rate=config.sample_rate,
                frame_size=config.frame_size,
                hop_size=config.hop_size,
            )
        )
        self._detectors: dict[str, PitchDetector] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_detector(self, name: str, detector: PitchDetector) -> None:
        """Add (or replace) a detector; initialise it if it is not ready yet."""
        if not detector.is_ready:
            detector.initialize()
        self._detectors[name] = detector
        logger.info("Registered detector '%s'", name)

    @property
    def detectors(self) -> list[str]:
        return list(self._detectors)

    def get_detector(self, name: str) -> PitchDetector:
        try:
            return self._detectors[name]
        except KeyError:
            raise UnknownDetectorError(name) from None

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def run_detector(self, detector: PitchDetector, buffer: np.ndarray) -> list[FrameDetection]:
        """Run ``detector`` over every full frame of ``buffer``.

        Detectors exposing ``reset()`` are reset first so state from a
        previous buffer does not leak into this one.
        """
        reset = getattr(detector, "reset", None)
        if callable(reset):
            reset()

        frames = self.generator.generate_frames(
            buffer, (), self.config.frame_size, self.config.hop_size
        )
        detections: list[FrameDetection] = []
        for sample in frames:
            result = detector.detect(sample.frame)
            detections.append(
                FrameDetection(
                    time=sample.time,
                    frequency=result.frequency if result is not None else None,
                    confidence=result.confidence if result is not None else None,
                )
            )
        return detections

    # ------------------------------------------------------------------
    # Synthetic suite
    # ------------------------------------------------------------------

    def run_synthetic_tests(self, name: str) -> SyntheticRun:
        """Evaluate one registered detector on the 16-fixture canonical suite.

        Raises:
            UnknownDetectorError: If ``name`` is not registered.
        """
        detector = self.get_detector(name)
        results: list[TestResult] = []

        for case in self.generator.test_suite():
            detections = self.run_detector(detector, case.buffer)
            reference = align_ground_truth(case.ground_truth, [d.time for d in detections])
            metrics = self.evaluator.evaluate(detections, reference).metrics
            results.append(TestResult(case.name, case.type, metrics, case.snr))
            logger.debug("%s on %s: rpa=%s", name, case.name, metrics.rpa)

        summary = self._summarize(results)
        logger.info(
            "Synthetic run for '%s': %d tests, overall RPA=%s",
            name,
            summary.total_tests,
            summary.overall_rpa,
        )
        return SyntheticRun(detector_name=name, tests=tuple(results), summary=summary)

    @staticmethod
    def _summarize(results: Sequence[TestResult]) -> RunSummary:
        by_type: dict[str, TypeSummary] = {}
        for test_type in dict.fromkeys(r.type for r in results):
            group = [r for r in results if r.type == test_type]
            by_type[test_type] = TypeSummary(
                count=len(group),
                mean_rpa=_safe_mean([r.metrics.rpa for r in group]),
                mean_gpe=_safe_mean([r.metrics.gpe for r in group]),
            )
        return RunSummary(
            total_tests=len(results),
            by_type=by_type,
            overall_rpa=_safe_mean([r.metrics.rpa for r in results]),
            overall_gpe=_safe_mean([r.metrics.gpe for r in results]),
        )

    # ------------------------------------------------------------------
    # Recordings
    # ------------------------------------------------------------------

    def evaluate_user_recording(
        self, name: str, buffer: np.ndarray, expected_note_count: int
    ) -> RecordingEvaluation:
        """Segment a recording into notes and measure pitch stability per note.

        Notes without any voiced detection are left out of ``notes``.
        """
        detector = self.get_detector(name)
        notes = self.onset_detector.detect_notes(buffer)
        segmentation = self.onset_detector.validate(notes, expected_note_count)
        detections = self.run_detector(detector, buffer)

        stats: list[NoteStability] = []
        for note in notes:
            inside = [d for d in detections if note.start_time <= d.time <= note.end_time]
            voiced = [d.frequency for d in inside if d.frequency is not None and d.frequency > 0]
            if not voiced:
                continue
            mean_hz = statistics.fmean(voiced)
            std_hz = statistics.pstdev(voiced)
            stats.append(
                NoteStability(
                    start_time=note.start_time,
                    end_time=note.end_time,
                    duration=note.duration,
                    mean_frequency=mean_hz,
                    std_dev_cents=cents_between(mean_hz + std_hz, mean_hz),
                    detection_rate=len(voiced) / len(inside),
                    num_frames=len(inside),
                )
            )

        overall = None
        if stats:
            overall = StabilitySummary(
                mean_cents_std=statistics.fmean(n.std_dev_cents for n in stats),
                mean_detection_rate=statistics.fmean(n.detection_rate for n in stats),
                num_notes=len(stats),
            )

        if not segmentation.is_correct:
            logger.warning(
                "Segmentation found %d notes, expected %d",
                segmentation.detected_count,
                segmentation.expected_count,
            )
        return RecordingEvaluation(
            detector_name=name,
            segmentation=segmentation,
            notes=tuple(stats),
            overall_stability=overall,
        )

    # ------------------------------------------------------------------
    # Comparisons
    # ------------------------------------------------------------------

    def compare_detectors(
        self,
        name1: str,
        name2: str,
        buffer: np.ndarray,
        ground_truth: Sequence[GroundTruthPoint] | None = None,
    ) -> AgreementResult | DetectorComparison:
        """Run two detectors on the same buffer.

        Without ``ground_truth`` the result is an AgreementResult; with it,
        a DetectorComparison built on ``PitchEvaluator.compare``.
        """
        detections1 = self.run_detector(self.get_detector(name1), buffer)
        detections2 = self.run_detector(self.get_detector(name2), buffer)
        if not ground_truth:
            return self._agreement(name1, name2, detections1, detections2)
        return self._score_pair(name1, name2, detections1, detections2, ground_truth)

    def _score_pair(
        self,
        name1: str,
        name2: str,
        detections1: Sequence[FrameDetection],
        detections2: Sequence[FrameDetection],
        ground_truth: Sequence[GroundTruthPoint],
    ) -> DetectorComparison:
        reference = align_ground_truth(ground_truth, [d.time for d in detections1])
        comparison: Comparison = self.evaluator.compare(detections1, detections2, reference)
        return DetectorComparison(
            detector1=name1,
            detector2=name2,
            metrics1=comparison.detector1,
            metrics2=comparison.detector2,
            differences=comparison.differences,
            winner=comparison.winner,
            reports={
                DETECTOR1: self.evaluator.generate_report(comparison.detector1, name1),
                DETECTOR2: self.evaluator.generate_report(comparison.detector2, name2),
            },
        )

    @staticmethod
    def _agreement(
        name1: str,
        name2: str,
        detections1: Sequence[FrameDetection],
        detections2: Sequence[FrameDetection],
    ) -> AgreementResult:
        voiced = agreements = 0
        for d1, d2 in zip(detections1, detections2):
            f1, f2 = d1.frequency, d2.frequency
            if f1 is None or f2 is None or f1 <= 0 or f2 <= 0:
                continue
            voiced += 1
            if abs(cents_between(f1, f2)) <= AGREEMENT_TOLERANCE_CENTS:
                agreements += 1
        return AgreementResult(
            detector1=name1,
            detector2=name2,
            agreement_rate=agreements / voiced if voiced else None,
            total_voiced_frames=voiced,
            agreements=agreements,
        )

    def run_ab_comparison(self, name1: str, name2: str) -> ABComparison:
        """Compare two detectors on every fixture of the canonical suite."""
        detector1 = self.get_detector(name1)
        detector2 = self.get_detector(name2)

        tests: list[ABTestResult] = []
        for case in self.generator.test_suite():
            detections1 = self.run_detector(detector1, case.buffer)
            detections2 = self.run_detector(detector2, case.buffer)
            comparison = self._score_pair(
                name1, name2, detections1, detections2, case.ground_truth
            )
            tests.append(ABTestResult(case.name, case.type, comparison))

        by_metric = {metric: _tally(tests, metric) for metric in TALLIED_METRICS}
        rpa = by_metric["rpa"]
        if rpa.detector1_wins > rpa.detector2_wins:
            overall = name1
        elif rpa.detector2_wins > rpa.detector1_wins:
            overall = name2
        else:
            overall = "tie"

        logger.info("A/B %s vs %s: winner=%s", name1, name2, overall)
        return ABComparison(
            detector1=name1,
            detector2=name2,
            tests=tuple(tests),
            summary=ABSummary(by_metric=by_metric, overall_winner=overall, total_tests=len(tests)),
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    @staticmethod
    def generate_comparison_report(result: Any) -> str:
        from .report import render_result

        return render_result(result)

    @staticmethod
    def export_json(result: Any) -> str:
        from .report import export_json

        return export_json(result)
