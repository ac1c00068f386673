"""Evaluation harness for frame-wise pitch detectors.

Public API:
    Metrics:    PitchEvaluator, Metrics, FrameEvaluation, Evaluation,
                LatencyMetrics, Comparison
    Runner:     EvaluationRunner and its result types
    Rendering:  to_dict, export_json, render_result
    Regression: save_baseline, load_baseline, compare_runs, RegressionReport
"""

from .evaluator import (
    Comparison,
    Evaluation,
    FrameEvaluation,
    LatencyMetrics,
    Metrics,
    PitchEvaluator,
)
from .regression import RegressionReport, compare_runs, load_baseline, save_baseline
from .report import export_json, render_result, to_dict
from .runner import (
    ABComparison,
    AgreementResult,
    DetectorComparison,
    EvaluationRunner,
    RecordingEvaluation,
    SyntheticRun,
    align_ground_truth,
)

__all__ = [
    "PitchEvaluator",
    "Metrics",
    "FrameEvaluation",
    "Evaluation",
    "LatencyMetrics",
    "Comparison",
    "EvaluationRunner",
    "SyntheticRun",
    "RecordingEvaluation",
    "AgreementResult",
    "DetectorComparison",
    "ABComparison",
    "align_ground_truth",
    "to_dict",
    "export_json",
    "render_result",
    "RegressionReport",
    "save_baseline",
    "load_baseline",
    "compare_runs",
]
