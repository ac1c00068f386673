"""Text and JSON rendering of evaluation results.

``to_dict`` turns any result dataclass into plain JSON types with stable
camelCase keys; ``export_json`` dumps it canonically (indent 2, non-finite
numbers as ``null``). ``render_result`` produces the human-readable report
for each runner result type.

All functions are pure — no I/O.
"""

from __future__ import annotations

import dataclasses
import json
import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

import numpy as np

from .evaluator import Comparison, Metrics, PitchEvaluator
from .runner import (
    ABComparison,
    AgreementResult,
    DetectorComparison,
    RecordingEvaluation,
    SyntheticRun,
)

_CAMEL_RE = re.compile(r"_([a-z0-9])")

# Keys whose camelCase spelling is fixed by the JSON format, not derived
_KEY_OVERRIDES: dict[str, str] = {
    "rpa": "rpa",
    "gpe": "gpe",
    "mean_rpa": "meanRPA",
    "mean_gpe": "meanGPE",
    "overall_rpa": "overallRPA",
    "overall_gpe": "overallGPE",
}


def camel_case(key: str) -> str:
    """snake_case → camelCase, with the RPA/GPE acronyms kept upper-case."""
    if key in _KEY_OVERRIDES:
        return _KEY_OVERRIDES[key]
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), key)


# ---------------------------------------------------------------------------
# Dict / JSON
# ---------------------------------------------------------------------------


def to_dict(value: Any) -> Any:
    """Recursively convert results to JSON-safe values.

    Dataclass fields and mapping keys become camelCase; tuples become lists;
    enums become their value; NaN and ±inf become None. Sample buffers
    (numpy arrays) are dropped from dataclasses.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out: dict[str, Any] = {}
        for f in dataclasses.fields(value):
            item = getattr(value, f.name)
            if isinstance(item, np.ndarray):
                continue
            out[camel_case(f.name)] = to_dict(item)
        return out
    if isinstance(value, Mapping):
        return {camel_case(str(k)): to_dict(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dict(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return float(value) if math.isfinite(value) else None
    return value


def export_json(result: Any) -> str:
    """Canonical JSON for any result object (indent 2, ``null`` for missing)."""
    return json.dumps(to_dict(result), indent=2, allow_nan=False)


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


def _pct(value: float | None) -> str:
    return "N/A" if value is None else f"{value * 100:.1f}%"


def _signed(value: float | None) -> str:
    return "N/A" if value is None else f"{value:+.3f}"


def render_ab_comparison(result: ABComparison) -> str:
    """Win/tie counts per metric, the overall winner and per-test RPA."""
    lines: list[str] = [
        "=== A/B Comparison Report ===",
        f"Detector 1: {result.detector1}",
        f"Detector 2: {result.detector2}",
        "",
        "Summary:",
    ]
    for metric, tally in result.summary.by_metric.items():
        lines += [
            f"  {camel_case(metric)}:",
            f"    {result.detector1} wins: {tally.detector1_wins}",
            f"    {result.detector2} wins: {tally.detector2_wins}",
            f"    Ties: {tally.ties}",
        ]

    lines += ["", f"Overall Winner: {result.summary.overall_winner}", "", "Test Results:"]
    for test in result.tests:
        c = test.comparison
        lines.append(f"  {test.test_name}: {_pct(c.metrics1.rpa)} vs {_pct(c.metrics2.rpa)}")

    return "\n".join(lines)


def render_detector_comparison(result: DetectorComparison | Comparison) -> str:
    """Per-metric differences and winners, followed by both detector reports."""
    if isinstance(result, DetectorComparison):
        name1, name2 = result.detector1, result.detector2
        m1, m2 = result.metrics1, result.metrics2
    else:
        name1, name2 = "detector1", "detector2"
        m1, m2 = result.detector1, result.detector2

    lines: list[str] = [
        f"=== {name1} vs {name2} ===",
        "",
        f"  {'Metric':<20} {'Diff (2-1)':>10}  Winner",
    ]
    for metric, diff in result.differences.items():
        label = result.winner[metric]
        winner = {"detector1": name1, "detector2": name2}.get(label, label)
        lines.append(f"  {camel_case(metric):<20} {_signed(diff):>10}  {winner}")

    lines += [
        "",
        PitchEvaluator.generate_report(m1, name1),
        "",
        PitchEvaluator.generate_report(m2, name2),
    ]
    return "\n".join(lines)


def render_agreement(result: AgreementResult) -> str:
    return "\n".join(
        [
            f"=== {result.detector1} vs {result.detector2} (no reference) ===",
            f"  Agreement rate:       {_pct(result.agreement_rate)}",
            f"  Jointly voiced frames: {result.total_voiced_frames}",
            f"  Agreements:           {result.agreements}",
        ]
    )


def render_synthetic_run(result: SyntheticRun) -> str:
    """Per-test RPA/GPE table plus the per-type and overall means."""
    lines: list[str] = [
        f"=== Synthetic Suite: {result.detector_name} ===",
        "",
        f"  {'Test':<22} {'Type':<7} {'RPA':>7} {'GPE':>7} {'Oct':>7}",
        "  " + "-" * 54,
    ]
    for test in result.tests:
        m = test.metrics
        lines.append(
            f"  {test.name:<22} {test.type:<7} {_pct(m.rpa):>7} {_pct(m.gpe):>7}"
            f" {_pct(m.octave_error_rate):>7}"
        )

    lines += ["", "By type:"]
    for test_type, summary in result.summary.by_type.items():
        lines.append(
            f"  {test_type:<7} n={summary.count:<3} RPA {_pct(summary.mean_rpa):>7}"
            f"  GPE {_pct(summary.mean_gpe):>7}"
        )
    lines += [
        "",
        f"Overall RPA: {_pct(result.summary.overall_rpa)}",
        f"Overall GPE: {_pct(result.summary.overall_gpe)}",
    ]
    return "\n".join(lines)


def render_recording(result: RecordingEvaluation) -> str:
    seg = result.segmentation
    lines: list[str] = [
        f"=== Recording: {result.detector_name} ===",
        f"  Notes detected: {seg.detected_count} (expected {seg.expected_count},"
        f" difference {seg.difference:+d})",
        "",
    ]
    for i, note in enumerate(result.notes, start=1):
        lines.append(
            f"  #{i:<2} {note.start_time:6.2f}-{note.end_time:6.2f}s"
            f"  {note.mean_frequency:7.1f} Hz  ±{note.std_dev_cents:5.1f} cents"
            f"  voiced {_pct(note.detection_rate)}"
        )
    if result.overall_stability is not None:
        s = result.overall_stability
        lines += [
            "",
            f"  Mean stability: ±{s.mean_cents_std:.1f} cents,"
            f" detection rate {_pct(s.mean_detection_rate)} over {s.num_notes} notes",
        ]
    return "\n".join(lines)


def render_result(result: Any) -> str:
    """Text report for any runner result; unknown types fall back to JSON."""
    if isinstance(result, ABComparison):
        return render_ab_comparison(result)
    if isinstance(result, (DetectorComparison, Comparison)):
        return render_detector_comparison(result)
    if isinstance(result, AgreementResult):
        return render_agreement(result)
    if isinstance(result, SyntheticRun):
        return render_synthetic_run(result)
    if isinstance(result, RecordingEvaluation):
        return render_recording(result)
    if isinstance(result, Metrics):
        return PitchEvaluator.generate_report(result)
    return export_json(result)
