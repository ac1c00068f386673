"""Regression detection — compare a synthetic run against a saved baseline.

Usage
-----
    baseline = load_baseline("eval_results/baseline.json")
    current  = to_dict(runner.run_synthetic_tests("hybrid"))
    delta    = compare_runs(baseline, current, threshold=0.05)
    if delta.has_regressions:
        print(delta.render())
        sys.exit(1)

Regression is defined as: the overall or any per-type mean RPA drops by more
than ``threshold`` (default 5 pp), or the matching mean GPE rises by more
than ``threshold``. Both dicts use the camelCase layout written by
``pitch_eval.report.to_dict``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# (summary key, per-type key, higher is better)
_TRACKED: tuple[tuple[str, str, bool], ...] = (
    ("overallRPA", "meanRPA", True),
    ("overallGPE", "meanGPE", False),
)


@dataclass
class MetricDelta:
    """Change in a single metric between baseline and current."""

    metric: str
    test_type: str
    baseline: float
    current: float
    higher_is_better: bool = True

    @property
    def delta(self) -> float:
        return self.current - self.baseline

    @property
    def gain(self) -> float:
        """Signed improvement: positive is better regardless of polarity."""
        return self.delta if self.higher_is_better else -self.delta

    @property
    def direction(self) -> str:
        if self.delta > 0.001:
            return "▲"
        if self.delta < -0.001:
            return "▼"
        return "─"


@dataclass
class RegressionReport:
    """Full comparison between baseline and current run."""

    deltas: list[MetricDelta]
    threshold: float
    regressions: list[MetricDelta] = field(default_factory=list)
    improvements: list[MetricDelta] = field(default_factory=list)

    @property
    def has_regressions(self) -> bool:
        return len(self.regressions) > 0

    def _rows(self, deltas: list[MetricDelta]) -> list[str]:
        return [
            f"  {d.direction} {d.test_type:<10} {d.metric:<12}"
            f"  {d.baseline:.3f} → {d.current:.3f}  ({d.delta:+.3f})"
            for d in deltas
        ]

    def render(self) -> str:
        lines: list[str] = [
            "=" * 60,
            "  Regression Report",
            "=" * 60,
            f"  Regression threshold: {self.threshold * 100:.1f}%",
            "",
        ]

        if self.regressions:
            lines += [f"  ⚠  REGRESSIONS DETECTED ({len(self.regressions)})", "-" * 50]
            lines += self._rows(self.regressions)
            lines.append("")

        if self.improvements:
            lines += [f"  ✓  Improvements ({len(self.improvements)})", "-" * 50]
            lines += self._rows(self.improvements)
            lines.append("")

        stable = len(self.deltas) - len(self.regressions) - len(self.improvements)
        lines += [f"  ─  Stable metrics: {stable}", "=" * 60, ""]

        if not self.has_regressions:
            lines.insert(2, "  ✓  No regressions detected — all metrics within threshold")

        return "\n".join(lines)


def load_baseline(path: str | Path) -> dict:
    """Load a previously saved synthetic-run dict from JSON."""
    with open(path) as f:
        return json.load(f)


def save_baseline(run_dict: dict, path: str | Path) -> None:
    """Persist a synthetic-run dict to JSON for future regression checks."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(run_dict, f, indent=2)
    logger.info("Baseline saved to %s", path)


def compare_runs(baseline: dict, current: dict, threshold: float = 0.05) -> RegressionReport:
    """Compare the summary metrics of two synthetic runs.

    Metrics missing (or null) on either side are skipped rather than
    treated as zero.

    Parameters
    ----------
    baseline:
        Saved run dict (``to_dict(SyntheticRun)``).
    current:
        Current run dict.
    threshold:
        Minimum absolute change to count as a regression / improvement.
    """
    base_summary: dict = baseline.get("summary", {})
    curr_summary: dict = current.get("summary", {})
    deltas: list[MetricDelta] = []

    for overall_key, _, higher in _TRACKED:
        base_val = base_summary.get(overall_key)
        curr_val = curr_summary.get(overall_key)
        if base_val is None or curr_val is None:
            continue
        deltas.append(MetricDelta(overall_key, "overall", float(base_val), float(curr_val), higher))

    base_types: dict = base_summary.get("byType", {})
    curr_types: dict = curr_summary.get("byType", {})
    for test_type in sorted(set(base_types) | set(curr_types)):
        base_t = base_types.get(test_type, {})
        curr_t = curr_types.get(test_type, {})
        for _, type_key, higher in _TRACKED:
            base_val = base_t.get(type_key)
            curr_val = curr_t.get(type_key)
            if base_val is None or curr_val is None:
                continue
            deltas.append(
                MetricDelta(type_key, test_type, float(base_val), float(curr_val), higher)
            )

    return RegressionReport(
        deltas=deltas,
        threshold=threshold,
        regressions=[d for d in deltas if d.gain < -threshold],
        improvements=[d for d in deltas if d.gain > threshold],
    )
