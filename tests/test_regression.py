"""Tests for pitch_eval/regression.py — baseline comparison, regression/improvement detection.

All comparison logic is pure (no I/O except save_baseline/load_baseline).
File I/O tests use pytest's tmp_path fixture for isolation.
"""

from __future__ import annotations

import json

import pytest

from pitch_eval.regression import (
    MetricDelta,
    RegressionReport,
    compare_runs,
    load_baseline,
    save_baseline,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_run(
    overall_rpa: float | None = 0.90,
    overall_gpe: float | None = 0.10,
    sine_rpa: float | None = 0.95,
    noisy_gpe: float | None = 0.20,
) -> dict:
    """Build a minimal run dict resembling to_dict(SyntheticRun) output."""
    return {
        "detectorName": "hybrid",
        "tests": [],
        "summary": {
            "totalTests": 8,
            "byType": {
                "sine": {"count": 5, "meanRPA": sine_rpa, "meanGPE": 0.05},
                "noisy": {"count": 3, "meanRPA": 0.80, "meanGPE": noisy_gpe},
            },
            "overallRPA": overall_rpa,
            "overallGPE": overall_gpe,
        },
    }


# ---------------------------------------------------------------------------
# MetricDelta
# ---------------------------------------------------------------------------


class TestMetricDelta:
    def test_delta(self) -> None:
        d = MetricDelta("meanRPA", "sine", 0.8, 0.9)
        assert d.delta == pytest.approx(0.1)
        assert d.gain == pytest.approx(0.1)
        assert d.direction == "▲"

    def test_lower_is_better_flips_gain(self) -> None:
        d = MetricDelta("meanGPE", "sine", 0.1, 0.3, higher_is_better=False)
        assert d.delta == pytest.approx(0.2)
        assert d.gain == pytest.approx(-0.2)

    def test_stable_direction(self) -> None:
        assert MetricDelta("overallRPA", "overall", 0.5, 0.5).direction == "─"
        assert MetricDelta("overallRPA", "overall", 0.5, 0.4).direction == "▼"


# ---------------------------------------------------------------------------
# compare_runs
# ---------------------------------------------------------------------------


class TestCompareRuns:
    def test_identical_runs_have_no_regressions(self) -> None:
        report = compare_runs(_make_run(), _make_run())
        assert not report.has_regressions
        assert report.improvements == []
        # 2 overall + 2 per type × 2 types
        assert len(report.deltas) == 6

    def test_rpa_drop_is_regression(self) -> None:
        report = compare_runs(_make_run(sine_rpa=0.95), _make_run(sine_rpa=0.80))
        assert report.has_regressions
        assert [(d.metric, d.test_type) for d in report.regressions] == [("meanRPA", "sine")]

    def test_gpe_rise_is_regression(self) -> None:
        report = compare_runs(_make_run(overall_gpe=0.10), _make_run(overall_gpe=0.20))
        assert [(d.metric, d.test_type) for d in report.regressions] == [
            ("overallGPE", "overall")
        ]

    def test_gpe_drop_is_improvement(self) -> None:
        report = compare_runs(_make_run(noisy_gpe=0.30), _make_run(noisy_gpe=0.10))
        assert not report.has_regressions
        assert [(d.metric, d.test_type) for d in report.improvements] == [("meanGPE", "noisy")]

    def test_change_within_threshold_is_stable(self) -> None:
        report = compare_runs(_make_run(overall_rpa=0.90), _make_run(overall_rpa=0.87))
        assert not report.has_regressions
        assert report.improvements == []

    def test_custom_threshold(self) -> None:
        report = compare_runs(
            _make_run(overall_rpa=0.90), _make_run(overall_rpa=0.87), threshold=0.01
        )
        assert report.has_regressions
        assert report.threshold == 0.01

    def test_missing_values_skipped(self) -> None:
        report = compare_runs(_make_run(overall_rpa=None), _make_run(overall_rpa=0.1))
        assert "overallRPA" not in [d.metric for d in report.deltas]

    def test_type_only_on_one_side_skipped(self) -> None:
        current = _make_run()
        current["summary"]["byType"]["sweep"] = {"count": 2, "meanRPA": 0.5, "meanGPE": 0.5}
        report = compare_runs(_make_run(), current)
        assert "sweep" not in [d.test_type for d in report.deltas]

    def test_empty_dicts(self) -> None:
        report = compare_runs({}, {})
        assert report.deltas == []
        assert not report.has_regressions


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRender:
    def test_render_regressions(self) -> None:
        text = compare_runs(_make_run(sine_rpa=0.95), _make_run(sine_rpa=0.70)).render()
        assert "REGRESSIONS DETECTED (1)" in text
        assert "sine" in text
        assert "0.950 → 0.700" in text

    def test_render_clean(self) -> None:
        text = compare_runs(_make_run(), _make_run()).render()
        assert "No regressions detected" in text
        assert "Stable metrics: 6" in text

    def test_render_empty_report(self) -> None:
        text = RegressionReport(deltas=[], threshold=0.05).render()
        assert "Regression threshold: 5.0%" in text


# ---------------------------------------------------------------------------
# Baseline I/O
# ---------------------------------------------------------------------------


class TestBaselineIO:
    def test_save_and_load(self, tmp_path) -> None:
        path = tmp_path / "nested" / "baseline.json"
        run = _make_run()
        save_baseline(run, path)
        assert path.exists()
        assert load_baseline(path) == run

    def test_saved_file_is_indented_json(self, tmp_path) -> None:
        path = tmp_path / "baseline.json"
        save_baseline({"summary": {}}, str(path))
        assert json.loads(path.read_text()) == {"summary": {}}
        assert "\n  " in path.read_text()

    def test_missing_baseline_raises(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_baseline(tmp_path / "nope.json")
