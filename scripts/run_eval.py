#!/usr/bin/env python
"""Pitch Detection Evaluation Pipeline — one-command runner.

Usage
-----
    # Canonical synthetic suite for the default hybrid detector
    python scripts/run_eval.py synthetic

    # Same, with the stricter clarity gate
    python scripts/run_eval.py synthetic --preset strict

    # A/B: default vs strict over the whole suite
    python scripts/run_eval.py ab

    # A/B with explicit clarity thresholds
    python scripts/run_eval.py ab --clarity-a 0.75 --clarity-b 0.9

    # Score a sung recording (expected number of notes)
    python scripts/run_eval.py recording takes/major_scale.wav --notes 8
    python scripts/run_eval.py recording takes/count_in.wav --notes 8 --offset 2.0

    # Compare against / save a baseline (synthetic only)
    python scripts/run_eval.py synthetic --compare eval_results/baseline.json
    python scripts/run_eval.py synthetic --save-baseline eval_results/baseline.json

Environment
-----------
    PITCH_EVAL_LOG_LEVEL   logging level (default: WARNING)

Exit codes
----------
    0  — success, no regressions
    1  — regressions detected (when --compare is used)
    2  — evaluation errors
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

# Add project root to sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from ingestion.audio_loader import load_audio  # noqa: E402
from pitch_engine.config import (  # noqa: E402
    DEFAULT_DETECTOR_CONFIG,
    STRICT_DETECTOR_CONFIG,
    DetectorConfig,
    RunnerConfig,
)
from pitch_engine.detectors import HybridPitchDetector  # noqa: E402
from pitch_engine.errors import PitchEngineError  # noqa: E402
from pitch_eval.regression import compare_runs, load_baseline, save_baseline  # noqa: E402
from pitch_eval.report import export_json, render_result, to_dict  # noqa: E402
from pitch_eval.runner import EvaluationRunner  # noqa: E402

logger = logging.getLogger("run_eval")

PRESETS: dict[str, DetectorConfig] = {
    "default": DEFAULT_DETECTOR_CONFIG,
    "strict": STRICT_DETECTOR_CONFIG,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Pitch Detection Evaluation Pipeline")
    sub = p.add_subparsers(dest="command", required=True)

    synthetic = sub.add_parser("synthetic", help="Run the canonical synthetic suite")
    synthetic.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="default",
        help="Detector configuration preset (default: default)",
    )
    synthetic.add_argument(
        "--compare",
        metavar="BASELINE_JSON",
        default=None,
        help="Compare against saved baseline and detect regressions",
    )
    synthetic.add_argument(
        "--save-baseline",
        metavar="OUTPUT_JSON",
        default=None,
        help="Save current run as baseline for future regression checks",
    )
    synthetic.add_argument(
        "--threshold",
        type=float,
        default=0.05,
        help="Regression threshold as a fraction (default: 0.05)",
    )

    ab = sub.add_parser("ab", help="A/B-compare two hybrid detector variants")
    ab.add_argument(
        "--clarity-a",
        type=float,
        default=DEFAULT_DETECTOR_CONFIG.clarity_threshold,
        help="MPM clarity gate for variant A (default: %(default)s)",
    )
    ab.add_argument(
        "--clarity-b",
        type=float,
        default=STRICT_DETECTOR_CONFIG.clarity_threshold,
        help="MPM clarity gate for variant B (default: %(default)s)",
    )

    recording = sub.add_parser("recording", help="Score a sung recording note by note")
    recording.add_argument("path", help="Audio file (wav, flac, mp3, ...)")
    recording.add_argument("--notes", type=int, required=True, help="Expected note count")
    recording.add_argument(
        "--offset",
        type=float,
        default=0.0,
        help="Seconds to skip at the start of the take (default: 0)",
    )
    recording.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="default",
        help="Detector configuration preset (default: default)",
    )

    for command in (synthetic, ab, recording):
        command.add_argument(
            "--output",
            metavar="OUTPUT_JSON",
            default=None,
            help="Save the full result JSON to this path",
        )
        command.add_argument(
            "--sample-rate",
            type=int,
            default=44100,
            help="Analysis sample rate in Hz (default: 44100)",
        )
    return p.parse_args(argv)


def configure_logging() -> None:
    level_name = os.getenv("PITCH_EVAL_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_runner(sample_rate: int) -> EvaluationRunner:
    return EvaluationRunner(RunnerConfig(sample_rate=sample_rate))


def make_detector(config: DetectorConfig, sample_rate: int, name: str) -> HybridPitchDetector:
    return HybridPitchDetector(replace(config, sample_rate=sample_rate), name=name)


def run_synthetic(args: argparse.Namespace) -> int:
    runner = build_runner(args.sample_rate)
    detector = make_detector(PRESETS[args.preset], args.sample_rate, args.preset)
    runner.register_detector(args.preset, detector)
    result = runner.run_synthetic_tests(args.preset)
    print(render_result(result))
    print()

    run_dict = to_dict(result)
    write_output(args.output, result)

    if args.save_baseline:
        save_baseline(run_dict, args.save_baseline)
        print(f"  Baseline saved → {args.save_baseline}")

    if not args.compare:
        return 0
    try:
        baseline = load_baseline(args.compare)
    except FileNotFoundError:
        print(f"  WARNING: Baseline not found at {args.compare} — skipping regression check")
        return 0

    regression_report = compare_runs(baseline, run_dict, threshold=args.threshold)
    print(regression_report.render())
    if regression_report.has_regressions:
        print("  ⚠  REGRESSIONS DETECTED — exiting with code 1")
        return 1
    print("  ✓  No regressions detected")
    return 0


def run_ab(args: argparse.Namespace) -> int:
    runner = build_runner(args.sample_rate)
    name_a = f"hybrid@{args.clarity_a:g}"
    name_b = f"hybrid@{args.clarity_b:g}"
    for name, clarity in ((name_a, args.clarity_a), (name_b, args.clarity_b)):
        config = replace(DEFAULT_DETECTOR_CONFIG, clarity_threshold=clarity)
        runner.register_detector(name, make_detector(config, args.sample_rate, name))
    result = runner.run_ab_comparison(name_a, name_b)
    print(render_result(result))
    write_output(args.output, result)
    return 0


def run_recording(args: argparse.Namespace) -> int:
    y, sr = load_audio(args.path, sr=args.sample_rate, offset=args.offset)
    runner = build_runner(sr)
    detector = make_detector(PRESETS[args.preset], sr, args.preset)
    runner.register_detector(args.preset, detector)
    result = runner.evaluate_user_recording(args.preset, y, args.notes)
    print(render_result(result))
    write_output(args.output, result)
    return 0


def write_output(path: str | None, result: object) -> None:
    if not path:
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(export_json(result))
    print(f"  Result saved → {path}")


COMMANDS = {
    "synthetic": run_synthetic,
    "ab": run_ab,
    "recording": run_recording,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging()

    print()
    print("=" * 65)
    print("  Pitch Detection Evaluation Pipeline")
    print("=" * 65)
    print(f"  Run started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Mode: {args.command}")
    print()

    try:
        return COMMANDS[args.command](args)
    except (PitchEngineError, ValueError, FileNotFoundError, RuntimeError) as exc:
        logger.error("Evaluation failed: %s", exc)
        print(f"  ERROR: {exc}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
