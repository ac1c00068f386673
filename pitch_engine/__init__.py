"""
pitch_engine — Monophonic pitch detection for the singing voice.

Pure DSP: numpy arrays in → frozen dataclasses out. No file I/O in this
package (audio loading lives in ingestion/audio_loader.py).

Public API:
    Types:      Detection, Algorithm, GroundTruthPoint, Note, NoteTiming,
                SegmentationCheck, FrameSample, FrameDetection, SignalResult,
                TestCase
    Config:     DetectorConfig, OnsetConfig, EvaluatorConfig, RunnerConfig
                (+ DEFAULT_* / STRICT_DETECTOR_CONFIG presets)
    Detectors:  PitchDetector, HybridPitchDetector, Readiness
    Signals:    TestSignalGenerator
    Onsets:     OnsetDetector
    Errors:     PitchEngineError and subclasses
"""

from pitch_engine.config import (
    DEFAULT_DETECTOR_CONFIG,
    DEFAULT_EVALUATOR_CONFIG,
    DEFAULT_ONSET_CONFIG,
    DEFAULT_RUNNER_CONFIG,
    STRICT_DETECTOR_CONFIG,
    DetectorConfig,
    EvaluatorConfig,
    OnsetConfig,
    RunnerConfig,
)
from pitch_engine.detectors import HybridPitchDetector, PitchDetector, Readiness, TraceHook
from pitch_engine.errors import (
    DetectorInitError,
    DetectorNotReadyError,
    FrameSizeError,
    LengthMismatchError,
    PitchEngineError,
    UnknownDetectorError,
)
from pitch_engine.onset import OnsetDetector
from pitch_engine.signals import TestSignalGenerator
from pitch_engine.types import (
    Algorithm,
    Detection,
    FrameDetection,
    FrameSample,
    GroundTruthPoint,
    Note,
    NoteTiming,
    SegmentationCheck,
    SignalResult,
    TestCase,
)

__all__ = [
    # Types
    "Algorithm",
    "Detection",
    "FrameDetection",
    "FrameSample",
    "GroundTruthPoint",
    "Note",
    "NoteTiming",
    "SegmentationCheck",
    "SignalResult",
    "TestCase",
    # Config
    "DetectorConfig",
    "OnsetConfig",
    "EvaluatorConfig",
    "RunnerConfig",
    "DEFAULT_DETECTOR_CONFIG",
    "STRICT_DETECTOR_CONFIG",
    "DEFAULT_ONSET_CONFIG",
    "DEFAULT_EVALUATOR_CONFIG",
    "DEFAULT_RUNNER_CONFIG",
    # Detectors
    "PitchDetector",
    "HybridPitchDetector",
    "Readiness",
    "TraceHook",
    # Signals / segmentation
    "TestSignalGenerator",
    "OnsetDetector",
    # Errors
    "PitchEngineError",
    "DetectorNotReadyError",
    "DetectorInitError",
    "FrameSizeError",
    "LengthMismatchError",
    "UnknownDetectorError",
]
