"""
pitch_engine/detectors — Frame-wise pitch detectors.

Public API:
    Contract:   PitchDetector, Readiness, TraceHook
    Detectors:  HybridPitchDetector
    Estimators: mcleod_pitch, yin_pitch
"""

from pitch_engine.detectors.base import PitchDetector, Readiness, TraceHook
from pitch_engine.detectors.estimators import mcleod_pitch, yin_pitch
from pitch_engine.detectors.hybrid import HybridPitchDetector

__all__ = [
    "PitchDetector",
    "Readiness",
    "TraceHook",
    "HybridPitchDetector",
    "mcleod_pitch",
    "yin_pitch",
]
