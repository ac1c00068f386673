"""
Tests for pitch_engine.config.

These tests verify parameter validation and the predefined configurations.
"""

from dataclasses import FrozenInstanceError, replace

import pytest

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


class TestDetectorConfigValidation:
    """Test DetectorConfig parameter validation."""

    def test_default_values(self) -> None:
        config = DetectorConfig()
        assert config.sample_rate == 44100
        assert config.buffer_size == 2048
        assert config.min_frequency == 60.0
        assert config.max_frequency == 1200.0
        assert config.clarity_threshold == 0.75
        assert config.history_size == 7

    def test_max_not_above_min_raises(self) -> None:
        with pytest.raises(ValueError, match="max_frequency .* must be greater"):
            DetectorConfig(min_frequency=500.0, max_frequency=500.0)

    def test_max_at_nyquist_raises(self) -> None:
        with pytest.raises(ValueError, match="Nyquist"):
            DetectorConfig(sample_rate=2000, buffer_size=4096, max_frequency=1000.0)

    def test_buffer_too_small_for_min_frequency_raises(self) -> None:
        """60 Hz at 44.1 kHz needs two 735-sample periods."""
        with pytest.raises(ValueError, match="need at least 1470 samples"):
            DetectorConfig(buffer_size=1024)

    def test_small_buffer_ok_with_higher_min_frequency(self) -> None:
        config = DetectorConfig(buffer_size=1024, min_frequency=100.0)
        assert config.buffer_size == 1024

    @pytest.mark.parametrize("name", ["clarity_threshold", "yin_threshold", "yin_clarity"])
    def test_unit_interval_fields(self, name: str) -> None:
        with pytest.raises(ValueError, match=name):
            DetectorConfig(**{name: 1.5})

    def test_negative_threshold_raises(self) -> None:
        with pytest.raises(ValueError, match="threshold must be non-negative"):
            DetectorConfig(threshold=-0.1)

    def test_history_size_zero_raises(self) -> None:
        with pytest.raises(ValueError, match="history_size"):
            DetectorConfig(history_size=0)

    def test_is_frozen(self) -> None:
        with pytest.raises(FrozenInstanceError):
            DEFAULT_DETECTOR_CONFIG.clarity_threshold = 0.5  # type: ignore[misc]

    def test_replace_revalidates(self) -> None:
        with pytest.raises(ValueError):
            replace(DEFAULT_DETECTOR_CONFIG, min_frequency=-1.0)


class TestOnsetConfigValidation:
    def test_defaults(self) -> None:
        assert DEFAULT_ONSET_CONFIG.hop_size == 512
        assert DEFAULT_ONSET_CONFIG.onset_threshold == 1.2
        total = DEFAULT_ONSET_CONFIG.energy_weight + DEFAULT_ONSET_CONFIG.flux_weight
        assert total == pytest.approx(1.0)

    def test_too_many_bins_raises(self) -> None:
        with pytest.raises(ValueError, match="spectral_bins"):
            OnsetConfig(frame_size=64, spectral_bins=64)

    def test_zero_hop_raises(self) -> None:
        with pytest.raises(ValueError, match="hop_size must be positive"):
            OnsetConfig(hop_size=0)

    def test_negative_duration_raises(self) -> None:
        with pytest.raises(ValueError, match="durations"):
            OnsetConfig(min_note_duration=-0.1)


class TestEvaluatorAndRunnerConfig:
    def test_evaluator_defaults(self) -> None:
        assert DEFAULT_EVALUATOR_CONFIG.tolerance_cents == 50.0
        assert DEFAULT_EVALUATOR_CONFIG.gross_error_threshold == 50.0

    def test_evaluator_rejects_zero_tolerance(self) -> None:
        with pytest.raises(ValueError, match="tolerance_cents"):
            EvaluatorConfig(tolerance_cents=0.0)

    def test_runner_defaults(self) -> None:
        assert DEFAULT_RUNNER_CONFIG == RunnerConfig(44100, 2048, 512)

    def test_runner_rejects_negative_frame(self) -> None:
        with pytest.raises(ValueError, match="frame_size"):
            RunnerConfig(frame_size=-1)


class TestPredefinedConfigs:
    def test_strict_is_stricter_than_default(self) -> None:
        assert STRICT_DETECTOR_CONFIG.clarity_threshold > DEFAULT_DETECTOR_CONFIG.clarity_threshold
        assert STRICT_DETECTOR_CONFIG.history_size < DEFAULT_DETECTOR_CONFIG.history_size

    def test_strict_shares_framing(self) -> None:
        assert STRICT_DETECTOR_CONFIG.buffer_size == DEFAULT_DETECTOR_CONFIG.buffer_size
        assert STRICT_DETECTOR_CONFIG.sample_rate == DEFAULT_DETECTOR_CONFIG.sample_rate
