"""
Tests for pitch_engine/signals.py — synthetic fixtures and framing.

Noise tests pass a seeded numpy Generator so they are deterministic.
"""

from __future__ import annotations

import math
from collections import Counter

import numpy as np
import pytest

from pitch_engine.signals import (
    GROUND_TRUTH_INTERVAL,
    SCALE_INTERVALS,
    FrameSequence,
    TestSignalGenerator,
)
from pitch_engine.types import FrameSample

SR = 44100


@pytest.fixture
def gen() -> TestSignalGenerator:
    return TestSignalGenerator(SR)


def _snr_db(clean: np.ndarray, noisy: np.ndarray) -> float:
    noise = noisy - clean
    return 10.0 * math.log10(np.mean(clean**2) / np.mean(noise**2))


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


class TestSineWave:
    def test_length_and_peak(self, gen: TestSignalGenerator) -> None:
        result = gen.sine_wave(440.0, 1.0)
        assert len(result.buffer) == SR
        assert np.max(np.abs(result.buffer)) == pytest.approx(0.8, abs=1e-3)

    def test_ground_truth_grid(self, gen: TestSignalGenerator) -> None:
        truth = gen.sine_wave(440.0, 1.0).ground_truth
        assert len(truth) == 100
        assert truth[0].time == 0.0
        assert truth[-1].time == pytest.approx(0.99)
        assert all(p.frequency == 440.0 for p in truth)
        steps = np.diff([p.time for p in truth])
        np.testing.assert_allclose(steps, GROUND_TRUTH_INTERVAL)

    def test_buffer_is_read_only_float64(self, gen: TestSignalGenerator) -> None:
        buffer = gen.sine_wave(220.0, 0.1).buffer
        assert buffer.dtype == np.float64
        assert not buffer.flags.writeable
        with pytest.raises(ValueError):
            buffer[0] = 1.0

    def test_deterministic(self, gen: TestSignalGenerator) -> None:
        a = gen.sine_wave(330.0, 0.2).buffer
        b = gen.sine_wave(330.0, 0.2).buffer
        np.testing.assert_array_equal(a, b)

    def test_invalid_sample_rate(self) -> None:
        with pytest.raises(ValueError, match="sample_rate"):
            TestSignalGenerator(0)


class TestWithHarmonics:
    def test_peak_does_not_exceed_amplitude(self, gen: TestSignalGenerator) -> None:
        result = gen.with_harmonics(220.0, 0.5, (1.0, 0.6, 0.3, 0.15, 0.08), amplitude=0.5)
        assert np.max(np.abs(result.buffer)) <= 0.5 + 1e-9

    def test_ground_truth_is_fundamental(self, gen: TestSignalGenerator) -> None:
        truth = gen.with_harmonics(220.0, 0.5).ground_truth
        assert len(truth) == 50
        assert {p.frequency for p in truth} == {220.0}

    def test_spectrum_has_harmonics(self, gen: TestSignalGenerator) -> None:
        buffer = gen.with_harmonics(441.0, 1.0, (1.0, 0.5)).buffer
        spectrum = np.abs(np.fft.rfft(buffer))
        # 1 Hz bins over one second
        assert spectrum[441] > spectrum[882] > 10 * spectrum[1323]


class TestScale:
    def test_major_scale_layout(self, gen: TestSignalGenerator) -> None:
        result = gen.scale("major", 261.63, 0.4)
        assert result.num_notes == 8
        assert len(result.buffer) == int(SR * 3.2)

    def test_ground_truth_skips_note_edges(self, gen: TestSignalGenerator) -> None:
        truth = gen.scale("major", 261.63, 0.4).ground_truth
        first_note = [p for p in truth if p.note_index == 0]
        assert len(first_note) == 36
        assert first_note[0].time == pytest.approx(0.02)
        assert first_note[-1].time == pytest.approx(0.37)
        assert len(truth) == 8 * 36

    def test_note_names_and_frequencies(self, gen: TestSignalGenerator) -> None:
        truth = gen.scale("major", 261.63, 0.4).ground_truth
        names = list(dict.fromkeys((p.note_index, p.note_name) for p in truth))
        assert [name for _, name in names] == ["C", "D", "E", "F", "G", "A", "B", "C"]
        top = [p.frequency for p in truth if p.note_index == 7]
        assert top[0] == pytest.approx(2 * 261.63)

    def test_chromatic_has_thirteen_notes(self, gen: TestSignalGenerator) -> None:
        assert gen.scale("chromatic", 261.63, 0.2).num_notes == 13

    def test_unknown_scale_falls_back_to_major(self, gen: TestSignalGenerator) -> None:
        unknown = gen.scale("lydian-dominant", 220.0, 0.2)
        major = gen.scale("major", 220.0, 0.2)
        assert unknown.num_notes == len(SCALE_INTERVALS["major"])
        np.testing.assert_array_equal(unknown.buffer, major.buffer)

    def test_envelope_starts_and_ends_at_zero(self, gen: TestSignalGenerator) -> None:
        buffer = gen.scale("minor", 261.63, 0.4).buffer
        assert buffer[0] == 0.0
        assert abs(buffer[-1]) < 0.01


class TestSweep:
    def test_log_sweep_midpoint_is_geometric_mean(self, gen: TestSignalGenerator) -> None:
        truth = gen.sweep(220.0, 440.0, 2.0).ground_truth
        midpoint = next(p for p in truth if p.time == pytest.approx(1.0))
        assert midpoint.frequency == pytest.approx(220.0 * math.sqrt(2.0))

    def test_linear_sweep_midpoint(self, gen: TestSignalGenerator) -> None:
        truth = gen.sweep(220.0, 440.0, 2.0, logarithmic=False).ground_truth
        midpoint = next(p for p in truth if p.time == pytest.approx(1.0))
        assert midpoint.frequency == pytest.approx(330.0)

    def test_truth_is_monotonic(self, gen: TestSignalGenerator) -> None:
        freqs = [p.frequency for p in gen.sweep(330.0, 660.0, 2.0).ground_truth]
        assert len(freqs) == 200
        assert freqs[0] == pytest.approx(330.0)
        assert all(b > a for a, b in zip(freqs, freqs[1:]))

    def test_buffer_amplitude(self, gen: TestSignalGenerator) -> None:
        buffer = gen.sweep(220.0, 440.0, 1.0).buffer
        assert np.max(np.abs(buffer)) <= 0.8 + 1e-9


class TestAddNoise:
    def test_snr_matches_target(self, gen: TestSignalGenerator) -> None:
        clean = gen.sine_wave(440.0, 1.0).buffer
        noisy = gen.add_noise(clean, 20.0, rng=np.random.default_rng(42))
        assert _snr_db(clean, noisy) == pytest.approx(20.0, abs=0.5)

    @pytest.mark.parametrize("snr", [30.0, 10.0, 0.0])
    def test_other_levels(self, gen: TestSignalGenerator, snr: float) -> None:
        clean = gen.with_harmonics(220.0, 1.0).buffer
        noisy = gen.add_noise(clean, snr, rng=np.random.default_rng(7))
        assert _snr_db(clean, noisy) == pytest.approx(snr, abs=0.5)

    def test_input_untouched(self, gen: TestSignalGenerator) -> None:
        clean = gen.sine_wave(440.0, 0.1).buffer
        before = clean.copy()
        gen.add_noise(clean, 10.0, rng=np.random.default_rng(0))
        np.testing.assert_array_equal(clean, before)

    def test_same_seed_same_noise(self, gen: TestSignalGenerator) -> None:
        clean = gen.sine_wave(440.0, 0.1).buffer
        a = gen.add_noise(clean, 10.0, rng=np.random.default_rng(5))
        b = gen.add_noise(clean, 10.0, rng=np.random.default_rng(5))
        np.testing.assert_array_equal(a, b)

    def test_noise_is_finite(self, gen: TestSignalGenerator) -> None:
        clean = gen.sine_wave(440.0, 0.5).buffer
        assert np.all(np.isfinite(gen.add_noise(clean, 0.0)))

    def test_empty_buffer(self, gen: TestSignalGenerator) -> None:
        assert gen.add_noise(np.array([]), 20.0).size == 0


# ---------------------------------------------------------------------------
# Corpus and framing
# ---------------------------------------------------------------------------


class TestSuite:
    def test_sixteen_cases(self, gen: TestSignalGenerator) -> None:
        cases = gen.test_suite(rng=np.random.default_rng(0))
        assert len(cases) == 16
        counts = Counter(c.type for c in cases)
        assert counts == {"sine": 5, "voice": 3, "scale": 3, "sweep": 2, "noisy": 3}

    def test_names_are_unique_and_stable(self, gen: TestSignalGenerator) -> None:
        names = [c.name for c in gen.test_suite(rng=np.random.default_rng(0))]
        assert len(set(names)) == 16
        assert "sine_440Hz" in names
        assert "sine_523Hz" in names
        assert "scale_chromatic_C4" in names
        assert "sweep_A3_A4" in names
        assert "noisy_440Hz_10dB" in names

    def test_only_noisy_cases_carry_snr(self, gen: TestSignalGenerator) -> None:
        for case in gen.test_suite(rng=np.random.default_rng(0)):
            if case.type == "noisy":
                assert case.snr in (30, 20, 10)
            else:
                assert case.snr is None

    def test_every_case_has_ground_truth(self, gen: TestSignalGenerator) -> None:
        for case in gen.test_suite(rng=np.random.default_rng(0)):
            assert case.ground_truth
            assert not case.buffer.flags.writeable


class TestFraming:
    def test_extract_frame(self, gen: TestSignalGenerator) -> None:
        buffer = gen.sine_wave(440.0, 1.0).buffer
        assert len(gen.extract_frame(buffer, 0.5)) == 2048
        assert len(gen.extract_frame(buffer, 0.99, 2048)) == SR - int(0.99 * SR)

    def test_frame_count(self, gen: TestSignalGenerator) -> None:
        result = gen.sine_wave(440.0, 1.0)
        frames = gen.generate_frames(result.buffer, result.ground_truth)
        assert isinstance(frames, FrameSequence)
        assert len(frames) == (SR - 2048) // 512 + 1

    def test_restartable(self, gen: TestSignalGenerator) -> None:
        result = gen.sine_wave(440.0, 0.5)
        frames = gen.generate_frames(result.buffer, result.ground_truth)
        first = [s.time for s in frames]
        second = [s.time for s in frames]
        assert first == second
        assert len(first) == len(frames)

    def test_samples_carry_time_and_expected_pitch(self, gen: TestSignalGenerator) -> None:
        result = gen.sine_wave(440.0, 0.5)
        samples = list(gen.generate_frames(result.buffer, result.ground_truth, 1024, 256))
        assert all(isinstance(s, FrameSample) for s in samples)
        assert all(len(s.frame) == 1024 for s in samples)
        assert samples[3].time == pytest.approx(3 * 256 / SR)
        assert {s.expected_frequency for s in samples} == {440.0}

    def test_nearest_ground_truth_used(self, gen: TestSignalGenerator) -> None:
        result = gen.sweep(220.0, 440.0, 1.0)
        samples = list(gen.generate_frames(result.buffer, result.ground_truth))
        truth = {round(p.time, 2): p.frequency for p in result.ground_truth}
        # Frame 20 starts at 0.2322 s; nearest grid point is 0.23 s
        assert samples[20].expected_frequency == truth[0.23]

    def test_no_ground_truth_is_unvoiced(self, gen: TestSignalGenerator) -> None:
        frames = gen.generate_frames(gen.sine_wave(440.0, 0.2).buffer, ())
        assert all(s.expected_frequency is None for s in frames)

    def test_short_buffer_has_no_frames(self, gen: TestSignalGenerator) -> None:
        assert len(gen.generate_frames(np.zeros(100), ())) == 0
        assert list(gen.generate_frames(np.zeros(100), ())) == []
