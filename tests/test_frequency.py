"""
Tests for pitch_engine.frequency — unit conversions shared by every module.
"""

import math

import pytest

from pitch_engine.frequency import (
    NOTE_NAMES,
    cents_between,
    frequency_to_note,
    hz_to_midi,
    midi_to_hz,
    midi_to_name,
    name_to_midi,
    semitones_between,
)


class TestCentsBetween:
    """Signed cents distance and the undefined-input rule."""

    def test_octave_up_is_1200(self) -> None:
        assert cents_between(880.0, 440.0) == pytest.approx(1200.0)

    def test_octave_down_is_minus_1200(self) -> None:
        assert cents_between(220.0, 440.0) == pytest.approx(-1200.0)

    def test_unison_is_zero(self) -> None:
        assert cents_between(440.0, 440.0) == 0.0

    def test_small_deviation(self) -> None:
        assert cents_between(445.0, 440.0) == pytest.approx(19.56, abs=0.01)

    @pytest.mark.parametrize(
        "detected, reference",
        [(None, 440.0), (440.0, None), (0.0, 440.0), (440.0, 0.0), (-1.0, 440.0)],
    )
    def test_undefined_inputs_are_infinite(self, detected, reference) -> None:
        assert math.isinf(cents_between(detected, reference))


class TestSemitones:
    def test_octave_is_12(self) -> None:
        assert semitones_between(440.0, 220.0) == pytest.approx(12.0)

    def test_is_absolute(self) -> None:
        assert semitones_between(220.0, 440.0) == pytest.approx(12.0)


class TestMidiConversions:
    def test_a4_is_69(self) -> None:
        assert hz_to_midi(440.0) == pytest.approx(69.0)

    def test_middle_c_frequency(self) -> None:
        assert midi_to_hz(60) == pytest.approx(261.6256, abs=1e-3)

    def test_hz_to_midi_rejects_non_positive(self) -> None:
        with pytest.raises(ValueError, match="must be > 0"):
            hz_to_midi(0.0)

    def test_midi_to_name(self) -> None:
        assert midi_to_name(69) == "A4"
        assert midi_to_name(60) == "C4"
        assert midi_to_name(61) == "C#4"

    def test_name_to_midi(self) -> None:
        assert name_to_midi("A4") == 69
        assert name_to_midi("C-1") == 0
        assert name_to_midi(" F#3 ") == 54

    def test_name_round_trip_over_a_few_octaves(self) -> None:
        for midi in range(36, 84):
            assert name_to_midi(midi_to_name(midi)) == midi

    def test_invalid_name_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid note name"):
            name_to_midi("H2")

    def test_note_names_use_sharps(self) -> None:
        assert len(NOTE_NAMES) == 12
        assert "C#" in NOTE_NAMES
        assert "Db" not in NOTE_NAMES


class TestFrequencyToNote:
    def test_exact_note(self) -> None:
        reading = frequency_to_note(440.0)
        assert reading.note_name == "A4"
        assert reading.midi == 69
        assert reading.cents_off == pytest.approx(0.0, abs=1e-9)

    def test_sharp_reading(self) -> None:
        """445 Hz is A4, about 20 cents sharp."""
        reading = frequency_to_note(445.0)
        assert reading.note_name == "A4"
        assert reading.cents_off == pytest.approx(19.56, abs=0.01)

    def test_flat_reading_rounds_to_nearest(self) -> None:
        reading = frequency_to_note(255.0)
        assert reading.note_name == "C4"
        assert reading.cents_off < 0

    def test_cents_off_bounded(self) -> None:
        for hz in (100.0, 150.0, 333.3, 700.0, 1100.0):
            assert -50.0 <= frequency_to_note(hz).cents_off <= 50.0
