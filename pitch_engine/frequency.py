"""
pitch_engine/frequency.py — Pitch unit conversions (pure math, no numpy).

Conventions:
    A4 = 440 Hz = MIDI 69.
    Cents: 1200 per octave, 100 per equal-tempered semitone.
    Note names use sharps: C, C#, D, ..., B; octave numbering has C4 = MIDI 60.

The evaluator, the detector's octave logic and the runner all measure pitch
distance with ``cents_between`` so the "undefined for non-positive input"
rule lives in exactly one place.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

A4_FREQUENCY: float = 440.0
A4_MIDI: int = 69

NOTE_NAMES: tuple[str, ...] = (
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
    "A",
    "A#",
    "B",
)

_NOTE_NAME_RE = re.compile(r"^([A-G]#?)(-?\d+)$")


@dataclass(frozen=True)
class NoteReading:
    """Nearest equal-tempered note for a frequency."""

    note_name: str
    midi: int
    cents_off: float
    """Signed deviation from the nearest note, within [-50, 50]."""
    frequency: float


def cents_between(detected: float | None, reference: float | None) -> float:
    """Signed distance from ``reference`` to ``detected`` in cents.

    Formula: 1200 × log₂(detected / reference)

    Returns:
        ``math.inf`` when either frequency is missing or not strictly
        positive. Callers filter infinities out of statistics.
    """
    if detected is None or reference is None or detected <= 0 or reference <= 0:
        return math.inf
    return 1200.0 * math.log2(detected / reference)


def semitones_between(a: float, b: float) -> float:
    """Absolute interval between two positive frequencies in semitones."""
    return abs(12.0 * math.log2(a / b))


def hz_to_midi(hz: float) -> float:
    """Convert Hz to a fractional MIDI number.

    Raises:
        ValueError: If hz ≤ 0.
    """
    if hz <= 0.0:
        raise ValueError(f"Hz must be > 0, got {hz}")
    return 12.0 * math.log2(hz / A4_FREQUENCY) + A4_MIDI


def midi_to_hz(midi: float) -> float:
    """Convert a (possibly fractional) MIDI number to Hz."""
    return A4_FREQUENCY * 2.0 ** ((midi - A4_MIDI) / 12.0)


def midi_to_name(midi: int) -> str:
    """Convert a MIDI note number to scientific pitch notation.

    Examples:
        69 → 'A4'
        60 → 'C4'
        61 → 'C#4'
    """
    octave = (midi // 12) - 1
    return f"{NOTE_NAMES[midi % 12]}{octave}"


def name_to_midi(note_name: str) -> int:
    """Parse a sharp-spelled note name like 'A#3' into a MIDI number.

    Raises:
        ValueError: If the name is not of the form <letter>[#]<octave>.
    """
    match = _NOTE_NAME_RE.match(note_name.strip())
    if not match:
        raise ValueError(f"Invalid note name: {note_name!r}")
    pitch, octave = match.groups()
    return (int(octave) + 1) * 12 + NOTE_NAMES.index(pitch)


def frequency_to_note(hz: float) -> NoteReading:
    """Nearest note, MIDI number and cents deviation for a frequency.

    Raises:
        ValueError: If hz ≤ 0.
    """
    midi_exact = hz_to_midi(hz)
    nearest = round(midi_exact)
    return NoteReading(
        note_name=midi_to_name(nearest),
        midi=nearest,
        cents_off=(midi_exact - nearest) * 100.0,
        frequency=hz,
    )
