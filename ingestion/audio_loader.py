"""
ingestion/audio_loader.py — Reads sung takes from disk for scoring.

pitch_engine and pitch_eval only ever see sample arrays; this module is
where a file path becomes one. The samples come back as a contiguous
float64 mono array, the dtype the detectors and the onset segmenter
compute in, so no caller has to convert.

Usage:
    from ingestion.audio_loader import load_audio
    take, sr = load_audio("takes/major_scale.wav", sr=44100, offset=1.5)
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)

# Formats librosa decodes through soundfile or audioread
RECORDING_FORMATS: frozenset[str] = frozenset(
    {".wav", ".flac", ".aif", ".aiff", ".ogg", ".opus", ".mp3", ".m4a"}
)


def load_audio(
    path: str | Path,
    *,
    sr: int | None = None,
    mono: bool = True,
    offset: float = 0.0,
    duration: float | None = None,
) -> tuple[np.ndarray, int]:
    """Decode a recording into ``(samples, sample_rate)``.

    Args:
        path: Recording on disk.
        sr: Resample to this rate. Pass the detector's ``sample_rate`` so
            frame sizes mean the same thing; None keeps the file's rate.
        mono: Average channels into one.
        offset: Seconds to skip at the start (a count-in or click track).
        duration: Seconds to read after ``offset``; None reads to the end.

    Raises:
        FileNotFoundError: Nothing at ``path``.
        ValueError: Unknown extension, negative ``offset``, or a take that
            decodes to zero samples.
        RuntimeError: The decoder rejected the file.
    """
    import librosa  # deferred to allow testing without audio backend

    take = Path(path)
    if not take.exists():
        raise FileNotFoundError(f"Audio file not found: {take}")
    if take.suffix.lower() not in RECORDING_FORMATS:
        raise ValueError(
            f"Unsupported audio format {take.suffix!r} for {take.name!r}; "
            f"expected one of {', '.join(sorted(RECORDING_FORMATS))}"
        )
    if offset < 0:
        raise ValueError(f"offset must be non-negative, got {offset}")

    try:
        y, native_sr = librosa.load(take, sr=sr, mono=mono, offset=offset, duration=duration)
    except Exception as exc:
        raise RuntimeError(f"Failed to decode {take.name!r}: {exc}") from exc

    samples = np.ascontiguousarray(y, dtype=np.float64)
    if samples.size == 0:
        raise ValueError(f"{take.name!r} contains no audio after offset {offset}s")

    rate = int(native_sr)
    logger.info(
        "Loaded take %s: %.2fs at %d Hz (offset %.2fs)",
        take.name,
        samples.shape[-1] / rate,
        rate,
        offset,
    )
    return samples, rate
