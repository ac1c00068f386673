"""
Tests for ingestion/audio_loader.py.

librosa is swapped out with patch.dict("sys.modules", ...) so no decoder or
real recording is needed; files on disk are placeholders under tmp_path.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from ingestion.audio_loader import RECORDING_FORMATS, load_audio


def _decoder(samples: np.ndarray | None = None, sr: int = 44100) -> MagicMock:
    librosa = MagicMock()
    if samples is None:
        samples = np.full(sr, 0.25, dtype=np.float32)
    librosa.load.return_value = (samples, sr)
    return librosa


@pytest.fixture
def take(tmp_path):
    path = tmp_path / "major_scale.wav"
    path.write_bytes(b"RIFF")
    return path


# ---------------------------------------------------------------------------
# Rejected input
# ---------------------------------------------------------------------------


class TestRejectedInput:
    def test_missing_file(self, tmp_path):
        with patch.dict("sys.modules", {"librosa": _decoder()}):
            with pytest.raises(FileNotFoundError, match="not found"):
                load_audio(tmp_path / "nope.wav")

    def test_unknown_extension_names_the_file(self, tmp_path):
        score = tmp_path / "exercise.mid"
        score.write_bytes(b"MThd")
        with patch.dict("sys.modules", {"librosa": _decoder()}):
            with pytest.raises(ValueError, match="exercise.mid"):
                load_audio(score)

    def test_negative_offset(self, take):
        librosa = _decoder()
        with patch.dict("sys.modules", {"librosa": librosa}):
            with pytest.raises(ValueError, match="offset"):
                load_audio(take, offset=-0.5)
        librosa.load.assert_not_called()

    def test_decoder_failure_is_chained(self, take):
        librosa = _decoder()
        cause = EOFError("truncated")
        librosa.load.side_effect = cause
        with patch.dict("sys.modules", {"librosa": librosa}):
            with pytest.raises(RuntimeError, match="Failed to decode") as exc_info:
                load_audio(take)
        assert exc_info.value.__cause__ is cause

    def test_offset_past_the_end_is_an_error(self, take):
        with patch.dict("sys.modules", {"librosa": _decoder(np.zeros(0, dtype=np.float32))}):
            with pytest.raises(ValueError, match="no audio"):
                load_audio(take, offset=30.0)


# ---------------------------------------------------------------------------
# Decoded takes
# ---------------------------------------------------------------------------


class TestDecodedTake:
    def test_samples_are_contiguous_float64(self, take):
        decoded = np.arange(8, dtype=np.float32)[::2]
        with patch.dict("sys.modules", {"librosa": _decoder(decoded, sr=22050)}):
            samples, sr = load_audio(take)
        assert samples.dtype == np.float64
        assert samples.flags["C_CONTIGUOUS"]
        np.testing.assert_array_equal(samples, [0.0, 2.0, 4.0, 6.0])
        assert sr == 22050

    def test_rate_is_plain_int(self, take):
        with patch.dict("sys.modules", {"librosa": _decoder(sr=np.int64(48000))}):
            _, sr = load_audio(take)
        assert type(sr) is int

    def test_defaults_read_whole_take_at_native_rate(self, take):
        librosa = _decoder()
        with patch.dict("sys.modules", {"librosa": librosa}):
            load_audio(take)
        kwargs = librosa.load.call_args.kwargs
        assert kwargs == {"sr": None, "mono": True, "offset": 0.0, "duration": None}

    def test_window_and_rate_are_forwarded(self, take):
        librosa = _decoder()
        with patch.dict("sys.modules", {"librosa": librosa}):
            load_audio(str(take), sr=16000, mono=False, offset=1.5, duration=3.2)
        kwargs = librosa.load.call_args.kwargs
        assert kwargs["sr"] == 16000
        assert kwargs["mono"] is False
        assert kwargs["offset"] == 1.5
        assert kwargs["duration"] == 3.2

    def test_suffix_check_ignores_case(self, tmp_path):
        loud = tmp_path / "TAKE.FLAC"
        loud.write_bytes(b"fLaC")
        with patch.dict("sys.modules", {"librosa": _decoder()}):
            samples, _ = load_audio(loud)
        assert samples.size == 44100


class TestRecordingFormats:
    def test_lower_case_dotted(self):
        assert all(ext.startswith(".") and ext == ext.lower() for ext in RECORDING_FORMATS)

    @pytest.mark.parametrize("ext", [".wav", ".flac", ".aiff", ".ogg", ".mp3", ".m4a"])
    def test_common_formats_reach_the_decoder(self, tmp_path, ext):
        path = tmp_path / f"take{ext}"
        path.write_bytes(b"\x00")
        librosa = _decoder()
        with patch.dict("sys.modules", {"librosa": librosa}):
            load_audio(path)
        librosa.load.assert_called_once()
