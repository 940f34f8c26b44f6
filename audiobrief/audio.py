"""
AudioBrief Audio I/O

Decoded audio source for the pipeline.

Library Stack:
    - soundfile: Container decoding (libsndfile-backed)
    - numpy: Sample arrays

INVARIANTS:
    - Decoded samples are float64 in [-1, 1], shaped (frames, channels)
    - No resampling, no downmix: the analyzer reads channel 0 at the native rate
    - Unreadable or empty sources raise DecodeError
"""

import io
import mimetypes
from pathlib import Path

import numpy as np
import soundfile as sf

from audiobrief.models import SampleBuffer


DEFAULT_MIME_TYPE = "audio/mp3"

# mimetypes has no entry for some audio containers on minimal systems
_EXTRA_MIME_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
}


class DecodeError(Exception):
    """
    Raised when a source cannot provide usable samples.

    Fatal to the request; surfaced to the caller without retry.

    Attributes:
        detail: Structured context (path, channel count, ...)
    """

    def __init__(self, message: str, detail: dict | None = None):
        self.detail = detail or {}
        super().__init__(message)


# =============================================================================
# Decoding
# =============================================================================


def _decode(source, label: str) -> SampleBuffer:
    try:
        samples, sr = sf.read(source, dtype="float64", always_2d=True)
    except (sf.SoundFileError, RuntimeError) as e:
        raise DecodeError(f"Failed to decode audio: {e}", {"source": label, "error": str(e)}) from e

    buffer = SampleBuffer(samples=samples, sample_rate=int(sr))
    if buffer.channel_count < 1:
        raise DecodeError("No audio channels detected", {"source": label})
    if buffer.frame_count == 0:
        raise DecodeError("Audio source is empty", {"source": label})
    return buffer


def read_audio(path: Path) -> SampleBuffer:
    """
    Decode an audio file.

    Args:
        path: Path to any container libsndfile can read (WAV, FLAC, OGG, MP3)

    Returns:
        SampleBuffer with all channels

    Raises:
        DecodeError: If the file is unreadable, has no channels or no frames
    """
    path = Path(path)
    if not path.is_file():
        raise DecodeError(f"Input file not found: {path}", {"source": str(path)})
    return _decode(path, str(path))


def decode_bytes(data: bytes, label: str = "<bytes>") -> SampleBuffer:
    """Decode an in-memory audio payload. Same contract as read_audio()."""
    if not data:
        raise DecodeError("Audio source is empty", {"source": label})
    return _decode(io.BytesIO(data), label)


def write_wav(path: Path, samples: np.ndarray, sample_rate: int) -> None:
    """
    Write samples to WAV file as PCM 16-bit.

    Note:
        - Hard clips to [-1, 1] before writing
        - No dithering
    """
    clipped = np.clip(samples, -1.0, 1.0)
    sf.write(path, clipped, sample_rate, subtype="PCM_16")


# =============================================================================
# MIME Hint
# =============================================================================


def guess_mime_type(filename: str) -> str:
    """
    MIME type hint for the semantic service.

    Falls back to audio/mp3 when the extension is unknown.
    """
    suffix = Path(filename).suffix.lower()
    if suffix in _EXTRA_MIME_TYPES:
        return _EXTRA_MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(filename)
    if guessed and guessed.startswith("audio/"):
        return guessed
    return DEFAULT_MIME_TYPE
