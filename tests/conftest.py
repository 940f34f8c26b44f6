"""
AudioBrief Test Configuration

Provides synthetic buffers, WAV files and a stub HTTP session.
"""

import json
import subprocess
import sys
from datetime import datetime
from pathlib import Path

import numpy as np
import pytest

from audiobrief import audio
from audiobrief.models import SampleBuffer


TEST_SAMPLE_RATE = 8000
FIXED_NOW = datetime(2024, 3, 7, 14, 5)


def run_cli(*args: str, cwd: str | None = None, env: dict | None = None) -> subprocess.CompletedProcess:
    """Run audiobrief CLI as subprocess."""
    return subprocess.run(
        [sys.executable, "-m", "audiobrief", *args],
        capture_output=True,
        text=True,
        cwd=cwd,
        env=env,
    )


def tone(duration_sec: float, sr: int = TEST_SAMPLE_RATE, amplitude: float = 0.5) -> np.ndarray:
    """Constant-amplitude square-ish tone, never below the silence threshold."""
    n = int(round(duration_sec * sr))
    signs = np.where(np.arange(n) % 2 == 0, 1.0, -1.0)
    return amplitude * signs


def silence(duration_sec: float, sr: int = TEST_SAMPLE_RATE) -> np.ndarray:
    return np.zeros(int(round(duration_sec * sr)))


def make_buffer(*segments: np.ndarray, sr: int = TEST_SAMPLE_RATE) -> SampleBuffer:
    """Concatenate segments into a mono SampleBuffer shaped (frames, 1)."""
    samples = np.concatenate(segments) if segments else np.zeros(0)
    return SampleBuffer(samples=samples.reshape(-1, 1), sample_rate=sr)


def create_test_wav(path: Path, *segments: np.ndarray, sr: int = TEST_SAMPLE_RATE) -> None:
    """
    Write a WAV made of the given segments.

    Defaults to 1s tone, 3s silence, 1s tone.
    """
    if not segments:
        segments = (tone(1.0, sr), silence(3.0, sr), tone(1.0, sr))
    audio.write_wav(path, np.concatenate(segments), sr)


def semantic_payload(**overrides) -> dict:
    """A complete semantic response in contract field order."""
    payload = {
        "summary": "Weekly editorial meeting.",
        "silenceClassification": "technical",
        "anomalies": ["background hum"],
        "transcription": "Good morning everyone, let us begin.",
    }
    payload.update(overrides)
    return payload


class StubResponse:
    def __init__(self, payload=None, status_code: int = 200, error: Exception | None = None):
        self.payload = payload
        self.status_code = status_code
        self.error = error

    def raise_for_status(self):
        if self.error is not None:
            raise self.error

    def json(self):
        if isinstance(self.payload, str):
            return json.loads(self.payload)
        return self.payload


class StubSession:
    """Records POST calls and replays a canned response or exception."""

    def __init__(self, response: StubResponse | None = None, exc: Exception | None = None):
        self.response = response
        self.exc = exc
        self.calls: list[dict] = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self.exc is not None:
            raise self.exc
        return self.response


def gemini_envelope(text: str) -> dict:
    """Wrap model text the way generateContent returns it."""
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def test_wav_path(tmp_path) -> Path:
    """Create a 5s WAV with one 3s silence and return its path."""
    wav_path = tmp_path / "Morning Show 01.wav"
    create_test_wav(wav_path)
    return wav_path
