"""
AudioBrief Data Model

Immutable records exchanged between pipeline stages.

This module provides:
- SampleBuffer: Decoded samples plus sample rate
- SilenceInterval / SignalMetrics: DSP stage output
- SemanticResult: Reconciled model output, tagged with Completeness
- UnifiedAnalysis: Merged record handed to presentation/storage
- NamingContext / ProcessedFile: Naming stage input and output

INVARIANTS:
- All records are frozen dataclasses
- Sequences are stored as tuples
- SilenceInterval.length_samples > 0
- SignalMetrics.peak_amplitude in [0, 1]
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import numpy as np


# =============================================================================
# Enumerations
# =============================================================================


class SilenceType(str, Enum):
    """Classification of detected silence."""

    NATURAL = "natural"
    TECHNICAL = "technical"
    NONE = "none"


class Completeness(str, Enum):
    """How degraded the semantic parse was."""

    FULL = "full"
    SALVAGED = "salvaged"
    FALLBACK = "fallback"


# =============================================================================
# Signal Domain
# =============================================================================


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """
    Decoded audio, normalized to [-1.0, 1.0].

    Attributes:
        samples: Array shaped (frames, channels). A 1-D array is one channel.
        sample_rate: Sample rate in Hz
    """
    samples: np.ndarray
    sample_rate: int

    @property
    def channel_count(self) -> int:
        if self.samples.ndim == 1:
            return 1 if self.samples.size else 0
        return int(self.samples.shape[1])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    def channel(self, index: int) -> np.ndarray:
        """Return one channel as a 1-D view."""
        if self.samples.ndim == 1:
            if index != 0:
                raise IndexError(f"channel {index} out of range for mono buffer")
            return self.samples
        return self.samples[:, index]


@dataclass(frozen=True)
class SilenceInterval:
    """A contiguous run of sub-threshold samples longer than the minimum."""
    start_sample: int
    length_samples: int

    def __post_init__(self):
        if self.start_sample < 0:
            raise ValueError(f"start_sample must be >= 0, got {self.start_sample}")
        if self.length_samples <= 0:
            raise ValueError(f"length_samples must be > 0, got {self.length_samples}")

    @property
    def end_sample(self) -> int:
        """Exclusive end index."""
        return self.start_sample + self.length_samples

    def start_seconds(self, sample_rate: int) -> float:
        return self.start_sample / sample_rate

    def duration_seconds(self, sample_rate: int) -> float:
        return self.length_samples / sample_rate

    def to_dict(self, sample_rate: int) -> dict[str, Any]:
        return {
            "start_sample": self.start_sample,
            "length_samples": self.length_samples,
            "start": self.start_seconds(sample_rate),
            "end": self.end_sample / sample_rate,
        }


@dataclass(frozen=True)
class SignalMetrics:
    """Output of the sample-domain analysis."""
    duration_seconds: float
    peak_amplitude: float
    silence_intervals: tuple[SilenceInterval, ...]
    sample_rate: int

    @property
    def silence_detected(self) -> bool:
        return len(self.silence_intervals) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_sec": self.duration_seconds,
            "sample_rate_hz": self.sample_rate,
            "peak_amplitude": self.peak_amplitude,
            "silence_intervals": [
                interval.to_dict(self.sample_rate) for interval in self.silence_intervals
            ],
        }


# =============================================================================
# Semantic Domain
# =============================================================================


@dataclass(frozen=True)
class SemanticResult:
    """
    Semantic characterization of a recording.

    `completeness` is the discriminant of the parse ladder:
        FULL      strict parse succeeded
        SALVAGED  fields before `transcription` recovered from a truncated payload
        FALLBACK  fixed placeholders (parse failure or service failure)
    """
    summary: str
    transcription: str
    anomalies: tuple[str, ...]
    silence_classification: SilenceType
    completeness: Completeness


@dataclass(frozen=True)
class UnifiedAnalysis:
    """
    Merged DSP + semantic record.

    Built only by AnalysisPipeline.run(). `silence_detected` comes from DSP,
    `silence_type` from the model. silence_detected=True with
    silence_type=NONE means "silence present, type unknown".
    """
    duration: float
    silence_detected: bool
    silence_type: SilenceType
    silence_count: int
    transcription: str
    summary: str
    anomalies: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "silence_detected": self.silence_detected,
            "silence_type": self.silence_type.value,
            "silence_count": self.silence_count,
            "transcription": self.transcription,
            "summary": self.summary,
            "anomalies": list(self.anomalies),
        }


# =============================================================================
# Naming
# =============================================================================


@dataclass(frozen=True)
class NamingContext:
    """Inputs resolved for one filename generation."""
    sanitized_base_name: str
    timestamp: datetime


@dataclass(frozen=True)
class ProcessedFile:
    """Naming outcome handed to storage collaborators."""
    original_name: str
    final_name: str
    size_bytes: int
    storage_path: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_name": self.original_name,
            "final_name": self.final_name,
            "size_bytes": self.size_bytes,
            "storage_path": self.storage_path,
        }
