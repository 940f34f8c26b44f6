"""
Stage: Signal Analysis (SampleWindowAnalyzer)

Responsibilities:
    - Duration and peak absolute amplitude of channel 0
    - Silence intervals: contiguous runs with |x| < threshold whose length
      strictly exceeds min_silence_seconds * sample_rate

Invariants:
    - One linear pass, O(n) time, O(k) extra space for k reported intervals
    - Shorter gaps are natural pauses and are never reported
    - A run reaching end-of-buffer is judged by the same length rule
    - Same input = identical metrics
"""

import logging

import numpy as np

from audiobrief.audio import DecodeError
from audiobrief.models import SampleBuffer, SignalMetrics, SilenceInterval


logger = logging.getLogger(__name__)

SILENCE_THRESHOLD = 0.01  # ~ -40 dBFS
MIN_SILENCE_SECONDS = 2.0


def find_silent_runs(magnitudes: np.ndarray, threshold: float) -> list[tuple[int, int]]:
    """
    Find contiguous runs of sub-threshold samples.

    Args:
        magnitudes: Absolute sample values (1D)
        threshold: A sample is silent when strictly below this value

    Returns:
        List of (start_sample, end_sample) tuples (end is exclusive)
    """
    quiet = magnitudes < threshold
    # Pad with loud sentinels so every run has a rising and a falling edge
    edges = np.diff(np.concatenate(([False], quiet, [False])).astype(np.int8))
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return [(int(s), int(e)) for s, e in zip(starts, ends)]


class SampleWindowAnalyzer:
    """
    Sample-domain silence and amplitude analysis.

    Args:
        silence_threshold: Amplitude below which a sample is silent
        min_silence_seconds: Minimum run duration (exclusive) to report
    """

    def __init__(
        self,
        silence_threshold: float = SILENCE_THRESHOLD,
        min_silence_seconds: float = MIN_SILENCE_SECONDS,
    ):
        self.silence_threshold = silence_threshold
        self.min_silence_seconds = min_silence_seconds

    def analyze(self, buffer: SampleBuffer) -> SignalMetrics:
        """
        Analyze channel 0 of a decoded buffer.

        Raises:
            DecodeError: If the buffer has no channels, no samples,
                a non-positive sample rate, or non-finite values.
        """
        if buffer.channel_count < 1:
            raise DecodeError("No audio channels detected")
        if buffer.frame_count == 0:
            raise DecodeError("Audio buffer is empty")
        if buffer.sample_rate <= 0:
            raise DecodeError(
                "Sample rate must be positive", {"sample_rate": buffer.sample_rate}
            )

        samples = np.asarray(buffer.channel(0), dtype=np.float64)
        if not np.all(np.isfinite(samples)):
            raise DecodeError("Audio buffer contains non-finite values (NaN or Inf)")

        magnitudes = np.abs(samples)
        peak = min(float(magnitudes.max()), 1.0)

        min_samples = self.min_silence_seconds * buffer.sample_rate
        intervals = tuple(
            SilenceInterval(start_sample=start, length_samples=end - start)
            for start, end in find_silent_runs(magnitudes, self.silence_threshold)
            if (end - start) > min_samples
        )

        metrics = SignalMetrics(
            duration_seconds=len(samples) / buffer.sample_rate,
            peak_amplitude=peak,
            silence_intervals=intervals,
            sample_rate=buffer.sample_rate,
        )
        logger.debug(
            "Signal analysis: %.2fs, peak %.4f, %d silence interval(s)",
            metrics.duration_seconds,
            metrics.peak_amplitude,
            len(intervals),
        )
        return metrics
