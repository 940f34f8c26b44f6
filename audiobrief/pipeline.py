"""
AudioBrief Pipeline Orchestrator

PIPELINE STAGES (fixed order):

    1. decode     → audiobrief.audio
    2. signal     → audiobrief.stages.signal      ┐ issued concurrently,
    3. semantic   → audiobrief.service            ┘ joined before reconciling
    4. reconcile  → audiobrief.stages.semantic
    5. naming     → audiobrief.stages.naming
    6. merge      → AnalysisPipeline.run()

INVARIANTS:
    - Only DecodeError aborts a request
    - The semantic call is bounded by settings.service_timeout; timeout,
      cancellation or ServiceUnavailable reconcile an absent response
    - DSP decides whether silence is present, the model decides its type
    - No state is shared between requests
"""

import logging
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable

from audiobrief import __version__
from audiobrief.audio import DecodeError, decode_bytes, guess_mime_type
from audiobrief.config import AnalysisSettings, ProcessingConfig
from audiobrief.models import (
    Completeness,
    ProcessedFile,
    SemanticResult,
    SignalMetrics,
    SilenceType,
    UnifiedAnalysis,
)
from audiobrief.service import SemanticService, ServiceUnavailable
from audiobrief.stages.naming import NamingEngine
from audiobrief.stages.semantic import ResponseReconciler
from audiobrief.stages.signal import SampleWindowAnalyzer
from audiobrief.utils import now_iso


logger = logging.getLogger(__name__)

# (name, progress label)
STAGE_ORDER = [
    ("decode", "Decoding source audio..."),
    ("signal", "Analyzing signal topology..."),
    ("semantic", "Running neural analysis..."),
    ("reconcile", "Reconciling analyses..."),
    ("naming", "Transcoding, editing & renaming..."),
]
STAGE_LABELS = dict(STAGE_ORDER)

StageCallback = Callable[[str, str], None]


# =============================================================================
# Silence Alert State
# =============================================================================


class SilenceAlert(str, Enum):
    """How downstream alerting should read a UnifiedAnalysis."""

    CLEAR = "clear"
    NATURAL = "natural"
    TECHNICAL = "technical"
    UNCLASSIFIED = "unclassified"  # silence present, type unknown


def silence_alert_state(analysis: UnifiedAnalysis) -> SilenceAlert:
    """
    Resolve the alert state of a merged analysis.

    DSP presence wins: no detected silence is CLEAR whatever the model said.
    Detected silence with type NONE is UNCLASSIFIED, never CLEAR.
    """
    if not analysis.silence_detected:
        return SilenceAlert.CLEAR
    if analysis.silence_type is SilenceType.TECHNICAL:
        return SilenceAlert.TECHNICAL
    if analysis.silence_type is SilenceType.NATURAL:
        return SilenceAlert.NATURAL
    return SilenceAlert.UNCLASSIFIED


def should_alert(analysis: UnifiedAnalysis, config: ProcessingConfig) -> bool:
    """True when an alert address is set and the silence is technical or unclassified."""
    if not config.alert_email:
        return False
    return silence_alert_state(analysis) in (SilenceAlert.TECHNICAL, SilenceAlert.UNCLASSIFIED)


# =============================================================================
# Result & Report
# =============================================================================


@dataclass(frozen=True)
class PipelineResult:
    """Everything a completed request hands to presentation and storage."""
    analysis: UnifiedAnalysis
    signal: SignalMetrics
    completeness: Completeness
    processed: ProcessedFile

    def to_dict(self) -> dict[str, Any]:
        return build_report(self)


def build_error(code: str, message: str, detail: dict | None = None) -> dict:
    """
    Build structured error object for reports.

    Args:
        code: Error code (e.g., "DECODE_ERROR")
        message: Human-readable error message
        detail: Optional additional details
    """
    error: dict = {"code": code, "message": message}
    if detail is not None:
        error["detail"] = detail
    return error


def build_report(
    result: PipelineResult | None,
    errors: Iterable[dict] = (),
) -> dict[str, Any]:
    """
    Build the JSON report for a request (see schemas/report.schema.json).

    A failed request has result=None and at least one error.
    """
    analysis = None
    if result is not None:
        analysis = result.analysis.to_dict()
        analysis["alert"] = silence_alert_state(result.analysis).value

    return {
        "version": __version__,
        "generated_at": now_iso(),
        "success": result is not None,
        "analysis": analysis,
        "signal": result.signal.to_dict() if result is not None else None,
        "completeness": result.completeness.value if result is not None else None,
        "file": result.processed.to_dict() if result is not None else None,
        "errors": list(errors),
    }


# =============================================================================
# AnalysisPipeline
# =============================================================================


class AnalysisPipeline:
    """
    Orchestrates signal analysis, semantic analysis, reconciliation and naming.

    Args:
        settings: Thresholds, credentials and timeout
        service: Semantic service client; None skips the call
            (the request then reconciles an absent response)
        naming: Naming engine; inject one with a fixed clock in tests
    """

    def __init__(
        self,
        settings: AnalysisSettings | None = None,
        service: SemanticService | None = None,
        naming: NamingEngine | None = None,
    ):
        self.settings = settings or AnalysisSettings()
        self.service = service
        self.analyzer = SampleWindowAnalyzer(
            silence_threshold=self.settings.silence_threshold,
            min_silence_seconds=self.settings.min_silence_seconds,
        )
        self.reconciler = ResponseReconciler()
        self.naming = naming or NamingEngine()

    @classmethod
    def from_settings(cls, settings: AnalysisSettings, offline: bool = False) -> "AnalysisPipeline":
        """Build a pipeline with an HTTP service client unless offline."""
        service = None if offline else SemanticService(settings)
        return cls(settings=settings, service=service)

    # -------------------------------------------------------------------------
    # Merge policy
    # -------------------------------------------------------------------------

    def run(self, signal: SignalMetrics, semantic: SemanticResult) -> UnifiedAnalysis:
        """
        Merge DSP metrics and the semantic result.

        silence_detected and silence_count come from DSP only; silence_type
        comes from the model only, even when it is a fallback NONE.
        """
        return UnifiedAnalysis(
            duration=signal.duration_seconds,
            silence_detected=len(signal.silence_intervals) > 0,
            silence_type=semantic.silence_classification,
            silence_count=len(signal.silence_intervals),
            transcription=semantic.transcription,
            summary=semantic.summary,
            anomalies=semantic.anomalies,
        )

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    def process(
        self,
        source: Path,
        config: ProcessingConfig,
        on_stage: StageCallback | None = None,
        now: datetime | None = None,
    ) -> PipelineResult:
        """
        Process an audio file end to end.

        Raises:
            DecodeError: If the file is missing or cannot be decoded.
        """
        source = Path(source)
        if not source.is_file():
            raise DecodeError(f"Input file not found: {source}", {"source": str(source)})
        return self.process_bytes(source.read_bytes(), source.name, config, on_stage, now)

    def process_bytes(
        self,
        audio_bytes: bytes,
        original_name: str,
        config: ProcessingConfig,
        on_stage: StageCallback | None = None,
        now: datetime | None = None,
    ) -> PipelineResult:
        """
        Process an in-memory upload end to end.

        Args:
            audio_bytes: Raw container bytes
            original_name: Uploaded file name (naming input and MIME hint)
            config: Processing policy
            on_stage: Called with (stage_name, label) as each stage starts
            now: Naming instant; defaults to the naming engine clock

        Raises:
            DecodeError: If the payload cannot be decoded.
        """
        notify = on_stage or (lambda name, label: None)

        notify("decode", STAGE_LABELS["decode"])
        buffer = decode_bytes(audio_bytes, label=original_name)

        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="audiobrief")
        try:
            notify("signal", STAGE_LABELS["signal"])
            signal_future = executor.submit(self.analyzer.analyze, buffer)

            semantic_future = None
            if self.service is not None:
                notify("semantic", STAGE_LABELS["semantic"])
                semantic_future = executor.submit(
                    self.service.analyze,
                    audio_bytes,
                    guess_mime_type(original_name),
                    self.settings.service_timeout,
                )
            started = time.monotonic()

            signal = signal_future.result()
            raw_text = self._join_semantic(semantic_future, started)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        notify("reconcile", STAGE_LABELS["reconcile"])
        semantic = self.reconciler.reconcile(raw_text)

        notify("naming", STAGE_LABELS["naming"])
        final_name = self.naming.generate(original_name, config.naming_pattern, config.extension, now)

        analysis = self.run(signal, semantic)
        if should_alert(analysis, config):
            logger.warning(
                "Silence alert (%s) for %s, notify %s",
                silence_alert_state(analysis).value,
                original_name,
                config.alert_email,
            )

        return PipelineResult(
            analysis=analysis,
            signal=signal,
            completeness=semantic.completeness,
            processed=ProcessedFile(
                original_name=original_name,
                final_name=final_name,
                size_bytes=len(audio_bytes),
                storage_path=config.storage_path,
            ),
        )

    def _join_semantic(self, future: Future | None, started: float) -> str | None:
        """Wait for the semantic call within what is left of the timeout."""
        if future is None:
            logger.warning("Semantic service disabled, using fallback analysis")
            return None

        remaining = max(0.0, self.settings.service_timeout - (time.monotonic() - started))
        try:
            return future.result(timeout=remaining)
        except FuturesTimeout:
            future.cancel()
            logger.error("Semantic service timed out after %.1fs", self.settings.service_timeout)
        except CancelledError:
            logger.error("Semantic service call cancelled")
        except ServiceUnavailable as e:
            logger.error("Semantic service error: %s", e)
        except Exception:
            logger.exception("Unexpected semantic service failure")
        return None
