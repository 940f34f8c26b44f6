"""
AudioBrief Response Reconciliation Tests

Coverage:
- FULL: complete, schema-valid responses
- SALVAGED: responses truncated inside the transcription value
- FALLBACK: unrecoverable responses (summary scraped when possible)
- Upstream failure: absent responses
- reconcile() never raises
"""

import json

import pytest

from audiobrief.models import Completeness, SilenceType
from audiobrief.stages.semantic import (
    PARSE_ERROR_ANOMALY,
    SERVICE_FAILURE_ANOMALY,
    SUMMARY_UNAVAILABLE,
    TRANSCRIPTION_FORMAT_ERROR,
    TRANSCRIPTION_TRUNCATED,
    ResponseReconciler,
)
from tests.conftest import semantic_payload


@pytest.fixture(scope="module")
def reconciler() -> ResponseReconciler:
    return ResponseReconciler()


# =============================================================================
# Test: Full Parse
# =============================================================================


class TestFullParse:
    """Complete responses parse strictly."""

    def test_complete_response(self, reconciler):
        result = reconciler.reconcile(json.dumps(semantic_payload()))

        assert result.completeness is Completeness.FULL
        assert result.summary == "Weekly editorial meeting."
        assert result.silence_classification is SilenceType.TECHNICAL
        assert result.anomalies == ("background hum",)
        assert result.transcription == "Good morning everyone, let us begin."

    @pytest.mark.parametrize("kind", ["natural", "technical", "none"])
    def test_every_classification(self, reconciler, kind):
        result = reconciler.reconcile(json.dumps(semantic_payload(silenceClassification=kind)))
        assert result.silence_classification is SilenceType(kind)

    def test_empty_anomalies(self, reconciler):
        result = reconciler.reconcile(json.dumps(semantic_payload(anomalies=[])))
        assert result.anomalies == ()
        assert result.completeness is Completeness.FULL

    def test_unicode_content(self, reconciler):
        payload = semantic_payload(summary="Réunion de rédaction — ordre du jour")
        result = reconciler.reconcile(json.dumps(payload, ensure_ascii=False))
        assert result.summary == "Réunion de rédaction — ordre du jour"


# =============================================================================
# Test: Salvage
# =============================================================================


class TestSalvage:
    """Truncation inside the transcription value is recovered."""

    def test_truncated_inside_transcription(self, reconciler):
        full = json.dumps(semantic_payload())
        truncated = full[: full.index("let us")]

        result = reconciler.reconcile(truncated)

        assert result.completeness is Completeness.SALVAGED
        assert result.summary == "Weekly editorial meeting."
        assert result.silence_classification is SilenceType.TECHNICAL
        assert result.anomalies == ("background hum",)
        assert result.transcription == TRANSCRIPTION_TRUNCATED

    def test_truncated_pretty_printed_response(self, reconciler):
        full = json.dumps(semantic_payload(silenceClassification="natural"), indent=2)
        truncated = full[: full.index("everyone")]

        result = reconciler.reconcile(truncated)

        assert result.completeness is Completeness.SALVAGED
        assert result.silence_classification is SilenceType.NATURAL

    def test_truncated_right_after_transcription_key(self, reconciler):
        full = json.dumps(semantic_payload())
        truncated = full[: full.index('"transcription"') + len('"transcription"')]

        result = reconciler.reconcile(truncated)
        assert result.completeness is Completeness.SALVAGED

    def test_anomalies_containing_commas(self, reconciler):
        payload = semantic_payload(anomalies=["hum, 50 Hz", "clipping, left channel"])
        full = json.dumps(payload)
        truncated = full[: full.index("Good morning") + 4]

        result = reconciler.reconcile(truncated)

        assert result.completeness is Completeness.SALVAGED
        assert result.anomalies == ("hum, 50 Hz", "clipping, left channel")


# =============================================================================
# Test: Fallback
# =============================================================================


class TestFallback:
    """Unrecoverable responses degrade to fixed placeholders."""

    def test_truncated_inside_summary(self, reconciler):
        result = reconciler.reconcile('{"summary": "Weekly edit')

        assert result.completeness is Completeness.FALLBACK
        assert result.summary == SUMMARY_UNAVAILABLE
        assert result.transcription == TRANSCRIPTION_FORMAT_ERROR
        assert result.anomalies == (PARSE_ERROR_ANOMALY,)
        assert result.silence_classification is SilenceType.NONE

    def test_truncated_inside_anomalies_scrapes_summary(self, reconciler):
        raw = '{"summary": "Short news bulletin.", "silenceClassification": "natural", "anomalies": ["hu'

        result = reconciler.reconcile(raw)

        assert result.completeness is Completeness.FALLBACK
        assert result.summary == "Short news bulletin."
        assert result.silence_classification is SilenceType.NONE

    def test_invalid_classification_is_not_salvaged(self, reconciler):
        """Schema violations before transcription cannot be salvaged."""
        raw = json.dumps(semantic_payload(silenceClassification="loud"))

        result = reconciler.reconcile(raw)

        assert result.completeness is Completeness.FALLBACK
        assert result.summary == "Weekly editorial meeting."
        assert result.silence_classification is SilenceType.NONE

    def test_missing_field_is_not_full(self, reconciler):
        payload = semantic_payload()
        del payload["anomalies"]
        result = reconciler.reconcile(json.dumps(payload))
        assert result.completeness is Completeness.FALLBACK

    def test_escaped_quotes_in_scraped_summary(self, reconciler):
        raw = '{"summary": "The host said \\"hello\\" twice.", "silenceClass'
        result = reconciler.reconcile(raw)
        assert result.summary == 'The host said "hello" twice.'

    def test_transcription_key_without_preceding_comma(self, reconciler):
        result = reconciler.reconcile('{"transcription": "cut')
        assert result.completeness is Completeness.FALLBACK
        assert result.summary == SUMMARY_UNAVAILABLE

    def test_non_object_json(self, reconciler):
        result = reconciler.reconcile("[1, 2, 3]")
        assert result.completeness is Completeness.FALLBACK

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "null",
            "not json at all",
            '{"summary": 42}',
            "}{",
            '"transcription",,,',
            "[" * 100000,
            '{"summary": "deep", "transcription": ' + "[" * 100000,
        ],
    )
    def test_never_raises(self, reconciler, raw):
        result = reconciler.reconcile(raw)
        assert result.completeness is Completeness.FALLBACK
        assert result.silence_classification is SilenceType.NONE


# =============================================================================
# Test: Upstream Failure
# =============================================================================


class TestUpstreamFailure:
    """Absent responses yield the service-failure result."""

    def test_absent_response(self, reconciler):
        result = reconciler.reconcile(None)

        assert result.completeness is Completeness.FALLBACK
        assert result.silence_classification is SilenceType.NONE
        assert result.anomalies == (SERVICE_FAILURE_ANOMALY,)

    def test_reconcile_failure_matches_absent(self, reconciler):
        assert reconciler.reconcile_failure("timeout") == reconciler.reconcile(None)
