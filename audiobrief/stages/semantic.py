"""
Stage: Semantic Reconciliation (ResponseReconciler)

Turns the raw text returned by the semantic service into a SemanticResult.

Parse ladder (first success wins):
    1. FULL      strict JSON parse, validated against semantic_response.schema.json
    2. SALVAGED  cut before the last "transcription" key, close the object,
                 strict parse of the prefix fields
    3. FALLBACK  regex scrape of "summary", fixed placeholders elsewhere

Invariants:
    - reconcile() never raises; it always returns a SemanticResult
    - The salvage step relies on the request's field order:
      summary, silenceClassification, anomalies, transcription
    - An absent response yields the upstream-failure result
"""

import copy
import json
import logging
import re
from typing import Any

import jsonschema
from jsonschema.exceptions import best_match

from audiobrief.models import Completeness, SemanticResult, SilenceType
from audiobrief.utils import load_schema


logger = logging.getLogger(__name__)

TRANSCRIPTION_KEY = '"transcription"'

TRANSCRIPTION_TRUNCATED = "transcription truncated — source too large to render in full"
TRANSCRIPTION_FORMAT_ERROR = "formatting error (truncated response)"
SUMMARY_UNAVAILABLE = "summary unavailable"
PARSE_ERROR_ANOMALY = "JSON parsing error"

SERVICE_FAILURE_SUMMARY = "unable to generate summary"
SERVICE_FAILURE_TRANSCRIPTION = "AI analysis error (check the API key or the file format)"
SERVICE_FAILURE_ANOMALY = "AI analysis failed"

# Tolerates escaped quotes inside the value
_SUMMARY_RE = re.compile(r'"summary"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL)


class MalformedResponse(Exception):
    """Raised internally when a strict parse fails. Never leaves reconcile()."""
    pass


def _prefix_schema(schema: dict) -> dict:
    """Same contract without the trailing transcription field."""
    prefix = copy.deepcopy(schema)
    prefix["required"] = [f for f in prefix["required"] if f != "transcription"]
    prefix["properties"].pop("transcription", None)
    return prefix


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except json.JSONDecodeError:
        return value


class ResponseReconciler:
    """Parses, salvages or replaces a semantic service response."""

    def __init__(self):
        schema = load_schema("semantic_response")
        self._full_validator = jsonschema.Draft7Validator(schema)
        self._prefix_validator = jsonschema.Draft7Validator(_prefix_schema(schema))

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def reconcile(self, raw_text: str | None) -> SemanticResult:
        """
        Reconcile a raw service response.

        Args:
            raw_text: Response text, or None when the call failed or timed out

        Returns:
            SemanticResult tagged FULL, SALVAGED or FALLBACK.
        """
        if raw_text is None:
            return self.reconcile_failure("no response from semantic service")

        try:
            data = self._parse_strict(raw_text, self._full_validator)
        except MalformedResponse as e:
            logger.warning("Semantic response parse failed (likely truncated), attempting recovery: %s", e)
        else:
            return SemanticResult(
                summary=data["summary"],
                transcription=data["transcription"],
                anomalies=tuple(data["anomalies"]),
                silence_classification=SilenceType(data["silenceClassification"]),
                completeness=Completeness.FULL,
            )

        salvaged = self._salvage(raw_text)
        if salvaged is not None:
            return salvaged

        return self._fallback(raw_text)

    def reconcile_failure(self, reason: str) -> SemanticResult:
        """Fixed result for an upstream failure (network, auth, timeout, absent)."""
        logger.error("Semantic analysis unavailable: %s", reason)
        return SemanticResult(
            summary=SERVICE_FAILURE_SUMMARY,
            transcription=SERVICE_FAILURE_TRANSCRIPTION,
            anomalies=(SERVICE_FAILURE_ANOMALY,),
            silence_classification=SilenceType.NONE,
            completeness=Completeness.FALLBACK,
        )

    # -------------------------------------------------------------------------
    # Parse ladder
    # -------------------------------------------------------------------------

    def _parse_strict(self, text: str, validator: jsonschema.Draft7Validator) -> dict[str, Any]:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, RecursionError) as e:
            raise MalformedResponse(f"invalid JSON: {e}") from e

        error = best_match(validator.iter_errors(data))
        if error is not None:
            path = ".".join(str(p) for p in error.absolute_path) or "(root)"
            raise MalformedResponse(f"{path}: {error.message}")
        return data

    def _salvage(self, raw_text: str) -> SemanticResult | None:
        key_index = raw_text.rfind(TRANSCRIPTION_KEY)
        if key_index == -1:
            return None
        comma_index = raw_text.rfind(",", 0, key_index)
        if comma_index == -1:
            return None

        try:
            data = self._parse_strict(raw_text[:comma_index] + "}", self._prefix_validator)
        except MalformedResponse as e:
            logger.error("Recovery failed: %s", e)
            return None

        logger.warning("Recovered semantic fields from a truncated response")
        return SemanticResult(
            summary=data["summary"],
            transcription=TRANSCRIPTION_TRUNCATED,
            anomalies=tuple(data["anomalies"]),
            silence_classification=SilenceType(data["silenceClassification"]),
            completeness=Completeness.SALVAGED,
        )

    def _fallback(self, raw_text: str) -> SemanticResult:
        match = _SUMMARY_RE.search(raw_text)
        summary = _unescape(match.group(1)) if match else SUMMARY_UNAVAILABLE
        return SemanticResult(
            summary=summary,
            transcription=TRANSCRIPTION_FORMAT_ERROR,
            anomalies=(PARSE_ERROR_ANOMALY,),
            silence_classification=SilenceType.NONE,
            completeness=Completeness.FALLBACK,
        )
