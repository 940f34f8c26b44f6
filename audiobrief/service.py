"""
AudioBrief Semantic Service Client

Sends the raw audio to a Gemini-compatible `generateContent` endpoint and
returns the model's text. Parsing is not done here: the raw text goes to
ResponseReconciler untouched, truncated or not.

Request contract:
    - inline audio (base64) with a MIME hint
    - fixed instruction
    - JSON response schema whose propertyOrdering places transcription last

Failure modes (all raised as ServiceUnavailable):
    - missing API key
    - network error, timeout, non-2xx status
    - no candidate text, or an envelope not shaped like a generateContent response
"""

import base64
import logging
from typing import Any

import requests

from audiobrief.config import AnalysisSettings


logger = logging.getLogger(__name__)

FIELD_ORDER = ["summary", "silenceClassification", "anomalies", "transcription"]

INSTRUCTION = """\
Act as an expert sound engineer and meeting secretary.
Perform the following tasks on this audio file:

1. Summary: first provide a detailed written summary (meeting minutes or programme summary) in {language}.
2. Silence analysis: if you detect silences, classify them as "natural" (thinking pauses, dramatic effect) \
or "technical" (signal loss, silence over 5 seconds without context). Use "none" if there is no silence.
3. Anomalies: list any subjective audio anomaly (background noise, distortion).
4. Transcription: provide a verbatim transcription at the end.

Answer in JSON only."""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "silenceClassification": {
            "type": "STRING",
            "enum": ["natural", "technical", "none"],
        },
        "anomalies": {"type": "ARRAY", "items": {"type": "STRING"}},
        "transcription": {"type": "STRING"},
    },
    "required": FIELD_ORDER,
    # Transcription last: a token-limit cut only damages the final field
    "propertyOrdering": FIELD_ORDER,
}


class ServiceUnavailable(Exception):
    """Semantic service call failed. Non-fatal: the pipeline degrades."""
    pass


def build_request(audio_bytes: bytes, mime_type: str, language: str = "French") -> dict:
    """Build the generateContent request body."""
    return {
        "contents": [
            {
                "parts": [
                    {
                        "inlineData": {
                            "mimeType": mime_type,
                            "data": base64.b64encode(audio_bytes).decode("ascii"),
                        }
                    },
                    {"text": INSTRUCTION.format(language=language)},
                ]
            }
        ],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def extract_text(payload: Any) -> str:
    """
    Concatenate the text parts of the first candidate.

    Raises:
        ServiceUnavailable: If the payload carries no text or is not
            shaped like a generateContent response.
    """
    if not isinstance(payload, dict):
        raise ServiceUnavailable(f"Malformed response envelope: {type(payload).__name__}")
    candidates = payload.get("candidates") or []
    if not candidates:
        raise ServiceUnavailable("No response from AI")
    if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
        raise ServiceUnavailable("Malformed response envelope: candidates")
    content = candidates[0].get("content") or {}
    if not isinstance(content, dict):
        raise ServiceUnavailable("Malformed response envelope: content")
    parts = content.get("parts") or []
    if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
        raise ServiceUnavailable("Malformed response envelope: parts")
    text = "".join(str(part.get("text") or "") for part in parts)
    if not text:
        raise ServiceUnavailable("No response from AI")
    return text


class SemanticService:
    """
    HTTP client for the semantic analysis model.

    Args:
        settings: API key, model, endpoint, summary language
        session: requests-compatible session (injected in tests)
    """

    def __init__(self, settings: AnalysisSettings, session: requests.Session | None = None):
        self.settings = settings
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.settings.endpoint.rstrip('/')}/models/{self.settings.model}:generateContent"

    def analyze(self, audio_bytes: bytes, mime_type: str, timeout: float | None = None) -> str:
        """
        Request a semantic analysis of the recording.

        Args:
            audio_bytes: Raw container bytes, as uploaded
            mime_type: MIME hint (see audio.guess_mime_type)
            timeout: Seconds; defaults to settings.service_timeout

        Returns:
            Raw response text (possibly truncated JSON).

        Raises:
            ServiceUnavailable: On any transport, HTTP or empty-response failure.
        """
        if not self.settings.api_key:
            raise ServiceUnavailable("API key not configured")

        body = build_request(audio_bytes, mime_type, self.settings.summary_language)
        timeout = self.settings.service_timeout if timeout is None else timeout
        logger.info(
            "Requesting semantic analysis (%s, %d bytes, model %s)",
            mime_type,
            len(audio_bytes),
            self.settings.model,
        )
        try:
            response = self.session.post(
                self.url,
                json=body,
                headers={"x-goog-api-key": self.settings.api_key},
                timeout=timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise ServiceUnavailable(f"Semantic service request failed: {e}") from e
        except ValueError as e:
            raise ServiceUnavailable(f"Semantic service returned a non-JSON envelope: {e}") from e

        return extract_text(payload)
