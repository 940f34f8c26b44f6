"""
AudioBrief Semantic Service Client Tests

Coverage:
- Request body: inline audio, MIME hint, field ordering contract
- Response text extraction
- Failure modes raise ServiceUnavailable
"""

import base64

import pytest
import requests

from audiobrief.config import AnalysisSettings
from audiobrief.service import (
    FIELD_ORDER,
    SemanticService,
    ServiceUnavailable,
    build_request,
    extract_text,
)
from tests.conftest import StubResponse, StubSession, gemini_envelope


@pytest.fixture
def settings() -> AnalysisSettings:
    return AnalysisSettings(api_key="test-key", model="test-model", endpoint="https://example.test/v1")


class TestBuildRequest:
    """Request body contract."""

    def test_inline_audio_and_mime(self):
        body = build_request(b"\x00\x01audio", "audio/wav")
        inline = body["contents"][0]["parts"][0]["inlineData"]

        assert inline["mimeType"] == "audio/wav"
        assert base64.b64decode(inline["data"]) == b"\x00\x01audio"

    def test_transcription_is_ordered_last(self):
        schema = build_request(b"x", "audio/mp3")["generationConfig"]["responseSchema"]

        assert schema["propertyOrdering"] == FIELD_ORDER
        assert FIELD_ORDER == ["summary", "silenceClassification", "anomalies", "transcription"]
        assert set(schema["properties"]) == set(FIELD_ORDER)

    def test_json_response_requested(self):
        body = build_request(b"x", "audio/mp3")
        assert body["generationConfig"]["responseMimeType"] == "application/json"

    def test_summary_language_in_instruction(self):
        body = build_request(b"x", "audio/mp3", language="German")
        assert "in German" in body["contents"][0]["parts"][1]["text"]


class TestExtractText:
    """Candidate text extraction."""

    def test_joins_parts(self):
        payload = {"candidates": [{"content": {"parts": [{"text": '{"a"'}, {"text": ": 1}"}]}}]}
        assert extract_text(payload) == '{"a": 1}'

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"candidates": []},
            {"candidates": [{}]},
            {"candidates": [{"content": {"parts": []}}]},
            {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
        ],
    )
    def test_empty_payload_raises(self, payload):
        with pytest.raises(ServiceUnavailable, match="No response"):
            extract_text(payload)

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            "text",
            {"candidates": "oops"},
            {"candidates": ["oops"]},
            {"candidates": [{"content": "oops"}]},
            {"candidates": [{"content": {"parts": "oops"}}]},
            {"candidates": [{"content": {"parts": ["oops"]}}]},
        ],
    )
    def test_malformed_envelope_raises(self, payload):
        with pytest.raises(ServiceUnavailable, match="Malformed response envelope"):
            extract_text(payload)


class TestSemanticService:
    """HTTP client behaviour against a stub session."""

    def test_successful_call(self, settings):
        session = StubSession(StubResponse(gemini_envelope('{"summary": "ok"}')))
        service = SemanticService(settings, session=session)

        text = service.analyze(b"audio", "audio/wav", timeout=5.0)

        assert text == '{"summary": "ok"}'
        call = session.calls[0]
        assert call["url"] == "https://example.test/v1/models/test-model:generateContent"
        assert call["headers"] == {"x-goog-api-key": "test-key"}
        assert call["timeout"] == 5.0

    def test_default_timeout_from_settings(self):
        settings = AnalysisSettings(api_key="k", service_timeout=42.0)
        session = StubSession(StubResponse(gemini_envelope("x")))
        SemanticService(settings, session=session).analyze(b"a", "audio/mp3")
        assert session.calls[0]["timeout"] == 42.0

    def test_missing_api_key(self):
        session = StubSession(StubResponse(gemini_envelope("x")))
        service = SemanticService(AnalysisSettings(api_key=None), session=session)

        with pytest.raises(ServiceUnavailable, match="API key"):
            service.analyze(b"a", "audio/mp3")
        assert session.calls == []

    def test_network_error(self, settings):
        session = StubSession(exc=requests.ConnectionError("connection refused"))
        with pytest.raises(ServiceUnavailable, match="request failed"):
            SemanticService(settings, session=session).analyze(b"a", "audio/mp3")

    def test_timeout(self, settings):
        session = StubSession(exc=requests.Timeout("read timed out"))
        with pytest.raises(ServiceUnavailable):
            SemanticService(settings, session=session).analyze(b"a", "audio/mp3")

    def test_http_error_status(self, settings):
        response = StubResponse({"error": {}}, status_code=403, error=requests.HTTPError("403 Forbidden"))
        with pytest.raises(ServiceUnavailable, match="403"):
            SemanticService(settings, session=StubSession(response)).analyze(b"a", "audio/mp3")

    def test_non_json_envelope(self, settings):
        response = StubResponse("<html>gateway error</html>")
        with pytest.raises(ServiceUnavailable, match="non-JSON"):
            SemanticService(settings, session=StubSession(response)).analyze(b"a", "audio/mp3")

    def test_list_envelope(self, settings):
        session = StubSession(StubResponse([]))
        with pytest.raises(ServiceUnavailable, match="Malformed response envelope"):
            SemanticService(settings, session=session).analyze(b"a", "audio/mp3")
