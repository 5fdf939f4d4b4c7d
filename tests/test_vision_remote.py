import json
from types import SimpleNamespace

import pytest
import requests
from verilens.config import AppConfig
from verilens.models.base import (
    ClassifierError,
    ClassifierTimeoutError,
    ErrorKind,
    MissingCredentialError,
    VerdictKind,
)
from verilens.models.vision_remote import (
    GEMINI_RESPONSE_SCHEMA,
    BaseRemoteClassifier,
    GeminiClassifier,
    OllamaClassifier,
)

VALID_PAYLOAD = {
    "verdict": "ai_generated",
    "confidence": 88,
    "reasoning": "Hands show six fingers.",
    "indicators": ["warped fingers", "glossy skin"],
}


class DummyResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = json.dumps(payload) if not isinstance(payload, str) else payload

    def json(self):
        if isinstance(self._payload, str):
            raise ValueError("not json")
        return self._payload


class RecordingSession:
    def __init__(self, response: DummyResponse) -> None:
        self.response = response
        self.calls: list[dict[str, object]] = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        return self.response


class DummyRemoteClassifier(BaseRemoteClassifier):
    def __init__(self, response: str, *, requires_credential: bool = False):
        super().__init__(
            identifier="remote.dummy",
            display_name="Dummy Remote",
            description="",
            backend="dummy",
            config=AppConfig(),
            requires_credential=requires_credential,
            tags=("dummy",),
        )
        self._response = response
        self.calls: list[tuple[str, str, str | None]] = []

    def _call_backend(self, encoded_image, mime_type, prompt, credential):
        self.calls.append((encoded_image, mime_type, credential))
        return self._response


def _gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_classify_parses_backend_payload():
    classifier = DummyRemoteClassifier(json.dumps(VALID_PAYLOAD))

    verdict = classifier.classify(b"\x89PNG", "image/png")

    assert verdict.verdict == VerdictKind.AI_GENERATED
    assert verdict.confidence == 88
    assert verdict.indicators == ["warped fingers", "glossy skin"]
    assert classifier.calls[0][1] == "image/png"


def test_classify_requires_credential_before_calling_backend():
    classifier = DummyRemoteClassifier(json.dumps(VALID_PAYLOAD), requires_credential=True)

    with pytest.raises(MissingCredentialError) as excinfo:
        classifier.classify(b"data", "image/jpeg", None)

    assert excinfo.value.kind == ErrorKind.MISSING_CREDENTIAL
    assert classifier.calls == []


def test_classify_rejects_out_of_range_confidence():
    payload = {**VALID_PAYLOAD, "confidence": 140}
    classifier = DummyRemoteClassifier(json.dumps(payload))

    with pytest.raises(ClassifierError) as excinfo:
        classifier.classify(b"data", "image/jpeg")

    assert "confidence" in str(excinfo.value)
    assert excinfo.value.kind == ErrorKind.CAPABILITY_FAILURE


@pytest.mark.parametrize("indicators", [7, {"warped": "text"}])
def test_classify_rejects_non_list_indicators(indicators):
    payload = {**VALID_PAYLOAD, "indicators": indicators}
    classifier = DummyRemoteClassifier(json.dumps(payload))

    with pytest.raises(ClassifierError) as excinfo:
        classifier.classify(b"data", "image/jpeg")

    assert "returned an invalid verdict" in str(excinfo.value)
    assert "indicators" in str(excinfo.value)


def test_classify_accepts_display_labels():
    payload = {**VALID_PAYLOAD, "verdict": "Modified/Tampered"}
    classifier = DummyRemoteClassifier(json.dumps(payload))

    assert classifier.classify(b"data", "image/jpeg").verdict == VerdictKind.MODIFIED


def test_parse_json_response_handles_code_fences():
    classifier = DummyRemoteClassifier("")
    payload = classifier._parse_json_response('```json\n{"verdict":"original"}\n```')
    assert payload == {"verdict": "original"}


def test_parse_json_response_merges_multiple_objects():
    classifier = DummyRemoteClassifier("")
    raw = 'Sure! {"verdict":"uncertain","confidence":40},\n{"reasoning":"blurry"}'
    payload = classifier._parse_json_response(raw)
    assert payload == {"verdict": "uncertain", "confidence": 40, "reasoning": "blurry"}


def test_parse_json_response_rejects_plain_text():
    classifier = DummyRemoteClassifier("")
    with pytest.raises(ClassifierError):
        classifier._parse_json_response("I cannot help with that.")


def test_gemini_sends_inline_image_schema_and_key():
    classifier = GeminiClassifier(AppConfig(gemini_model="gemini-test"))
    session = RecordingSession(DummyResponse(_gemini_body(json.dumps(VALID_PAYLOAD))))
    classifier._session = session

    verdict = classifier.classify(b"abc", "image/webp", "secret")

    call = session.calls[0]
    assert call["url"].endswith("/models/gemini-test:generateContent")
    assert call["headers"]["x-goog-api-key"] == "secret"
    parts = call["json"]["contents"][0]["parts"]
    assert parts[0]["inline_data"] == {"mime_type": "image/webp", "data": "YWJj"}
    generation = call["json"]["generationConfig"]
    assert generation["responseMimeType"] == "application/json"
    assert generation["responseSchema"] == GEMINI_RESPONSE_SCHEMA
    assert verdict.confidence == 88


def test_gemini_requires_credential():
    classifier = GeminiClassifier(AppConfig())
    session = RecordingSession(DummyResponse(_gemini_body("{}")))
    classifier._session = session

    with pytest.raises(MissingCredentialError):
        classifier.classify(b"abc", "image/png", None)
    assert session.calls == []


def test_gemini_empty_response_is_failure():
    classifier = GeminiClassifier(AppConfig())
    classifier._session = RecordingSession(DummyResponse({"candidates": []}))

    with pytest.raises(ClassifierError, match="No response from Gemini"):
        classifier.classify(b"abc", "image/png", "key")


def test_gemini_http_error_surfaces_provider_message():
    classifier = GeminiClassifier(AppConfig())
    body = {"error": {"code": 400, "message": "API key not valid."}}
    classifier._session = RecordingSession(DummyResponse(body, status_code=400))

    with pytest.raises(ClassifierError, match="API key not valid"):
        classifier.classify(b"abc", "image/png", "bad-key")


def test_session_post_maps_timeout():
    class TimeoutSession:
        @staticmethod
        def post(*args, **kwargs):
            raise requests.exceptions.Timeout()

    classifier = GeminiClassifier(AppConfig())
    classifier._session = TimeoutSession()

    with pytest.raises(ClassifierTimeoutError) as excinfo:
        classifier._session_post("http://example", {}, timeout=1)
    assert excinfo.value.kind == ErrorKind.TIMEOUT


def test_session_post_wraps_connection_errors():
    class BrokenSession:
        @staticmethod
        def post(*args, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

    classifier = OllamaClassifier(AppConfig())
    classifier._session = BrokenSession()

    with pytest.raises(ClassifierError, match="Failed to contact ollama"):
        classifier._session_post("http://example", {})


def test_session_post_requires_load():
    with pytest.raises(ClassifierError):
        GeminiClassifier(AppConfig())._session_post("http://example", {})


def test_ollama_passes_schema_and_optional_bearer():
    classifier = OllamaClassifier(AppConfig(remote_model="llava:13b"))
    session = RecordingSession(DummyResponse({"response": json.dumps(VALID_PAYLOAD)}))
    classifier._session = session

    verdict = classifier.classify(b"abc", "image/jpeg", None)

    call = session.calls[0]
    assert call["url"].endswith("/api/generate")
    assert call["json"]["model"] == "llava:13b"
    assert call["json"]["images"] == ["YWJj"]
    assert call["json"]["format"]["required"] == [
        "verdict",
        "confidence",
        "reasoning",
        "indicators",
    ]
    assert "Authorization" not in call["headers"]
    assert verdict.verdict == VerdictKind.AI_GENERATED

    classifier.classify(b"abc", "image/jpeg", "token")
    assert session.calls[1]["headers"]["Authorization"] == "Bearer token"


def test_ollama_retries_once_after_timeout():
    attempts: list[float] = []

    class SlowThenReady:
        @staticmethod
        def post(url, **kwargs):
            attempts.append(kwargs["timeout"])
            if len(attempts) == 1:
                raise requests.exceptions.Timeout()
            return DummyResponse({"response": json.dumps(VALID_PAYLOAD)})

    config = AppConfig(model_name="remote.ollama", remote_timeout=5)
    classifier = OllamaClassifier(config)
    classifier._session = SlowThenReady()

    classifier.classify(b"abc", "image/jpeg")

    assert attempts == [5, 65]


def test_ollama_error_payload_is_failure():
    classifier = OllamaClassifier(AppConfig())
    classifier._session = RecordingSession(DummyResponse({"error": "model not found"}))

    with pytest.raises(ClassifierError, match="model not found"):
        classifier.classify(b"abc", "image/jpeg")


def test_discover_remote_models_filters():
    classifier = OllamaClassifier(AppConfig())
    body = {
        "models": [
            {"model": "llava:13b", "details": {"families": ["llama", "clip"]}},
            {"model": "llama2:7b", "details": {"families": ["llama"]}},
            {"name": "qwen2.5vl:7b"},
        ]
    }
    classifier._session = SimpleNamespace(get=lambda *args, **kwargs: DummyResponse(body))

    assert classifier.discover_remote_models() == ["llava:13b", "qwen2.5vl:7b"]


def test_discover_remote_models_handles_errors(monkeypatch):
    classifier = OllamaClassifier(AppConfig())

    def broken(self):
        raise ClassifierError("boom")

    monkeypatch.setattr(OllamaClassifier, "_fetch_remote_model_metadata", broken)
    assert classifier.discover_remote_models() == []


def test_load_and_close_manage_session():
    classifier = GeminiClassifier(AppConfig())
    classifier.load()
    assert classifier._session is not None
    classifier.close()
    assert classifier._session is None
