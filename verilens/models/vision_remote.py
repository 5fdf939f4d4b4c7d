"""Vision-language classifiers reached over HTTP (Gemini and Ollama)."""

from __future__ import annotations

import base64
import json
import logging
import re
from collections.abc import Sequence
from typing import Any

import requests
from pydantic import ValidationError
from requests import Response, Session

from ..config import AppConfig
from .base import (
    ClassifierError,
    ClassifierTimeoutError,
    ImageClassifier,
    MissingCredentialError,
    ModelInfo,
    Verdict,
    VerdictKind,
)
from .registry import ModelRegistry

logger = logging.getLogger(__name__)


_JSON_OBJECT_PATTERN = re.compile(r"\{.*?\}", re.DOTALL)
_VISION_KEYWORDS = {
    "vision",
    "multimodal",
    "vl",
    "llava",
    "minicpm",
    "gemma",
    "qwen",
    "moondream",
    "pixtral",
    "image",
}

FORENSIC_PROMPT = " ".join(
    [
        "You are a world-class digital forensics expert and AI image detection specialist.",
        "Analyze the provided image meticulously for any signs of:",
        "1. AI generation (Midjourney, DALL-E or Stable Diffusion artifacts, glossiness,",
        "anatomical errors, structural inconsistencies).",
        "2. Digital tampering or modification (Photoshop usage, warping, cloning,",
        "inconsistent shadows or lighting, noise pattern irregularities).",
        "3. Authenticity (natural camera noise, consistent physics, realistic textures).",
        "Provide a strict verdict, a confidence score between 0 and 100 based on the evidence,",
        "a summary of your reasoning, and a list of key visual indicators you found.",
    ]
)

# JSON schema shared by backends that accept standard schemas (Ollama ``format``).
VERDICT_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "verdict": {"type": "string", "enum": [kind.value for kind in VerdictKind]},
        "confidence": {"type": "integer", "minimum": 0, "maximum": 100},
        "reasoning": {"type": "string"},
        "indicators": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["verdict", "confidence", "reasoning", "indicators"],
}

# Same contract expressed in the Generative Language API's OpenAPI subset.
GEMINI_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "verdict": {
            "type": "STRING",
            "enum": [kind.value for kind in VerdictKind],
            "description": (
                "The conclusion on whether the image is original, AI-generated, or modified."
            ),
        },
        "confidence": {
            "type": "INTEGER",
            "description": "Confidence score between 0 and 100.",
        },
        "reasoning": {
            "type": "STRING",
            "description": "A detailed explanation of why this verdict was reached.",
        },
        "indicators": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": (
                "List of specific visual artifacts or signs detected (e.g. 'warped fingers', "
                "'inconsistent lighting', 'metadata anomalies')."
            ),
        },
    },
    "required": ["verdict", "confidence", "reasoning", "indicators"],
}


def _encode_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class BaseRemoteClassifier(ImageClassifier):
    """Common functionality for remote multimodal classifiers."""

    def __init__(
        self,
        *,
        identifier: str,
        display_name: str,
        description: str,
        backend: str,
        config: AppConfig | None,
        requires_credential: bool,
        tags: Sequence[str],
    ) -> None:
        self._backend = backend
        self._config = config or AppConfig()
        self._info = ModelInfo(
            identifier=identifier,
            display_name=display_name,
            description=description,
            requires_credential=requires_credential,
            tags=tuple(tags),
        )
        self._session: Session | None = None

    def info(self) -> ModelInfo:
        return self._info

    def load(self) -> None:
        self._session = requests.Session()

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def classify(self, data: bytes, mime_type: str, credential: str | None = None) -> Verdict:
        if self._info.requires_credential and not credential:
            raise MissingCredentialError()
        if not data:
            raise ClassifierError("Image is empty.")
        raw_text = self._call_backend(_encode_bytes(data), mime_type, FORENSIC_PROMPT, credential)
        payload = self._parse_json_response(raw_text)
        return self._to_verdict(payload)

    # ----- Backend dispatch ------------------------------------------------

    def _call_backend(
        self,
        encoded_image: str,
        mime_type: str,
        prompt: str,
        credential: str | None,
    ) -> str:
        raise NotImplementedError

    # ----- Response handling -----------------------------------------------

    def _parse_json_response(self, text: str) -> dict[str, Any]:
        cleaned = text.strip()
        if cleaned.startswith("```"):
            cleaned = self._strip_markdown(cleaned)

        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as err:
            matches = list(_JSON_OBJECT_PATTERN.finditer(cleaned))
            if not matches:
                raise ClassifierError(
                    f"{self._info.display_name} returned non-JSON output: {cleaned[:200]!r}"
                ) from err
            merged: dict[str, Any] = {}
            for match in matches:
                try:
                    fragment = json.loads(match.group(0))
                except json.JSONDecodeError:
                    continue
                if isinstance(fragment, dict):
                    merged.update(fragment)
            if not merged:
                raise ClassifierError(
                    f"{self._info.display_name} produced invalid JSON: {cleaned[:200]!r}"
                ) from err
            return merged
        if not isinstance(payload, dict):
            raise ClassifierError(f"{self._info.display_name} returned a non-object payload.")
        return payload

    @staticmethod
    def _strip_markdown(text: str) -> str:
        stripped = text.strip()
        if not stripped.startswith("```"):
            return stripped
        parts = stripped.split("```")
        # The second segment holds the payload, possibly prefixed with a language tag.
        if len(parts) < 3:
            return stripped
        candidate = parts[1]
        if "\n" in candidate:
            _, remainder = candidate.split("\n", 1)
            return remainder.strip()
        return parts[-1].strip()

    def _to_verdict(self, payload: dict[str, Any]) -> Verdict:
        try:
            return Verdict.model_validate(payload)
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
            raise ClassifierError(
                f"{self._info.display_name} returned an invalid verdict ({location}: {first['msg']})."
            ) from exc

    # ----- HTTP helpers ----------------------------------------------------

    def _headers(self, credential: str | None) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _session_post(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        credential: str | None = None,
        timeout: float | None = None,
    ) -> Response:
        if self._session is None:
            raise ClassifierError("HTTP session not initialised.")
        effective_timeout = timeout or self._config.remote_timeout
        try:
            response = self._session.post(
                url,
                json=payload,
                headers=self._headers(credential),
                timeout=effective_timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise ClassifierTimeoutError(
                f"{self._backend} request timed out after {effective_timeout}s."
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise ClassifierError(f"Failed to contact {self._backend} backend: {exc}") from exc
        if response.status_code >= 400:
            raise ClassifierError(
                f"{self._backend} backend returned HTTP {response.status_code}: "
                f"{_error_message(response)}"
            )
        return response

    def _session_get(self, url: str, *, timeout: float | None = None) -> Response:
        if self._session is None:
            raise ClassifierError("HTTP session not initialised.")
        effective_timeout = timeout or self._config.remote_timeout
        try:
            response = self._session.get(url, headers=self._headers(None), timeout=effective_timeout)
        except requests.exceptions.Timeout as exc:
            raise ClassifierTimeoutError(
                f"{self._backend} request timed out after {effective_timeout}s."
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise ClassifierError(f"Failed to contact {self._backend} backend: {exc}") from exc
        if response.status_code >= 400:
            raise ClassifierError(
                f"{self._backend} backend returned HTTP {response.status_code}: "
                f"{_error_message(response)}"
            )
        return response


def _error_message(response: Response) -> str:
    """Extract the provider's error text from a failed response."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return response.text


class GeminiClassifier(BaseRemoteClassifier):
    """Forensic analysis through the Google Generative Language REST API."""

    def __init__(self, config: AppConfig | None = None) -> None:
        super().__init__(
            identifier="remote.gemini",
            display_name="Gemini Vision",
            description="Sends each image to Google's Gemini models with a fixed verdict schema.",
            backend="gemini",
            config=config,
            requires_credential=True,
            tags=("remote", "gemini", "vision", "http"),
        )

    def _headers(self, credential: str | None) -> dict[str, str]:
        headers = super()._headers(credential)
        if credential:
            headers["x-goog-api-key"] = credential
        return headers

    def _call_backend(
        self,
        encoded_image: str,
        mime_type: str,
        prompt: str,
        credential: str | None,
    ) -> str:
        endpoint = f"{self._config.gemini_base_url}/models/{self._config.gemini_model}:generateContent"
        payload = {
            "contents": [
                {
                    "parts": [
                        {"inline_data": {"mime_type": mime_type, "data": encoded_image}},
                        {"text": prompt},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": GEMINI_RESPONSE_SCHEMA,
                "temperature": self._config.temperature,
            },
        }
        response = self._session_post(endpoint, payload, credential=credential)
        data = response.json()
        text = self._extract_text(data)
        if not text:
            raise ClassifierError("No response from Gemini")
        return text

    @staticmethod
    def _extract_text(data: Any) -> str:
        if not isinstance(data, dict):
            return ""
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            if isinstance(feedback, dict) and feedback.get("blockReason"):
                raise ClassifierError(f"Gemini blocked the request: {feedback['blockReason']}")
            return ""
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return ""
        return "".join(
            part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
        )


class OllamaClassifier(BaseRemoteClassifier):
    """Forensic analysis using a multimodal model served by Ollama."""

    def __init__(self, config: AppConfig | None = None) -> None:
        super().__init__(
            identifier="remote.ollama",
            display_name="Ollama Vision",
            description=(
                "Leverages Ollama-hosted multimodal models such as LLaVA, Qwen2.5-VL, or Gemma."
            ),
            backend="ollama",
            config=config,
            requires_credential=False,
            tags=("remote", "ollama", "vision", "http"),
        )

    def _headers(self, credential: str | None) -> dict[str, str]:
        headers = super()._headers(credential)
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return headers

    def _call_backend(
        self,
        encoded_image: str,
        mime_type: str,
        prompt: str,
        credential: str | None,
    ) -> str:
        endpoint = f"{self._config.remote_base_url}/api/generate"
        payload = {
            "model": self._config.remote_model,
            "prompt": prompt,
            "images": [encoded_image],
            "format": VERDICT_JSON_SCHEMA,
            "stream": False,
            "options": {"temperature": self._config.temperature},
        }
        try:
            response = self._session_post(endpoint, payload, credential=credential)
        except ClassifierTimeoutError:
            extended_timeout = self._config.remote_timeout + 60.0
            logger.info(
                "Ollama request exceeded %.1fs; retrying once with %.1fs to allow "
                "the model to load.",
                self._config.remote_timeout,
                extended_timeout,
            )
            response = self._session_post(
                endpoint, payload, credential=credential, timeout=extended_timeout
            )
        data = response.json()
        if "error" in data:
            raise ClassifierError(f"Ollama backend error: {data['error']}")
        text = data.get("response")
        if not isinstance(text, str):
            raise ClassifierError("Ollama backend returned an unexpected payload.")
        return text

    # ----- Discovery helpers ----------------------------------------------

    def discover_remote_models(self) -> list[str]:
        """Return remote models that appear to support image analysis."""
        try:
            models = self._fetch_remote_model_metadata()
        except ClassifierError as exc:
            logger.info("Unable to query %s backend for models: %s", self._backend, exc)
            return []
        return [name for name, metadata in models if self._is_vision_candidate(name, metadata)]

    def _fetch_remote_model_metadata(self) -> list[tuple[str, dict[str, Any]]]:
        endpoint = f"{self._config.remote_base_url}/api/tags"
        payload = self._session_get(endpoint).json()
        models = payload.get("models")
        if not isinstance(models, list):
            return []
        results: list[tuple[str, dict[str, Any]]] = []
        for item in models:
            if not isinstance(item, dict):
                continue
            name = item.get("model") or item.get("name")
            if not isinstance(name, str):
                continue
            details = item.get("details")
            results.append((name, details if isinstance(details, dict) else {}))
        return results

    @staticmethod
    def _is_vision_candidate(name: str, metadata: dict[str, Any]) -> bool:
        families = metadata.get("families")
        if isinstance(families, (list, tuple)):
            lowered = " ".join(str(item).lower() for item in families)
            if any(keyword in lowered for keyword in _VISION_KEYWORDS):
                return True
        lowered_name = name.lower()
        return any(keyword in lowered_name for keyword in _VISION_KEYWORDS)


def _register() -> None:
    ModelRegistry.register("remote.gemini", lambda config=None: GeminiClassifier(config=config))
    ModelRegistry.register("remote.ollama", lambda config=None: OllamaClassifier(config=config))


_register()
