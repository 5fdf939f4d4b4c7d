"""Abstract interfaces and result types for image classifiers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence

from pydantic import BaseModel, Field, field_validator


class VerdictKind(str, Enum):
    """Possible conclusions about an image's provenance."""

    ORIGINAL = "original"
    AI_GENERATED = "ai_generated"
    MODIFIED = "modified"
    UNCERTAIN = "uncertain"

    @property
    def label(self) -> str:
        return _VERDICT_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> "VerdictKind":
        """Accept either the canonical value or the display label."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for kind in cls:
            if text in (kind.value, kind.label.lower()):
                return kind
        normalised = text.replace("-", "_").replace(" ", "_")
        for kind in cls:
            if normalised == kind.value:
                return kind
        raise ValueError(f"Unknown verdict: {value!r}")


_VERDICT_LABELS = {
    VerdictKind.ORIGINAL: "Original",
    VerdictKind.AI_GENERATED: "AI Generated",
    VerdictKind.MODIFIED: "Modified/Tampered",
    VerdictKind.UNCERTAIN: "Uncertain",
}


class Verdict(BaseModel):
    """Structured result returned by a classifier for one image."""

    verdict: VerdictKind
    confidence: int = Field(ge=0, le=100)
    reasoning: str
    indicators: list[str] = Field(default_factory=list)

    @field_validator("verdict", mode="before")
    @classmethod
    def _parse_verdict(cls, value: Any) -> VerdictKind:
        return VerdictKind.parse(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _round_confidence(cls, value: Any) -> Any:
        # Some backends answer 87.5 even when asked for an integer.
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("indicators", mode="before")
    @classmethod
    def _clean_indicators(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ValueError("indicators must be a list of strings")
        return [str(item).strip() for item in value if str(item).strip()]

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ErrorKind(str, Enum):
    """Categories of failures surfaced to callers."""

    MISSING_CREDENTIAL = "missing-credential"
    CAPABILITY_FAILURE = "capability-failure"
    TIMEOUT = "timeout"
    NOT_FOUND = "not-found"


class ClassifierError(RuntimeError):
    """Raised when a classifier cannot produce a verdict for an image."""

    kind = ErrorKind.CAPABILITY_FAILURE


class MissingCredentialError(ClassifierError):
    """Raised when no API credential could be resolved before dispatch."""

    kind = ErrorKind.MISSING_CREDENTIAL

    def __init__(self, message: str = "API Key is missing. Please configure it in settings.") -> None:
        super().__init__(message)


class ClassifierTimeoutError(ClassifierError):
    """Raised when the remote backend does not answer in time."""

    kind = ErrorKind.TIMEOUT


@dataclass(slots=True)
class ModelInfo:
    """Metadata describing an available classifier implementation."""

    identifier: str
    display_name: str
    description: str
    requires_credential: bool = False
    tags: Sequence[str] = ()


class ImageClassifier(Protocol):
    """Interface that all classifiers must satisfy."""

    def info(self) -> ModelInfo:
        """Return metadata describing the classifier."""

    def load(self) -> None:
        """Perform any expensive initialisation."""

    def classify(self, data: bytes, mime_type: str, credential: str | None = None) -> Verdict:
        """Judge whether the image is original, AI generated or modified."""
