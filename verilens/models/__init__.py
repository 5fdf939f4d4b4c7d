"""Classifier registry, result types and remote backends."""

from .base import (
    ClassifierError,
    ClassifierTimeoutError,
    ErrorKind,
    ImageClassifier,
    MissingCredentialError,
    ModelInfo,
    Verdict,
    VerdictKind,
)
from .registry import ModelRegistry
from .vision_remote import GeminiClassifier, OllamaClassifier

__all__ = [
    "ClassifierError",
    "ClassifierTimeoutError",
    "ErrorKind",
    "GeminiClassifier",
    "ImageClassifier",
    "MissingCredentialError",
    "ModelInfo",
    "ModelRegistry",
    "OllamaClassifier",
    "Verdict",
    "VerdictKind",
]
