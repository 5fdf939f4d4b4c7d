"""Tests for the dynamic classifier registry."""

from __future__ import annotations

import pytest

from verilens.config import AppConfig
from verilens.models.base import ImageClassifier, ModelInfo
from verilens.models.registry import ModelRegistry


class DummyClassifier(ImageClassifier):
    def __init__(self, *, called_with: list[AppConfig | None]) -> None:
        self.called_with = called_with
        self.loaded = False

    def info(self) -> ModelInfo:
        return ModelInfo(identifier="dummy", display_name="Dummy", description="")

    def load(self) -> None:
        self.loaded = True

    def classify(self, data, mime_type, credential=None):  # pragma: no cover - not needed
        raise NotImplementedError


@pytest.fixture(autouse=True)
def reset_registry():
    original = ModelRegistry._factories.copy()
    original_bootstrapped = ModelRegistry._bootstrap_complete
    yield
    ModelRegistry._factories = original
    ModelRegistry._bootstrap_complete = original_bootstrapped


def test_register_and_list_models():
    ModelRegistry._factories = {}
    ModelRegistry._bootstrap_complete = True

    ModelRegistry.register("demo", lambda: DummyClassifier(called_with=[]))
    infos = ModelRegistry.list_model_infos()
    assert infos[0].identifier == "dummy"


def test_get_passes_config_loads_and_handles_missing():
    ModelRegistry._factories = {}
    ModelRegistry._bootstrap_complete = True
    captured: list[AppConfig | None] = []

    def factory(config: AppConfig | None = None):
        captured.append(config)
        return DummyClassifier(called_with=captured)

    ModelRegistry.register("demo", factory)

    config = AppConfig(model_name="demo")
    instance = ModelRegistry.get("demo", config=config)
    assert captured[0] == config
    assert isinstance(instance, DummyClassifier)
    assert instance.loaded is True

    with pytest.raises(KeyError):
        ModelRegistry.get("missing")


def test_get_handles_factories_without_config():
    ModelRegistry._factories = {}
    ModelRegistry._bootstrap_complete = True
    called = []

    def factory():
        called.append("ok")
        return DummyClassifier(called_with=[])

    ModelRegistry.register("demo", factory)
    ModelRegistry.get("demo", config=AppConfig())
    assert called == ["ok"]


def test_builtin_backends_are_registered():
    identifiers = {info.identifier for info in ModelRegistry.list_model_infos()}
    assert {"remote.gemini", "remote.ollama"} <= identifiers


def test_unregister_is_idempotent():
    ModelRegistry.register("temp", lambda: DummyClassifier(called_with=[]))
    ModelRegistry.unregister("temp")
    ModelRegistry.unregister("temp")
    assert "temp" not in ModelRegistry._factories
