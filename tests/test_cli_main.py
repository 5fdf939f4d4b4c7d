"""Tests for the CLI entry point."""

from __future__ import annotations

import json

import pytest
import yaml

from verilens.__main__ import main as cli_main
from verilens.config import API_KEY_ENV, AppConfig
from verilens.models.base import ClassifierError, ModelInfo, Verdict, VerdictKind
from verilens.models.registry import ModelRegistry


class StubClassifier:
    calls: list[str | None] = []

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config

    def info(self) -> ModelInfo:
        return ModelInfo(identifier="stub", display_name="Stub", description="Test double")

    def load(self) -> None:
        return None

    def classify(self, data, mime_type, credential=None):
        StubClassifier.calls.append(credential)
        if data == b"broken":
            raise ClassifierError("Remote inference failed: 500")
        return Verdict(
            verdict=VerdictKind.AI_GENERATED,
            confidence=88,
            reasoning="Warped text in the background.",
            indicators=["warped text"],
        )


class DummyStore:
    def load(self) -> AppConfig:
        return AppConfig(model_name="stub")


@pytest.fixture
def headless_env(monkeypatch):
    StubClassifier.calls = []
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    monkeypatch.setattr("verilens.__main__.SettingsStore", DummyStore)
    monkeypatch.setitem(ModelRegistry._factories, "stub", StubClassifier)


def test_cli_lists_models(monkeypatch, capsys):
    model_info = ModelInfo(
        identifier="demo",
        display_name="Demo",
        description="Example",
        requires_credential=True,
        tags=("remote",),
    )
    monkeypatch.setattr(
        "verilens.__main__.ModelRegistry.list_model_infos",
        lambda: [model_info],
    )

    cli_main(["--list-models"])

    payload = json.loads(capsys.readouterr().out)
    assert payload[0]["identifier"] == "demo"
    assert payload[0]["requires_credential"] is True
    assert payload[0]["tags"] == ["remote"]


def test_cli_requires_input_in_headless_mode():
    with pytest.raises(SystemExit):
        cli_main(["--headless"])


def test_cli_rejects_inputs_without_images(headless_env, tmp_path):
    (tmp_path / "notes.txt").write_text("hello", encoding="utf-8")

    with pytest.raises(SystemExit):
        cli_main(["--headless", "--input", str(tmp_path)])


def test_cli_runs_headless_job(headless_env, tmp_path, capsys):
    good = tmp_path / "good.jpg"
    good.write_bytes(b"fake")
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"broken")

    cli_main(["--headless", "--input", str(good), "--input", str(bad), "--api-key", "k"])

    payload = {entry["name"]: entry for entry in json.loads(capsys.readouterr().out)}
    assert payload["good.jpg"]["status"] == "completed"
    assert payload["good.jpg"]["verdict"] == "ai_generated"
    assert payload["good.jpg"]["confidence"] == 88
    assert payload["good.jpg"]["path"] == str(good)
    assert payload["bad.png"]["status"] == "error"
    assert payload["bad.png"]["error"] == "Remote inference failed: 500"
    assert payload["bad.png"]["mime_type"] == "image/png"
    assert StubClassifier.calls == ["k", "k"]


def test_cli_uses_environment_key_when_none_saved(headless_env, monkeypatch, tmp_path, capsys):
    monkeypatch.setenv(API_KEY_ENV, "from-env")
    image = tmp_path / "image.jpg"
    image.write_bytes(b"fake")

    cli_main(["--headless", "--input", str(image)])

    capsys.readouterr()
    assert StubClassifier.calls == ["from-env"]


def test_cli_writes_report(headless_env, tmp_path, capsys):
    image = tmp_path / "image.webp"
    image.write_bytes(b"fake")
    report = tmp_path / "out" / "report.yaml"

    cli_main(["--headless", "--input", str(image), "--report", str(report)])

    capsys.readouterr()
    data = yaml.safe_load(report.read_text(encoding="utf-8"))
    assert data["images"][0]["name"] == "image.webp"
    assert data["images"][0]["verdict_label"] == "AI Generated"


def test_cli_rejects_invalid_concurrency(headless_env, tmp_path):
    image = tmp_path / "image.jpg"
    image.write_bytes(b"fake")

    with pytest.raises(SystemExit):
        cli_main(["--headless", "--input", str(image), "--max-concurrency", "99"])
