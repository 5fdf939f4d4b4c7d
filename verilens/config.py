"""Application-wide configuration models and persistence helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

# Environment variable read by the CLI and GUI as the ambient default credential.
API_KEY_ENV = "GEMINI_API_KEY"


class AppConfig(BaseModel):
    """Validates and stores runtime settings for the application."""

    model_name: str = Field(
        default="remote.gemini",
        description="Identifier of the selected classifier backend.",
    )
    api_key: str | None = Field(
        default=None,
        description="Default API credential used when no per-request key is supplied.",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the Google Generative Language API.",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for forensic analysis.",
    )
    remote_base_url: str = Field(
        default="http://127.0.0.1:11434",
        description="Base URL for the Ollama vision backend.",
    )
    remote_model: str = Field(
        default="llava",
        description="Model identifier served by the Ollama backend.",
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature passed to remote backends.",
    )
    remote_timeout: float = Field(
        default=90.0,
        ge=1.0,
        le=600.0,
        description="Timeout (seconds) for HTTP calls to remote vision services.",
    )
    max_concurrency: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum number of analyses in flight during a batch.",
    )
    preview_size: int = Field(
        default=256,
        ge=16,
        le=2048,
        description="Longest edge, in pixels, of generated preview thumbnails.",
    )
    recursive: bool = Field(
        default=True,
        description="If true, traverse sub-directories when adding folders.",
    )
    include_hidden: bool = Field(
        default=False,
        description="If true, include files and directories that start with a dot.",
    )

    @model_validator(mode="after")
    def _normalise_api_key(self) -> AppConfig:
        if self.api_key is not None:
            self.api_key = self.api_key.strip() or None
        return self

    @model_validator(mode="after")
    def _normalise_remote_settings(self) -> AppConfig:
        self.gemini_base_url = _normalise_url(self.gemini_base_url, "Gemini base URL")
        self.remote_base_url = _normalise_url(self.remote_base_url, "Remote base URL")
        return self

    def as_dict(self) -> dict[str, Any]:
        """Serialize the configuration to primitive Python types."""
        return self.model_dump(mode="json")

    @classmethod
    def load(cls, path: Path) -> AppConfig:
        """Load configuration from a YAML or JSON file."""
        data = _read_config_file(path)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:  # pragma: no cover - pass through details
            raise ValueError(f"Invalid configuration file at {path}: {exc}") from exc

    def save(self, path: Path) -> None:
        """Persist configuration to a YAML file."""
        _write_config_file(path, self.as_dict())


def _normalise_url(value: str, label: str) -> str:
    base = value.strip()
    if not base:
        raise ValueError(f"{label} must not be empty.")
    if "://" not in base:
        raise ValueError(f"{label} must include a scheme such as http://localhost:11434.")
    return base.rstrip("/")


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text) or {}
    return json.loads(text)


def _write_config_file(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in {".yaml", ".yml"}:
        yaml_text = yaml.safe_dump(
            data,
            allow_unicode=False,
            sort_keys=False,
        )
        path.write_text(yaml_text, encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
