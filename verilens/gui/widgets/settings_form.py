"""Dialog that exposes application settings with validation."""

from __future__ import annotations

from functools import partial

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from ...config import AppConfig
from ...models.registry import ModelRegistry
from ...models.vision_remote import OllamaClassifier

API_KEY_URL = "https://aistudio.google.com/app/apikey"


class SettingsDialog(QDialog):
    """Shows a validated form for editing application configuration."""

    def __init__(self, config: AppConfig, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("API Configuration")
        self._original_config = config
        self._config: AppConfig | None = None
        self._field_min_width = 320

        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(12, 12, 12, 12)
        main_layout.setSpacing(12)

        self.model_combo = QComboBox()
        for info in ModelRegistry.list_model_infos():
            self.model_combo.addItem(info.display_name, info.identifier)
        idx = self.model_combo.findData(config.model_name)
        if idx >= 0:
            self.model_combo.setCurrentIndex(idx)
        self._normalise_width(self.model_combo)

        self.api_key_edit = QLineEdit(config.api_key or "")
        self.api_key_edit.setEchoMode(QLineEdit.EchoMode.Password)
        self.api_key_edit.setPlaceholderText("Enter your API key…")
        self._normalise_width(self.api_key_edit)

        key_hint = QLabel(
            f'Your key is stored locally in your settings file. <a href="{API_KEY_URL}">Get a key</a>'
        )
        key_hint.setOpenExternalLinks(True)
        key_hint.setWordWrap(True)

        self.gemini_model_edit = QLineEdit(config.gemini_model)
        self._normalise_width(self.gemini_model_edit)

        self.remote_base_url_edit = QLineEdit(config.remote_base_url)
        self._normalise_width(self.remote_base_url_edit)
        self.remote_model_combo = QComboBox()
        self.remote_model_combo.setEditable(True)
        self.remote_model_combo.setInsertPolicy(QComboBox.InsertPolicy.NoInsert)
        self.remote_model_combo.setEditText(config.remote_model)
        self.remote_refresh_button = QPushButton("Refresh list")
        self.remote_refresh_button.clicked.connect(self._refresh_remote_models)
        remote_model_container = QWidget()
        remote_model_layout = QHBoxLayout(remote_model_container)
        remote_model_layout.setContentsMargins(0, 0, 0, 0)
        remote_model_layout.addWidget(self.remote_model_combo)
        remote_model_layout.addWidget(self.remote_refresh_button)
        self._normalise_width(remote_model_container)

        self.temperature_spin = QDoubleSpinBox()
        self.temperature_spin.setRange(0.0, 2.0)
        self.temperature_spin.setSingleStep(0.05)
        self.temperature_spin.setDecimals(2)
        self.temperature_spin.setValue(config.temperature)
        self._normalise_width(self.temperature_spin)

        self.timeout_spin = QDoubleSpinBox()
        self.timeout_spin.setRange(1.0, 600.0)
        self.timeout_spin.setSingleStep(1.0)
        self.timeout_spin.setDecimals(1)
        self.timeout_spin.setValue(config.remote_timeout)
        self._normalise_width(self.timeout_spin)

        self.concurrency_spin = QSpinBox()
        self.concurrency_spin.setRange(1, 32)
        self.concurrency_spin.setValue(config.max_concurrency)
        self._normalise_width(self.concurrency_spin)

        provider_group = QGroupBox("Provider")
        provider_form = self._create_form_layout()
        provider_form.addRow(
            "Model",
            self._with_help(
                self.model_combo,
                "Model",
                "Choose which backend judges your images. Gemini requires an API key; "
                "the Ollama option sends each image to a running Ollama server over HTTP.",
            ),
        )
        provider_form.addRow("API key", self.api_key_edit)
        provider_form.addRow("", key_hint)
        provider_form.addRow(
            "Gemini model",
            self._with_help(
                self.gemini_model_edit,
                "Gemini model",
                "Gemini model id used for analysis, for example 'gemini-2.5-flash'.",
            ),
        )
        provider_group.setLayout(provider_form)
        main_layout.addWidget(provider_group)

        remote_group = QGroupBox("Ollama Settings")
        remote_form = self._create_form_layout()
        remote_form.addRow(
            "Base URL",
            self._with_help(
                self.remote_base_url_edit,
                "Base URL",
                "HTTP address of your Ollama server, typically http://localhost:11434.",
            ),
        )
        remote_form.addRow(
            "Model id",
            self._with_help(
                remote_model_container,
                "Model id",
                "Name of the Ollama vision model to invoke (e.g. 'llava:13b'). "
                "Use the Refresh button to query the server.",
            ),
        )
        remote_group.setLayout(remote_form)
        self.remote_group = remote_group
        main_layout.addWidget(remote_group)

        analysis_group = QGroupBox("Analysis")
        analysis_form = self._create_form_layout()
        analysis_form.addRow(
            "Temperature",
            self._with_help(
                self.temperature_spin,
                "Temperature",
                "Lower values make verdicts more deterministic.",
            ),
        )
        analysis_form.addRow(
            "Timeout (s)",
            self._with_help(
                self.timeout_spin,
                "Timeout",
                "How long to wait for each remote response before the image is marked as failed.",
            ),
        )
        analysis_form.addRow(
            "Parallel requests",
            self._with_help(
                self.concurrency_spin,
                "Parallel requests",
                "Maximum number of images analyzed at the same time by 'Analyze All'. "
                "Lower this if the provider starts rate limiting.",
            ),
        )
        analysis_group.setLayout(analysis_form)
        main_layout.addWidget(analysis_group)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Save | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self._on_accept)
        buttons.rejected.connect(self.reject)
        main_layout.addWidget(buttons, alignment=Qt.AlignmentFlag.AlignRight)

        self.model_combo.currentIndexChanged.connect(self._on_model_selection_changed)
        self._on_model_selection_changed()

        self.setMinimumWidth(560)

    def _on_accept(self) -> None:
        try:
            self._config = AppConfig.model_validate(self._collect_form_data())
        except Exception as exc:
            QMessageBox.critical(self, "Invalid settings", str(exc))
            return
        self.accept()

    def _collect_form_data(self) -> dict[str, object]:
        data = self._original_config.as_dict()
        data.update(
            {
                "model_name": self.model_combo.currentData(),
                "api_key": self.api_key_edit.text() or None,
                "gemini_model": self.gemini_model_edit.text().strip(),
                "remote_base_url": self.remote_base_url_edit.text(),
                "remote_model": self.remote_model_combo.currentText(),
                "temperature": self.temperature_spin.value(),
                "remote_timeout": self.timeout_spin.value(),
                "max_concurrency": self.concurrency_spin.value(),
            }
        )
        return data

    def _refresh_remote_models(self) -> None:
        try:
            config = AppConfig.model_validate(self._collect_form_data())
        except Exception as exc:
            QMessageBox.critical(self, "Invalid settings", str(exc))
            return

        classifier = OllamaClassifier(config)
        classifier.load()
        try:
            models = classifier.discover_remote_models()
        finally:
            classifier.close()

        if not models:
            QMessageBox.information(
                self,
                "Remote models",
                "No vision-capable models were reported by the Ollama server.",
            )
            return

        current = self.remote_model_combo.currentText()
        self.remote_model_combo.blockSignals(True)
        self.remote_model_combo.clear()
        for name in models:
            self.remote_model_combo.addItem(name)
        self.remote_model_combo.setCurrentText(current if current in models else models[0])
        self.remote_model_combo.blockSignals(False)

    def config(self) -> AppConfig:
        return self._config or self._original_config

    def _with_help(self, widget: QWidget, title: str, message: str) -> QWidget:
        container = QWidget()
        layout = QHBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(widget)
        layout.addStretch()
        layout.addWidget(self._make_help_button(title, message))
        self._normalise_width(container)
        return container

    def _make_help_button(self, title: str, message: str) -> QToolButton:
        button = QToolButton(self)
        button.setText("?")
        button.setAutoRaise(True)
        button.setFixedSize(24, 24)
        button.clicked.connect(partial(QMessageBox.information, self, title, message))
        return button

    def _normalise_width(self, widget: QWidget) -> None:
        widget.setMinimumWidth(self._field_min_width)

    def _create_form_layout(self) -> QFormLayout:
        layout = QFormLayout()
        layout.setFieldGrowthPolicy(QFormLayout.FieldGrowthPolicy.AllNonFixedFieldsGrow)
        layout.setLabelAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
        return layout

    def _on_model_selection_changed(self) -> None:
        self.remote_group.setVisible(self.model_combo.currentData() == "remote.ollama")
