"""Command line entry point for the VeriLens project."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from functools import partial
from pathlib import Path

from . import AppConfig, BatchAnalyzer, ImageQueue, SettingsStore
from .config import API_KEY_ENV
from .io.preview import make_preview
from .io.report import ReportWriter, item_summary
from .io.sources import ImageSource, UnsupportedMediaError, load_image_source
from .models.registry import ModelRegistry
from .utils.paths import resolve_image_paths

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="VeriLens: detect AI-generated and tampered images."
    )
    parser.add_argument(
        "--input",
        "-i",
        type=Path,
        action="append",
        help="Image file or directory to analyze in headless mode (repeatable).",
    )
    parser.add_argument(
        "--model",
        help="Override the configured classifier identifier.",
    )
    parser.add_argument(
        "--api-key",
        help=f"API key for this run. Defaults to the saved key, then ${API_KEY_ENV}.",
    )
    parser.add_argument(
        "--max-concurrency",
        type=int,
        help="Override how many images are analyzed at the same time.",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Write a YAML or JSON report of the results to this path.",
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="Print available classifiers and exit.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without launching the GUI.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_models:
        payload = []
        for info in ModelRegistry.list_model_infos():
            data = asdict(info)
            data["tags"] = list(info.tags)
            payload.append(data)
        json.dump(payload, sys.stdout, indent=2)
        sys.stdout.write("\n")
        return

    if not args.headless and not args.input:
        from .gui import run_app

        run_app()
        return

    if not args.input:
        parser.error("--input is required when running in headless mode.")

    store = SettingsStore()
    config = store.load()

    updates: dict[str, object] = {}
    if args.model:
        updates["model_name"] = args.model
    if args.max_concurrency:
        updates["max_concurrency"] = args.max_concurrency
    if not config.api_key and os.getenv(API_KEY_ENV):
        updates["api_key"] = os.getenv(API_KEY_ENV)
    if updates:
        try:
            config = AppConfig.model_validate({**config.as_dict(), **updates})
        except ValueError as exc:
            parser.error(str(exc))

    sources = _collect_sources(args.input, config)
    if not sources:
        parser.error("No supported images were found in the given inputs.")

    queue = ImageQueue(preview_factory=partial(make_preview, size=config.preview_size))
    queue.add(sources)
    analyzer = BatchAnalyzer(queue, config)
    analyzer.analyze_all(credential=args.api_key)

    items = queue.items()
    if args.report:
        ReportWriter().write(args.report, items)

    json.dump([item_summary(item) for item in items], sys.stdout, indent=2)
    sys.stdout.write("\n")
    queue.clear()


def _collect_sources(inputs: list[Path], config: AppConfig) -> list[ImageSource]:
    sources: list[ImageSource] = []
    for target in inputs:
        try:
            paths = resolve_image_paths(
                target,
                recursive=config.recursive,
                include_hidden=config.include_hidden,
            )
        except FileNotFoundError:
            logger.warning("Input %s does not exist; skipping", target)
            continue
        for path in paths:
            try:
                sources.append(load_image_source(path))
            except (OSError, UnsupportedMediaError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
    return sources


if __name__ == "__main__":  # pragma: no cover
    main()
