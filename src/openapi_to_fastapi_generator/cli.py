"""Command line interface for OpenAPI to FastAPI generation."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from pydantic import ValidationError

from .generator import GenerationError, OpenAPILoadError, WriteError, run_generation
from .settings import GeneratorSettings
from .verify import format_report

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="openapi-to-fastapi-generator",
        description="Generate a FastAPI server skeleton from an OpenAPI YAML or JSON document",
    )
    parser.add_argument("--input", required=True, help="Path to an OpenAPI YAML or JSON file")
    parser.add_argument(
        "--output", required=True, help="Output directory for the generated package"
    )
    parser.add_argument(
        "--package-name",
        default=None,
        help="Name of the generated Python package (default: server)",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Import the generated models and check them against the source schemas",
    )
    parser.add_argument(
        "--no-format",
        action="store_true",
        help="Skip running ruff on the generated package",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level (default: WARNING)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides: dict[str, object] = {}
    if args.package_name is not None:
        overrides["package_name"] = args.package_name
    if args.no_format:
        overrides["format_output"] = False
    if args.log_level is not None:
        overrides["log_level"] = args.log_level

    try:
        settings = GeneratorSettings(**overrides)
    except ValidationError as exc:
        parser.error(str(exc))
        return 2

    logging.basicConfig(level=settings.log_level, format=_LOG_FORMAT)

    try:
        run = run_generation(
            input_path=Path(args.input),
            output_dir=Path(args.output),
            verify=bool(args.verify),
            settings=settings,
        )
    except (OpenAPILoadError, GenerationError, WriteError) as exc:
        parser.error(str(exc))
        return 2

    for warning in run.result.model.warnings:
        print(f"Warning: {warning}")
    print(f"Generated package: {run.result.package_dir}")

    if run.verification_report is not None:
        print(format_report(run.verification_report))
        if run.verification_report.mismatch_count > 0:
            return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
