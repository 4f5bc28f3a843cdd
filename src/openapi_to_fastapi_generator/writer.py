"""Filesystem writers for the generated server package."""

from __future__ import annotations

import logging
from pathlib import Path
import subprocess
import sys

from .codegen_ast import (
    render_app_module,
    render_models_module,
    render_package_init,
    render_routes_module,
)
from .model_types import GenerationModel

logger = logging.getLogger(__name__)

GENERATED_RUFF_TARGET_VERSION = "py312"
GENERATED_RUFF_IGNORE_CODES: tuple[str, ...] = (
    "D100",
    "D101",
    "D102",
    "D103",
    "D104",
    "D205",
    "D301",
    "D415",
    "E501",
    "E741",
)


class WriteError(RuntimeError):
    """Raised when output files cannot be written."""


def create_output_layout(output_dir: Path, *, package_name: str) -> Path:
    """Create the output directory and the empty server package directory.

    Args:
        output_dir (Path): Root output directory to create; must not exist.
        package_name (str): Name of the generated Python package.

    Returns:
        Path: Path to the created package directory.
    """
    if output_dir.exists():
        raise WriteError(f"Output directory already exists: {output_dir}")

    package_dir = output_dir / package_name
    try:
        package_dir.mkdir(parents=True, exist_ok=False)
    except OSError as exc:
        raise WriteError(f"Failed to create output directory {package_dir}: {exc}") from exc
    return package_dir


def write_server_package(
    *,
    package_dir: Path,
    model: GenerationModel,
    host: str,
    port: int,
) -> list[Path]:
    """Render and write every module of the server package.

    Args:
        package_dir (Path): Package directory created by ``create_output_layout``.
        model (GenerationModel): Generation model to render.
        host (str): Host baked into the emitted ``main()``.
        port (int): Port baked into the emitted ``main()``.

    Returns:
        list[Path]: Written files in write order.
    """
    sources: list[tuple[str, str]] = [
        ("__init__.py", render_package_init(model)),
        ("models.py", render_models_module(model)),
        ("routes.py", render_routes_module(model)),
        ("app.py", render_app_module(model, host=host, port=port)),
    ]
    written: list[Path] = []
    for filename, source in sources:
        path = package_dir / filename
        _write_file(path, source)
        written.append(path)
    logger.info("Wrote %d modules to %s", len(written), package_dir)
    return written


def format_generated_tree(*, package_dir: Path) -> None:
    """Run Ruff auto-fixes and formatter against generated modules.

    Args:
        package_dir (Path): Generated package directory to format.
    """
    target = ("--target-version", GENERATED_RUFF_TARGET_VERSION)
    _run_ruff(package_dir=package_dir, args=("format", *target, str(package_dir)))
    _run_ruff(
        package_dir=package_dir,
        args=(
            "check",
            "--fix",
            *target,
            "--ignore",
            ",".join(GENERATED_RUFF_IGNORE_CODES),
            str(package_dir),
        ),
    )
    _run_ruff(package_dir=package_dir, args=("format", *target, str(package_dir)))


def _run_ruff(*, package_dir: Path, args: tuple[str, ...]) -> None:
    command = [sys.executable, "-m", "ruff", *args]
    command_desc = " ".join(args[:1])
    logger.debug("Running ruff %s", " ".join(args))
    try:
        subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise WriteError(f"Failed to execute ruff {command_desc} for {package_dir}: {exc}") from exc
    except subprocess.CalledProcessError as exc:
        error_text = exc.stderr.strip() or exc.stdout.strip() or str(exc)
        raise WriteError(f"ruff {command_desc} failed for {package_dir}: {error_text}") from exc


def _write_file(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise WriteError(f"Failed to write file {path}: {exc}") from exc
