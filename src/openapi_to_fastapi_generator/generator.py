"""High-level generator orchestration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Optional

from .codegen_ast import RESERVED_HANDLER_NAMES, RESERVED_TYPE_NAMES
from .errors import GenerationError
from .json_types import JSONObject
from .loader import (
    OpenAPILoadError,
    ensure_supported_version,
    get_openapi_version,
    load_openapi_document,
)
from .model_types import GenerationModel, GenerationResult
from .operations import OperationCollector
from .resolver import ReferenceResolver
from .settings import GeneratorSettings
from .type_mapper import TypeMapper
from .verify import VerificationReport, verify_models
from .writer import (
    WriteError,
    create_output_layout,
    format_generated_tree,
    write_server_package,
)

logger = logging.getLogger(__name__)

_DEFAULT_TITLE = "Generated API"
_DEFAULT_VERSION = "0.1.0"


@dataclass(frozen=True)
class GenerationRun:
    """Generation result with optional verification report."""

    result: GenerationResult
    verification_report: Optional[VerificationReport]


def build_generation_model(document: JSONObject) -> GenerationModel:
    """Resolve, map and collect a document into the emitter's input model.

    The whole component table is resolved and every route collected before
    this returns; any error aborts the pass without a partial model.

    Args:
        document (JSONObject): Generic tree of an OpenAPI document.

    Returns:
        GenerationModel: Type table and ordered routes.
    """
    schemas = _section(document, "components", "schemas")
    resolver = ReferenceResolver(schemas)
    resolved = resolver.resolve_all()

    mapper = TypeMapper(reserved=RESERVED_TYPE_NAMES)
    mapper.map_components(resolved)

    collector = OperationCollector(
        document,
        resolver=resolver,
        mapper=mapper,
        reserved_operation_ids=RESERVED_HANDLER_NAMES,
    )
    routes, warnings = collector.collect(_section(document, "paths"))

    title, version = _info(document)
    model = GenerationModel(
        title=title,
        version=version,
        types=mapper.types,
        routes=tuple(routes),
        warnings=tuple(warnings),
    )
    logger.info(
        "Built generation model with %d types and %d routes",
        len(model.types),
        len(model.routes),
    )
    return model


def run_generation(
    *,
    input_path: Path,
    output_dir: Path,
    verify: bool,
    settings: Optional[GeneratorSettings] = None,
) -> GenerationRun:
    """Generate a FastAPI server skeleton package from an OpenAPI document.

    Args:
        input_path (Path): Path to the input OpenAPI document.
        output_dir (Path): Directory where the package is written; must not exist.
        verify (bool): Whether to verify generated models after writing.
        settings (Optional[GeneratorSettings]): Generation settings; defaults
            are read from the environment when omitted.

    Returns:
        GenerationRun: Generation metadata and optional verification report.
    """
    settings = settings or GeneratorSettings()
    document = load_openapi_document(input_path)
    ensure_supported_version(get_openapi_version(document))
    model = build_generation_model(document)

    package_dir = create_output_layout(output_dir, package_name=settings.package_name)
    written = write_server_package(
        package_dir=package_dir,
        model=model,
        host=settings.server_host,
        port=settings.server_port,
    )
    if settings.format_output:
        format_generated_tree(package_dir=package_dir)

    result = GenerationResult(
        output_dir=str(output_dir),
        package_dir=str(package_dir),
        model=model,
        written_files=tuple(str(path) for path in written),
    )

    if not verify:
        return GenerationRun(result=result, verification_report=None)

    report = verify_models(model=model, package_dir=package_dir)
    return GenerationRun(result=result, verification_report=report)


def _section(document: Mapping[str, Any], *keys: str) -> Mapping[str, Any]:
    current: Any = document
    for key in keys:
        if not isinstance(current, Mapping):
            return {}
        current = current.get(key)
        if current is None:
            return {}
    if not isinstance(current, Mapping):
        raise OpenAPILoadError(f"OpenAPI section {'.'.join(keys)!r} must be a mapping")
    return current


def _info(document: Mapping[str, Any]) -> tuple[str, str]:
    info = document.get("info")
    if not isinstance(info, Mapping):
        return _DEFAULT_TITLE, _DEFAULT_VERSION
    title = info.get("title")
    version = info.get("version")
    return (
        title.strip() if isinstance(title, str) and title.strip() else _DEFAULT_TITLE,
        str(version).strip() if version is not None and str(version).strip() else _DEFAULT_VERSION,
    )


__all__ = [
    "GenerationError",
    "GenerationRun",
    "OpenAPILoadError",
    "WriteError",
    "build_generation_model",
    "run_generation",
]
