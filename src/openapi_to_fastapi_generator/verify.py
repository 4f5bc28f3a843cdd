"""Verification of generated pydantic models against the type table."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Optional

from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from pydantic import BaseModel

from .model_types import GenerationModel, StructType
from .module_loading import loaded_module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationMismatch:
    """One verification mismatch."""

    class_name: str
    path: str
    expected: Any
    actual: Any


@dataclass(frozen=True)
class VerificationReport:
    """Result of the verification phase."""

    verified_count: int
    mismatch_count: int
    mismatches: tuple[VerificationMismatch, ...]


def verify_models(*, model: GenerationModel, package_dir: Path) -> VerificationReport:
    """Check every generated model class against its struct descriptor.

    Args:
        model (GenerationModel): The model the package was generated from.
        package_dir (Path): Generated package directory holding ``models.py``.

    Returns:
        VerificationReport: Counts and the first mismatch of each failing model.
    """
    structs = [
        descriptor for descriptor in model.types.values() if isinstance(descriptor, StructType)
    ]
    mismatches: list[VerificationMismatch] = []

    with loaded_module(package_dir / "models.py", prefix="verified") as module:
        for struct in structs:
            mismatch = _verify_struct(module=module, struct=struct)
            if mismatch is not None:
                mismatches.append(mismatch)

    logger.info("Verified %d models, %d mismatches", len(structs), len(mismatches))
    return VerificationReport(
        verified_count=len(structs),
        mismatch_count=len(mismatches),
        mismatches=tuple(mismatches),
    )


def format_report(report: VerificationReport) -> str:
    """Render report as CLI output text."""
    lines = [
        f"Verified models: {report.verified_count}",
        f"Mismatches: {report.mismatch_count}",
    ]
    for mismatch in report.mismatches:
        lines.extend(
            [
                f"- {mismatch.class_name}",
                f"  path: {mismatch.path}",
                f"  expected: {short_repr(mismatch.expected)}",
                f"  actual: {short_repr(mismatch.actual)}",
            ]
        )
    return "\n".join(lines)


def short_repr(value: Any, *, limit: int = 160) -> str:
    """A short representation for mismatch diagnostics."""
    text = repr(value)
    return text if len(text) <= limit else f"{text[: limit - 3]}..."


def _verify_struct(*, module: ModuleType, struct: StructType) -> Optional[VerificationMismatch]:
    value = getattr(module, struct.name, None)
    if not isinstance(value, type) or not issubclass(value, BaseModel):
        return VerificationMismatch(
            class_name=struct.name,
            path="$",
            expected="pydantic model class",
            actual=value,
        )

    schema = value.model_json_schema(by_alias=True)
    try:
        validator_for(schema).check_schema(schema)
    except SchemaError as exc:
        return VerificationMismatch(
            class_name=struct.name,
            path="$",
            expected="valid JSON schema",
            actual=exc.message,
        )

    properties = schema.get("properties", {})
    expected_properties = [field.source_name for field in struct.fields]
    actual_properties = list(properties) if isinstance(properties, dict) else []
    if actual_properties != expected_properties:
        return VerificationMismatch(
            class_name=struct.name,
            path="$.properties",
            expected=expected_properties,
            actual=actual_properties,
        )

    expected_required = sorted(field.source_name for field in struct.fields if field.required)
    actual_required = sorted(schema.get("required", []))
    if actual_required != expected_required:
        return VerificationMismatch(
            class_name=struct.name,
            path="$.required",
            expected=expected_required,
            actual=actual_required,
        )
    return None
