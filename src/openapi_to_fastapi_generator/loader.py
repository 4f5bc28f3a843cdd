"""OpenAPI document loading and basic validation."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml
from openapi_python_client.schema import OpenAPI
from pydantic import ValidationError

from .json_types import JSONObject, JSONValue

logger = logging.getLogger(__name__)

_JSON_SUFFIXES = frozenset({".json"})


class OpenAPILoadError(RuntimeError):
    """Raised when a source OpenAPI document cannot be loaded."""


def load_openapi_document(path: Path, *, validate: bool = True) -> JSONObject:
    """Load an OpenAPI document from a YAML or JSON file.

    Args:
        path (Path): Document path; ``.json`` files are parsed as JSON,
            everything else as YAML.
        validate (bool): Whether to validate the document structure.

    Returns:
        JSONObject: The document as a generic mapping tree.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OpenAPILoadError(f"Failed to read OpenAPI file {path}: {exc}") from exc

    document = parse_openapi_text(
        text,
        source=str(path),
        as_json=path.suffix.lower() in _JSON_SUFFIXES,
        validate=validate,
    )
    logger.info("Loaded OpenAPI document %s", path)
    return document


def parse_openapi_text(
    text: str,
    *,
    source: str = "<string>",
    as_json: bool = False,
    validate: bool = True,
) -> JSONObject:
    """Parse OpenAPI text into a generic mapping tree."""
    payload: JSONValue
    if as_json:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise OpenAPILoadError(f"Failed to parse JSON in {source}: {exc}") from exc
    else:
        try:
            payload = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise OpenAPILoadError(f"Failed to parse YAML in {source}: {exc}") from exc

    if not isinstance(payload, dict):
        raise OpenAPILoadError(
            f"OpenAPI document must deserialize to a mapping, got {type(payload)!r}"
        )

    if validate:
        try:
            OpenAPI.model_validate(payload)
        except ValidationError as exc:
            raise OpenAPILoadError(
                f"OpenAPI schema validation failed for {source}: {exc}"
            ) from exc

    return payload


def get_openapi_version(document: JSONObject) -> str:
    """Return the declared OpenAPI version string."""
    version = document.get("openapi")
    if not isinstance(version, str) or not version.strip():
        raise OpenAPILoadError("Missing or invalid 'openapi' version field")
    return version.strip()


def ensure_supported_version(version: str) -> None:
    """Validate that the input version is OpenAPI v3+."""
    major_text = version.split(".", maxsplit=1)[0]
    try:
        major = int(major_text)
    except ValueError as exc:
        raise OpenAPILoadError(f"Unable to parse OpenAPI version: {version}") from exc
    if major < 3:
        raise OpenAPILoadError(f"Unsupported OpenAPI version {version}; only v3+ is supported")
