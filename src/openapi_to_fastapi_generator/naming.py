"""Naming helpers for emitted Python identifiers."""

from __future__ import annotations

from collections.abc import Iterable
import keyword
import re
from typing import Optional

from pydantic import BaseModel

from .errors import NameCollisionError

_IDENTIFIER_SANITIZE_RE = re.compile(r"[^0-9a-zA-Z_]+")
_MULTIPLE_UNDERSCORES_RE = re.compile(r"_+")
_WORD_SPLIT_RE = re.compile(r"[^0-9a-zA-Z]+")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_PATH_PARAM_RE = re.compile(r"^\{(?P<name>[^{}]+)\}$")

_BASEMODEL_RESERVED = frozenset(dir(BaseModel))
_BUILTIN_IDENTIFIER_RESERVED = frozenset(
    {
        "bool",
        "bytes",
        "dict",
        "float",
        "int",
        "list",
        "set",
        "str",
        "tuple",
        "type",
    }
)


def sanitize_identifier(raw: str, *, lowercase: bool = True) -> str:
    """Convert arbitrary text into a valid Python identifier."""
    text = raw.lower() if lowercase else raw
    text = _IDENTIFIER_SANITIZE_RE.sub("_", text)
    text = _MULTIPLE_UNDERSCORES_RE.sub("_", text).strip("_")
    if not text:
        text = "root"
    if text[0].isdigit():
        text = f"x_{text}"
    if keyword.iskeyword(text):
        text = f"{text}_"
    return text


def snake_identifier(raw: str) -> str:
    """Convert camelCase, kebab-case or spaced text to a snake_case identifier."""
    return sanitize_identifier(_CAMEL_BOUNDARY_RE.sub("_", raw))


def type_identifier(raw: str) -> str:
    """Convert a source name to a PascalCase class name.

    Only the first letter of each word is upper-cased so that ``PetStore``
    and ``pet_store`` both become ``PetStore``.
    """
    parts = [part for part in _WORD_SPLIT_RE.split(raw) if part]
    text = "".join(part[0].upper() + part[1:] for part in parts) or "Model"
    if text[0].isdigit():
        text = f"X{text}"
    if keyword.iskeyword(text):
        text = f"{text}_"
    return text


def field_identifier(raw: str) -> str:
    """Convert a property name to a field name that is safe on a pydantic model."""
    candidate = snake_identifier(raw)
    if candidate in _BASEMODEL_RESERVED or candidate in _BUILTIN_IDENTIFIER_RESERVED:
        candidate = f"{candidate}_field"
    return candidate


def derive_operation_id(method: str, path: str) -> str:
    """Build an operation identifier from the HTTP method and path segments.

    ``GET /pets/{petId}`` becomes ``get_pets_by_pet_id``.
    """
    segments: list[str] = [method.lower()]
    for segment in path.split("/"):
        if not segment:
            continue
        match = _PATH_PARAM_RE.match(segment)
        if match:
            segments.append(f"by_{snake_identifier(match.group('name'))}")
            continue
        segments.append(snake_identifier(segment))
    return sanitize_identifier("_".join(segments))


def path_template_identifiers(path: str) -> str:
    """Rewrite ``{param}`` placeholders of a path to their Python identifiers."""
    rewritten: list[str] = []
    for segment in path.split("/"):
        match = _PATH_PARAM_RE.match(segment)
        if match:
            rewritten.append(f"{{{field_identifier(match.group('name'))}}}")
        else:
            rewritten.append(segment)
    return "/".join(rewritten)


class IdentifierRegistry:
    """Track emitted identifiers and reject two sources claiming the same one."""

    def __init__(self, *, context: Optional[str] = None) -> None:
        self._owners: dict[str, str] = {}
        self._context = context

    def claim(self, identifier: str, source: str) -> str:
        """Reserve ``identifier`` for ``source`` and return it."""
        owner = self._owners.get(identifier)
        if owner is not None and owner != source:
            raise NameCollisionError(identifier, (owner, source), context=self._context)
        self._owners[identifier] = source
        return identifier

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._owners


class OperationIdAllocator:
    """Hand out unique operation identifiers, suffixing repeats in encounter order."""

    def __init__(self, *, reserved: Iterable[str] = ()) -> None:
        self._taken: set[str] = set(reserved)

    def allocate(self, candidate: str) -> str:
        """Return ``candidate`` or the first free ``candidate_N`` with N >= 2."""
        if candidate not in self._taken:
            self._taken.add(candidate)
            return candidate
        suffix = 2
        while f"{candidate}_{suffix}" in self._taken:
            suffix += 1
        name = f"{candidate}_{suffix}"
        self._taken.add(name)
        return name
