"""Reference resolution for the component schema table."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, Optional

from .errors import UnresolvedReferenceError, UnsupportedSchemaError
from .model_types import (
    PRIMITIVE_KINDS,
    BackReference,
    PrimitiveKind,
    SchemaDef,
    SchemaField,
    TypeRef,
)

logger = logging.getLogger(__name__)

SCHEMA_REF_PREFIX = "#/components/schemas/"

_COMPOSITION_KEYWORDS: tuple[str, ...] = ("allOf", "oneOf", "anyOf", "not")


def decode_pointer_token(token: str) -> str:
    """Decode one JSON pointer token."""
    return token.replace("~1", "/").replace("~0", "~")


def schema_ref_name(ref: str, *, referrer: Optional[str] = None) -> str:
    """Return the component name a schema ``$ref`` points at."""
    if not ref.startswith(SCHEMA_REF_PREFIX):
        raise UnsupportedSchemaError(f"reference {ref!r}", schema_name=referrer)
    token = ref[len(SCHEMA_REF_PREFIX) :]
    if not token or "/" in token:
        raise UnsupportedSchemaError(f"reference {ref!r}", schema_name=referrer)
    return decode_pointer_token(token)


def lookup_local_ref(document: Mapping[str, Any], ref: str) -> Any:
    """Follow a local JSON pointer inside the document.

    Raises:
        UnresolvedReferenceError: When any pointer token is missing.
        UnsupportedSchemaError: For references outside the document.
    """
    if not ref.startswith("#/"):
        raise UnsupportedSchemaError(f"non-local reference {ref!r}")

    current: Any = document
    for token in ref[2:].split("/"):
        token = decode_pointer_token(token)
        if not isinstance(current, Mapping) or token not in current:
            raise UnresolvedReferenceError(ref.rsplit("/", maxsplit=1)[-1])
        current = current[token]
    return current


class ReferenceResolver:
    """Resolve ``components.schemas`` into a flat table of ``SchemaDef``.

    References are resolved on demand and memoized. The names currently being
    resolved travel down the recursion as a chain; a reference back into the
    chain becomes a ``BackReference`` instead of being expanded.
    """

    def __init__(self, schemas: Mapping[str, Any]) -> None:
        self._schemas = schemas
        self._cache: dict[str, SchemaDef] = {}

    def resolve_all(self) -> dict[str, SchemaDef]:
        """Resolve every component in source declaration order."""
        resolved: dict[str, SchemaDef] = {}
        for name in self._schemas:
            if not isinstance(name, str):
                raise UnsupportedSchemaError(f"non-string schema name {name!r}")
            schema = self._resolve_component(name, chain=(), referrer=None)
            if isinstance(schema, SchemaDef):
                resolved[name] = schema
        logger.info("Resolved %d component schemas", len(resolved))
        return resolved

    def resolve_inline(
        self,
        node: Any,
        *,
        owner: str,
        referrer: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> TypeRef:
        """Resolve a schema node that lives outside the component table.

        Args:
            node (Any): Schema node, possibly a ``$ref``.
            owner (str): Name hint used for lifted inline objects.
            referrer (Optional[str]): Name reported when a reference is missing.
            origin (Optional[str]): Where the node sits in the document, used
                to tell lifted objects apart; defaults to ``owner``.

        Returns:
            TypeRef: The resolved schema or component.
        """
        if not isinstance(node, Mapping):
            raise UnsupportedSchemaError(f"schema node of type {type(node).__name__}")
        return self._resolve_type(
            node,
            chain=(),
            owner=owner,
            referrer=referrer,
            origin=origin or owner,
        )

    def _resolve_component(
        self,
        name: str,
        *,
        chain: tuple[str, ...],
        referrer: Optional[str],
    ) -> TypeRef:
        if name in chain:
            logger.debug("Breaking reference cycle at %s (chain: %s)", name, " -> ".join(chain))
            return BackReference(name)

        cached = self._cache.get(name)
        if cached is not None:
            return cached

        if name not in self._schemas:
            raise UnresolvedReferenceError(name, referrer=referrer)

        node = self._schemas[name]
        if not isinstance(node, Mapping):
            raise UnsupportedSchemaError(
                f"schema node of type {type(node).__name__}", schema_name=name
            )

        resolved = self._build(
            node,
            name=name,
            chain=(*chain, name),
            referrer=name,
            component=True,
            origin=name,
        )
        self._cache[name] = resolved
        logger.debug("Resolved schema %s as %s", name, resolved.kind)
        return resolved

    def _resolve_type(
        self,
        node: Mapping[str, Any],
        *,
        chain: tuple[str, ...],
        owner: str,
        referrer: Optional[str],
        origin: str,
    ) -> TypeRef:
        ref_value = node.get("$ref")
        if ref_value is not None:
            if not isinstance(ref_value, str):
                raise UnsupportedSchemaError(f"$ref value {ref_value!r}", schema_name=referrer)
            target = schema_ref_name(ref_value, referrer=referrer)
            return self._resolve_component(target, chain=chain, referrer=referrer)

        kind = _classify(node, schema_name=referrer)
        name = owner if kind == "object" else None
        return self._build(
            node,
            name=name,
            chain=chain,
            referrer=referrer,
            component=False,
            hint=owner,
            origin=origin,
        )

    def _build(
        self,
        node: Mapping[str, Any],
        *,
        name: Optional[str],
        chain: tuple[str, ...],
        referrer: Optional[str],
        component: bool,
        hint: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> SchemaDef:
        hint = hint or name or "Schema"
        origin = origin or hint
        description = _string_or_none(node.get("description"))

        ref_value = node.get("$ref")
        if ref_value is not None:
            if not isinstance(ref_value, str):
                raise UnsupportedSchemaError(f"$ref value {ref_value!r}", schema_name=referrer)
            target_name = schema_ref_name(ref_value, referrer=referrer)
            return SchemaDef(
                name=name,
                kind="reference",
                target_name=target_name,
                target=self._resolve_component(target_name, chain=chain, referrer=referrer),
                description=description,
                component=component,
                origin=origin,
            )

        kind = _classify(node, schema_name=referrer)
        if kind == "object":
            return SchemaDef(
                name=name,
                kind="object",
                fields=self._object_fields(
                    node,
                    chain=chain,
                    owner=name or hint,
                    referrer=referrer,
                    origin=origin,
                ),
                description=description,
                component=component,
                origin=origin,
            )

        if kind == "array":
            items = node.get("items")
            if not isinstance(items, Mapping):
                raise UnsupportedSchemaError("array without 'items' schema", schema_name=referrer)
            return SchemaDef(
                name=name,
                kind="array",
                element_type=self._resolve_type(
                    items,
                    chain=chain,
                    owner=f"{hint}_item",
                    referrer=referrer,
                    origin=f"{origin}[]",
                ),
                description=description,
                component=component,
                origin=origin,
            )

        return SchemaDef(
            name=name,
            kind="primitive",
            primitive=_primitive_kind(node),
            description=description,
            component=component,
            origin=origin,
        )

    def _object_fields(
        self,
        node: Mapping[str, Any],
        *,
        chain: tuple[str, ...],
        owner: str,
        referrer: Optional[str],
        origin: str,
    ) -> tuple[SchemaField, ...]:
        properties = node.get("properties")
        if properties is None:
            return ()
        if not isinstance(properties, Mapping):
            raise UnsupportedSchemaError("'properties' that is not a mapping", schema_name=referrer)

        required_raw = node.get("required")
        required_names = (
            {item for item in required_raw if isinstance(item, str)}
            if isinstance(required_raw, list)
            else set()
        )

        fields: list[SchemaField] = []
        for field_name, field_node in properties.items():
            if not isinstance(field_name, str) or not isinstance(field_node, Mapping):
                raise UnsupportedSchemaError(
                    f"property {field_name!r} without a schema mapping",
                    schema_name=referrer,
                )
            type_ref = self._resolve_type(
                field_node,
                chain=chain,
                owner=f"{owner}_{field_name}",
                referrer=referrer,
                origin=f"{origin}.{field_name}",
            )
            fields.append(
                SchemaField(
                    name=field_name,
                    type_ref=type_ref,
                    required=field_name in required_names,
                    nullable=_is_nullable(field_node),
                    description=_string_or_none(field_node.get("description")),
                )
            )
        return tuple(fields)


def _classify(node: Mapping[str, Any], *, schema_name: Optional[str]) -> str:
    for keyword in _COMPOSITION_KEYWORDS:
        if keyword in node:
            raise UnsupportedSchemaError(f"'{keyword}' composition", schema_name=schema_name)

    additional = node.get("additionalProperties")
    if isinstance(additional, Mapping):
        raise UnsupportedSchemaError("'additionalProperties' schema", schema_name=schema_name)

    schema_type = _effective_type(node, schema_name=schema_name)
    if schema_type == "object" or (schema_type is None and "properties" in node):
        return "object"
    if schema_type == "array":
        return "array"
    if schema_type in PRIMITIVE_KINDS:
        return "primitive"
    if schema_type is None:
        raise UnsupportedSchemaError("schema without a type", schema_name=schema_name)
    raise UnsupportedSchemaError(f"type {schema_type!r}", schema_name=schema_name)


def _effective_type(node: Mapping[str, Any], *, schema_name: Optional[str]) -> Optional[str]:
    schema_type = node.get("type")
    if isinstance(schema_type, list):
        # OpenAPI 3.1 spells nullable as a two-member type list.
        members = [member for member in schema_type if member != "null"]
        if len(members) != 1 or len(schema_type) != 2:
            raise UnsupportedSchemaError(f"type list {schema_type!r}", schema_name=schema_name)
        schema_type = members[0]
    if schema_type is not None and not isinstance(schema_type, str):
        raise UnsupportedSchemaError(f"type {schema_type!r}", schema_name=schema_name)
    return schema_type


def _primitive_kind(node: Mapping[str, Any]) -> PrimitiveKind:
    schema_type = _effective_type(node, schema_name=None)
    for kind in PRIMITIVE_KINDS:
        if kind == schema_type:
            return kind
    raise UnsupportedSchemaError(f"type {schema_type!r}")


def _is_nullable(node: Mapping[str, Any]) -> bool:
    if node.get("nullable") is True:
        return True
    schema_type = node.get("type")
    return isinstance(schema_type, list) and "null" in schema_type


def _string_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return None
