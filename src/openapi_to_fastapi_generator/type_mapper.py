"""Map resolved schema definitions onto emission-ready type descriptors."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging

from .errors import UnsupportedSchemaError
from .model_types import (
    BackReference,
    NamedType,
    OptionalType,
    PrimitiveType,
    SchemaDef,
    SequenceType,
    StructField,
    StructType,
    TypeDescriptor,
    TypeRef,
)
from .naming import IdentifierRegistry, field_identifier, type_identifier

logger = logging.getLogger(__name__)


class TypeMapper:
    """Build the type table for one generation pass.

    The table is keyed by emitted identifier. Components keep their source
    declaration order; structs lifted from inline objects follow the entry
    that introduced them.
    """

    def __init__(self, *, reserved: Iterable[str] = ()) -> None:
        self._registry = IdentifierRegistry()
        for identifier in reserved:
            self._registry.claim(identifier, f"<reserved {identifier}>")
        self._order: list[str] = []
        self._types: dict[str, TypeDescriptor] = {}

    @property
    def types(self) -> dict[str, TypeDescriptor]:
        """Return the type table in emission order."""
        return {name: self._types[name] for name in self._order}

    def map_components(self, schemas: Mapping[str, SchemaDef]) -> dict[str, TypeDescriptor]:
        """Map every component schema and return the type table.

        All component identifiers are claimed before any field is mapped so a
        collision is reported between the two components, not between a
        component and a lifted inline object.
        """
        for source_name in schemas:
            self._registry.claim(type_identifier(source_name), source_name)

        for source_name, schema in schemas.items():
            identifier = type_identifier(source_name)
            self._order.append(identifier)
            self._types[identifier] = self.describe(schema)
            logger.debug("Mapped schema %s to %s", source_name, identifier)

        for source_name in schemas:
            self._check_alias_chain(type_identifier(source_name), source_name=source_name)
        return self.types

    def describe(self, schema: SchemaDef) -> TypeDescriptor:
        """Return the descriptor of a schema's own shape.

        Args:
            schema (SchemaDef): Resolved schema definition.

        Returns:
            TypeDescriptor: ``StructType`` for objects, otherwise the mapped
                primitive, sequence or named target.
        """
        if schema.kind == "object":
            return self._struct(schema)
        if schema.kind == "array":
            if schema.element_type is None:
                raise UnsupportedSchemaError(
                    "array without 'items' schema", schema_name=schema.name
                )
            return SequenceType(self.map_type_ref(schema.element_type))
        if schema.kind == "reference":
            if schema.target is None:
                raise UnsupportedSchemaError("unresolved reference", schema_name=schema.name)
            return self.map_type_ref(schema.target)
        if schema.primitive is None:
            raise UnsupportedSchemaError("primitive without a type", schema_name=schema.name)
        return PrimitiveType(schema.primitive)

    def map_type_ref(self, type_ref: TypeRef) -> TypeDescriptor:
        """Return the descriptor used where ``type_ref`` appears as a field or body type.

        Components and back-references become ``NamedType`` edges. Inline
        objects are registered as structs of their own and referenced by name.
        """
        if isinstance(type_ref, BackReference):
            return NamedType(type_identifier(type_ref.name))
        if type_ref.component and type_ref.name is not None:
            return NamedType(type_identifier(type_ref.name))
        if type_ref.kind == "object":
            return self._register_inline(type_ref)
        return self.describe(type_ref)

    def _register_inline(self, schema: SchemaDef) -> NamedType:
        source_name = schema.name or "Schema"
        # Owner hints can coincide for different objects; the origin path cannot.
        identifier = self._registry.claim(
            type_identifier(source_name),
            f"{schema.origin or source_name} (inline)",
        )
        if identifier in self._types:
            return NamedType(identifier)
        self._order.append(identifier)
        self._types[identifier] = self._struct(schema)
        logger.debug("Lifted inline object %s to %s", source_name, identifier)
        return NamedType(identifier)

    def _check_alias_chain(self, identifier: str, *, source_name: str) -> None:
        """Reject aliases that only lead back to themselves, e.g. ``A: {$ref: A}``."""
        visited = [identifier]
        descriptor = self._types.get(identifier)
        while isinstance(descriptor, NamedType):
            if descriptor.name in visited:
                raise UnsupportedSchemaError(
                    "reference cycle without an object", schema_name=source_name
                )
            visited.append(descriptor.name)
            descriptor = self._types.get(descriptor.name)

    def _struct(self, schema: SchemaDef) -> StructType:
        source_name = schema.name or "Schema"
        fields_registry = IdentifierRegistry(context=f"schema {source_name!r}")
        fields: list[StructField] = []
        for schema_field in schema.fields:
            name = fields_registry.claim(field_identifier(schema_field.name), schema_field.name)
            field_type = self.map_type_ref(schema_field.type_ref)
            if not schema_field.required or schema_field.nullable:
                field_type = OptionalType(field_type)
            fields.append(
                StructField(
                    name=name,
                    source_name=schema_field.name,
                    type=field_type,
                    required=schema_field.required,
                    description=schema_field.description,
                )
            )
        return StructType(
            name=type_identifier(source_name),
            fields=tuple(fields),
            description=schema.description,
        )


def named_dependencies(descriptor: TypeDescriptor) -> list[str]:
    """Return the named types a descriptor refers to, in first-use order."""
    names: list[str] = []
    _collect_named(descriptor, names)
    return names


def _collect_named(descriptor: TypeDescriptor, names: list[str]) -> None:
    if isinstance(descriptor, NamedType):
        if descriptor.name not in names:
            names.append(descriptor.name)
    elif isinstance(descriptor, OptionalType):
        _collect_named(descriptor.inner, names)
    elif isinstance(descriptor, SequenceType):
        _collect_named(descriptor.element, names)
    elif isinstance(descriptor, StructType):
        for struct_field in descriptor.fields:
            _collect_named(struct_field.type, names)
