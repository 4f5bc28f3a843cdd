"""Internal datatypes for resolution, type mapping and emission."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

type PrimitiveKind = Literal["string", "integer", "number", "boolean"]
type SchemaKind = Literal["primitive", "object", "array", "reference"]
type ParameterLocation = Literal["path", "query", "header", "cookie"]

PRIMITIVE_KINDS: tuple[PrimitiveKind, ...] = ("string", "integer", "number", "boolean")


@dataclass(frozen=True)
class BackReference:
    """Reference to a schema that was still being resolved when it was met."""

    name: str


@dataclass(frozen=True)
class SchemaField:
    """One declared property of an object schema."""

    name: str
    type_ref: TypeRef
    required: bool
    nullable: bool = False
    description: Optional[str] = None


@dataclass(frozen=True)
class SchemaDef:
    """A resolved schema definition.

    ``component`` is true for entries of ``components.schemas`` and false for
    object schemas lifted out of an owning schema or operation; those are
    named after their owner, e.g. ``Pet_owner``. ``origin`` is the document
    path the schema was found at, e.g. ``Pet.owner``. A reference
    keeps the name it was written with in ``target_name`` and the resolved
    target in ``target``.
    """

    name: Optional[str]
    kind: SchemaKind
    primitive: Optional[PrimitiveKind] = None
    fields: tuple[SchemaField, ...] = ()
    element_type: Optional[TypeRef] = None
    target_name: Optional[str] = None
    target: Optional[TypeRef] = None
    description: Optional[str] = None
    component: bool = False
    origin: Optional[str] = None


type TypeRef = Union[SchemaDef, BackReference]


@dataclass(frozen=True)
class PrimitiveType:
    """A scalar type from the fixed primitive table."""

    kind: PrimitiveKind


@dataclass(frozen=True)
class OptionalType:
    """A value that may be absent or null."""

    inner: TypeDescriptor


@dataclass(frozen=True)
class SequenceType:
    """An ordered list of elements."""

    element: TypeDescriptor


@dataclass(frozen=True)
class NamedType:
    """Lookup edge to a named entry of the type table."""

    name: str


@dataclass(frozen=True)
class StructField:
    """A field of a generated struct."""

    name: str
    source_name: str
    type: TypeDescriptor
    required: bool
    description: Optional[str] = None


@dataclass(frozen=True)
class StructType:
    """A named record type with ordered fields."""

    name: str
    fields: tuple[StructField, ...]
    description: Optional[str] = None


type TypeDescriptor = Union[PrimitiveType, OptionalType, SequenceType, NamedType, StructType]


@dataclass(frozen=True)
class ParameterDescriptor:
    """A path, query, header or cookie parameter of one route."""

    name: str
    source_name: str
    location: ParameterLocation
    type: TypeDescriptor
    required: bool
    description: Optional[str] = None


@dataclass(frozen=True)
class RouteDescriptor:
    """One HTTP method bound to a path with its request and response shapes."""

    path: str
    method: str
    operation_id: str
    request_type: Optional[TypeDescriptor] = None
    response_type: Optional[TypeDescriptor] = None
    parameters: tuple[ParameterDescriptor, ...] = ()
    request_required: bool = False
    status_code: int = 200
    summary: Optional[str] = None
    description: Optional[str] = None
    source_operation_id: Optional[str] = None

    @property
    def label(self) -> str:
        """Return the ``METHOD /path`` label used in diagnostics."""
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class GenerationModel:
    """Output contract consumed by the code emitter."""

    title: str
    version: str
    types: dict[str, TypeDescriptor]
    routes: tuple[RouteDescriptor, ...]
    warnings: tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class GenerationResult:
    """Generation output metadata."""

    output_dir: str
    package_dir: str
    model: GenerationModel
    written_files: tuple[str, ...]
