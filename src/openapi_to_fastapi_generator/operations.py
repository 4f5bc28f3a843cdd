"""Collect routes from the OpenAPI ``paths`` section."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import logging
import re
from typing import Any, Optional

from .errors import GenerationError, UnsupportedSchemaError
from .model_types import (
    NamedType,
    OptionalType,
    ParameterDescriptor,
    ParameterLocation,
    PrimitiveType,
    RouteDescriptor,
    SequenceType,
    StructType,
    TypeDescriptor,
)
from .naming import (
    IdentifierRegistry,
    OperationIdAllocator,
    derive_operation_id,
    field_identifier,
    snake_identifier,
)
from .resolver import ReferenceResolver, lookup_local_ref
from .type_mapper import TypeMapper

logger = logging.getLogger(__name__)

HTTP_METHODS: tuple[str, ...] = ("get", "post", "put", "patch", "delete")
_SKIPPED_HTTP_METHODS: tuple[str, ...] = ("head", "options", "trace")
_PARAMETER_LOCATIONS: tuple[ParameterLocation, ...] = ("path", "query", "header", "cookie")

_REQUEST_MEDIA_TYPES: tuple[str, ...] = (
    "application/json",
    "application/*+json",
    "application/x-www-form-urlencoded",
    "multipart/form-data",
)
_RESPONSE_MEDIA_TYPES: tuple[str, ...] = (
    "application/json",
    "application/*+json",
    "application/x-www-form-urlencoded",
)
_SUCCESS_STATUS_RE = re.compile(r"^2\d\d$")
_SUCCESS_WILDCARDS: tuple[str, ...] = ("2XX", "2xx")
_BODY_ARGUMENT = "body"


@dataclass(frozen=True)
class _OperationCandidate:
    path: str
    method: str
    operation: Mapping[str, Any]
    path_item: Mapping[str, Any]

    @property
    def label(self) -> str:
        return f"{self.method.upper()} {self.path}"


class OperationCollector:
    """Turn path items into an ordered list of ``RouteDescriptor``.

    Paths keep their declaration order and methods are visited in the fixed
    order GET, POST, PUT, PATCH, DELETE.
    """

    def __init__(
        self,
        document: Mapping[str, Any],
        *,
        resolver: ReferenceResolver,
        mapper: TypeMapper,
        reserved_operation_ids: tuple[str, ...] = (),
    ) -> None:
        self._document = document
        self._resolver = resolver
        self._mapper = mapper
        self._reserved_operation_ids = reserved_operation_ids

    def collect(self, paths: Mapping[str, Any]) -> tuple[list[RouteDescriptor], list[str]]:
        """Collect routes and warnings for skipped constructs.

        Args:
            paths (Mapping[str, Any]): The ``paths`` section of the document.

        Returns:
            tuple[list[RouteDescriptor], list[str]]: Routes in canonical order
                and human readable warnings.
        """
        candidates, warnings = _collect_operation_candidates(paths)
        allocator = OperationIdAllocator(reserved=self._reserved_operation_ids)
        routes: list[RouteDescriptor] = []
        for candidate in candidates:
            source_operation_id = _string_or_none(candidate.operation.get("operationId"))
            if source_operation_id is not None:
                base_id = snake_identifier(source_operation_id)
            else:
                base_id = derive_operation_id(candidate.method, candidate.path)
            operation_id = allocator.allocate(base_id)
            if operation_id != base_id:
                warnings.append(
                    f"Duplicate operationId {base_id!r} on {candidate.label}; "
                    f"using {operation_id!r}"
                )

            try:
                route = self._build_route(
                    candidate,
                    operation_id=operation_id,
                    source_operation_id=source_operation_id,
                )
            except GenerationError as exc:
                if exc.context is None:
                    raise exc.with_context(candidate.label) from exc
                raise
            logger.debug("Collected route %s as %s", route.label, route.operation_id)
            routes.append(route)

        for warning in warnings:
            logger.warning(warning)
        logger.info("Collected %d routes", len(routes))
        return routes, warnings

    def _build_route(
        self,
        candidate: _OperationCandidate,
        *,
        operation_id: str,
        source_operation_id: Optional[str],
    ) -> RouteDescriptor:
        arguments = IdentifierRegistry(context=candidate.label)

        request_type: Optional[TypeDescriptor] = None
        request_required = False
        request_body = self._dereference(candidate.operation.get("requestBody"))
        if request_body is not None:
            schema_node = _select_media_schema(request_body.get("content"), _REQUEST_MEDIA_TYPES)
            if schema_node is not None:
                request_type = self._map_schema(
                    schema_node,
                    owner=f"{operation_id}_request",
                    origin=f"{candidate.label} request body",
                )
                request_required = request_body.get("required") is True
                arguments.claim(_BODY_ARGUMENT, "<request body>")

        parameters = self._parameters(candidate, operation_id=operation_id, arguments=arguments)
        response_type, status_code = self._response(candidate, operation_id=operation_id)

        return RouteDescriptor(
            path=candidate.path,
            method=candidate.method.upper(),
            operation_id=operation_id,
            request_type=request_type,
            response_type=response_type,
            parameters=parameters,
            request_required=request_required,
            status_code=status_code,
            summary=_string_or_none(candidate.operation.get("summary")),
            description=_string_or_none(candidate.operation.get("description")),
            source_operation_id=source_operation_id,
        )

    def _parameters(
        self,
        candidate: _OperationCandidate,
        *,
        operation_id: str,
        arguments: IdentifierRegistry,
    ) -> tuple[ParameterDescriptor, ...]:
        merged: dict[tuple[str, str], Mapping[str, Any]] = {}
        for source in (candidate.path_item, candidate.operation):
            raw = source.get("parameters")
            if raw is None:
                continue
            if not isinstance(raw, list):
                raise UnsupportedSchemaError("'parameters' that is not a list")
            for item in raw:
                parameter = self._dereference(item)
                if parameter is None:
                    raise UnsupportedSchemaError("parameter that is not a mapping")
                name = parameter.get("name")
                location = parameter.get("in")
                if not isinstance(name, str) or not name or not isinstance(location, str):
                    raise UnsupportedSchemaError("parameter without 'name' and 'in'")
                merged[(name, location)] = parameter

        descriptors: list[ParameterDescriptor] = []
        for (name, location), parameter in merged.items():
            if location not in _PARAMETER_LOCATIONS:
                raise UnsupportedSchemaError(f"parameter location {location!r}", schema_name=name)
            required = location == "path" or parameter.get("required") is True
            schema_node = parameter.get("schema")
            param_type: TypeDescriptor
            if schema_node is None:
                param_type = PrimitiveType("string")
            else:
                param_type = self._parameter_type(
                    self._map_schema(
                        schema_node,
                        owner=f"{operation_id}_{name}",
                        origin=f"{candidate.label} {location} parameter {name}",
                    ),
                    parameter_name=name,
                )
            if not required:
                param_type = OptionalType(param_type)
            descriptors.append(
                ParameterDescriptor(
                    name=arguments.claim(field_identifier(name), f"{location} parameter {name}"),
                    source_name=name,
                    location=_location(location),
                    type=param_type,
                    required=required,
                    description=_string_or_none(parameter.get("description")),
                )
            )
        return tuple(descriptors)

    def _parameter_type(self, descriptor: TypeDescriptor, *, parameter_name: str) -> TypeDescriptor:
        table = self._mapper.types
        seen: set[str] = set()
        while isinstance(descriptor, NamedType):
            target = table.get(descriptor.name)
            if target is None or isinstance(target, StructType) or descriptor.name in seen:
                raise UnsupportedSchemaError("object parameter", schema_name=parameter_name)
            seen.add(descriptor.name)
            descriptor = target
        if isinstance(descriptor, SequenceType):
            element = self._parameter_type(descriptor.element, parameter_name=parameter_name)
            if not isinstance(element, PrimitiveType):
                raise UnsupportedSchemaError("nested array parameter", schema_name=parameter_name)
            return SequenceType(element)
        if isinstance(descriptor, OptionalType):
            return self._parameter_type(descriptor.inner, parameter_name=parameter_name)
        return descriptor

    def _response(
        self,
        candidate: _OperationCandidate,
        *,
        operation_id: str,
    ) -> tuple[Optional[TypeDescriptor], int]:
        responses = candidate.operation.get("responses")
        if not isinstance(responses, Mapping):
            return None, 200

        statuses = _success_statuses(responses)
        for status_key, status_code in statuses:
            response = self._dereference(responses[status_key])
            if response is None:
                continue
            schema_node = _select_media_schema(response.get("content"), _RESPONSE_MEDIA_TYPES)
            if schema_node is not None:
                response_type = self._map_schema(
                    schema_node,
                    owner=f"{operation_id}_response",
                    origin=f"{candidate.label} response",
                )
                return response_type, status_code
        if statuses:
            return None, statuses[0][1]
        return None, 200

    def _map_schema(self, schema_node: Any, *, owner: str, origin: str) -> TypeDescriptor:
        type_ref = self._resolver.resolve_inline(schema_node, owner=owner, origin=origin)
        return self._mapper.map_type_ref(type_ref)

    def _dereference(self, node: Any) -> Optional[Mapping[str, Any]]:
        seen: set[str] = set()
        while isinstance(node, Mapping) and isinstance(node.get("$ref"), str):
            ref = node["$ref"]
            if ref in seen:
                raise UnsupportedSchemaError(f"circular reference {ref!r}")
            seen.add(ref)
            node = lookup_local_ref(self._document, ref)
        if isinstance(node, Mapping):
            return node
        return None


def _collect_operation_candidates(
    paths: Mapping[str, Any],
) -> tuple[list[_OperationCandidate], list[str]]:
    candidates: list[_OperationCandidate] = []
    warnings: list[str] = []
    for path, path_item in paths.items():
        if not isinstance(path, str) or not isinstance(path_item, Mapping):
            raise UnsupportedSchemaError(f"path item {path!r} that is not a mapping")
        if "$ref" in path_item:
            raise UnsupportedSchemaError("path item '$ref'", context=str(path))
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if operation is None:
                continue
            if not isinstance(operation, Mapping):
                raise UnsupportedSchemaError(
                    "operation that is not a mapping",
                    context=f"{method.upper()} {path}",
                )
            candidates.append(
                _OperationCandidate(
                    path=path,
                    method=method,
                    operation=operation,
                    path_item=path_item,
                )
            )
        for method in _SKIPPED_HTTP_METHODS:
            if method in path_item:
                warnings.append(f"Skipping unsupported HTTP method {method.upper()} {path}")
    return candidates, warnings


def _success_statuses(responses: Mapping[Any, Any]) -> list[tuple[Any, int]]:
    numeric: list[tuple[Any, int]] = []
    wildcard: list[tuple[Any, int]] = []
    for key in responses:
        text = str(key)
        if _SUCCESS_STATUS_RE.match(text):
            numeric.append((key, int(text)))
        elif text in _SUCCESS_WILDCARDS:
            wildcard.append((key, 200))
    numeric.sort(key=lambda item: item[1])
    return numeric + wildcard


def _select_media_schema(content: Any, preferred: tuple[str, ...]) -> Optional[Mapping[str, Any]]:
    if not isinstance(content, Mapping):
        return None

    candidates: list[Mapping[str, Any]] = []
    for media_type in preferred:
        media = content.get(media_type)
        if isinstance(media, Mapping):
            candidates.append(media)
    for media in content.values():
        if isinstance(media, Mapping) and all(media is not seen for seen in candidates):
            candidates.append(media)

    for media in candidates:
        schema_node = media.get("schema")
        if isinstance(schema_node, Mapping):
            return schema_node
    return None


def _location(value: str) -> ParameterLocation:
    for location in _PARAMETER_LOCATIONS:
        if location == value:
            return location
    raise UnsupportedSchemaError(f"parameter location {value!r}")


def _string_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return None
