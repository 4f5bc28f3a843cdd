"""Reference resolution tests."""

from __future__ import annotations

from typing import Any

import pytest

from openapi_to_fastapi_generator.errors import UnresolvedReferenceError, UnsupportedSchemaError
from openapi_to_fastapi_generator.model_types import BackReference, SchemaDef
from openapi_to_fastapi_generator.resolver import (
    ReferenceResolver,
    lookup_local_ref,
    schema_ref_name,
)

from .fixture_helpers import load_fixture

_PET_SCHEMAS: dict[str, Any] = {
    "Pet": {
        "type": "object",
        "required": ["id", "name"],
        "properties": {
            "id": {"type": "integer"},
            "name": {"type": "string"},
            "tag": {"type": "string"},
        },
    },
    "Pets": {"type": "array", "items": {"$ref": "#/components/schemas/Pet"}},
}


def _field(schema: SchemaDef, name: str):
    for schema_field in schema.fields:
        if schema_field.name == name:
            return schema_field
    raise AssertionError(f"{schema.name} has no field {name!r}")


def test_resolves_components_in_declaration_order() -> None:
    """Every component is resolved and keeps the document order."""
    resolved = ReferenceResolver(_PET_SCHEMAS).resolve_all()

    assert list(resolved) == ["Pet", "Pets"]
    pet = resolved["Pet"]
    assert pet.kind == "object"
    assert pet.component is True
    assert [field.name for field in pet.fields] == ["id", "name", "tag"]
    assert [field.required for field in pet.fields] == [True, True, False]


def test_references_share_the_memoized_definition() -> None:
    """A component reached by reference is the same object as its table entry."""
    resolved = ReferenceResolver(_PET_SCHEMAS).resolve_all()

    pets = resolved["Pets"]
    assert pets.kind == "array"
    assert pets.element_type is resolved["Pet"]


def test_self_reference_terminates_with_back_reference() -> None:
    """A schema that refers to itself is resolved once."""
    schemas = {
        "Node": {
            "type": "object",
            "properties": {
                "next": {"$ref": "#/components/schemas/Node"},
                "children": {"type": "array", "items": {"$ref": "#/components/schemas/Node"}},
            },
        }
    }
    node = ReferenceResolver(schemas).resolve_all()["Node"]

    assert _field(node, "next").type_ref == BackReference("Node")
    children = _field(node, "children").type_ref
    assert isinstance(children, SchemaDef)
    assert children.element_type == BackReference("Node")


def test_mutual_recursion_is_resolved_from_either_side() -> None:
    """Person and Company refer to each other without looping."""
    schemas = load_fixture("tree.yaml")["components"]["schemas"]
    resolved = ReferenceResolver(schemas).resolve_all()

    person = resolved["Person"]
    company = resolved["Company"]
    assert _field(person, "employer").type_ref is company
    employees = _field(company, "employees").type_ref
    assert isinstance(employees, SchemaDef)
    assert employees.element_type == BackReference("Person")
    assert _field(person, "spouse").type_ref == BackReference("Person")


def test_inline_objects_are_named_after_their_owner() -> None:
    """Anonymous nested objects get a synthetic name from the owning property."""
    schemas = load_fixture("tree.yaml")["components"]["schemas"]
    person = ReferenceResolver(schemas).resolve_all()["Person"]

    address = _field(person, "address").type_ref
    assert isinstance(address, SchemaDef)
    assert address.name == "Person_address"
    assert address.component is False
    assert address.origin == "Person.address"
    assert [field.name for field in address.fields] == ["street", "city"]


def test_array_item_objects_are_named_after_the_array() -> None:
    """Object items of an inline array are named with an ``_item`` suffix."""
    schemas = load_fixture("taskmanager.yaml")["components"]["schemas"]
    task = ReferenceResolver(schemas).resolve_all()["Task"]

    subtasks = _field(task, "subtasks").type_ref
    assert isinstance(subtasks, SchemaDef)
    assert isinstance(subtasks.element_type, SchemaDef)
    assert subtasks.element_type.name == "Task_subtasks_item"
    assert subtasks.element_type.origin == "Task.subtasks[]"


def test_nullable_properties_are_flagged() -> None:
    """Both the 3.0 ``nullable`` keyword and 3.1 type lists mark a field nullable."""
    schemas = {
        "Task": {
            "type": "object",
            "properties": {
                "dueDate": {"type": "string", "nullable": True},
                "note": {"type": ["string", "null"]},
                "title": {"type": "string"},
            },
        }
    }
    task = ReferenceResolver(schemas).resolve_all()["Task"]

    assert _field(task, "dueDate").nullable is True
    assert _field(task, "note").nullable is True
    assert _field(task, "note").type_ref.primitive == "string"
    assert _field(task, "title").nullable is False


def test_unresolved_reference_names_target_and_referrer() -> None:
    """A dangling reference reports the missing name and where it was met."""
    schemas = {
        "Owner": {
            "type": "object",
            "properties": {"pet": {"$ref": "#/components/schemas/Missing"}},
        }
    }
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        ReferenceResolver(schemas).resolve_all()

    assert excinfo.value.name == "Missing"
    assert excinfo.value.referrer == "Owner"
    assert "'Missing' from 'Owner'" in str(excinfo.value)


@pytest.mark.parametrize(
    ("schema", "construct"),
    [
        ({"allOf": [{"type": "object"}]}, "allOf"),
        ({"oneOf": [{"type": "string"}, {"type": "integer"}]}, "oneOf"),
        ({"type": "object", "additionalProperties": {"type": "string"}}, "additionalProperties"),
        ({"description": "no type at all"}, "without a type"),
        ({"type": "null"}, "type 'null'"),
        ({"type": ["string", "integer"]}, "type list"),
        ({"type": "array"}, "without 'items'"),
    ],
)
def test_unsupported_constructs_are_rejected(schema: dict[str, Any], construct: str) -> None:
    """Constructs outside the type model abort resolution with the schema name."""
    with pytest.raises(UnsupportedSchemaError, match=construct) as excinfo:
        ReferenceResolver({"Broken": schema}).resolve_all()

    assert excinfo.value.schema_name == "Broken"


def test_resolve_inline_follows_component_references() -> None:
    """Operation-level schemas can point at components."""
    resolver = ReferenceResolver(_PET_SCHEMAS)
    resolved = resolver.resolve_all()

    pet_ref = {"$ref": "#/components/schemas/Pet"}
    assert resolver.resolve_inline(pet_ref, owner="x") is resolved["Pet"]
    inline = resolver.resolve_inline(
        {"type": "object", "properties": {"id": {"type": "string"}}},
        owner="create_tree_response",
    )
    assert isinstance(inline, SchemaDef)
    assert inline.name == "create_tree_response"


def test_schema_ref_name_accepts_only_component_schemas() -> None:
    """Only ``#/components/schemas/<Name>`` is a schema reference."""
    assert schema_ref_name("#/components/schemas/Pet") == "Pet"
    assert schema_ref_name("#/components/schemas/a~1b") == "a/b"
    with pytest.raises(UnsupportedSchemaError):
        schema_ref_name("#/components/parameters/Limit")
    with pytest.raises(UnsupportedSchemaError):
        schema_ref_name("other.yaml#/components/schemas/Pet")


def test_lookup_local_ref() -> None:
    """Local pointers are followed through the document tree."""
    document = {"components": {"parameters": {"Limit": {"name": "limit", "in": "query"}}}}

    assert lookup_local_ref(document, "#/components/parameters/Limit") == {
        "name": "limit",
        "in": "query",
    }
    with pytest.raises(UnresolvedReferenceError, match="'Offset'"):
        lookup_local_ref(document, "#/components/parameters/Offset")
    with pytest.raises(UnsupportedSchemaError, match="non-local"):
        lookup_local_ref(document, "https://example.com/spec.yaml#/Pet")
