"""Rendering tests for the generated server modules."""

from __future__ import annotations

import ast
from pathlib import Path

from openapi_to_fastapi_generator.codegen_ast import (
    annotation_expr,
    render_app_module,
    render_models_module,
    render_package_init,
    render_routes_module,
)
from openapi_to_fastapi_generator.generator import build_generation_model
from openapi_to_fastapi_generator.model_types import (
    GenerationModel,
    NamedType,
    OptionalType,
    PrimitiveType,
    SequenceType,
    StructType,
)
from openapi_to_fastapi_generator.module_loading import loaded_module

from .fixture_helpers import load_fixture


def _model(fixture_name: str) -> GenerationModel:
    return build_generation_model(load_fixture(fixture_name))


def _top_level_names(source: str) -> list[str]:
    parsed = ast.parse(source)
    names: list[str] = []
    for node in parsed.body:
        if isinstance(node, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
            names.append(node.name)
        elif isinstance(node, ast.TypeAlias):
            names.append(node.name.id)
    return names


def _write(tmp_path: Path, filename: str, source: str) -> Path:
    path = tmp_path / filename
    path.write_text(source, encoding="utf-8")
    return path


def test_annotation_expressions() -> None:
    """Descriptors render as standard typing annotations."""
    descriptor = OptionalType(SequenceType(NamedType("Pet")))

    assert ast.unparse(annotation_expr(descriptor)) == "Optional[list[Pet]]"
    assert ast.unparse(annotation_expr(descriptor, qualifier="models")) == (
        "Optional[list[models.Pet]]"
    )
    assert ast.unparse(annotation_expr(PrimitiveType("number"))) == "float"


def test_models_module_declares_types_in_table_order() -> None:
    """Structs become classes and other entries become type aliases."""
    model = _model("petstore.yaml")
    source = render_models_module(model)

    assert _top_level_names(source) == ["Pet", "Pets", "Error"]
    assert "type Pets = list[Pet]" in source
    assert "from pydantic import BaseModel, Field" in source
    assert "from typing import Optional" in source
    assert "id: int = Field(...)" in source
    assert "tag: Optional[str] = Field(None)" in source
    assert "A pet in the store." in source


def test_models_module_aliases_renamed_fields() -> None:
    """Fields renamed for Python keep their document spelling as alias."""
    source = render_models_module(_model("taskmanager.yaml"))

    assert "model_config = ConfigDict(populate_by_name=True)" in source
    assert "due_date: Optional[str] = Field(None, alias='dueDate')" in source
    assert "status: Optional[TaskStatus] = Field(None)" in source
    assert "type TaskStatus = str" in source


def test_models_module_rebuilds_models_with_named_fields() -> None:
    """Models that refer to other entries are rebuilt after all declarations."""
    source = render_models_module(_model("tree.yaml"))
    parsed = ast.parse(source)

    rebuilt = [
        node.value.func.value.id
        for node in parsed.body
        if isinstance(node, ast.Expr)
        and isinstance(node.value, ast.Call)
        and isinstance(node.value.func, ast.Attribute)
        and node.value.func.attr == "model_rebuild"
    ]
    assert rebuilt == ["TreeNode", "Person", "Company", "CreateTreeResponse"]


def test_generated_models_validate_payloads(tmp_path: Path) -> None:
    """Generated models import and accept recursive payloads by alias or name."""
    path = _write(tmp_path, "models.py", render_models_module(_model("tree.yaml")))

    with loaded_module(path) as module:
        node = module.TreeNode.model_validate(
            {"value": 1.5, "children": [{"value": 2}], "parent": None}
        )
        assert node.children[0].value == 2
        assert node.children[0].children is None

        by_alias = module.Person.model_validate(
            {"displayName": "Ada", "address": {"city": "London"}}
        )
        by_name = module.Person(display_name="Ada")
        assert by_alias.display_name == by_name.display_name == "Ada"
        assert by_alias.address.city == "London"
        assert by_alias.model_dump(by_alias=True, exclude_none=True) == {
            "displayName": "Ada",
            "address": {"city": "London"},
        }

        schema = module.Person.model_json_schema(by_alias=True)
        assert list(schema["properties"]) == ["displayName", "spouse", "employer", "address"]
        assert schema["required"] == ["displayName"]


def test_empty_struct_renders_pass() -> None:
    """An object without properties still yields a valid class body."""
    model = GenerationModel(
        title="Empty",
        version="1",
        types={"Empty": StructType(name="Empty", fields=())},
        routes=(),
    )
    source = render_models_module(model)

    assert "class Empty(BaseModel):\n    pass" in source
    assert "Optional" not in source


def test_routes_module_qualifies_model_references() -> None:
    """Handlers refer to models through the sibling module."""
    source = render_routes_module(_model("petstore.yaml"))

    assert "from . import models" in source
    assert "from fastapi import APIRouter, Body, Header, HTTPException, Path, Query" in source
    assert "router = APIRouter()" in source
    assert _top_level_names(source) == [
        "list_pets",
        "create_pets",
        "show_pet_by_id",
        "delete_pets_by_pet_id",
    ]
    assert "response_model=models.Pets" in source
    assert "async def create_pets(body: models.Pet = Body(...)) -> None:" in source
    assert "@router.get('/pets/{pet_id}'" in source
    assert "pet_id: str = Path(...," in source
    assert "x_request_id: Optional[str] = Header(None, alias='X-Request-ID')" in source
    assert "raise HTTPException(status_code=501, detail='Not implemented')" in source


def test_routes_module_marks_optional_body() -> None:
    """A body that is not required defaults to ``None``."""
    source = render_routes_module(_model("taskmanager.yaml"))

    assert "body: Optional[models.UpdateTaskRequest] = Body(None)" in source
    assert "status_code=204" in source
    assert "tags: Optional[list[str]] = Query(None)" in source


def test_routes_module_without_models() -> None:
    """A document without bodies or responses does not import the models module."""
    model = build_generation_model(
        {
            "openapi": "3.0.3",
            "info": {"title": "Health", "version": "1"},
            "paths": {"/health": {"get": {"responses": {"204": {"description": "ok"}}}}},
        }
    )
    source = render_routes_module(model)

    assert "from . import models" not in source
    assert "from fastapi import APIRouter, HTTPException" in source
    assert "async def get_health() -> None:" in source


def test_app_module_exposes_factory_and_entry_point() -> None:
    """The application module builds the app and serves it with uvicorn."""
    source = render_app_module(_model("petstore.yaml"), host="0.0.0.0", port=9000)

    assert "from .routes import router" in source
    assert "def create_app() -> FastAPI:" in source
    assert "FastAPI(title='Swagger Petstore', version='1.0.0')" in source
    assert "app = create_app()" in source
    assert "uvicorn.run(app, host='0.0.0.0', port=9000)" in source
    assert _top_level_names(source) == ["create_app", "main"]


def test_package_init_indexes_routes_and_models() -> None:
    """The package docstring maps routes to handlers and lists models."""
    source = render_package_init(_model("petstore.yaml"))
    docstring = ast.get_docstring(ast.parse(source))

    assert docstring is not None
    assert "- GET /pets -> .routes.list_pets" in docstring
    assert "  summary: List all pets" in docstring
    assert "- DELETE /pets/{petId} -> .routes.delete_pets_by_pet_id" in docstring
    assert "- Pet (model)" in docstring
    assert "- Pets (alias)" in docstring
