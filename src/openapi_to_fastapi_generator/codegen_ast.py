"""AST-based Python code generation for the FastAPI server skeleton."""

from __future__ import annotations

import ast
from collections.abc import Iterable
import textwrap
from typing import Optional

from .model_types import (
    GenerationModel,
    NamedType,
    OptionalType,
    ParameterDescriptor,
    PrimitiveType,
    RouteDescriptor,
    SequenceType,
    StructField,
    StructType,
    TypeDescriptor,
)
from .naming import path_template_identifiers
from .type_mapper import named_dependencies

_PRIMITIVE_ANNOTATIONS: dict[str, str] = {
    "string": "str",
    "integer": "int",
    "number": "float",
    "boolean": "bool",
}

_TYPING_IMPORT_ORDER: tuple[str, ...] = ("Optional",)

_PYDANTIC_IMPORT_ORDER: tuple[str, ...] = (
    "BaseModel",
    "ConfigDict",
    "Field",
)

_FASTAPI_IMPORT_ORDER: tuple[str, ...] = (
    "APIRouter",
    "Body",
    "Cookie",
    "Header",
    "HTTPException",
    "Path",
    "Query",
)

_PARAMETER_FUNCTIONS: dict[str, str] = {
    "path": "Path",
    "query": "Query",
    "header": "Header",
    "cookie": "Cookie",
}

_NOT_IMPLEMENTED_STATUS = 501

MODELS_ALIAS = "models"
RESERVED_HANDLER_NAMES: tuple[str, ...] = ("router", MODELS_ALIAS)
RESERVED_TYPE_NAMES: tuple[str, ...] = (*_PYDANTIC_IMPORT_ORDER, *_TYPING_IMPORT_ORDER)


def render_models_module(model: GenerationModel) -> str:
    """Render the type table as a pydantic models module.

    Args:
        model (GenerationModel): Generation model to render.

    Returns:
        str: Generated Python source code for ``models.py``.
    """
    definitions: list[ast.stmt] = []
    rebuilds: list[ast.stmt] = []
    for name, descriptor in model.types.items():
        if isinstance(descriptor, StructType):
            definitions.append(_struct_to_ast(descriptor))
            if named_dependencies(descriptor):
                rebuild = ast.Attribute(value=_name(name), attr="model_rebuild", ctx=ast.Load())
                rebuilds.append(ast.Expr(value=_call(rebuild)))
        else:
            definitions.append(
                ast.TypeAlias(
                    name=ast.Name(id=name, ctx=ast.Store()),
                    type_params=[],
                    value=annotation_expr(descriptor),
                )
            )

    body: list[ast.stmt] = [
        _docstring(f"Generated data models for {model.title} {model.version}."),
        ast.ImportFrom(module="__future__", names=[ast.alias(name="annotations")], level=0),
    ]
    used_names = _loaded_names(definitions)
    body.extend(_import_from("typing", _TYPING_IMPORT_ORDER, used_names))
    body.extend(_import_from("pydantic", _PYDANTIC_IMPORT_ORDER, used_names))
    body.extend(definitions)
    body.extend(rebuilds)
    return _unparse(body)


def render_routes_module(
    model: GenerationModel,
    *,
    models_module: str = "models",
) -> str:
    """Render the route table as a FastAPI ``APIRouter`` module with handler stubs.

    Args:
        model (GenerationModel): Generation model to render.
        models_module (str): Sibling module holding the generated models.

    Returns:
        str: Generated Python source code for ``routes.py``.
    """
    definitions: list[ast.stmt] = [
        ast.Assign(
            targets=[ast.Name(id="router", ctx=ast.Store())],
            value=_call(_name("APIRouter")),
        )
    ]
    for route in model.routes:
        definitions.append(_route_to_ast(route))

    used_names = _loaded_names(definitions)

    body: list[ast.stmt] = [
        _docstring(f"Generated routes for {model.title} {model.version}."),
        ast.ImportFrom(module="__future__", names=[ast.alias(name="annotations")], level=0),
    ]
    body.extend(_import_from("typing", _TYPING_IMPORT_ORDER, used_names))
    body.extend(_import_from("fastapi", _FASTAPI_IMPORT_ORDER, used_names))
    if MODELS_ALIAS in used_names:
        body.append(
            ast.ImportFrom(
                module=None,
                names=[ast.alias(name=models_module, asname=_alias_or_none(models_module))],
                level=1,
            )
        )
    body.extend(definitions)
    return _unparse(body)


def render_app_module(
    model: GenerationModel,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    routes_module: str = "routes",
) -> str:
    """Render the application factory and server entry point.

    Args:
        model (GenerationModel): Generation model to render.
        host (str): Host the emitted ``main()`` binds to.
        port (int): Port the emitted ``main()`` binds to.
        routes_module (str): Sibling module holding the router.

    Returns:
        str: Generated Python source code for ``app.py``.
    """
    create_app = ast.FunctionDef(
        name="create_app",
        args=_arguments([]),
        body=[
            _docstring(f"Create the {model.title} application."),
            ast.Assign(
                targets=[ast.Name(id="application", ctx=ast.Store())],
                value=_call(
                    _name("FastAPI"),
                    keywords={
                        "title": ast.Constant(model.title),
                        "version": ast.Constant(model.version),
                    },
                ),
            ),
            ast.Expr(
                value=_call(
                    ast.Attribute(
                        value=_name("application"),
                        attr="include_router",
                        ctx=ast.Load(),
                    ),
                    args=[_name("router")],
                )
            ),
            ast.Return(value=_name("application")),
        ],
        decorator_list=[],
        returns=_name("FastAPI"),
        type_params=[],
    )
    main = ast.FunctionDef(
        name="main",
        args=_arguments([]),
        body=[
            _docstring("Serve the application with uvicorn."),
            ast.Expr(
                value=_call(
                    ast.Attribute(value=_name("uvicorn"), attr="run", ctx=ast.Load()),
                    args=[_name("app")],
                    keywords={"host": ast.Constant(host), "port": ast.Constant(port)},
                )
            ),
        ],
        decorator_list=[],
        returns=ast.Constant(None),
        type_params=[],
    )
    body: list[ast.stmt] = [
        _docstring(f"Application factory for {model.title} {model.version}."),
        ast.ImportFrom(module="__future__", names=[ast.alias(name="annotations")], level=0),
        ast.Import(names=[ast.alias(name="uvicorn")]),
        ast.ImportFrom(module="fastapi", names=[ast.alias(name="FastAPI")], level=0),
        ast.ImportFrom(module=routes_module, names=[ast.alias(name="router")], level=1),
        create_app,
        ast.Assign(
            targets=[ast.Name(id="app", ctx=ast.Store())],
            value=_call(_name("create_app")),
        ),
        main,
        ast.If(
            test=ast.Compare(
                left=_name("__name__"),
                ops=[ast.Eq()],
                comparators=[ast.Constant("__main__")],
            ),
            body=[ast.Expr(value=_call(_name("main")))],
            orelse=[],
        ),
    ]
    return _unparse(body)


def render_package_init(model: GenerationModel) -> str:
    """Render the package ``__init__.py`` with a route and model index.

    Args:
        model (GenerationModel): Generation model to document.

    Returns:
        str: Generated Python source for the package docstring module.
    """
    lines: list[str] = [
        f"Generated FastAPI server skeleton for {model.title} {model.version}.",
        "",
        "Modules:",
        "- .models: pydantic models for the component schemas",
        "- .routes: APIRouter with one handler stub per operation",
        "- .app: create_app() factory and uvicorn entry point",
        "",
        "Route index:",
    ]
    for route in model.routes:
        lines.append(f"- {route.label} -> .routes.{route.operation_id}")
        summary = route.summary or route.description
        if summary:
            for summary_line in _wrap_summary(summary):
                lines.append(f"  summary: {summary_line}")
    lines.append("")
    lines.append("Models:")
    for name, descriptor in model.types.items():
        kind = "model" if isinstance(descriptor, StructType) else "alias"
        lines.append(f"- {name} ({kind})")
    return _unparse([_docstring("\n".join(lines))])


def annotation_expr(descriptor: TypeDescriptor, *, qualifier: Optional[str] = None) -> ast.expr:
    """Return the Python annotation expression for a type descriptor.

    Named types are written as ``qualifier.Name`` when a qualifier is given.
    """
    if isinstance(descriptor, PrimitiveType):
        return _name(_PRIMITIVE_ANNOTATIONS[descriptor.kind])
    if isinstance(descriptor, OptionalType):
        return _subscript("Optional", annotation_expr(descriptor.inner, qualifier=qualifier))
    if isinstance(descriptor, SequenceType):
        return _subscript("list", annotation_expr(descriptor.element, qualifier=qualifier))
    if qualifier is None:
        return _name(descriptor.name)
    return ast.Attribute(value=_name(qualifier), attr=descriptor.name, ctx=ast.Load())


def _struct_to_ast(struct: StructType) -> ast.ClassDef:
    class_body: list[ast.stmt] = []
    if struct.description:
        class_body.append(_docstring(struct.description))

    if any(field.name != field.source_name for field in struct.fields):
        class_body.append(
            ast.Assign(
                targets=[ast.Name(id="model_config", ctx=ast.Store())],
                value=_call(
                    _name("ConfigDict"),
                    keywords={"populate_by_name": ast.Constant(True)},
                ),
            )
        )

    for field in struct.fields:
        class_body.append(_field_to_ast(field))

    if not class_body:
        class_body.append(ast.Pass())

    return ast.ClassDef(
        name=struct.name,
        bases=[_name("BaseModel")],
        keywords=[],
        body=class_body,
        decorator_list=[],
        type_params=[],
    )


def _field_to_ast(field: StructField) -> ast.AnnAssign:
    keywords: dict[str, ast.expr] = {}
    if field.source_name != field.name:
        keywords["alias"] = ast.Constant(field.source_name)
    if field.description:
        keywords["description"] = ast.Constant(field.description)

    default_value = ast.Constant(Ellipsis) if field.required else ast.Constant(None)
    return ast.AnnAssign(
        target=ast.Name(id=field.name, ctx=ast.Store()),
        annotation=annotation_expr(field.type),
        value=_call(_name("Field"), args=[default_value], keywords=keywords),
        simple=1,
    )


def _route_to_ast(route: RouteDescriptor) -> ast.AsyncFunctionDef:
    decorator_keywords: dict[str, ast.expr] = {}
    if route.response_type is not None:
        decorator_keywords["response_model"] = annotation_expr(
            route.response_type, qualifier=MODELS_ALIAS
        )
    decorator_keywords["status_code"] = ast.Constant(route.status_code)
    decorator_keywords["operation_id"] = ast.Constant(route.operation_id)
    if route.summary:
        decorator_keywords["summary"] = ast.Constant(route.summary)

    decorator = _call(
        ast.Attribute(value=_name("router"), attr=route.method.lower(), ctx=ast.Load()),
        args=[ast.Constant(path_template_identifiers(route.path))],
        keywords=decorator_keywords,
    )

    arguments: list[tuple[str, ast.expr, ast.expr]] = [
        _parameter_argument(parameter) for parameter in route.parameters
    ]
    if route.request_type is not None:
        body_type = route.request_type
        if not route.request_required:
            body_type = OptionalType(body_type)
        arguments.append(
            (
                "body",
                annotation_expr(body_type, qualifier=MODELS_ALIAS),
                _call(
                    _name("Body"),
                    args=[ast.Constant(Ellipsis if route.request_required else None)],
                ),
            )
        )

    function_body: list[ast.stmt] = []
    docstring = route.summary or route.description
    if docstring:
        function_body.append(_docstring(docstring))
    function_body.append(
        ast.Raise(
            exc=_call(
                _name("HTTPException"),
                keywords={
                    "status_code": ast.Constant(_NOT_IMPLEMENTED_STATUS),
                    "detail": ast.Constant("Not implemented"),
                },
            ),
            cause=None,
        )
    )

    returns = (
        annotation_expr(route.response_type, qualifier=MODELS_ALIAS)
        if route.response_type is not None
        else ast.Constant(None)
    )
    return ast.AsyncFunctionDef(
        name=route.operation_id,
        args=_arguments(arguments),
        body=function_body,
        decorator_list=[decorator],
        returns=returns,
        type_params=[],
    )


def _parameter_argument(parameter: ParameterDescriptor) -> tuple[str, ast.expr, ast.expr]:
    keywords: dict[str, ast.expr] = {}
    if parameter.location != "path" and parameter.source_name != parameter.name:
        keywords["alias"] = ast.Constant(parameter.source_name)
    if parameter.description:
        keywords["description"] = ast.Constant(parameter.description)
    default = _call(
        _name(_PARAMETER_FUNCTIONS[parameter.location]),
        args=[ast.Constant(Ellipsis if parameter.required else None)],
        keywords=keywords,
    )
    return parameter.name, annotation_expr(parameter.type, qualifier=MODELS_ALIAS), default


def _arguments(arguments: list[tuple[str, ast.expr, ast.expr]]) -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg=name, annotation=annotation) for name, annotation, _ in arguments],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[default for _, _, default in arguments],
    )


def _alias_or_none(module: str) -> Optional[str]:
    return None if module == MODELS_ALIAS else MODELS_ALIAS


def _import_from(module: str, order: tuple[str, ...], used_names: set[str]) -> list[ast.stmt]:
    names = [name for name in order if name in used_names]
    if not names:
        return []
    return [
        ast.ImportFrom(
            module=module,
            names=[ast.alias(name=name) for name in names],
            level=0,
        )
    ]


def _loaded_names(statements: Iterable[ast.stmt]) -> set[str]:
    loaded_names: set[str] = set()
    for statement in statements:
        for node in ast.walk(statement):
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load):
                loaded_names.add(node.id)
    return loaded_names


def _name(identifier: str) -> ast.Name:
    return ast.Name(id=identifier, ctx=ast.Load())


def _subscript(container: str, item: ast.expr) -> ast.Subscript:
    return ast.Subscript(value=_name(container), slice=item, ctx=ast.Load())


def _call(
    func: ast.expr,
    *,
    args: Optional[list[ast.expr]] = None,
    keywords: Optional[dict[str, ast.expr]] = None,
) -> ast.Call:
    return ast.Call(
        func=func,
        args=args or [],
        keywords=[ast.keyword(arg=key, value=value) for key, value in (keywords or {}).items()],
    )


def _docstring(text: str) -> ast.Expr:
    return ast.Expr(value=ast.Constant(value=text))


def _unparse(body: list[ast.stmt]) -> str:
    module = ast.Module(body=body, type_ignores=[])
    ast.fix_missing_locations(module)
    return ast.unparse(module) + "\n"


def _wrap_summary(text: str) -> list[str]:
    wrapped = textwrap.wrap(text, width=84)
    return wrapped if wrapped else [text]
