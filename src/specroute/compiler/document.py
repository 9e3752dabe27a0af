"""Compile a whole OpenAPI document into :class:`~specroute.models.CompiledOutput`.

This is the entry point of the compiler. It checks the version marker,
compiles the service configuration, turns every component schema into one or
two named declarations, orders them, and compiles every operation.

Typical usage::

    from specroute.compiler import compile_document
    from specroute.models import CompileMode, CompileOptions
    from specroute.parser import load_document

    output = compile_document(load_document("openapi.yaml"), CompileOptions(mode=CompileMode.SERVER))
    for decl in output.declarations:
        print(decl.name)
"""

from __future__ import annotations

import logging
from typing import Any

from specroute.compiler.operation import compile_operation, operation_id, side_settings
from specroute.compiler.ordering import order_declarations
from specroute.compiler.schema import SchemaContext, compile_model, declaration_name
from specroute.compiler.service import compile_service_config
from specroute.exceptions import DuplicateOperationError
from specroute.models import (
    CompiledOutput,
    CompileOptions,
    HTTPMethod,
    NamedDeclaration,
    OperationDescriptor,
    UsedIn,
)
from specroute.parser.loader import check_openapi_version
from specroute.parser.resolver import escape_pointer_segment
from specroute.parser.schema import parse_schema

logger = logging.getLogger(__name__)


def compile_document(document: dict[str, Any], options: CompileOptions) -> CompiledOutput:
    """Compile *document* with the given options.

    Args:
        document: The parsed OpenAPI 3.x document. It is never mutated.
        options: Compile mode and declaration name prefix.

    Returns:
        The ordered declarations, the operations keyed by ``operationId``,
        and the service configuration.

    Raises:
        UnsupportedDocumentVersionError: If *document* is not OpenAPI 3.x.
        CircularDependencyError: If component schemas reference each other
            in a cycle.
        DuplicateOperationError: If two operations share an ``operationId``.
        CompileError: Any other schema or operation compile error.
    """
    version = check_openapi_version(document)
    logger.debug("Compiling OpenAPI %s document in %s mode", version, options.mode.value)

    config = compile_service_config(document)
    declarations = order_declarations(compile_component_schemas(document, options))
    operations = compile_operations(document, options)

    logger.debug(
        "Compiled %d declarations and %d operations", len(declarations), len(operations)
    )
    return CompiledOutput(
        mode=options.mode,
        prefix=options.prefix,
        config=config,
        declarations=declarations,
        operations=operations,
    )


def compile_component_schemas(
    document: dict[str, Any], options: CompileOptions
) -> list[NamedDeclaration]:
    """Compile ``components/schemas`` into declarations, in document order.

    ``client`` and ``server`` modes compile every schema twice: once as it is
    sent in requests (``__Req``) and once as it is returned in responses
    (``__Res``). The other modes produce a single declaration per schema.
    """
    components = document.get("components") or {}
    if options.mode.is_directional:
        sides = [side_settings(options.mode, UsedIn.REQUEST), side_settings(options.mode, UsedIn.RESPONSE)]
    else:
        sides = [side_settings(options.mode, UsedIn.UNKNOWN)]

    declarations: list[NamedDeclaration] = []
    for name, raw in (components.get("schemas") or {}).items():
        path = f"#/components/schemas/{escape_pointer_segment(name)}"
        node = parse_schema(raw, path)
        for side in sides:
            ctx = SchemaContext(
                document=document,
                mode=side.mode,
                name_prefix=options.prefix,
                ref_suffix=side.ref_suffix,
            )
            compiled = compile_model(node, True, ctx, path)
            declarations.append(
                NamedDeclaration(
                    name=declaration_name(ctx, name),
                    expr=compiled.expr,
                    depends_on=compiled.depends_on,
                    source=path,
                )
            )
    return declarations


def compile_operations(
    document: dict[str, Any], options: CompileOptions
) -> dict[str, OperationDescriptor]:
    """Compile every route and method, keyed by ``operationId`` in walk order."""
    operations: dict[str, OperationDescriptor] = {}
    for route, path_item in (document.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        for method in HTTPMethod:
            operation = path_item.get(method.value)
            if operation is None:
                continue

            path = f"#/paths/{escape_pointer_segment(route)}/{method.value}"
            op_id = operation_id(operation, method.value, route)
            if op_id in operations:
                raise DuplicateOperationError(f"Duplicate operationId {op_id!r}", path)

            operations[op_id] = compile_operation(
                operation,
                method.value,
                route,
                options.mode,
                options.prefix,
                document,
                path,
                path_parameters=path_item.get("parameters") or (),
            )
    return operations
