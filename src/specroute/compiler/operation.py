"""Compile one OpenAPI operation into an :class:`~specroute.models.OperationDescriptor`.

The request side combines the path, query, and header parameters with the
request body; the response side is a union over every declared status code
and content type. Which way values cross the wire depends on the
:class:`~specroute.models.CompileMode`:

============  ==========================  ==========================
Mode          Request side                Response side
============  ==========================  ==========================
``client``    stringify, ``__Req`` refs   parse, ``__Res`` refs
``server``    parse, ``__Req`` refs       stringify, ``__Res`` refs
others        the mode itself, no suffix  the mode itself, no suffix
============  ==========================  ==========================

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they share
the same ``name`` and ``in`` values.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from specroute.compiler.schema import (
    SchemaContext,
    compile_model,
    compile_repeated_query_array,
    compile_schema,
)
from specroute.exceptions import InvalidParameterError, MissingSchemaError
from specroute.ir import (
    Expr,
    LiteralExpr,
    NoContentExpr,
    ObjectExpr,
    intersection_of,
    union_of,
)
from specroute.models import (
    ArraySchema,
    CompileMode,
    ConversionDirection,
    ModelMode,
    OperationDescriptor,
    ParameterLocation,
    SecurityRequirement,
    StyleExplode,
    UsedIn,
    WireConversion,
)
from specroute.parser.resolver import escape_pointer_segment, resolve
from specroute.parser.schema import parse_schema

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

# Request groups in the order they appear in the request object
_GROUPS = (
    (ParameterLocation.HEADER, "headers"),
    (ParameterLocation.PATH, "params"),
    (ParameterLocation.QUERY, "query"),
)

_PATH_TEMPLATE = re.compile(r"\{(.+?)\}")


@dataclass(frozen=True)
class SideSettings:
    """How one side (request or response) of an exchange is compiled."""

    mode: ModelMode
    ref_suffix: str = ""
    direction: Optional[ConversionDirection] = None


def side_settings(mode: CompileMode, used_in: UsedIn) -> SideSettings:
    """Return the model mode, ref suffix, and wire direction for one side.

    Args:
        mode: The compile mode of the whole document.
        used_in: ``UsedIn.REQUEST`` or ``UsedIn.RESPONSE``.
    """
    outgoing = SideSettings(ModelMode.STRINGIFY, direction=ConversionDirection.TO_STRING)
    incoming = SideSettings(ModelMode.PARSE, direction=ConversionDirection.FROM_STRING)
    if mode == CompileMode.CLIENT:
        side = outgoing if used_in == UsedIn.REQUEST else incoming
    elif mode == CompileMode.SERVER:
        side = incoming if used_in == UsedIn.REQUEST else outgoing
    else:
        return SideSettings(ModelMode(mode.value))

    suffix = "__Req" if used_in == UsedIn.REQUEST else "__Res"
    return SideSettings(side.mode, suffix, side.direction)


def colon_route(route: str) -> str:
    """Rewrite ``/users/{id}`` to ``/users/:id``."""
    return _PATH_TEMPLATE.sub(r":\1", route)


def operation_id(operation: dict[str, Any], method: str, route: str) -> str:
    """Return the explicit ``operationId``, or ``"METHOD /route/:param"``."""
    explicit = operation.get("operationId")
    if explicit:
        return str(explicit)
    return f"{method.upper()} {colon_route(route)}"


def compile_operation(
    operation: dict[str, Any],
    method: str,
    route: str,
    mode: CompileMode,
    name_prefix: str,
    document: dict[str, Any],
    path: str,
    path_parameters: Sequence[Any] = (),
) -> OperationDescriptor:
    """Compile *operation* into its request/response/security descriptor.

    Args:
        operation: The raw *Operation Object*.
        method: HTTP method, any case.
        route: The templated route, e.g. ``/users/{id}``.
        mode: Compile mode of the document.
        name_prefix: Prefix of referenced declaration names.
        document: The whole OpenAPI document.
        path: JSON pointer of *operation*.
        path_parameters: Parameters declared on the enclosing *Path Item*.

    Returns:
        The compiled :class:`~specroute.models.OperationDescriptor`.

    Raises:
        MissingSchemaError: If a parameter, body, response, or response
            header lacks a schema, or the operation has no ``responses``.
        InvalidParameterError: If a parameter has an unsupported ``in``.
        CompileError: Any error raised by the schema compiler.
    """
    request = _compile_request(operation, mode, name_prefix, document, path, path_parameters)
    response = _compile_response(operation, mode, name_prefix, document, path)
    security = _compile_security(operation, document)

    logger.debug("Compiled operation %s %s", method.upper(), route)
    return OperationDescriptor(
        method=method.upper(),
        route=colon_route(route),
        request=request,
        response=response,
        security=security,
    )


# --- Request ---


def _merge_parameters(
    path_params: list[tuple[dict[str, Any], str]],
    op_params: list[tuple[dict[str, Any], str]],
) -> list[tuple[dict[str, Any], str]]:
    """Merge resolved path-level and operation-level ``(param, pointer)`` pairs.

    Operation-level parameters override path-level parameters with the same
    name and location.
    """
    op_keys = {(param.get("name", ""), param.get("in", "")) for param, _ in op_params}
    merged = [
        (param, pointer)
        for param, pointer in path_params
        if (param.get("name", ""), param.get("in", "")) not in op_keys
    ]
    merged.extend(op_params)
    return merged


def _resolve_parameters(raw: Sequence[Any], document: dict[str, Any], base: str) -> list[tuple[dict[str, Any], str]]:
    pairs = []
    for index, param in enumerate(raw or ()):
        pointer = f"{base}/parameters/{index}"
        pairs.append((resolve(param, document, pointer), pointer))
    return pairs


def _compile_request(
    operation: dict[str, Any],
    mode: CompileMode,
    name_prefix: str,
    document: dict[str, Any],
    path: str,
    path_parameters: Sequence[Any],
) -> Expr:
    side = side_settings(mode, UsedIn.REQUEST)
    ctx = SchemaContext(
        document=document,
        mode=side.mode,
        name_prefix=name_prefix,
        ref_suffix=side.ref_suffix,
        used_in=UsedIn.REQUEST,
    )

    path_item_pointer = path.rsplit("/", 1)[0]
    parameters = _merge_parameters(
        _resolve_parameters(path_parameters, document, path_item_pointer),
        _resolve_parameters(operation.get("parameters"), document, path),
    )

    groups: dict[ParameterLocation, dict[str, Expr]] = {loc: {} for loc, _ in _GROUPS}
    for param, pointer in parameters:
        location, key, expr = _compile_parameter(param, pointer, ctx, side)
        groups[location][key] = expr

    group_fields = {
        field_name: ObjectExpr(fields=groups[location])
        for location, field_name in _GROUPS
        if groups[location]
    }
    params_expr = ObjectExpr(fields=group_fields) if group_fields else None

    body_expr = _compile_request_body(operation, ctx, document, path)
    if body_expr is None:
        return params_expr or ObjectExpr()
    if params_expr is None:
        return body_expr
    return intersection_of([params_expr, body_expr])


def _compile_parameter(
    param: dict[str, Any], pointer: str, ctx: SchemaContext, side: SideSettings
) -> tuple[ParameterLocation, str, Expr]:
    name = param.get("name", "")
    try:
        location = ParameterLocation(param.get("in"))
    except ValueError as exc:
        raise InvalidParameterError(
            f"Invalid parameter \"in\" value {param.get('in')!r} for {name}", f"{pointer}/in"
        ) from exc

    if param.get("schema") is None:
        raise MissingSchemaError(f"Schema not defined for parameter {name}", f"{pointer}/schema")
    schema_pointer = f"{pointer}/schema"
    node = parse_schema(param["schema"], schema_pointer)

    style_name = param.get("style", "form")
    style = StyleExplode(style=style_name, explode=param.get("explode", style_name == "form"))
    convert = WireConversion(direction=side.direction, location=location) if side.direction else None
    required = param.get("required") is True

    if (
        location == ParameterLocation.QUERY
        and isinstance(node, ArraySchema)
        and convert is not None
        and convert.direction == ConversionDirection.FROM_STRING
        and style.explode
    ):
        compiled = compile_repeated_query_array(node, required, ctx, schema_pointer, convert)
    else:
        compiled = compile_model(node, required, ctx, schema_pointer, convert, style)

    key = name.lower() if location == ParameterLocation.HEADER else name
    return location, key, compiled.expr


def _compile_request_body(
    operation: dict[str, Any], ctx: SchemaContext, document: dict[str, Any], path: str
) -> Optional[Expr]:
    if operation.get("requestBody") is None:
        return None

    body_pointer = f"{path}/requestBody"
    body = resolve(operation["requestBody"], document, body_pointer)

    variants: list[Expr] = []
    for content_type, media in (body.get("content") or {}).items():
        media_pointer = f"{body_pointer}/content/{escape_pointer_segment(content_type)}"
        if not isinstance(media, dict) or media.get("schema") is None:
            raise MissingSchemaError(
                f"requestBody schema must be defined for {content_type}", f"{media_pointer}/schema"
            )
        compiled = compile_schema(parse_schema(media["schema"], f"{media_pointer}/schema"), ctx, f"{media_pointer}/schema")
        variants.append(ObjectExpr(fields=_payload_fields(compiled.expr, content_type, {})))

    if not variants:
        raise MissingSchemaError("requestBody must declare at least one content type", f"{body_pointer}/content")

    body_expr = union_of(variants)
    if body.get("required") is not True:
        body_expr = union_of([body_expr, ObjectExpr()])
    return body_expr


def _payload_fields(body: Expr, content_type: str, headers: dict[str, Expr]) -> dict[str, Expr]:
    """Return the ``body`` and ``headers`` fields of one content-type variant."""
    headers = dict(headers)
    if content_type != JSON_CONTENT_TYPE:
        headers["content-type"] = LiteralExpr(value=content_type)
    fields: dict[str, Expr] = {"body": body}
    if headers:
        fields["headers"] = ObjectExpr(fields=headers)
    return fields


# --- Response ---


def _compile_response(
    operation: dict[str, Any],
    mode: CompileMode,
    name_prefix: str,
    document: dict[str, Any],
    path: str,
) -> Expr:
    side = side_settings(mode, UsedIn.RESPONSE)
    ctx = SchemaContext(
        document=document,
        mode=side.mode,
        name_prefix=name_prefix,
        ref_suffix=side.ref_suffix,
        used_in=UsedIn.RESPONSE,
    )

    responses = operation.get("responses")
    if not responses:
        raise MissingSchemaError("responses must be defined", f"{path}/responses")

    status_variants: list[Expr] = []
    for status, raw_response in responses.items():
        # YAML loads unquoted status codes as ints
        status = str(status)
        status_pointer = f"{path}/responses/{status}"
        response = resolve(raw_response, document, status_pointer)
        status_code = LiteralExpr(value=int(status) if status.isdigit() else status)
        headers = _compile_response_headers(response, ctx, side, document, status_pointer)

        content = response.get("content")
        if not content:
            fields: dict[str, Expr] = {"statusCode": status_code, "body": NoContentExpr()}
            if headers:
                fields["headers"] = ObjectExpr(fields=headers)
            status_variants.append(ObjectExpr(fields=fields))
            continue

        content_variants: list[Expr] = []
        for content_type, media in content.items():
            media_pointer = f"{status_pointer}/content/{escape_pointer_segment(content_type)}"
            if not isinstance(media, dict) or media.get("schema") is None:
                raise MissingSchemaError(
                    f"Schema must be set for {status} {content_type} response", f"{media_pointer}/schema"
                )
            compiled = compile_schema(parse_schema(media["schema"], f"{media_pointer}/schema"), ctx, f"{media_pointer}/schema")
            content_variants.append(
                ObjectExpr(fields={"statusCode": status_code, **_payload_fields(compiled.expr, content_type, headers)})
            )
        status_variants.append(union_of(content_variants))

    return union_of(status_variants)


def _compile_response_headers(
    response: dict[str, Any],
    ctx: SchemaContext,
    side: SideSettings,
    document: dict[str, Any],
    status_pointer: str,
) -> dict[str, Expr]:
    headers: dict[str, Expr] = {}
    for name, raw_header in (response.get("headers") or {}).items():
        header_pointer = f"{status_pointer}/headers/{escape_pointer_segment(name)}"
        header = resolve(raw_header, document, header_pointer)
        if header.get("schema") is None:
            raise MissingSchemaError(f"Schema must be set for header {name}", f"{header_pointer}/schema")

        convert = (
            WireConversion(direction=side.direction, location=ParameterLocation.HEADER)
            if side.direction
            else None
        )
        node = parse_schema(header["schema"], f"{header_pointer}/schema")
        compiled = compile_model(node, header.get("required") is True, ctx, f"{header_pointer}/schema", convert)
        headers[name.lower()] = compiled.expr
    return headers


# --- Security ---


def _compile_security(operation: dict[str, Any], document: dict[str, Any]) -> Optional[list[SecurityRequirement]]:
    """Return the operation's security requirements, falling back to the document's.

    An explicit empty ``security: []`` on the operation means no auth and is
    not replaced by the document-level list.
    """
    security = operation.get("security")
    if security is None:
        security = document.get("security")

    requirements = [
        SecurityRequirement(scheme_name=scheme_name, required_permissions=list(scopes or []))
        for entry in security or []
        for scheme_name, scopes in entry.items()
    ]
    return requirements or None
