"""Compile schema nodes into validator expressions.

This is the heart of specroute. :func:`compile_model` takes one parsed
:data:`~specroute.models.SchemaNode` and produces a
:class:`CompiledModel` -- the validator :data:`~specroute.ir.Expr`, the names
of the declarations it references, and whether it carries a default.

Two independent axes shape the output:

* The **model mode** (:class:`~specroute.models.ModelMode`) of the
  compilation. It decides how ``date``/``date-time`` strings are represented:
  native dates (``handler``), regex-checked strings (``request``), or
  transforms in either direction (``parse``/``stringify``).
* The **wire conversion** (:class:`~specroute.models.WireConversion`) of a
  parameter. Path, query, and header values are strings on the wire, so
  numbers, booleans, dates, and non-string enums are wrapped in a
  :class:`~specroute.ir.TransformExpr` that crosses that boundary. When set,
  it takes precedence over the model mode.

Every scalar is elaborated in a fixed order: format override, constraints,
``nullable``, ``default``, and finally wire conversion, so a conversion always
sees the fully constrained type.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from specroute.exceptions import (
    DanglingRequiredFieldError,
    EmptyCompositionError,
    InvalidDefaultTypeError,
    RequiredWithDefaultError,
    UnsupportedConstraintError,
    UnsupportedConversionError,
    UnsupportedReferenceError,
    UnsupportedStyleError,
)
from specroute.ir import (
    AdditionalProperties,
    ArrayExpr,
    BinaryExpr,
    BinaryRepresentation,
    DefaultExpr,
    EnumExpr,
    Expr,
    IntersectionExpr,
    LiteralExpr,
    NeverExpr,
    NullableExpr,
    ObjectExpr,
    OptionalExpr,
    PrimitiveExpr,
    PrimitiveType,
    RecordExpr,
    RefExpr,
    StringCheck,
    TransformDirection,
    TransformExpr,
    TransformKind,
    UnionExpr,
    intersection_of,
    union_of,
)
from specroute.models import (
    AllOfSchema,
    AnyOfSchema,
    ArraySchema,
    ConversionDirection,
    EnumSchema,
    ModelMode,
    ObjectSchema,
    OneOfSchema,
    PrimitiveSchema,
    RefSchema,
    SchemaNode,
    StyleExplode,
    UsedIn,
    WireConversion,
)
from specroute.parser.resolver import escape_pointer_segment, resolve_pointer

logger = logging.getLogger(__name__)

SCHEMA_REF_PREFIX = "#/components/schemas/"

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
DATE_TIME_PATTERN = r"^\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d(\.\d+)?(([+-]\d\d:\d\d)|Z)$"
NUMBER_PATTERN = r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$"
INTEGER_PATTERN = r"^-?\d+$"

ARRAY_DELIMITERS: dict[str, str] = {
    "form": ",",
    "spaceDelimited": " ",
    "pipeDelimited": "|",
}
"""Join delimiter per OpenAPI ``style`` for non-exploded arrays."""

_STRING_CHECKS = {
    "uuid": StringCheck.UUID,
    "email": StringCheck.EMAIL,
    "uri": StringCheck.URI,
}

_DEFAULT_STYLE = StyleExplode()


@dataclass(frozen=True)
class SchemaContext:
    """Settings shared by every node of one schema compilation.

    Attributes:
        document: The whole OpenAPI document, used to check that schema
            references point at existing components.
        mode: Model mode of the compilation.
        name_prefix: Prepended to every referenced declaration name.
        ref_suffix: Appended to every referenced declaration name
            (``__Req``/``__Res`` in the directional modes).
        used_in: Which side of the exchange the schema describes.
    """

    document: dict[str, Any]
    mode: ModelMode = ModelMode.HANDLER
    name_prefix: str = ""
    ref_suffix: str = ""
    used_in: UsedIn = UsedIn.UNKNOWN


@dataclass(frozen=True)
class CompiledModel:
    """Result of compiling one schema node.

    Attributes:
        expr: The validator expression.
        depends_on: Declaration names referenced directly from ``expr``.
        has_default: Whether ``expr`` supplies a default when the value is
            absent.
    """

    expr: Expr
    depends_on: frozenset[str] = field(default_factory=frozenset)
    has_default: bool = False


def compile_model(
    node: SchemaNode,
    required: bool,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion] = None,
    style: Optional[StyleExplode] = None,
) -> CompiledModel:
    """Compile *node* and apply the required/optional rules.

    A required value must not carry a default; an optional value without a
    default is wrapped in :class:`~specroute.ir.OptionalExpr`. An optional
    value with a default is left as is, because the default already covers
    the absent case.

    Args:
        node: The schema to compile.
        required: Whether the value must be provided.
        ctx: Shared compilation settings.
        path: JSON pointer of *node* for diagnostics.
        convert: Wire conversion for parameters, ``None`` for models.
        style: Array serialisation settings; defaults to ``form`` exploded.

    Returns:
        The compiled model.

    Raises:
        RequiredWithDefaultError: If *required* and the schema has a default.
        CompileError: Any error raised while compiling the node itself.
    """
    return check_required(compile_schema(node, ctx, path, convert, style), required, path)


def check_required(result: CompiledModel, required: bool, path: str) -> CompiledModel:
    """Apply the required/optional wrapping to an already compiled model."""
    if required:
        if result.has_default:
            raise RequiredWithDefaultError(
                "Value must be either required (forced to be provided by user) "
                "or have a default value, not both",
                path,
            )
        return result
    if result.has_default:
        return result
    return CompiledModel(OptionalExpr(base=result.expr), result.depends_on, result.has_default)


def compile_schema(
    node: SchemaNode,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion] = None,
    style: Optional[StyleExplode] = None,
) -> CompiledModel:
    """Compile *node* without the required/optional wrapping.

    This is the recursive worker behind :func:`compile_model`; it is also
    used directly for request and response bodies, which are never optional
    on their own.
    """
    style = style or _DEFAULT_STYLE
    if isinstance(node, RefSchema):
        return _compile_ref(node, ctx, path)
    if isinstance(node, OneOfSchema):
        return _compile_one_of(node, ctx, path, convert, style)
    if isinstance(node, (AnyOfSchema, AllOfSchema)):
        return _compile_fold(node, ctx, path, convert, style)
    if isinstance(node, EnumSchema):
        return _compile_enum(node, path, convert)
    if isinstance(node, PrimitiveSchema):
        return _compile_primitive(node, ctx, path, convert)
    if isinstance(node, ArraySchema):
        return _compile_array(node, ctx, path, convert, style)
    if isinstance(node, ObjectSchema):
        return _compile_object(node, ctx, path, convert)
    raise TypeError(f"Unknown schema node {type(node).__name__}")


def compile_repeated_query_array(
    node: ArraySchema,
    required: bool,
    ctx: SchemaContext,
    path: str,
    convert: WireConversion,
) -> CompiledModel:
    """Compile an exploded query array that is parsed from the wire.

    The transport already splits ``?id=1&id=2`` into a list of strings, so
    only the items cross the string boundary; the array itself is not a
    conversion target.
    """
    item = compile_model(node.items, True, ctx, f"{path}/items", convert=convert)
    expr, has_default = _finish(ArrayExpr(item=item.expr), node, path, _is_list, "an array")
    return check_required(CompiledModel(expr, item.depends_on, has_default), required, path)


# --- References and compositions ---


def declaration_name(ctx: SchemaContext, schema_name: str) -> str:
    """Return the emitted identifier for component schema *schema_name*."""
    return f"{ctx.name_prefix}{schema_name}{ctx.ref_suffix}"


def _compile_ref(node: RefSchema, ctx: SchemaContext, path: str) -> CompiledModel:
    ref = node.ref
    if not ref.startswith("#"):
        raise UnsupportedReferenceError(f"External $ref not supported: {ref}", f"{path}/$ref")
    if not ref.startswith(SCHEMA_REF_PREFIX):
        raise UnsupportedReferenceError(
            f"$ref has invalid value {ref}, only {SCHEMA_REF_PREFIX}* is supported",
            f"{path}/$ref",
        )
    resolve_pointer(ref, ctx.document, path)

    schema_name = ref[len(SCHEMA_REF_PREFIX):].replace("~1", "/").replace("~0", "~")
    name = declaration_name(ctx, schema_name)
    return CompiledModel(RefExpr(name=name), frozenset({name}))


def _compile_one_of(
    node: OneOfSchema,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion],
    style: StyleExplode,
) -> CompiledModel:
    if not node.variants:
        raise EmptyCompositionError("oneOf must contain at least one value", f"{path}/oneOf")

    branches = [
        compile_schema(variant, ctx, f"{path}/oneOf/{index}", convert, style)
        for index, variant in enumerate(node.variants)
    ]
    depends_on = frozenset().union(*(b.depends_on for b in branches))
    if len(branches) == 1:
        expr: Expr = branches[0].expr
        has_default = branches[0].has_default
    else:
        expr = UnionExpr(variants=[b.expr for b in branches], discriminator=node.discriminator)
        has_default = False

    expr, own_default = _finish(expr, node, path)
    return CompiledModel(expr, depends_on, has_default or own_default)


def _compile_fold(
    node: AnyOfSchema | AllOfSchema,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion],
    style: StyleExplode,
) -> CompiledModel:
    keyword = node.kind
    if not node.variants:
        raise EmptyCompositionError(
            f"{keyword} must contain at least one value", f"{path}/{keyword}"
        )

    branches = [
        compile_schema(variant, ctx, f"{path}/{keyword}/{index}", convert, style)
        for index, variant in enumerate(node.variants)
    ]
    combine = union_of if isinstance(node, AnyOfSchema) else intersection_of
    # A single branch is returned as is, default included.
    branch_default = len(branches) == 1 and branches[0].has_default
    expr, own_default = _finish(combine([b.expr for b in branches]), node, path)
    depends_on = frozenset().union(*(b.depends_on for b in branches))
    return CompiledModel(expr, depends_on, branch_default or own_default)


# --- Enums ---


def _compile_enum(
    node: EnumSchema, path: str, convert: Optional[WireConversion]
) -> CompiledModel:
    values = node.values
    all_strings = all(isinstance(v, str) for v in values)

    expr: Expr
    if not values:
        expr = NeverExpr()
    elif all_strings:
        expr = EnumExpr(values=list(values))
    elif len(values) == 1:
        expr = LiteralExpr(value=values[0])
    else:
        expr = UnionExpr(variants=[LiteralExpr(value=v) for v in values])

    def _is_member(value: Any) -> bool:
        return any(value == v and _same_json_type(value, v) for v in values)

    expr, has_default = _finish(expr, node, path, _is_member, "one of the enum values")

    if convert is not None and values and not all_strings:
        if convert.direction == ConversionDirection.FROM_STRING:
            expr = TransformExpr(
                base=EnumExpr(values=[_wire_string(v) for v in values]),
                direction=TransformDirection.PARSE,
                transform=TransformKind.LITERAL,
                target=expr,
            )
        else:
            expr = TransformExpr(
                base=expr,
                direction=TransformDirection.STRINGIFY,
                transform=TransformKind.LITERAL,
            )
    return CompiledModel(expr, frozenset(), has_default)


def _wire_string(value: Any) -> str:
    """Return how a literal enum value appears in a wire string."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


# --- Primitives ---


def _compile_primitive(
    node: PrimitiveSchema,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion],
) -> CompiledModel:
    if node.type == "string":
        return _compile_string(node, ctx, path, convert)

    if node.type == "null":
        if convert is not None:
            raise UnsupportedConversionError(
                "null values cannot be converted to or from a wire string", path
            )
        expr, has_default = _finish(PrimitiveExpr(type=PrimitiveType.NULL), node, path)
        return CompiledModel(expr, frozenset(), has_default)

    if node.type == "boolean":
        base = PrimitiveExpr(type=PrimitiveType.BOOLEAN)
        expr, has_default = _finish(base, node, path, _is_bool, "a boolean")
        wire_source: Expr = EnumExpr(values=["true", "false"])
        kind = TransformKind.BOOLEAN
    else:
        primitive_type = PrimitiveType.INTEGER if node.type == "integer" else PrimitiveType.NUMBER
        base = PrimitiveExpr(type=primitive_type, minimum=node.minimum, maximum=node.maximum)
        if node.type == "integer":
            expr, has_default = _finish(base, node, path, _is_integer, "an integer")
            wire_source = PrimitiveExpr(type=PrimitiveType.STRING, pattern=INTEGER_PATTERN)
            kind = TransformKind.INTEGER
        else:
            expr, has_default = _finish(base, node, path, _is_number, "a number")
            wire_source = PrimitiveExpr(type=PrimitiveType.STRING, pattern=NUMBER_PATTERN)
            kind = TransformKind.NUMBER

    if convert is not None:
        expr = _convert_scalar(expr, wire_source, kind, convert.direction)
    return CompiledModel(expr, frozenset(), has_default)


def _convert_scalar(
    typed: Expr, wire_source: Expr, kind: TransformKind, direction: ConversionDirection
) -> Expr:
    """Wrap the fully constrained *typed* expression in a wire transform."""
    if direction == ConversionDirection.FROM_STRING:
        return TransformExpr(
            base=wire_source,
            direction=TransformDirection.PARSE,
            transform=kind,
            target=typed,
        )
    return TransformExpr(base=typed, direction=TransformDirection.STRINGIFY, transform=kind)


def _compile_string(
    node: PrimitiveSchema,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion],
) -> CompiledModel:
    fmt = node.format
    if fmt in ("byte", "binary"):
        return _compile_binary(node, ctx, path, convert)
    if fmt in ("date", "date-time"):
        return _compile_date(node, ctx, path, convert)

    check: Optional[StringCheck] = None
    if fmt in _STRING_CHECKS:
        check = _STRING_CHECKS[fmt]
    elif fmt is not None:
        logger.warning("Unknown schema format %r at %s/format, ignoring", fmt, path)

    base = PrimitiveExpr(
        type=PrimitiveType.STRING,
        check=check,
        min_length=node.min_length,
        max_length=node.max_length,
        pattern=node.pattern,
    )
    # Strings are already in wire form, conversion is a no-op.
    expr, has_default = _finish(base, node, path, _is_string, "a string")
    return CompiledModel(expr, frozenset(), has_default)


def _compile_binary(
    node: PrimitiveSchema,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion],
) -> CompiledModel:
    for value, keyword in (
        (node.min_length, "minLength"),
        (node.max_length, "maxLength"),
        (node.pattern, "pattern"),
        (node.default, "default"),
    ):
        if value is not None:
            raise UnsupportedConstraintError(
                f'Setting "{keyword}" is not available for format: {node.format}',
                f"{path}/{keyword}",
            )
    if convert is not None:
        raise UnsupportedConversionError(
            f"Format {node.format} cannot be used for {convert.location.value} parameters", path
        )

    expr: Expr
    if ctx.used_in == UsedIn.RESPONSE:
        expr = UnionExpr(
            variants=[
                BinaryExpr(representation=BinaryRepresentation.BUFFER),
                BinaryExpr(representation=BinaryRepresentation.STREAM),
            ]
        )
    else:
        expr = BinaryExpr(representation=BinaryRepresentation.BUFFER)

    expr, _ = _finish(expr, node, path)
    return CompiledModel(expr)


def _compile_date(
    node: PrimitiveSchema,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion],
) -> CompiledModel:
    is_date = node.format == "date"
    native = PrimitiveExpr(type=PrimitiveType.DATE if is_date else PrimitiveType.DATETIME)
    wire = PrimitiveExpr(
        type=PrimitiveType.STRING,
        pattern=DATE_PATTERN if is_date else DATE_TIME_PATTERN,
        min_length=node.min_length,
        max_length=node.max_length,
    )
    kind = TransformKind.DATE if is_date else TransformKind.DATE_TIME
    if node.pattern is not None:
        logger.debug("Ignoring pattern of %s string at %s", node.format, path)

    if convert is not None:
        direction: Optional[ConversionDirection] = convert.direction
    elif ctx.mode == ModelMode.PARSE:
        direction = ConversionDirection.FROM_STRING
    elif ctx.mode == ModelMode.STRINGIFY:
        direction = ConversionDirection.TO_STRING
    else:
        direction = None

    if direction is None:
        base = native if ctx.mode == ModelMode.HANDLER else wire
        expr, has_default = _finish(base, node, path, _is_string, "a date string")
        return CompiledModel(expr, frozenset(), has_default)

    typed, has_default = _finish(native, node, path, _is_string, "a date string")
    return CompiledModel(_convert_scalar(typed, wire, kind, direction), frozenset(), has_default)


# --- Arrays and objects ---


def _compile_array(
    node: ArraySchema,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion],
    style: StyleExplode,
) -> CompiledModel:
    if convert is not None and convert.direction == ConversionDirection.FROM_STRING:
        raise UnsupportedConversionError(
            "Arrays cannot be parsed from a single wire string", path
        )

    item = compile_model(node.items, True, ctx, f"{path}/items", convert=convert)
    expr, has_default = _finish(ArrayExpr(item=item.expr), node, path, _is_list, "an array")

    if convert is not None and not style.explode:
        delimiter = ARRAY_DELIMITERS.get(style.style)
        if delimiter is None:
            raise UnsupportedStyleError(
                f"Unsupported style {style.style!r} for non-exploded array", path
            )
        expr = TransformExpr(
            base=expr,
            direction=TransformDirection.STRINGIFY,
            transform=TransformKind.JOIN,
            delimiter=delimiter,
        )
    return CompiledModel(expr, item.depends_on, has_default)


def _compile_object(
    node: ObjectSchema,
    ctx: SchemaContext,
    path: str,
    convert: Optional[WireConversion],
) -> CompiledModel:
    if convert is not None:
        raise UnsupportedConversionError(
            "Objects cannot be converted to or from a wire string", path
        )

    properties = node.properties or {}
    for name in node.required:
        if name not in properties:
            raise DanglingRequiredFieldError(
                f"Field {name} is declared as required, but not listed in properties", path
            )

    fields: dict[str, Expr] = {}
    depends_on: frozenset[str] = frozenset()
    for name, prop in properties.items():
        compiled = compile_model(
            prop,
            name in node.required,
            ctx,
            f"{path}/properties/{escape_pointer_segment(name)}",
        )
        fields[name] = compiled.expr
        depends_on |= compiled.depends_on

    additional = node.additional_properties
    expr: Expr
    if additional is None:
        policy = AdditionalProperties.OPEN if node.properties is None else AdditionalProperties.CLOSED
        expr = ObjectExpr(fields=fields, additional_properties=policy)
    elif isinstance(additional, bool):
        policy = AdditionalProperties.OPEN if additional else AdditionalProperties.CLOSED
        expr = ObjectExpr(fields=fields, additional_properties=policy)
    else:
        value = compile_schema(additional, ctx, f"{path}/additionalProperties")
        depends_on |= value.depends_on
        expr = IntersectionExpr(
            parts=[
                ObjectExpr(fields=fields, additional_properties=AdditionalProperties.TYPED),
                RecordExpr(value=value.expr),
            ]
        )

    expr, has_default = _finish(expr, node, path, _is_dict, "an object")
    return CompiledModel(expr, depends_on, has_default)


# --- nullable / default ---


def _finish(
    expr: Expr,
    node: SchemaNode,
    path: str,
    accepts: Any = None,
    expected: str = "",
) -> tuple[Expr, bool]:
    """Apply ``nullable`` then ``default`` wrapping to *expr*.

    Args:
        expr: The constrained expression.
        node: The schema the expression was compiled from.
        path: Pointer of *node*.
        accepts: Optional predicate the default value must satisfy.
        expected: Human-readable description of what *accepts* checks.

    Returns:
        ``(expr, has_default)``.

    Raises:
        InvalidDefaultTypeError: If the default fails *accepts*.
    """
    if node.nullable:
        expr = NullableExpr(base=expr)
    if not node.has_default:
        return expr, False
    if accepts is not None and not accepts(node.default):
        raise InvalidDefaultTypeError(
            f"Default value {node.default!r} must be {expected}", f"{path}/default"
        )
    return DefaultExpr(base=expr, value=node.default), True


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_string(value: Any) -> bool:
    return isinstance(value, str)


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


def _is_dict(value: Any) -> bool:
    return isinstance(value, dict)


def _same_json_type(left: Any, right: Any) -> bool:
    """Whether two values share a JSON type; ``1`` and ``1.0`` are both numbers."""
    if _is_number(left) and _is_number(right):
        return True
    return type(left) is type(right)
