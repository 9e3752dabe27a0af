"""Validator expression tree produced by the schema compiler.

Every compiled schema, request, and response is described by an
:data:`Expr` -- a closed tagged union of pydantic models discriminated on the
``kind`` field. The tree is abstract: it says *what* a value must look like
and which wire transforms apply, but it is not tied to any runtime validation
library. An external emitter walks the tree and prints target-language source.

Nodes fall into four groups:

**Leaves** -- :class:`PrimitiveExpr`, :class:`LiteralExpr`, :class:`EnumExpr`,
:class:`NeverExpr`, :class:`BinaryExpr`, :class:`NoContentExpr`, and
:class:`RefExpr` (a reference to another named declaration).

**Composites** -- :class:`UnionExpr`, :class:`IntersectionExpr`,
:class:`ArrayExpr`, :class:`ObjectExpr`, and :class:`RecordExpr`.

**Transforms** -- :class:`TransformExpr` converts between the wire
representation and the in-memory one.

**Modifiers** -- :class:`OptionalExpr`, :class:`NullableExpr`, and
:class:`DefaultExpr`.

All models are frozen; compiled trees are shared freely between declarations
and operations.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PrimitiveType(str, enum.Enum):
    """Scalar types a :class:`PrimitiveExpr` can validate.

    ``DATE`` and ``DATETIME`` are native date values; on the wire they are
    always strings.
    """

    NULL = "null"
    BOOLEAN = "boolean"
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    DATE = "date"
    DATETIME = "datetime"


class StringCheck(str, enum.Enum):
    """Named string checks derived from the schema ``format``."""

    UUID = "uuid"
    EMAIL = "email"
    URI = "uri"


class BinaryRepresentation(str, enum.Enum):
    """In-memory representations accepted for ``byte``/``binary`` payloads."""

    BUFFER = "buffer"
    STREAM = "stream"


class AdditionalProperties(str, enum.Enum):
    """How an :class:`ObjectExpr` treats keys not listed in ``fields``.

    ``TYPED`` objects are always intersected with a :class:`RecordExpr`
    that carries the value type.
    """

    CLOSED = "closed"
    OPEN = "open"
    TYPED = "typed"


class TransformDirection(str, enum.Enum):
    """Direction of a :class:`TransformExpr` relative to the wire format."""

    PARSE = "parse"
    STRINGIFY = "stringify"


class TransformKind(str, enum.Enum):
    """What a :class:`TransformExpr` converts."""

    DATE = "date"
    DATE_TIME = "date-time"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    LITERAL = "literal"
    JOIN = "join"


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Leaves ---


class PrimitiveExpr(_Node):
    """A scalar type with optional constraints."""

    kind: Literal["primitive"] = "primitive"
    type: PrimitiveType
    check: Optional[StringCheck] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    minimum: Optional[Union[int, float]] = None
    maximum: Optional[Union[int, float]] = None


class LiteralExpr(_Node):
    """Exactly one JSON scalar value."""

    kind: Literal["literal"] = "literal"
    value: Any


class EnumExpr(_Node):
    """One of a fixed set of strings."""

    kind: Literal["enum"] = "enum"
    values: list[str]


class NeverExpr(_Node):
    """Matches nothing (an empty ``enum``)."""

    kind: Literal["never"] = "never"


class BinaryExpr(_Node):
    """A binary payload in one in-memory representation."""

    kind: Literal["binary"] = "binary"
    representation: BinaryRepresentation


class NoContentExpr(_Node):
    """The absent body of a response that declares no content."""

    kind: Literal["no_content"] = "no_content"


class RefExpr(_Node):
    """Reference to another named declaration by its emitted identifier."""

    kind: Literal["ref"] = "ref"
    name: str


# --- Composites ---


class UnionExpr(_Node):
    """Any one of ``variants``; ``discriminator`` names the tag property if declared."""

    kind: Literal["union"] = "union"
    variants: list[Expr]
    discriminator: Optional[str] = None


class IntersectionExpr(_Node):
    """All of ``parts`` at once."""

    kind: Literal["intersection"] = "intersection"
    parts: list[Expr]


class ArrayExpr(_Node):
    kind: Literal["array"] = "array"
    item: Expr


class ObjectExpr(_Node):
    """An object with named fields; field order follows the source document."""

    kind: Literal["object"] = "object"
    fields: dict[str, Expr] = Field(default_factory=dict)
    additional_properties: AdditionalProperties = AdditionalProperties.CLOSED


class RecordExpr(_Node):
    """An object whose every value matches ``value``."""

    kind: Literal["record"] = "record"
    value: Expr


# --- Transforms ---


class TransformExpr(_Node):
    """Conversion across the wire boundary.

    ``base`` validates the input of the transform. When ``target`` is set,
    the transformed value is then validated by it (used for
    ``from_string`` conversions, where the typed constraints must see the
    parsed value). ``delimiter`` is only set for ``JOIN`` transforms.
    """

    kind: Literal["transform"] = "transform"
    base: Expr
    direction: TransformDirection
    transform: TransformKind
    delimiter: Optional[str] = None
    target: Optional[Expr] = None


# --- Modifiers ---


class OptionalExpr(_Node):
    kind: Literal["optional"] = "optional"
    base: Expr


class NullableExpr(_Node):
    kind: Literal["nullable"] = "nullable"
    base: Expr


class DefaultExpr(_Node):
    """``base`` with ``value`` substituted when the input is absent."""

    kind: Literal["default"] = "default"
    base: Expr
    value: Any


Expr = Annotated[
    Union[
        PrimitiveExpr,
        LiteralExpr,
        EnumExpr,
        NeverExpr,
        BinaryExpr,
        NoContentExpr,
        RefExpr,
        UnionExpr,
        IntersectionExpr,
        ArrayExpr,
        ObjectExpr,
        RecordExpr,
        TransformExpr,
        OptionalExpr,
        NullableExpr,
        DefaultExpr,
    ],
    Field(discriminator="kind"),
]
"""Any validator expression node."""

for _model in (
    UnionExpr,
    IntersectionExpr,
    ArrayExpr,
    ObjectExpr,
    RecordExpr,
    TransformExpr,
    OptionalExpr,
    NullableExpr,
    DefaultExpr,
):
    _model.model_rebuild()


def union_of(variants: list[Expr]) -> Expr:
    """Fold *variants* left-to-right into a single union.

    A single variant is returned unchanged. Nested unions without a
    discriminator are flattened so ``a | b | c`` yields one
    :class:`UnionExpr` with three variants.
    """
    result: Optional[Expr] = None
    for variant in variants:
        if result is None:
            result = variant
        elif isinstance(result, UnionExpr) and result.discriminator is None:
            result = UnionExpr(variants=[*result.variants, variant])
        else:
            result = UnionExpr(variants=[result, variant])
    if result is None:
        raise ValueError("union_of() requires at least one variant")
    return result


def intersection_of(parts: list[Expr]) -> Expr:
    """Fold *parts* left-to-right into a single intersection (see :func:`union_of`)."""
    result: Optional[Expr] = None
    for part in parts:
        if result is None:
            result = part
        elif isinstance(result, IntersectionExpr):
            result = IntersectionExpr(parts=[*result.parts, part])
        else:
            result = IntersectionExpr(parts=[result, part])
    if result is None:
        raise ValueError("intersection_of() requires at least one part")
    return result

