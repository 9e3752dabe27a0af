"""Parse raw JSON Schema dicts into the closed schema-node union.

The compiler never inspects loosely typed dicts directly. Every schema is
first turned into one of the :data:`~specroute.models.SchemaNode` variants
by :func:`parse_schema`, so the compiler can dispatch on a fixed set of
shapes.

Keyword precedence follows the order a reader of the schema would expect:
``$ref`` wins over everything, then ``oneOf``, ``anyOf``, ``allOf``, then
``enum``/``const``, then ``type``. OpenAPI 3.1 type arrays such as
``["string", "null"]`` are folded into ``nullable``.
"""

from __future__ import annotations

from typing import Any, Optional

from specroute.exceptions import MissingSchemaError, SchemaDepthError, UnsupportedSchemaError
from specroute.models import (
    AllOfSchema,
    AnyOfSchema,
    ArraySchema,
    EnumSchema,
    ObjectSchema,
    OneOfSchema,
    PrimitiveSchema,
    RefSchema,
    SchemaNode,
)
from specroute.parser.resolver import escape_pointer_segment

MAX_SCHEMA_DEPTH = 64
"""Deepest schema nesting accepted before :class:`SchemaDepthError` is raised."""

_PRIMITIVE_TYPES = frozenset({"null", "boolean", "string", "number", "integer"})


def parse_schema(raw: Any, path: str, depth: int = 0) -> SchemaNode:
    """Convert a raw schema dict into a typed schema node.

    Args:
        raw: The schema as found in the document.
        path: JSON pointer of *raw*, used in error messages and propagated
            to child nodes.
        depth: Current nesting depth; callers start at ``0``.

    Returns:
        The parsed :data:`~specroute.models.SchemaNode`.

    Raises:
        SchemaDepthError: If nesting exceeds :data:`MAX_SCHEMA_DEPTH`.
        UnsupportedSchemaError: If the schema has no recognisable shape.
        MissingSchemaError: If an array schema has no ``items``.

    Example::

        node = parse_schema(
            {"type": "array", "items": {"$ref": "#/components/schemas/Pet"}},
            "#/components/schemas/Pets",
        )
        assert node.kind == "array"
    """
    if depth > MAX_SCHEMA_DEPTH:
        raise SchemaDepthError(f"Schema nesting deeper than {MAX_SCHEMA_DEPTH} levels", path)
    if not isinstance(raw, dict):
        raise UnsupportedSchemaError(
            f"Schema must be an object, got {type(raw).__name__}", path
        )

    schema_type, nullable = _split_type(raw.get("type"), path)
    common: dict[str, Any] = {
        "default": raw.get("default"),
        "nullable": nullable or raw.get("nullable") is True,
        "description": raw.get("description"),
    }

    if "$ref" in raw:
        return RefSchema(ref=raw["$ref"], **common)

    for keyword, model in (("oneOf", OneOfSchema), ("anyOf", AnyOfSchema), ("allOf", AllOfSchema)):
        if keyword in raw:
            branches = raw[keyword]
            if not isinstance(branches, list):
                raise UnsupportedSchemaError(f"{keyword} must be a list", f"{path}/{keyword}")
            variants = [
                parse_schema(branch, f"{path}/{keyword}/{index}", depth + 1)
                for index, branch in enumerate(branches)
            ]
            if model is OneOfSchema:
                discriminator = raw.get("discriminator") or {}
                return OneOfSchema(
                    variants=variants,
                    discriminator=discriminator.get("propertyName"),
                    **common,
                )
            return model(variants=variants, **common)

    if "enum" in raw:
        if not isinstance(raw["enum"], list):
            raise UnsupportedSchemaError("enum must be a list", f"{path}/enum")
        return EnumSchema(values=list(raw["enum"]), **common)
    if "const" in raw:
        return EnumSchema(values=[raw["const"]], **common)

    if schema_type is None:
        if "properties" in raw or "additionalProperties" in raw:
            schema_type = "object"
        elif "items" in raw:
            schema_type = "array"

    if schema_type in _PRIMITIVE_TYPES:
        return PrimitiveSchema(
            type=schema_type,
            format=raw.get("format"),
            min_length=raw.get("minLength"),
            max_length=raw.get("maxLength"),
            pattern=raw.get("pattern"),
            minimum=raw.get("minimum"),
            maximum=raw.get("maximum"),
            **common,
        )

    if schema_type == "array":
        if "items" not in raw:
            raise MissingSchemaError("Array schema must declare items", f"{path}/items")
        return ArraySchema(items=parse_schema(raw["items"], f"{path}/items", depth + 1), **common)

    if schema_type == "object":
        return _parse_object(raw, path, depth, common)

    raise UnsupportedSchemaError(f"Unsupported schema type {schema_type}", f"{path}/type")


def _split_type(type_value: Any, path: str) -> tuple[Optional[str], bool]:
    """Return ``(type, nullable)`` from a ``type`` keyword.

    OpenAPI 3.1 allows ``type`` to be a list. One non-null entry plus
    ``"null"`` means a nullable value of that type.
    """
    if not isinstance(type_value, list):
        return type_value, False

    non_null = [t for t in type_value if t != "null"]
    has_null = len(non_null) != len(type_value)
    if not non_null:
        return "null", False
    if len(non_null) > 1:
        raise UnsupportedSchemaError(
            f"Multiple types {non_null} are not supported, use oneOf instead", f"{path}/type"
        )
    return non_null[0], has_null


def _parse_object(raw: dict[str, Any], path: str, depth: int, common: dict[str, Any]) -> ObjectSchema:
    """Parse the object-specific keywords of *raw*."""
    properties: Optional[dict[str, SchemaNode]] = None
    if raw.get("properties") is not None:
        properties = {
            name: parse_schema(
                prop, f"{path}/properties/{escape_pointer_segment(name)}", depth + 1
            )
            for name, prop in raw["properties"].items()
        }

    additional = raw.get("additionalProperties")
    additional_properties: Any
    if additional is None or isinstance(additional, bool):
        additional_properties = additional
    elif isinstance(additional, dict) and not additional:
        # `additionalProperties: {}` accepts any value, same as `true`
        additional_properties = True
    else:
        additional_properties = parse_schema(additional, f"{path}/additionalProperties", depth + 1)

    return ObjectSchema(
        properties=properties,
        required=list(raw.get("required") or []),
        additional_properties=additional_properties,
        **common,
    )
