"""Canonical Pydantic models shared across all specroute modules.

This is the single source of truth for data shapes in the project (apart from
the validator expression tree, which lives in :mod:`specroute.ir`). Every
other module imports from here rather than defining its own models. The
models fall into three groups:

**Configuration models** -- how a compilation is requested:
    :class:`CompileMode`, :class:`CompileOptions`, and :class:`ProjectConfig`
    (the optional ``specroute.json`` file).

**Schema nodes** -- the closed tagged union a raw JSON Schema dict is parsed
into by :func:`~specroute.parser.schema.parse_schema`:
    :class:`RefSchema`, :class:`OneOfSchema`, :class:`AnyOfSchema`,
    :class:`AllOfSchema`, :class:`EnumSchema`, :class:`PrimitiveSchema`,
    :class:`ArraySchema`, and :class:`ObjectSchema`.

**Compiler output models** -- the IR handed to an emitter:
    :class:`NamedDeclaration`, :class:`SecurityRequirement`,
    :class:`OperationDescriptor`, :class:`ServerConfig`,
    :class:`SecuritySchemeInfo`, :class:`ServiceConfig`, and
    :class:`CompiledOutput`.

All models use Pydantic v2. Schema nodes and output models are frozen.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from specroute.ir import Expr


# --- Compile configuration ---


class CompileMode(str, enum.Enum):
    """What the generated validators are for.

    * ``HANDLER`` -- validate already-deserialised values inside a request
      handler (dates are native date objects).
    * ``REQUEST`` -- validate raw wire-shaped values (dates are strings).
    * ``SERVER`` -- parse incoming requests and stringify outgoing responses.
    * ``CLIENT`` -- stringify outgoing requests and parse incoming responses.

    ``SERVER`` and ``CLIENT`` produce two declarations per component schema,
    one for each direction.
    """

    HANDLER = "handler"
    REQUEST = "request"
    SERVER = "server"
    CLIENT = "client"

    @property
    def is_directional(self) -> bool:
        """Whether the mode compiles request and response shapes separately."""
        return self in (CompileMode.SERVER, CompileMode.CLIENT)


class ModelMode(str, enum.Enum):
    """Direction-specific elaboration applied while compiling one schema."""

    HANDLER = "handler"
    REQUEST = "request"
    PARSE = "parse"
    STRINGIFY = "stringify"


class UsedIn(str, enum.Enum):
    """Where a schema is used; binary payloads differ between the two sides."""

    REQUEST = "request"
    RESPONSE = "response"
    UNKNOWN = "unknown"


class ConversionDirection(str, enum.Enum):
    """Which way a parameter crosses the string-based transport boundary."""

    FROM_STRING = "from_string"
    TO_STRING = "to_string"


class ParameterLocation(str, enum.Enum):
    """Locations where a compiled parameter can appear, per OpenAPI ``in`` field."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"


class WireConversion(BaseModel):
    """A wire conversion request for one parameter: direction plus location."""

    model_config = ConfigDict(frozen=True)

    direction: ConversionDirection
    location: ParameterLocation


class StyleExplode(BaseModel):
    """OpenAPI array serialisation settings of a parameter.

    Defaults follow the OpenAPI defaults for query parameters.
    """

    model_config = ConfigDict(frozen=True)

    style: str = "form"
    explode: bool = True


class HTTPMethod(str, enum.Enum):
    """HTTP methods compiled into operation descriptors, in walk order."""

    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"


class CompileOptions(BaseModel):
    """Per-compilation settings threaded explicitly through the compiler.

    Resolved from CLI flags, environment, and project config by
    :func:`~specroute.config.resolve_options`.
    """

    model_config = ConfigDict(frozen=True)

    mode: CompileMode = Field(default=CompileMode.HANDLER, description="Compile mode")
    prefix: str = Field(default="", description="Prefix for declaration names")


class ProjectConfig(BaseModel):
    """Project-local configuration read from ``./specroute.json``.

    Unknown keys are rejected so that typos surface as a
    :class:`~specroute.exceptions.ConfigError` instead of being ignored.
    """

    model_config = ConfigDict(extra="forbid")

    mode: Optional[CompileMode] = None
    prefix: Optional[str] = None


# --- Schema nodes ---


class _SchemaBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    default: Any = Field(default=None, description="Default value; None means no default")
    nullable: bool = False
    description: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return self.default is not None


class RefSchema(_SchemaBase):
    """A ``$ref`` pointer, kept unresolved."""

    kind: Literal["ref"] = "ref"
    ref: str


class OneOfSchema(_SchemaBase):
    kind: Literal["oneOf"] = "oneOf"
    variants: list[SchemaNode]
    discriminator: Optional[str] = None


class AnyOfSchema(_SchemaBase):
    kind: Literal["anyOf"] = "anyOf"
    variants: list[SchemaNode]


class AllOfSchema(_SchemaBase):
    kind: Literal["allOf"] = "allOf"
    variants: list[SchemaNode]


class EnumSchema(_SchemaBase):
    """A fixed list of literal values (``enum`` or OpenAPI 3.1 ``const``)."""

    kind: Literal["enum"] = "enum"
    values: list[Any]


class PrimitiveSchema(_SchemaBase):
    """A scalar JSON Schema type with its format and constraints."""

    kind: Literal["primitive"] = "primitive"
    type: Literal["null", "boolean", "string", "number", "integer"]
    format: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    minimum: Optional[Union[int, float]] = None
    maximum: Optional[Union[int, float]] = None


class ArraySchema(_SchemaBase):
    kind: Literal["array"] = "array"
    items: SchemaNode


class ObjectSchema(_SchemaBase):
    """An object schema.

    ``additional_properties`` is ``None`` when the keyword is absent, a bool
    when given as ``true``/``false`` (an empty ``{}`` is stored as ``True``),
    or a schema node for typed extra keys.
    """

    kind: Literal["object"] = "object"
    properties: Optional[dict[str, SchemaNode]] = None
    required: list[str] = Field(default_factory=list)
    additional_properties: Union[bool, SchemaNode, None] = None


SchemaNode = Annotated[
    Union[
        RefSchema,
        OneOfSchema,
        AnyOfSchema,
        AllOfSchema,
        EnumSchema,
        PrimitiveSchema,
        ArraySchema,
        ObjectSchema,
    ],
    Field(discriminator="kind"),
]
"""Any parsed schema node."""

for _model in (OneOfSchema, AnyOfSchema, AllOfSchema, ArraySchema, ObjectSchema):
    _model.model_rebuild()


# --- Compiler output ---


class NamedDeclaration(BaseModel):
    """A named, independently referenceable validator expression.

    ``depends_on`` lists only the declarations referenced directly from
    ``expr``; indirect dependencies are resolved by the orderer.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    expr: Expr
    depends_on: frozenset[str] = Field(default_factory=frozenset)
    source: Optional[str] = Field(
        default=None, description="Pointer of the component schema it was compiled from"
    )

    @field_serializer("depends_on")
    def _serialize_depends_on(self, value: frozenset[str]) -> list[str]:
        return sorted(value)


class SecurityRequirement(BaseModel):
    """One security scheme an operation requires, with its scopes."""

    model_config = ConfigDict(frozen=True)

    scheme_name: str
    required_permissions: list[str] = Field(default_factory=list)


class OperationDescriptor(BaseModel):
    """The compiled request/response/security contract of one operation.

    ``route`` uses colon-prefixed path parameters (``/users/:id``).
    """

    model_config = ConfigDict(frozen=True)

    method: str = Field(description="Upper-case HTTP method")
    route: str
    request: Expr
    response: Expr
    security: Optional[list[SecurityRequirement]] = None


class ServerConfig(BaseModel):
    """Address parts of the server the API is served from."""

    model_config = ConfigDict(frozen=True)

    protocol: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    base_path: Optional[str] = None


class SecuritySchemeInfo(BaseModel):
    """An OpenAPI *Security Scheme Object* declared by the document.

    The ``type`` field discriminates between ``apiKey``, ``http``, ``oauth2``,
    and ``openIdConnect`` schemes. Only the fields relevant to the active
    scheme type are populated; the rest remain ``None``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    type: str  # apiKey, http, oauth2, openIdConnect
    description: Optional[str] = None
    # apiKey
    param_name: Optional[str] = Field(default=None, alias="in_name")
    location: Optional[str] = Field(default=None, alias="in_location")
    # http
    scheme: Optional[str] = None
    bearer_format: Optional[str] = None
    # oauth2
    flows: Optional[dict[str, Any]] = None
    # openIdConnect
    openid_connect_url: Optional[str] = None


class ServiceConfig(BaseModel):
    """Document-level settings emitted next to the routes."""

    model_config = ConfigDict(frozen=True)

    server: Optional[ServerConfig] = None
    security_schemes: dict[str, SecuritySchemeInfo] = Field(default_factory=dict)


class CompiledOutput(BaseModel):
    """Everything an emitter needs to print one generated module.

    Declarations must be emitted in list order; every ``RefExpr`` inside
    them and inside ``operations`` names a declaration in the list.
    """

    model_config = ConfigDict(frozen=True)

    mode: CompileMode
    prefix: str = ""
    config: ServiceConfig = Field(default_factory=ServiceConfig)
    declarations: list[NamedDeclaration] = Field(default_factory=list)
    operations: dict[str, OperationDescriptor] = Field(default_factory=dict)
