"""Canonical Pydantic models shared across all specreg modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ClientConfig`, :class:`OutputConfig`, and :class:`GlobalConfig`.

**Registry models** -- produced by the extractor and owned by the
:class:`~specreg.registry.OperationRegistry`:
    :class:`HTTPMethod`, :class:`ParameterLocation`, :class:`ParameterDef`,
    :class:`EndpointRecord`, and :class:`OperationSummary`.

**Resolved schema models** -- produced by the
:class:`~specreg.schema.resolver.SchemaResolver`:
    :class:`PrimitiveSchema`, :class:`EnumSchema`, :class:`ArraySchema`,
    :class:`ObjectSchema`, :class:`MapSchema`, :class:`UnionSchema`,
    :class:`AllOfSchema` and :class:`NamedRef`, combined into the
    :data:`ResolvedSchema` discriminated union.

Registry and schema models are frozen: once built they are shared between
threads and never mutated.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Config ---


class ClientConfig(BaseModel):
    """Connection settings for :class:`~specreg.client.ApiClient`.

    Held by the client instance and threaded explicitly through calls;
    there is no process-wide "current connection".
    """

    server: str = Field(
        default="http://localhost:8080", description="Base URL of the API server"
    )
    token: Optional[str] = Field(
        default=None, description="Bearer token sent as the Authorization header"
    )
    insecure: bool = Field(default=False, description="Skip TLS verification")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Max retry attempts")
    context_name: str = Field(default="default", description="Display name")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/specreg/config.json``.

    See :func:`~specreg.config.resolve_client_config` for the precedence
    chain applied on top of these values.
    """

    default_spec: Optional[str] = Field(
        default=None, description="URL or file path of the default API document"
    )
    output: OutputConfig = Field(default_factory=OutputConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)


# --- Registry models ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised in a path-item object."""

    GET = "get"
    PUT = "put"
    POST = "post"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"
    PATCH = "patch"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where a parameter can appear, per the ``in`` field.

    ``body`` and ``formData`` come from Swagger 2 documents, ``cookie``
    from OpenAPI 3.
    """

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"
    COOKIE = "cookie"
    FORM_DATA = "formData"


class ParameterDef(BaseModel):
    """A single parameter, sourced verbatim from the document."""

    model_config = ConfigDict(frozen=True)

    name: str
    location: ParameterLocation
    required: bool = False
    description: Optional[str] = None
    raw_schema: Optional[dict[str, Any]] = None


class EndpointRecord(BaseModel):
    """One (path, method) pair with everything callers need to invoke it.

    ``request_schema_ref`` and ``response_schema_ref`` are schema *names*
    (e.g. ``"Pet"``), not compiled schemas; pass them to
    :meth:`~specreg.schema.registry.SchemaRegistry.get` when the resolved
    form is needed. Anonymous inline schemas have no name, so the raw nodes
    are kept in ``request_schema`` and ``response_schema``.
    """

    model_config = ConfigDict(frozen=True)

    method: HTTPMethod
    path_template: str
    operation_key: str
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = ()
    deprecated: bool = False
    parameters: tuple[ParameterDef, ...] = ()
    request_schema_ref: Optional[str] = None
    response_schema_ref: Optional[str] = None
    request_schema: Optional[dict[str, Any]] = None
    response_schema: Optional[dict[str, Any]] = None

    def parameters_in(self, location: ParameterLocation) -> list[ParameterDef]:
        """Return the parameters declared at *location*, in document order."""
        return [p for p in self.parameters if p.location == location]


class OperationSummary(BaseModel):
    """Compact row returned by :meth:`~specreg.registry.OperationRegistry.search`."""

    key: str
    operation_id: Optional[str] = None
    method: HTTPMethod
    path: str
    summary: Optional[str] = None


# --- Resolved schema models ---


class PrimitiveType(str, enum.Enum):
    """Scalar kinds a :class:`PrimitiveSchema` can describe."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    ANY = "any"


class PrimitiveSchema(BaseModel):
    """A scalar value. ``format`` is passed through untouched."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["primitive"] = "primitive"
    type: PrimitiveType
    format: Optional[str] = None


class EnumSchema(BaseModel):
    """A closed set of literal values."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["enum"] = "enum"
    values: tuple[Any, ...]


class ArraySchema(BaseModel):
    """A homogeneous list."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["array"] = "array"
    items: ResolvedSchema


class SchemaField(BaseModel):
    """One named member of an :class:`ObjectSchema`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    schema_: ResolvedSchema = Field(alias="schema")
    optional: bool = False


class ObjectSchema(BaseModel):
    """A record with an ordered list of fields.

    ``additional`` describes values under undeclared keys when the document
    gives a schema for them; ``closed`` is set for
    ``additionalProperties: false``.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["object"] = "object"
    fields: tuple[SchemaField, ...] = ()
    additional: Optional[ResolvedSchema] = None
    closed: bool = False

    def field(self, name: str) -> Optional[SchemaField]:
        """Return the field called *name*, or ``None``."""
        for f in self.fields:
            if f.name == name:
                return f
        return None


class MapSchema(BaseModel):
    """A dictionary with string keys and uniformly typed values."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["map"] = "map"
    values: ResolvedSchema


class UnionSchema(BaseModel):
    """A value matching one (``exclusive``) or any of several variants."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["union"] = "union"
    variants: tuple[ResolvedSchema, ...]
    exclusive: bool = False


class AllOfSchema(BaseModel):
    """An ``allOf`` combination that could not be merged into one object.

    This is an approximation: validators check every member in turn, there
    is no true intersection semantics.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["all_of"] = "all_of"
    members: tuple[ResolvedSchema, ...]


class NamedRef(BaseModel):
    """A pointer to a named entry of the schema registry.

    Emitted at cycle back-edges and for names that were already compiled
    (or are being compiled) when the reference was met.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["ref"] = "ref"
    name: str


ResolvedSchema = Annotated[
    Union[
        PrimitiveSchema,
        EnumSchema,
        ArraySchema,
        ObjectSchema,
        MapSchema,
        UnionSchema,
        AllOfSchema,
        NamedRef,
    ],
    Field(discriminator="kind"),
]

for _model in (ArraySchema, SchemaField, ObjectSchema, MapSchema, UnionSchema, AllOfSchema):
    _model.model_rebuild()

ANY = PrimitiveSchema(type=PrimitiveType.ANY)
"""Shared "accept anything" schema used wherever a fragment says nothing."""
