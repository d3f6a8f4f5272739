"""Validate, coerce and generate data for resolved schemas.

Each function walks a :data:`~specreg.models.ResolvedSchema` graph and
follows :class:`~specreg.models.NamedRef` nodes through a
:class:`~specreg.schema.registry.SchemaRegistry`. Validation and coercion
terminate because the data is finite and a reference met twice at the same
value is not followed again; sample generation bounds its descent with
``max_depth``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict

from specreg.exceptions import UnresolvedReferenceError
from specreg.models import (
    AllOfSchema,
    ArraySchema,
    EnumSchema,
    MapSchema,
    NamedRef,
    ObjectSchema,
    PrimitiveSchema,
    PrimitiveType,
    ResolvedSchema,
    UnionSchema,
)

if TYPE_CHECKING:
    from specreg.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_DEPTH = 4

_FORMAT_SAMPLES: dict[str, str] = {
    "date": "1970-01-01",
    "date-time": "1970-01-01T00:00:00Z",
    "uuid": "00000000-0000-0000-0000-000000000000",
    "email": "user@example.com",
    "uri": "https://example.com",
    "hostname": "example.com",
    "ipv4": "127.0.0.1",
    "byte": "",
    "binary": "",
}


class ValidationIssue(BaseModel):
    """One mismatch between data and schema.

    ``path`` locates the offending value, e.g. ``$.spec.containers[0].name``.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def validate(
    schema: ResolvedSchema,
    data: Any,
    registry: Optional[SchemaRegistry] = None,
    path: str = "$",
) -> list[ValidationIssue]:
    """Check *data* against *schema* and return every issue found.

    An empty list means the data is valid.

    Args:
        schema: The resolved schema.
        data: Decoded JSON-like data.
        registry: Needed to follow :class:`~specreg.models.NamedRef` nodes.
        path: Location prefix used in issue paths.

    Raises:
        UnresolvedReferenceError: If a named reference cannot be followed.
    """
    return _validate(schema, data, registry, path, frozenset())


def _validate(
    schema: ResolvedSchema,
    data: Any,
    registry: Optional[SchemaRegistry],
    path: str,
    followed: frozenset[str],
) -> list[ValidationIssue]:
    # ``followed`` holds the names dereferenced without descending into the
    # data; meeting one again means a cycle of references adds nothing.
    if isinstance(schema, NamedRef):
        if schema.name in followed:
            return []
        target = _deref(schema, registry)
        return _validate(target, data, registry, path, followed | {schema.name})

    if isinstance(schema, PrimitiveSchema):
        if _matches_primitive(schema.type, data):
            return []
        return [_issue(path, f"expected {schema.type.value}, got {_type_name(data)}")]

    if isinstance(schema, EnumSchema):
        if data in schema.values:
            return []
        allowed = ", ".join(repr(v) for v in schema.values)
        return [_issue(path, f"{data!r} is not one of {allowed}")]

    if isinstance(schema, ArraySchema):
        if not isinstance(data, list):
            return [_issue(path, f"expected array, got {_type_name(data)}")]
        issues: list[ValidationIssue] = []
        for index, item in enumerate(data):
            issues.extend(validate(schema.items, item, registry, f"{path}[{index}]"))
        return issues

    if isinstance(schema, ObjectSchema):
        return _validate_object(schema, data, registry, path)

    if isinstance(schema, MapSchema):
        if not isinstance(data, dict):
            return [_issue(path, f"expected object, got {_type_name(data)}")]
        issues = []
        for key, value in data.items():
            issues.extend(validate(schema.values, value, registry, f"{path}.{key}"))
        return issues

    if isinstance(schema, UnionSchema):
        matched = sum(
            1 for v in schema.variants if not _validate(v, data, registry, path, followed)
        )
        if matched == 0:
            return [_issue(path, f"does not match any of {len(schema.variants)} variants")]
        if schema.exclusive and matched > 1:
            return [_issue(path, f"matches {matched} variants, expected exactly one")]
        return []

    if isinstance(schema, AllOfSchema):
        issues = []
        for member in schema.members:
            issues.extend(_validate(member, data, registry, path, followed))
        return issues

    return []


def _validate_object(
    schema: ObjectSchema,
    data: Any,
    registry: Optional[SchemaRegistry],
    path: str,
) -> list[ValidationIssue]:
    if not isinstance(data, dict):
        return [_issue(path, f"expected object, got {_type_name(data)}")]

    issues: list[ValidationIssue] = []
    declared = set()
    for f in schema.fields:
        declared.add(f.name)
        if f.name not in data:
            if not f.optional:
                issues.append(_issue(path, f"missing required field '{f.name}'"))
            continue
        issues.extend(validate(f.schema_, data[f.name], registry, f"{path}.{f.name}"))

    for key, value in data.items():
        if key in declared:
            continue
        if schema.closed:
            issues.append(_issue(path, f"unexpected field '{key}'"))
        elif schema.additional is not None:
            issues.extend(validate(schema.additional, value, registry, f"{path}.{key}"))
    return issues


def coerce(
    schema: ResolvedSchema,
    data: Any,
    registry: Optional[SchemaRegistry] = None,
) -> Any:
    """Convert string scalars in *data* to the types *schema* declares.

    Meant for values that arrive as text, such as command-line parameters
    or query strings: ``"3"`` becomes ``3`` under an integer schema,
    ``"true"`` becomes ``True`` under a boolean one. Strings that do not
    parse are left alone for :func:`validate` to report. The input is not
    modified; containers are copied.

    Example::

        coerce(registry.get("Pet"), {"id": "7", "name": "Rex"}, registry)
        # {"id": 7, "name": "Rex"}
    """
    return _coerce(schema, data, registry, frozenset())


def _coerce(
    schema: ResolvedSchema,
    data: Any,
    registry: Optional[SchemaRegistry],
    followed: frozenset[str],
) -> Any:
    if isinstance(schema, NamedRef):
        if schema.name in followed:
            return data
        target = _deref(schema, registry)
        return _coerce(target, data, registry, followed | {schema.name})

    if isinstance(schema, PrimitiveSchema):
        return _coerce_scalar(schema.type, data)

    if isinstance(schema, EnumSchema):
        if isinstance(data, str) and data not in schema.values:
            for value in schema.values:
                if isinstance(value, str):
                    continue
                if _coerce_scalar(_scalar_kind(value), data) == value:
                    return value
        return data

    if isinstance(schema, ArraySchema):
        if not isinstance(data, list):
            return data
        return [_coerce(schema.items, item, registry, frozenset()) for item in data]

    if isinstance(schema, ObjectSchema):
        if not isinstance(data, dict):
            return data
        fields = {f.name: f.schema_ for f in schema.fields}
        result: dict[str, Any] = {}
        for key, value in data.items():
            field_schema = fields.get(key, schema.additional)
            if field_schema is not None:
                value = _coerce(field_schema, value, registry, frozenset())
            result[key] = value
        return result

    if isinstance(schema, MapSchema):
        if not isinstance(data, dict):
            return data
        return {k: _coerce(schema.values, v, registry, frozenset()) for k, v in data.items()}

    if isinstance(schema, UnionSchema):
        # First variant the converted value satisfies wins.
        for variant in schema.variants:
            candidate = _coerce(variant, data, registry, followed)
            if not _validate(variant, candidate, registry, "$", followed):
                return candidate
        return data

    if isinstance(schema, AllOfSchema):
        for member in schema.members:
            data = _coerce(member, data, registry, followed)
        return data

    return data


def _coerce_scalar(kind: PrimitiveType, data: Any) -> Any:
    if not isinstance(data, str):
        return data
    text = data.strip()
    if kind == PrimitiveType.INTEGER:
        try:
            return int(text)
        except ValueError:
            return data
    if kind == PrimitiveType.NUMBER:
        try:
            return float(text)
        except ValueError:
            return data
    if kind == PrimitiveType.BOOLEAN:
        lowered = text.lower()
        if lowered in ("true", "false"):
            return lowered == "true"
    if kind == PrimitiveType.NULL and text.lower() == "null":
        return None
    return data


def _scalar_kind(value: Any) -> PrimitiveType:
    if isinstance(value, bool):
        return PrimitiveType.BOOLEAN
    if isinstance(value, int):
        return PrimitiveType.INTEGER
    if isinstance(value, float):
        return PrimitiveType.NUMBER
    if value is None:
        return PrimitiveType.NULL
    return PrimitiveType.STRING


def generate_sample(
    schema: ResolvedSchema,
    registry: Optional[SchemaRegistry] = None,
    max_depth: int = DEFAULT_SAMPLE_DEPTH,
) -> Any:
    """Produce an example value that conforms to *schema*.

    Values are deterministic: the first enum value, zero for numbers, a
    format-specific string where the format is known. Below ``max_depth``
    optional fields are dropped and named references collapse to ``None``,
    which keeps recursive types finite.

    Example::

        generate_sample(registry.get("Pet"), registry)
        # {"id": 0, "name": "string", "tag": "string"}
    """
    return _sample(schema, registry, max_depth)


def _sample(schema: ResolvedSchema, registry: Optional[SchemaRegistry], depth: int) -> Any:
    if isinstance(schema, NamedRef):
        if depth <= 0:
            return None
        return _sample(_deref(schema, registry), registry, depth - 1)

    if isinstance(schema, PrimitiveSchema):
        return _primitive_sample(schema)

    if isinstance(schema, EnumSchema):
        return schema.values[0] if schema.values else None

    if isinstance(schema, ArraySchema):
        if depth <= 0:
            return []
        return [_sample(schema.items, registry, depth - 1)]

    if isinstance(schema, ObjectSchema):
        sample: dict[str, Any] = {}
        for f in schema.fields:
            if f.optional and depth <= 0:
                continue
            sample[f.name] = _sample(f.schema_, registry, depth - 1)
        return sample

    if isinstance(schema, MapSchema):
        if depth <= 0:
            return {}
        return {"key": _sample(schema.values, registry, depth - 1)}

    if isinstance(schema, UnionSchema):
        for variant in schema.variants:
            if not (isinstance(variant, PrimitiveSchema) and variant.type == PrimitiveType.NULL):
                return _sample(variant, registry, depth)
        return None

    if isinstance(schema, AllOfSchema):
        merged: Any = None
        for member in schema.members:
            value = _sample(member, registry, depth)
            if isinstance(merged, dict) and isinstance(value, dict):
                merged = {**merged, **value}
            elif merged is None:
                merged = value
        return merged

    return None


def _primitive_sample(schema: PrimitiveSchema) -> Any:
    if schema.type == PrimitiveType.STRING:
        return _FORMAT_SAMPLES.get(schema.format or "", "string")
    if schema.type == PrimitiveType.INTEGER:
        return 0
    if schema.type == PrimitiveType.NUMBER:
        return 0.0
    if schema.type == PrimitiveType.BOOLEAN:
        return False
    return None


def _deref(ref: NamedRef, registry: Optional[SchemaRegistry]) -> ResolvedSchema:
    if registry is None:
        raise UnresolvedReferenceError(ref.name, reason="no schema registry to follow it")
    return registry.get(ref.name)


def _matches_primitive(kind: PrimitiveType, data: Any) -> bool:
    if kind == PrimitiveType.ANY:
        return True
    if kind == PrimitiveType.NULL:
        return data is None
    if kind == PrimitiveType.BOOLEAN:
        return isinstance(data, bool)
    if isinstance(data, bool):
        return False
    if kind == PrimitiveType.INTEGER:
        return isinstance(data, int) or (isinstance(data, float) and data.is_integer())
    if kind == PrimitiveType.NUMBER:
        return isinstance(data, (int, float))
    return isinstance(data, str)


def _type_name(data: Any) -> str:
    if data is None:
        return "null"
    if isinstance(data, bool):
        return "boolean"
    if isinstance(data, int):
        return "integer"
    if isinstance(data, float):
        return "number"
    if isinstance(data, str):
        return "string"
    if isinstance(data, list):
        return "array"
    if isinstance(data, dict):
        return "object"
    return type(data).__name__


def _issue(path: str, message: str) -> ValidationIssue:
    return ValidationIssue(path=path, message=message)
