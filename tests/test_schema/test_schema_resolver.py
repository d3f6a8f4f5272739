"""Tests for specreg.schema.resolver."""

from __future__ import annotations

from typing import Any

import pytest

from specreg.exceptions import UnresolvedReferenceError
from specreg.models import (
    ANY,
    AllOfSchema,
    ArraySchema,
    EnumSchema,
    MapSchema,
    NamedRef,
    ObjectSchema,
    PrimitiveSchema,
    PrimitiveType,
    UnionSchema,
)
from specreg.parser.document import DocumentStore
from specreg.schema.registry import SchemaRegistry
from specreg.schema.resolver import NULL


def _resolve(node: Any, schemas: dict[str, Any] | None = None):
    store = DocumentStore({"components": {"schemas": schemas or {}}})
    return SchemaRegistry(store).resolve_node(node)


# ---------------------------------------------------------------------------
# Primitives and enums
# ---------------------------------------------------------------------------


class TestPrimitives:
    @pytest.mark.parametrize(
        ("type_name", "expected"),
        [
            ("string", PrimitiveType.STRING),
            ("integer", PrimitiveType.INTEGER),
            ("number", PrimitiveType.NUMBER),
            ("boolean", PrimitiveType.BOOLEAN),
            ("null", PrimitiveType.NULL),
        ],
    )
    def test_scalar_types(self, type_name: str, expected: PrimitiveType) -> None:
        assert _resolve({"type": type_name}) == PrimitiveSchema(type=expected)

    def test_format_passed_through(self) -> None:
        schema = _resolve({"type": "string", "format": "date-time"})
        assert schema == PrimitiveSchema(type=PrimitiveType.STRING, format="date-time")

    def test_swagger_file_type_is_binary_string(self) -> None:
        schema = _resolve({"type": "file"})
        assert schema == PrimitiveSchema(type=PrimitiveType.STRING, format="binary")

    @pytest.mark.parametrize("node", [{}, {"type": "mystery"}, "not a node", None, [1, 2]])
    def test_unknown_is_any(self, node: Any) -> None:
        assert _resolve(node) == ANY

    def test_enum(self) -> None:
        assert _resolve({"type": "string", "enum": ["a", "b"]}) == EnumSchema(values=("a", "b"))


# ---------------------------------------------------------------------------
# Nullability
# ---------------------------------------------------------------------------


class TestNullable:
    def test_openapi30_nullable(self) -> None:
        schema = _resolve({"type": "string", "nullable": True})
        assert schema == UnionSchema(
            variants=(PrimitiveSchema(type=PrimitiveType.STRING), NULL)
        )

    def test_openapi31_type_list(self) -> None:
        schema = _resolve({"type": ["integer", "null"]})
        assert isinstance(schema, UnionSchema)
        assert schema.variants == (PrimitiveSchema(type=PrimitiveType.INTEGER), NULL)

    def test_only_null_in_list(self) -> None:
        assert _resolve({"type": ["null"]}) == NULL

    def test_multiple_non_null_types(self) -> None:
        schema = _resolve({"type": ["string", "integer"]})
        assert isinstance(schema, UnionSchema)
        assert not schema.exclusive
        assert len(schema.variants) == 2


# ---------------------------------------------------------------------------
# Structured types
# ---------------------------------------------------------------------------


class TestObjects:
    def test_fields_keep_order_and_optionality(self) -> None:
        schema = _resolve({
            "type": "object",
            "required": ["b"],
            "properties": {"a": {"type": "string"}, "b": {"type": "integer"}},
        })
        assert isinstance(schema, ObjectSchema)
        assert [f.name for f in schema.fields] == ["a", "b"]
        assert schema.field("a").optional is True
        assert schema.field("b").optional is False
        assert schema.field("missing") is None

    def test_properties_imply_object(self) -> None:
        schema = _resolve({"properties": {"a": {"type": "string"}}})
        assert isinstance(schema, ObjectSchema)

    def test_additional_properties_only_is_map(self) -> None:
        schema = _resolve({"type": "object", "additionalProperties": {"type": "string"}})
        assert schema == MapSchema(values=PrimitiveSchema(type=PrimitiveType.STRING))

    def test_additional_properties_true_is_map_of_any(self) -> None:
        assert _resolve({"type": "object", "additionalProperties": True}) == MapSchema(values=ANY)

    def test_additional_properties_false_closes_object(self) -> None:
        schema = _resolve({
            "type": "object",
            "properties": {"a": {"type": "string"}},
            "additionalProperties": False,
        })
        assert isinstance(schema, ObjectSchema)
        assert schema.closed is True

    def test_fields_with_additional_schema(self) -> None:
        schema = _resolve({
            "type": "object",
            "properties": {"a": {"type": "string"}},
            "additionalProperties": {"type": "integer"},
        })
        assert isinstance(schema, ObjectSchema)
        assert schema.additional == PrimitiveSchema(type=PrimitiveType.INTEGER)


class TestArrays:
    def test_items(self) -> None:
        schema = _resolve({"type": "array", "items": {"type": "string"}})
        assert schema == ArraySchema(items=PrimitiveSchema(type=PrimitiveType.STRING))

    def test_missing_items_is_any(self) -> None:
        assert _resolve({"type": "array"}) == ArraySchema(items=ANY)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


class TestComposition:
    def test_one_of_is_exclusive(self) -> None:
        schema = _resolve({"oneOf": [{"type": "string"}, {"type": "integer"}]})
        assert isinstance(schema, UnionSchema)
        assert schema.exclusive is True

    def test_any_of_is_not_exclusive(self) -> None:
        schema = _resolve({"anyOf": [{"type": "string"}, {"type": "integer"}]})
        assert isinstance(schema, UnionSchema)
        assert schema.exclusive is False

    def test_all_of_objects_merge(self) -> None:
        schema = _resolve({
            "allOf": [
                {"type": "object", "properties": {"a": {"type": "string"}}},
                {"type": "object", "properties": {"b": {"type": "integer"}}},
            ]
        })
        assert isinstance(schema, ObjectSchema)
        assert [f.name for f in schema.fields] == ["a", "b"]

    def test_all_of_later_member_wins(self) -> None:
        schema = _resolve({
            "allOf": [
                {"type": "object", "properties": {"a": {"type": "string"}}},
                {"type": "object", "properties": {"a": {"type": "integer"}}},
            ]
        })
        assert schema.field("a").schema_ == PrimitiveSchema(type=PrimitiveType.INTEGER)

    def test_all_of_sibling_properties_count_as_member(self) -> None:
        schema = _resolve({
            "allOf": [{"type": "object", "properties": {"a": {"type": "string"}}}],
            "properties": {"b": {"type": "string"}},
        })
        assert [f.name for f in schema.fields] == ["a", "b"]

    def test_all_of_single_member_collapses(self) -> None:
        assert _resolve({"allOf": [{"type": "string"}]}) == PrimitiveSchema(
            type=PrimitiveType.STRING
        )

    def test_all_of_non_objects_kept(self) -> None:
        schema = _resolve({"allOf": [{"type": "string"}, {"type": "string", "format": "email"}]})
        assert isinstance(schema, AllOfSchema)
        assert len(schema.members) == 2

    def test_all_of_merges_through_compiled_ref(self) -> None:
        schemas = {"Base": {"type": "object", "properties": {"id": {"type": "integer"}}}}
        store = DocumentStore({"components": {"schemas": schemas}})
        registry = SchemaRegistry(store)
        registry.get("Base")
        schema = registry.resolve_node({
            "allOf": [
                {"$ref": "#/components/schemas/Base"},
                {"type": "object", "properties": {"extra": {"type": "string"}}},
            ]
        })
        assert isinstance(schema, ObjectSchema)
        assert [f.name for f in schema.fields] == ["id", "extra"]


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class TestReferences:
    def test_first_reference_is_inlined(self) -> None:
        schema = _resolve(
            {"$ref": "#/components/schemas/Pet"},
            {"Pet": {"type": "object", "properties": {"id": {"type": "integer"}}}},
        )
        assert isinstance(schema, ObjectSchema)

    def test_compiled_reference_becomes_named_ref(self) -> None:
        schemas = {"Pet": {"type": "string"}}
        registry = SchemaRegistry(DocumentStore({"components": {"schemas": schemas}}))
        registry.get("Pet")
        assert registry.resolve_node({"$ref": "#/components/schemas/Pet"}) == NamedRef(name="Pet")

    def test_dangling_reference_raises(self) -> None:
        with pytest.raises(UnresolvedReferenceError) as excinfo:
            _resolve({"$ref": "#/components/schemas/Missing"})
        assert excinfo.value.name == "Missing"

    def test_reference_into_property(self) -> None:
        schemas = {"Pet": {"type": "object", "properties": {"tag": {"type": "string"}}}}
        schema = _resolve({"$ref": "#/components/schemas/Pet/properties/tag"}, schemas)
        assert schema == PrimitiveSchema(type=PrimitiveType.STRING)
