"""Tests for specreg.schema.validator."""

from __future__ import annotations

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
    SchemaField,
    UnionSchema,
)
from specreg.schema.registry import SchemaRegistry
from specreg.schema.validator import ValidationIssue, coerce, generate_sample, validate

STRING = PrimitiveSchema(type=PrimitiveType.STRING)
INTEGER = PrimitiveSchema(type=PrimitiveType.INTEGER)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidatePrimitives:
    @pytest.mark.parametrize(
        ("kind", "value"),
        [
            (PrimitiveType.STRING, "x"),
            (PrimitiveType.INTEGER, 3),
            (PrimitiveType.INTEGER, 3.0),
            (PrimitiveType.NUMBER, 1.5),
            (PrimitiveType.NUMBER, 2),
            (PrimitiveType.BOOLEAN, True),
            (PrimitiveType.NULL, None),
            (PrimitiveType.ANY, {"anything": [1]}),
        ],
    )
    def test_accepts(self, kind: PrimitiveType, value: object) -> None:
        assert validate(PrimitiveSchema(type=kind), value) == []

    @pytest.mark.parametrize(
        ("kind", "value"),
        [
            (PrimitiveType.STRING, 1),
            (PrimitiveType.INTEGER, 1.5),
            (PrimitiveType.INTEGER, True),
            (PrimitiveType.NUMBER, False),
            (PrimitiveType.BOOLEAN, 0),
            (PrimitiveType.NULL, ""),
        ],
    )
    def test_rejects(self, kind: PrimitiveType, value: object) -> None:
        (issue,) = validate(PrimitiveSchema(type=kind), value)
        assert issue.path == "$"
        assert issue.message.startswith(f"expected {kind.value}")

    def test_enum(self) -> None:
        schema = EnumSchema(values=("a", "b"))
        assert validate(schema, "a") == []
        (issue,) = validate(schema, "c")
        assert "'c' is not one of 'a', 'b'" in issue.message


class TestValidateObjects:
    def test_valid_pet(self, petstore_schemas: SchemaRegistry) -> None:
        pet = petstore_schemas.get("Pet")
        assert validate(pet, {"id": 1, "name": "Rex", "status": "sold"}, petstore_schemas) == []

    def test_reports_every_issue_with_paths(self, petstore_schemas: SchemaRegistry) -> None:
        pet = petstore_schemas.get("Pet")
        issues = validate(pet, {"id": "one", "status": "lost"}, petstore_schemas)
        assert [str(i) for i in issues] == [
            "$.id: expected integer, got string",
            "$: missing required field 'name'",
            "$.status: 'lost' is not one of 'available', 'pending', 'sold'",
        ]

    def test_array_item_paths(self, petstore_schemas: SchemaRegistry) -> None:
        pets = petstore_schemas.get("Pets")
        issues = validate(pets, [{"id": 1, "name": "a"}, {"id": 2}], petstore_schemas)
        assert [i.path for i in issues] == ["$[1]"]

    def test_closed_object_rejects_extra(self) -> None:
        schema = ObjectSchema(fields=(SchemaField(name="a", schema=STRING),), closed=True)
        (issue,) = validate(schema, {"a": "x", "b": 1})
        assert issue.message == "unexpected field 'b'"

    def test_additional_values_checked(self) -> None:
        schema = ObjectSchema(fields=(SchemaField(name="a", schema=STRING),), additional=INTEGER)
        (issue,) = validate(schema, {"a": "x", "b": "y"})
        assert issue.path == "$.b"

    def test_map_values(self, recursive_schemas: SchemaRegistry) -> None:
        labels = recursive_schemas.get("Labels")
        assert validate(labels, {"app": "web"}) == []
        (issue,) = validate(labels, {"app": 3})
        assert issue.path == "$.app"

    def test_not_an_object(self, petstore_schemas: SchemaRegistry) -> None:
        (issue,) = validate(petstore_schemas.get("Pet"), [1, 2])
        assert issue.message == "expected object, got array"


class TestValidateComposition:
    def test_one_of_exactly_one(self, recursive_schemas: SchemaRegistry) -> None:
        shape = recursive_schemas.get("Shape")
        assert validate(shape, {"radius": 1.0}) == []
        (issue,) = validate(shape, {"radius": 1.0, "side": 2.0})
        assert issue.message == "does not match any of 2 variants"

    def test_exclusive_union_ambiguity(self) -> None:
        schema = UnionSchema(variants=(ANY, STRING), exclusive=True)
        (issue,) = validate(schema, "x")
        assert issue.message == "matches 2 variants, expected exactly one"

    def test_nullable(self, recursive_schemas: SchemaRegistry) -> None:
        nickname = recursive_schemas.get("Nickname")
        assert validate(nickname, None) == []
        assert validate(nickname, "Bob") == []
        assert len(validate(nickname, 5)) == 1

    def test_all_of_collects_from_every_member(self) -> None:
        schema = AllOfSchema(members=(STRING, INTEGER))
        assert len(validate(schema, None)) == 2

    def test_recursive_data(self, recursive_schemas: SchemaRegistry) -> None:
        tree = recursive_schemas.get("TreeNode")
        data = {"value": "root", "children": [{"value": "a", "children": [{"value": 1}]}]}
        (issue,) = validate(tree, data, recursive_schemas)
        assert issue.path == "$.children[0].children[0].value"

    def test_named_ref_without_registry_raises(self) -> None:
        with pytest.raises(UnresolvedReferenceError):
            validate(NamedRef(name="Pet"), {})

    def test_alias_cycle_terminates(self, petstore_schemas: SchemaRegistry) -> None:
        petstore_schemas.register("B", NamedRef(name="C"))
        petstore_schemas.register("C", NamedRef(name="B"))
        assert validate(NamedRef(name="B"), {"any": "thing"}, petstore_schemas) == []

    def test_self_all_of_still_checks_other_members(
        self, petstore_schemas: SchemaRegistry
    ) -> None:
        loop = AllOfSchema(members=(NamedRef(name="Loop"), STRING))
        petstore_schemas.register("Loop", loop)
        assert validate(NamedRef(name="Loop"), "x", petstore_schemas) == []
        (issue,) = validate(NamedRef(name="Loop"), 5, petstore_schemas)
        assert issue.message == "expected string, got integer"

    def test_alias_cycle_inside_array_items(self, petstore_schemas: SchemaRegistry) -> None:
        petstore_schemas.register("Self", AllOfSchema(members=(NamedRef(name="Self"), INTEGER)))
        items = ArraySchema(items=NamedRef(name="Self"))
        (issue,) = validate(items, [1, "two"], petstore_schemas)
        assert issue.path == "$[1]"


class TestValidationIssue:
    def test_str(self) -> None:
        assert str(ValidationIssue(path="$.a", message="bad")) == "$.a: bad"


# ---------------------------------------------------------------------------
# coerce
# ---------------------------------------------------------------------------


class TestCoerce:
    @pytest.mark.parametrize(
        ("kind", "text", "expected"),
        [
            (PrimitiveType.INTEGER, "42", 42),
            (PrimitiveType.INTEGER, " -3 ", -3),
            (PrimitiveType.NUMBER, "1.5", 1.5),
            (PrimitiveType.BOOLEAN, "true", True),
            (PrimitiveType.BOOLEAN, "FALSE", False),
            (PrimitiveType.NULL, "null", None),
            (PrimitiveType.STRING, "42", "42"),
            (PrimitiveType.ANY, "42", "42"),
        ],
    )
    def test_scalars(self, kind: PrimitiveType, text: str, expected: object) -> None:
        assert coerce(PrimitiveSchema(type=kind), text) == expected

    def test_unparseable_string_is_left_for_validate(self) -> None:
        assert coerce(INTEGER, "many") == "many"
        assert coerce(PrimitiveSchema(type=PrimitiveType.BOOLEAN), "yes") == "yes"

    def test_non_strings_untouched(self) -> None:
        assert coerce(INTEGER, 7) == 7
        assert coerce(STRING, 7) == 7

    def test_pet_fields(self, petstore_schemas: SchemaRegistry) -> None:
        pet = petstore_schemas.get("Pet")
        data = {"id": "7", "name": "Rex", "extra": "1"}
        result = coerce(pet, data, petstore_schemas)
        assert result == {"id": 7, "name": "Rex", "extra": "1"}
        assert data["id"] == "7"
        assert validate(pet, result, petstore_schemas) == []

    def test_arrays_maps_and_additional(self) -> None:
        schema = ObjectSchema(
            fields=(
                SchemaField(name="ports", schema=ArraySchema(items=INTEGER)),
                SchemaField(name="limits", schema=MapSchema(values=INTEGER)),
            ),
            additional=PrimitiveSchema(type=PrimitiveType.BOOLEAN),
        )
        result = coerce(schema, {"ports": ["80", "443"], "limits": {"cpu": "2"}, "debug": "true"})
        assert result == {"ports": [80, 443], "limits": {"cpu": 2}, "debug": True}

    def test_union_picks_first_matching_variant(self) -> None:
        schema = UnionSchema(
            variants=(INTEGER, PrimitiveSchema(type=PrimitiveType.NULL)), exclusive=False
        )
        assert coerce(schema, "5") == 5
        assert coerce(schema, "null") is None
        assert coerce(schema, "five") == "five"

    def test_all_of_applies_every_member(self) -> None:
        schema = AllOfSchema(
            members=(
                ObjectSchema(fields=(SchemaField(name="a", schema=INTEGER),)),
                ObjectSchema(fields=(SchemaField(name="b", schema=INTEGER),)),
            )
        )
        assert coerce(schema, {"a": "1", "b": "2"}) == {"a": 1, "b": 2}

    def test_enum_with_numeric_values(self) -> None:
        assert coerce(EnumSchema(values=(1, 2, 3)), "2") == 2
        assert coerce(EnumSchema(values=("a", "b")), "a") == "a"

    def test_follows_named_refs_and_stops_on_alias_cycles(
        self, petstore_schemas: SchemaRegistry
    ) -> None:
        petstore_schemas.register("B", NamedRef(name="C"))
        petstore_schemas.register("C", NamedRef(name="B"))
        assert coerce(NamedRef(name="B"), "1", petstore_schemas) == "1"
        tree = ArraySchema(items=NamedRef(name="Pet"))
        assert coerce(tree, [{"id": "3", "name": "x"}], petstore_schemas) == [
            {"id": 3, "name": "x"}
        ]


# ---------------------------------------------------------------------------
# generate_sample
# ---------------------------------------------------------------------------


class TestGenerateSample:
    def test_pet(self, petstore_schemas: SchemaRegistry) -> None:
        sample = generate_sample(petstore_schemas.get("Pet"), petstore_schemas)
        assert sample == {"id": 0, "name": "string", "tag": "string", "status": "available"}

    def test_sample_validates(self, k8s_schemas: SchemaRegistry) -> None:
        pod = k8s_schemas.get("io.k8s.api.core.v1.Pod")
        sample = generate_sample(pod, k8s_schemas)
        assert validate(pod, sample, k8s_schemas) == []

    @pytest.mark.parametrize(
        ("fmt", "expected"),
        [
            ("date-time", "1970-01-01T00:00:00Z"),
            ("uuid", "00000000-0000-0000-0000-000000000000"),
            ("email", "user@example.com"),
            (None, "string"),
        ],
    )
    def test_string_formats(self, fmt: str | None, expected: str) -> None:
        schema = PrimitiveSchema(type=PrimitiveType.STRING, format=fmt)
        assert generate_sample(schema) == expected

    def test_nullable_prefers_value(self, recursive_schemas: SchemaRegistry) -> None:
        assert generate_sample(recursive_schemas.get("Nickname")) == "string"

    def test_map(self, recursive_schemas: SchemaRegistry) -> None:
        assert generate_sample(recursive_schemas.get("Labels")) == {"key": "string"}

    def test_recursive_type_terminates(self, recursive_schemas: SchemaRegistry) -> None:
        sample = generate_sample(recursive_schemas.get("Node"), recursive_schemas)
        depth = 0
        while isinstance(sample, dict) and sample.get("self") is not None:
            sample = sample["self"]
            depth += 1
        assert depth < 10

    def test_zero_depth_keeps_required_fields_only(
        self, recursive_schemas: SchemaRegistry
    ) -> None:
        sample = generate_sample(recursive_schemas.get("TreeNode"), recursive_schemas, max_depth=0)
        assert sample == {"value": "string"}

    def test_all_of_members_merge(self) -> None:
        first = ObjectSchema(fields=(SchemaField(name="a", schema=STRING),))
        second = ObjectSchema(fields=(SchemaField(name="b", schema=INTEGER),))
        assert generate_sample(AllOfSchema(members=(first, second))) == {"a": "string", "b": 0}
