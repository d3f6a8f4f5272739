"""Convert raw schema nodes into :data:`~specreg.models.ResolvedSchema` graphs.

This is the core algorithm of specreg. :meth:`SchemaResolver.resolve` walks
an arbitrarily nested, possibly cyclic schema node and produces a tree of
frozen schema models that validators and generators can consume without
going back to the document.

**Algorithm summary**

1. ``$ref`` -- if the target name is on the current resolution stack
   (``visiting``), or the registry already holds it (compiled or being
   compiled by another thread), emit :class:`~specreg.models.NamedRef`.
   Otherwise compile the target once, store it in the registry and inline
   it.
2. ``oneOf`` / ``anyOf`` -- :class:`~specreg.models.UnionSchema` of the
   independently resolved variants.
3. ``allOf`` -- merged into one :class:`~specreg.models.ObjectSchema` when
   every member is an object (later members win on field-name collisions),
   else kept as :class:`~specreg.models.AllOfSchema`.
4. objects -- fields with ``optional`` taken from ``required``;
   ``additionalProperties`` alone gives a :class:`~specreg.models.MapSchema`.
5. arrays -- :class:`~specreg.models.ArraySchema` (items default to any).
6. primitives -- :class:`~specreg.models.PrimitiveSchema`, format passed
   through; ``enum`` gives :class:`~specreg.models.EnumSchema`.
7. anything else -- "any". The resolver never fails on a malformed
   fragment; the only error it raises is
   :class:`~specreg.exceptions.UnresolvedReferenceError` for a dangling
   reference.

Recursion depth is bounded by the number of distinct type names because a
name is never expanded twice on one stack.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

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
    ResolvedSchema,
    SchemaField,
    UnionSchema,
)
from specreg.parser.document import DocumentStore, is_ref

if TYPE_CHECKING:
    from specreg.schema.registry import SchemaRegistry

NULL = PrimitiveSchema(type=PrimitiveType.NULL)

_PRIMITIVES = {
    "string": PrimitiveType.STRING,
    "integer": PrimitiveType.INTEGER,
    "number": PrimitiveType.NUMBER,
    "boolean": PrimitiveType.BOOLEAN,
    "null": PrimitiveType.NULL,
}


class SchemaResolver:
    """Resolves schema nodes against a document, memoizing named types.

    Args:
        store: The document that ``$ref`` strings are resolved against.
        registry: The :class:`~specreg.schema.registry.SchemaRegistry`
            that owns compiled named types. The resolver never stores
            anything itself.
    """

    def __init__(self, store: DocumentStore, registry: SchemaRegistry) -> None:
        self._store = store
        self._registry = registry

    def resolve(self, node: Any, visiting: frozenset[str] = frozenset()) -> ResolvedSchema:
        """Resolve *node* into a schema graph.

        Args:
            node: A raw schema node. Anything that is not a mapping
                resolves to "any".
            visiting: Names currently being resolved on this call stack.

        Raises:
            UnresolvedReferenceError: If a reference cannot be followed.
        """
        if not isinstance(node, dict):
            return ANY

        if is_ref(node):
            return self._registry.resolve_reference(node["$ref"], visiting)

        nullable = _is_nullable(node)

        for key in ("oneOf", "anyOf"):
            variants = node.get(key)
            if isinstance(variants, list) and variants:
                union = UnionSchema(
                    variants=tuple(self.resolve(v, visiting) for v in variants),
                    exclusive=key == "oneOf",
                )
                return _with_null(union, nullable)

        members = node.get("allOf")
        if isinstance(members, list) and members:
            return _with_null(self._all_of(node, members, visiting), nullable)

        enum = node.get("enum")
        if isinstance(enum, list) and enum:
            return _with_null(EnumSchema(values=tuple(enum)), nullable)

        types = _declared_types(node)
        if len(types) > 1:
            variants = tuple(self._typed(node, t, visiting) for t in types)
            return _with_null(UnionSchema(variants=variants), nullable)

        type_name = types[0] if types else _implied_type(node)
        return _with_null(self._typed(node, type_name, visiting), nullable)

    # ------------------------------------------------------------------ #
    # Per-shape helpers
    # ------------------------------------------------------------------ #

    def _typed(
        self, node: dict[str, Any], type_name: Optional[str], visiting: frozenset[str]
    ) -> ResolvedSchema:
        if type_name == "object":
            return self._object(node, visiting)
        if type_name == "array":
            items = node.get("items")
            return ArraySchema(items=self.resolve(items, visiting) if items is not None else ANY)
        if type_name == "file":
            return PrimitiveSchema(type=PrimitiveType.STRING, format="binary")
        primitive = _PRIMITIVES.get(type_name or "")
        if primitive is None:
            return ANY
        fmt = node.get("format")
        return PrimitiveSchema(type=primitive, format=fmt if isinstance(fmt, str) else None)

    def _object(self, node: dict[str, Any], visiting: frozenset[str]) -> ResolvedSchema:
        properties = node.get("properties")
        required_list = node.get("required")
        required = {str(r) for r in required_list} if isinstance(required_list, list) else set()

        fields: tuple[SchemaField, ...] = ()
        if isinstance(properties, dict):
            fields = tuple(
                SchemaField(
                    name=name,
                    schema=self.resolve(prop, visiting),
                    optional=name not in required,
                )
                for name, prop in properties.items()
            )

        additional = node.get("additionalProperties")
        if not fields:
            if isinstance(additional, dict):
                return MapSchema(values=self.resolve(additional, visiting))
            if additional is True:
                return MapSchema(values=ANY)
            return ObjectSchema(closed=additional is False)

        extra: Optional[ResolvedSchema] = None
        if isinstance(additional, dict):
            extra = self.resolve(additional, visiting)
        elif additional is True:
            extra = ANY
        return ObjectSchema(fields=fields, additional=extra, closed=additional is False)

    def _all_of(
        self, node: dict[str, Any], members: list[Any], visiting: frozenset[str]
    ) -> ResolvedSchema:
        resolved = [self.resolve(m, visiting) for m in members]

        # Sibling properties next to allOf act as one more member.
        if isinstance(node.get("properties"), dict):
            own = {k: v for k, v in node.items() if k != "allOf"}
            resolved.append(self._object(own, visiting))

        # "any" members constrain nothing.
        resolved = [m for m in resolved if m != ANY]
        if not resolved:
            return ANY
        if len(resolved) == 1:
            return resolved[0]

        objects = [self._as_object(m, visiting) for m in resolved]
        if any(o is None for o in objects):
            return AllOfSchema(members=tuple(resolved))

        merged: dict[str, SchemaField] = {}
        additional: Optional[ResolvedSchema] = None
        closed = False
        for obj in objects:
            assert obj is not None
            for f in obj.fields:
                merged[f.name] = f
            if obj.additional is not None:
                additional = obj.additional
            closed = closed or obj.closed
        return ObjectSchema(fields=tuple(merged.values()), additional=additional, closed=closed)

    def _as_object(self, schema: ResolvedSchema, visiting: frozenset[str]) -> Optional[ObjectSchema]:
        """Return *schema* as an object, looking through compiled refs."""
        if isinstance(schema, ObjectSchema):
            return schema
        if isinstance(schema, NamedRef) and schema.name not in visiting:
            target = self._registry.peek(schema.name)
            if isinstance(target, ObjectSchema):
                return target
        return None


def _declared_types(node: dict[str, Any]) -> list[str]:
    """Return the non-null types a node declares (OpenAPI 3.1 allows a list)."""
    value = node.get("type")
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        non_null = [t for t in value if isinstance(t, str) and t != "null"]
        if not non_null and "null" in value:
            return ["null"]
        return non_null
    return []


def _implied_type(node: dict[str, Any]) -> Optional[str]:
    if "properties" in node or "additionalProperties" in node:
        return "object"
    if "items" in node:
        return "array"
    return None


def _is_nullable(node: dict[str, Any]) -> bool:
    if node.get("nullable") is True or node.get("x-nullable") is True:
        return True
    value = node.get("type")
    return isinstance(value, list) and "null" in value and len(value) > 1


def _with_null(schema: ResolvedSchema, nullable: bool) -> ResolvedSchema:
    if not nullable or schema == ANY or schema == NULL:
        return schema
    return UnionSchema(variants=(schema, NULL))
