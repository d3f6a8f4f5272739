"""Schema resolution engine.

The semantic half of specreg: turning named type definitions into frozen,
possibly recursive :data:`~specreg.models.ResolvedSchema` graphs, cached in
a thread-safe :class:`SchemaRegistry`, plus the validator and sample
generator that consume them.

Typical usage::

    from specreg.parser import load_document
    from specreg.schema import SchemaRegistry, validate

    registry = SchemaRegistry(load_document("petstore.yaml"))
    issues = validate(registry.get("Pet"), {"id": 1}, registry)
"""

from specreg.schema.registry import EntryState, SchemaRegistry
from specreg.schema.resolver import SchemaResolver
from specreg.schema.validator import ValidationIssue, coerce, generate_sample, validate

__all__ = [
    "EntryState",
    "SchemaRegistry",
    "SchemaResolver",
    "ValidationIssue",
    "coerce",
    "generate_sample",
    "validate",
]
