"""In-memory document tree with path lookup and ``$ref`` resolution.

:class:`DocumentStore` holds a parsed API description after a one-time
normalisation pass: every mapping key is coerced to ``str`` (YAML happily
produces ``200`` as an integer status code) so that downstream code only
ever deals with one canonical key form.

It has no business logic. The extractor uses :meth:`DocumentStore.get` and
:meth:`DocumentStore.deref` to walk operations; the schema resolver uses
:meth:`DocumentStore.resolve` to follow type references.

Only internal references (``#/...``) are supported. Resolution follows
RFC 6901 JSON Pointer rules, including the ``~0``/``~1`` escapes.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from specreg.exceptions import UnresolvedReferenceError

logger = logging.getLogger(__name__)

# Sections of the document that hold named type definitions, in lookup order.
SCHEMA_POOLS: tuple[tuple[str, ...], ...] = (
    ("components", "schemas"),
    ("definitions",),
)

_MAX_DEREF_HOPS = 32


def _normalize(node: Any) -> Any:
    """Return a copy of *node* with every mapping key coerced to ``str``."""
    if isinstance(node, dict):
        return {str(key): _normalize(value) for key, value in node.items()}
    if isinstance(node, (list, tuple)):
        return [_normalize(item) for item in node]
    return node


def _unescape(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def ref_name(ref: str) -> str:
    """Return the type name a reference string points at.

    The name is the last pointer segment, unescaped::

        >>> ref_name("#/components/schemas/Pet")
        'Pet'
        >>> ref_name("#/definitions/io.k8s.api.core.v1.Pod")
        'io.k8s.api.core.v1.Pod'
    """
    return _unescape(ref.rstrip("/").rsplit("/", 1)[-1])


def schema_name(ref: str) -> str:
    """Return the registry name for a schema reference.

    References straight into a schema pool are named after the type; any
    other internal pointer (e.g. into a property of another type) is named
    by its full pointer path so that it cannot collide with a type name::

        >>> schema_name("#/components/schemas/Pet")
        'Pet'
        >>> schema_name("#/components/schemas/Pet/properties/tag")
        'components/schemas/Pet/properties/tag'
    """
    if not ref.startswith("#/"):
        return ref
    segments = ref[2:].split("/")
    for section in SCHEMA_POOLS:
        if len(segments) == len(section) + 1 and tuple(segments[:-1]) == section:
            return _unescape(segments[-1])
    return ref[2:]


def is_ref(node: Any) -> bool:
    """Return ``True`` if *node* is a ``{"$ref": "..."}`` object."""
    return isinstance(node, dict) and isinstance(node.get("$ref"), str)


class DocumentStore:
    """Holds a normalised API document and answers lookups against it.

    Args:
        raw: The parsed document as returned by
            :func:`~specreg.parser.loader.load_spec`. It is copied, never
            mutated.

    Example::

        store = DocumentStore(load_spec("petstore.yaml"))
        store.get("paths", "/pets", "get", "operationId")   # "listPets"
        store.resolve("#/components/schemas/Pet")           # {"type": "object", ...}
    """

    def __init__(self, raw: Any) -> None:
        normalized = _normalize(raw)
        if not isinstance(normalized, dict):
            logger.warning(
                "Document root is %s, not a mapping; treating it as empty",
                type(raw).__name__,
            )
            normalized = {}
        self._root: dict[str, Any] = normalized

    @property
    def root(self) -> dict[str, Any]:
        """The normalised document tree."""
        return self._root

    def get(self, *path: str | int) -> Optional[Any]:
        """Return the node at *path*, or ``None`` if any segment is missing.

        String segments index mappings, integer segments index lists.
        """
        current: Any = self._root
        for segment in path:
            if isinstance(current, dict):
                current = current.get(str(segment))
            elif isinstance(current, list) and isinstance(segment, int):
                if not -len(current) <= segment < len(current):
                    return None
                current = current[segment]
            else:
                return None
            if current is None:
                return None
        return current

    def resolve(self, ref: str) -> Any:
        """Return the node a ``#/a/b/c`` reference points at.

        Raises:
            UnresolvedReferenceError: If the reference is external or any
                pointer segment does not exist in the document.
        """
        name = ref_name(ref)
        if not ref.startswith("#/"):
            raise UnresolvedReferenceError(
                name, ref, "only internal references (#/...) are supported"
            )

        current: Any = self._root
        for raw_segment in ref[2:].split("/"):
            segment = _unescape(raw_segment)
            if isinstance(current, dict):
                if segment not in current:
                    raise UnresolvedReferenceError(
                        name, ref, f"key '{segment}' not found"
                    )
                current = current[segment]
            elif isinstance(current, list):
                try:
                    current = current[int(segment)]
                except (ValueError, IndexError) as exc:
                    raise UnresolvedReferenceError(
                        name, ref, f"invalid array index '{segment}'"
                    ) from exc
            else:
                raise UnresolvedReferenceError(
                    name, ref, f"cannot navigate into {type(current).__name__}"
                )
        return current

    def deref(self, node: Any) -> Any:
        """Follow ``$ref`` chains on a non-schema object.

        Used for parameters, request bodies, responses and path items, which
        may be shared through ``components``. Returns ``None`` when a
        reference dangles or loops, so that one broken object only hides
        itself.
        """
        seen: set[str] = set()
        while is_ref(node):
            ref = node["$ref"]
            if ref in seen or len(seen) >= _MAX_DEREF_HOPS:
                logger.warning("Reference loop while dereferencing %s", ref)
                return None
            seen.add(ref)
            try:
                node = self.resolve(ref)
            except UnresolvedReferenceError as exc:
                logger.warning("%s", exc)
                return None
        return node

    def schema_pool(self) -> dict[str, str]:
        """Return every named type definition as ``{name: pointer}``.

        OpenAPI 3 ``components/schemas`` take precedence over Swagger 2
        ``definitions`` when a name appears in both.
        """
        pool: dict[str, str] = {}
        for section in reversed(SCHEMA_POOLS):
            entries = self.get(*section)
            if not isinstance(entries, dict):
                continue
            prefix = "#/" + "/".join(section)
            for name in entries:
                escaped = name.replace("~", "~0").replace("/", "~1")
                pool[name] = f"{prefix}/{escaped}"
        return pool
