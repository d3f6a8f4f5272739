"""Operation registry: stable keys to endpoint metadata.

:meth:`OperationRegistry.build` runs the syntactic pipeline once::

    DocumentStore -> extract_endpoints -> OperationKeyResolver -> registry

and produces an immutable mapping from operation key to
:class:`~specreg.models.EndpointRecord`. The registry is safe to share
between threads after construction.

Besides plain lookup it answers "which operation lists Pods?" style
questions through :meth:`OperationRegistry.find_by_method_and_kind_pattern`,
which relies on the ``readX`` / ``listX`` / ``createX`` / ``replaceX`` /
``patchX`` / ``deleteX`` naming convention of Kubernetes-style APIs.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Union

from specreg.exceptions import InvalidUsageError, UnknownMethodCategoryError
from specreg.models import EndpointRecord, OperationSummary
from specreg.parser.document import DocumentStore, is_ref, schema_name
from specreg.parser.extractor import RawEndpoint, extract_endpoints
from specreg.parser.keys import OperationKeyResolver

logger = logging.getLogger(__name__)

# Method category -> pattern the operation key must start with.
METHOD_CATEGORY_PATTERNS: dict[str, str] = {
    "get": r"^read",
    "list": r"^list",
    "create": r"^create",
    "update": r"^(replace|patch)",
    "delete": r"^delete",
}


class OperationRegistry:
    """Immutable mapping of operation keys to :class:`EndpointRecord` objects.

    Use :meth:`build` rather than the constructor.

    Example::

        registry = OperationRegistry.build(load_document("k8s.json"))
        registry.lookup("listCoreV1NamespacedPod").path_template
        registry.find_by_method_and_kind_pattern("list", "Pod")
    """

    def __init__(self, entries: dict[str, EndpointRecord]) -> None:
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def build(
        cls,
        document: Union[DocumentStore, dict[str, Any]],
        key_resolver: Optional[OperationKeyResolver] = None,
    ) -> OperationRegistry:
        """Extract every endpoint of *document* and assign it a key.

        Declared operation ids are issued before any key is synthesized, so a
        synthesized key never takes an id the document declares. Entries
        keep document order.

        Args:
            document: A :class:`DocumentStore` or a raw parsed document.
            key_resolver: Resolver to issue keys from. A fresh one is used
                when omitted.

        Raises:
            DuplicateOperationKeyError: If two operations declare the same id.
        """
        store = document if isinstance(document, DocumentStore) else DocumentStore(document)
        resolver = key_resolver or OperationKeyResolver()
        endpoints = extract_endpoints(store)

        keys: dict[int, str] = {}
        for index, ep in enumerate(endpoints):
            if _has_declared_id(ep):
                keys[index] = resolver.resolve(ep.method.value, ep.path, ep.operation_id)
        for index, ep in enumerate(endpoints):
            if index not in keys:
                keys[index] = resolver.resolve(ep.method.value, ep.path)

        entries = {
            keys[index]: _to_record(keys[index], ep) for index, ep in enumerate(endpoints)
        }
        logger.debug("Built operation registry with %d operations", len(entries))
        return cls(entries)

    @property
    def entries(self) -> Mapping[str, EndpointRecord]:
        """Read-only view of ``key -> EndpointRecord`` in document order."""
        return self._entries

    def lookup(self, key: str) -> Optional[EndpointRecord]:
        """Return the record for *key*, or ``None`` if no such operation exists."""
        return self._entries.get(key)

    def find_by_method_and_kind_pattern(self, category: str, kind: str) -> Optional[str]:
        """Return the best operation key for a method category and resource kind.

        Args:
            category: One of ``get``, ``list``, ``create``, ``update`` or
                ``delete``.
            kind: Resource kind, matched case-insensitively as a substring
                of the key (``"Pod"`` matches ``listNamespacedPod``).

        Returns:
            The best match, or ``None``. Keys ending with *kind* rank first,
            then shorter keys, then document order.

        Raises:
            UnknownMethodCategoryError: If *category* is not recognised.
        """
        matches = self._matching_keys(category, kind)
        return matches[0] if matches else None

    def explain_kind(self, kind: str) -> dict[str, list[str]]:
        """Return every matching key for *kind* under each method category."""
        return {category: self._matching_keys(category, kind) for category in METHOD_CATEGORY_PATTERNS}

    def search(self, filter_by: Optional[str] = None) -> list[OperationSummary]:
        """List operations, optionally filtered by a case-insensitive regex.

        The pattern is searched in the key, the declared operation id and
        the path template.

        Raises:
            InvalidUsageError: If *filter_by* is not a valid regular expression.
        """
        pattern = None
        if filter_by:
            try:
                pattern = re.compile(filter_by, re.IGNORECASE)
            except re.error as exc:
                raise InvalidUsageError(f"Invalid filter pattern '{filter_by}': {exc}") from exc

        rows = []
        for key, record in self._entries.items():
            if pattern is not None and not any(
                pattern.search(text)
                for text in (key, record.operation_id or "", record.path_template)
            ):
                continue
            rows.append(
                OperationSummary(
                    key=key,
                    operation_id=record.operation_id,
                    method=record.method,
                    path=record.path_template,
                    summary=record.summary,
                )
            )
        return rows

    def _matching_keys(self, category: str, kind: str) -> list[str]:
        prefix = METHOD_CATEGORY_PATTERNS.get(category.lower())
        if prefix is None:
            raise UnknownMethodCategoryError(category, METHOD_CATEGORY_PATTERNS)

        prefix_re = re.compile(prefix, re.IGNORECASE)
        needle = kind.lower()
        ranked = [
            (not key.lower().endswith(needle), len(key), order, key)
            for order, key in enumerate(self._entries)
            if prefix_re.search(key) and needle in key.lower()
        ]
        ranked.sort()
        return [key for *_, key in ranked]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __repr__(self) -> str:
        return f"OperationRegistry({len(self._entries)} operations)"


def _has_declared_id(ep: RawEndpoint) -> bool:
    return ep.operation_id is not None and bool(ep.operation_id.strip())


def _ref_of(schema: Optional[dict[str, Any]]) -> Optional[str]:
    """Return the schema name a node refers to directly, if it is a ``$ref``."""
    if is_ref(schema):
        assert schema is not None
        return schema_name(schema["$ref"])
    return None


def _to_record(key: str, ep: RawEndpoint) -> EndpointRecord:
    return EndpointRecord(
        method=ep.method,
        path_template=ep.path,
        operation_key=key,
        operation_id=ep.operation_id if _has_declared_id(ep) else None,
        summary=ep.summary,
        description=ep.description,
        tags=ep.tags,
        deprecated=ep.deprecated,
        parameters=ep.parameters,
        request_schema_ref=_ref_of(ep.request_schema),
        response_schema_ref=_ref_of(ep.response_schema),
        request_schema=ep.request_schema,
        response_schema=ep.response_schema,
    )
