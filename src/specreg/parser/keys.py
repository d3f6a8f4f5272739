"""Derive unique, stable operation keys.

Declared ``operationId`` values are used verbatim. Endpoints without one get
a key synthesized from the method and path::

    GET /api/v1/pods            -> get-api-v1-pods
    GET /api/v1/pods/{name}     -> get-api-v1-pods-name-
    DELETE /                    -> delete

Collision policy: a declared id that was already issued is a hard error
(:class:`~specreg.exceptions.DuplicateOperationKeyError`); a synthesized key
that collides gets a numeric suffix (``-2``, ``-3``, ...). Nothing is ever
silently overwritten.
"""

from __future__ import annotations

import re
from typing import Optional

from specreg.exceptions import DuplicateOperationKeyError

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_HYPHEN_RUN = re.compile(r"-{2,}")


def normalize_path(path: str) -> str:
    """Turn a path template into a hyphen-separated identifier fragment.

    Example::

        >>> normalize_path("/api/v1/namespaces/{namespace}/pods")
        'api-v1-namespaces-namespace-pods'
        >>> normalize_path("/api/v1/pods/{name}")
        'api-v1-pods-name-'
    """
    stripped = path[1:] if path.startswith("/") else path
    return _HYPHEN_RUN.sub("-", _NON_ALNUM.sub("-", stripped))


def synthesize_key(method: str, path: str) -> str:
    """Return ``method-normalizedpath`` (just ``method`` for the root path)."""
    normalized = normalize_path(path)
    return f"{method}-{normalized}" if normalized else method


class OperationKeyResolver:
    """Issues operation keys and remembers every key it has handed out.

    One resolver is used per registry build; it is not thread-safe.
    """

    def __init__(self) -> None:
        self._issued: dict[str, tuple[str, str]] = {}

    @property
    def issued(self) -> frozenset[str]:
        """All keys issued so far."""
        return frozenset(self._issued)

    def resolve(self, method: str, path: str, declared_id: Optional[str] = None) -> str:
        """Return a key for the endpoint ``method path``.

        Args:
            method: Lower-case HTTP method.
            path: The path template as declared in the document.
            declared_id: The document's ``operationId``, if any. Blank
                strings count as absent.

        Raises:
            DuplicateOperationKeyError: If *declared_id* was already issued.
        """
        if declared_id is not None and declared_id.strip():
            if declared_id in self._issued:
                raise DuplicateOperationKeyError(
                    declared_id, self._issued[declared_id], (method, path)
                )
            self._issued[declared_id] = (method, path)
            return declared_id

        base = synthesize_key(method, path)
        key = base
        suffix = 2
        while key in self._issued:
            key = f"{base}-{suffix}"
            suffix += 1
        self._issued[key] = (method, path)
        return key
