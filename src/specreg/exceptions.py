"""Exception hierarchy for specreg.

All exceptions inherit from :class:`SpecregError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specreg.exit_codes`.
The top-level handler in :func:`specreg.app.main` catches ``SpecregError``
and exits with the appropriate code.

Subclass hierarchy::

    SpecregError (exit 1)
    +-- InvalidUsageError            (exit 2)
    +-- AuthError                    (exit 3)
    +-- NotFoundError                (exit 4)
    |   +-- OperationNotFoundError   (exit 4)
    +-- ServerError                  (exit 5)
    +-- ConnectionError_             (exit 6)
    +-- SpecParseError               (exit 7)
    |   +-- MalformedDocumentError   (exit 7)
    +-- DuplicateOperationKeyError   (exit 8)
    +-- UnknownMethodCategoryError   (exit 2)
    +-- UnresolvedReferenceError     (exit 9)
    +-- ConfigError                  (exit 1)

Registry and schema errors carry the offending key, method, path or schema
name as attributes so callers can report them structurally.
"""

from __future__ import annotations

from typing import Iterable, Optional

from specreg.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_REGISTRY_ERROR,
    EXIT_SCHEMA_ERROR,
    EXIT_SERVER_ERROR,
    EXIT_SPEC_PARSE_ERROR,
)


class SpecregError(Exception):
    """Base exception for all specreg errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SpecregError):
    """Raised for invalid arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(SpecregError):
    """Raised when the API rejects the request with HTTP 401 or 403."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(SpecregError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class OperationNotFoundError(NotFoundError):
    """Raised by the HTTP layer when asked to invoke an unknown operation key.

    :meth:`~specreg.registry.OperationRegistry.lookup` itself never raises;
    it returns ``None`` and leaves the decision to the caller.
    """

    def __init__(self, key: str):
        super().__init__(f"Operation not found: {key}")
        self.key = key


class ServerError(SpecregError):
    """Raised when the API returns an HTTP 5xx (or unmapped 4xx) error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(SpecregError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class SpecParseError(SpecregError):
    """Raised when an API document cannot be loaded or parsed."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class MalformedDocumentError(SpecParseError):
    """Raised when the loaded content is not a mapping at the top level.

    A missing or wrong-typed ``paths`` section is *not* reported with this
    error: the extractor recovers by treating it as empty.
    """


class DuplicateOperationKeyError(SpecregError):
    """Raised at registry build time when two endpoints claim the same key.

    Attributes:
        key: The contested operation key.
        first: ``(method, path)`` of the endpoint that was issued the key.
        second: ``(method, path)`` of the endpoint that tried to reuse it.
    """

    exit_code = EXIT_REGISTRY_ERROR

    def __init__(
        self,
        key: str,
        first: Optional[tuple[str, str]] = None,
        second: Optional[tuple[str, str]] = None,
    ):
        msg = f"Duplicate operation key '{key}'"
        if first and second:
            msg += (
                f": {first[0].upper()} {first[1]} and "
                f"{second[0].upper()} {second[1]} both declare it"
            )
        super().__init__(msg)
        self.key = key
        self.first = first
        self.second = second


class UnknownMethodCategoryError(SpecregError):
    """Raised when a kind-based lookup is asked for an unsupported category."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, category: str, known: Iterable[str] = ()):
        msg = f"Unknown method category '{category}'"
        known = sorted(known)
        if known:
            msg += f" (expected one of: {', '.join(known)})"
        super().__init__(msg)
        self.category = category


class UnresolvedReferenceError(SpecregError):
    """Raised when a schema reference cannot be followed.

    Attributes:
        name: The schema name that could not be resolved.
        ref: The raw reference string, when one was involved.
    """

    exit_code = EXIT_SCHEMA_ERROR

    def __init__(self, name: str, ref: Optional[str] = None, reason: str = ""):
        msg = f"Unresolved schema reference '{name}'"
        if ref and ref != name:
            msg += f" ({ref})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.name = name
        self.ref = ref


class ConfigError(SpecregError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
