"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specreg.exceptions.SpecregError` subclass.
Shell scripts wrapping ``specreg`` can inspect the exit code to tell a
broken document apart from a missing operation without parsing stderr.

Example::

    $ specreg show deleteNamespacedPod --spec k8s.json
    $ echo $?
    4   # EXIT_NOT_FOUND -- no operation with that key
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed."""

EXIT_NOT_FOUND = 4
"""The requested operation or remote resource was not found."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_SPEC_PARSE_ERROR = 7
"""The API document could not be loaded or parsed."""

EXIT_REGISTRY_ERROR = 8
"""The operation registry could not be built (e.g. duplicate operation keys)."""

EXIT_SCHEMA_ERROR = 9
"""A schema could not be resolved (dangling or external reference)."""
