"""Read an API document into memory.

A document can come from three places:

* ``-`` -- standard input;
* an ``http://`` or ``https://`` URL -- fetched with :mod:`httpx`. A bearer
  token and TLS settings can be passed for servers that guard their
  description (e.g. a Kubernetes API server's ``/openapi/v2``);
* anything else -- a local file path.

JSON is tried first and YAML second, unless the file extension or the
response ``Content-Type`` says which one it is. The root must be a mapping.
Which Swagger/OpenAPI version the document declares is only reported: the
registries depend on the document's shape, not its version.

This is the only I/O in the build pipeline; :class:`DocumentStore` and
everything after it work on the in-memory tree.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml

from specreg.exceptions import MalformedDocumentError, SpecParseError
from specreg.parser.document import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0


def load_spec(
    source: str,
    token: Optional[str] = None,
    verify: bool = True,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> dict[str, Any]:
    """Read and parse the document at *source*.

    Args:
        source: ``-``, a URL, or a file path.
        token: Bearer token sent when *source* is a URL.
        verify: Verify TLS certificates when fetching a URL.
        timeout: Seconds to wait for a URL fetch.

    Raises:
        SpecParseError: If the document cannot be read or parsed.
        MalformedDocumentError: If it parses to something other than a
            mapping.
    """
    if source == "-":
        return _read_stdin()
    if source.startswith(("http://", "https://")):
        return _fetch(source, token=token, verify=verify, timeout=timeout)
    return _read_file(source)


def load_document(
    source: str,
    token: Optional[str] = None,
    verify: bool = True,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> DocumentStore:
    """:func:`load_spec`, wrapped in a :class:`DocumentStore`.

    Example::

        store = load_document("k8s-openapi.json")
        registry = OperationRegistry.build(store)
    """
    raw = load_spec(source, token=token, verify=verify, timeout=timeout)
    version = detect_spec_version(raw)
    logger.debug("Loaded %s (version %s, %d top-level keys)", source, version, len(raw))
    return DocumentStore(raw)


def _read_stdin() -> dict[str, Any]:
    try:
        content = sys.stdin.read()
    except OSError as exc:
        raise SpecParseError(f"Failed to read from stdin: {exc}") from exc
    if not content.strip():
        raise SpecParseError("No input received from stdin")
    return _parse_content(content, hint="stdin")


def _fetch(url: str, token: Optional[str], verify: bool, timeout: float) -> dict[str, Any]:
    headers = {"Accept": "application/json, application/yaml;q=0.9, */*;q=0.5"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    logger.debug("Fetching document from %s", url)
    try:
        response = httpx.get(
            url, headers=headers, timeout=timeout, verify=verify, follow_redirects=True
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(
            f"HTTP {exc.response.status_code} fetching document from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Failed to fetch document from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"
    else:
        hint = ""
    return _parse_content(response.text, hint=hint)


def _read_file(path: str) -> dict[str, Any]:
    file_path = Path(path)
    if not file_path.is_file():
        raise SpecParseError(f"Document not found: {path}")
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Failed to read document {path}: {exc}") from exc
    if not content.strip():
        raise SpecParseError(f"Document is empty: {path}")

    hint = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}.get(file_path.suffix.lower(), "")
    return _parse_content(content, hint=hint)


def _parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse *content* as JSON, then YAML.

    A ``json`` hint makes a JSON error final; a ``yaml`` hint skips JSON.
    """
    errors: list[str] = []

    if hint != "yaml":
        try:
            return _require_mapping(json.loads(content))
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc
            errors.append(f"JSON error: {exc}")

    try:
        return _require_mapping(yaml.safe_load(content))
    except yaml.YAMLError as exc:
        errors.append(f"YAML error: {exc}")

    raise SpecParseError("Failed to parse document as JSON or YAML\n  " + "\n  ".join(errors))


def _require_mapping(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict):
        got = type(result).__name__ if result is not None else "empty document"
        raise MalformedDocumentError(f"Document must be a JSON/YAML object (got {got})")
    return result


def detect_spec_version(spec: dict[str, Any]) -> Optional[str]:
    """Return the declared ``openapi`` or ``swagger`` version, if any.

    Versions outside 2.x/3.x, and documents declaring neither, are logged
    as warnings and loaded anyway.
    """
    for field in ("openapi", "swagger"):
        value = spec.get(field)
        if value is not None:
            version = str(value)
            if not version.startswith(("2.", "3.")):
                logger.warning("Unrecognised %s version %s; continuing", field, version)
            return version

    logger.warning("Document declares neither 'openapi' nor 'swagger'; continuing")
    return None
