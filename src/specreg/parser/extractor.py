"""Extract endpoint records from the ``paths`` section of a document.

This module walks a :class:`~specreg.parser.document.DocumentStore` and yields
one :class:`RawEndpoint` per (path, method) pair, in document order. Shared
objects (path items, parameters, request bodies, responses) are dereferenced
through the store; schema nodes are left exactly as written so that the
registry can read their ``$ref`` names without compiling anything.

The single public entry point is :func:`extract_endpoints`. Internally it
delegates to private helpers that each handle one part of an operation:

* ``_merge_parameters`` -- path-level parameters provide defaults,
  operation-level ones override them when they share ``name`` and ``in``.
* ``_extract_parameters`` -- raw parameter dicts to
  :class:`~specreg.models.ParameterDef`.
* ``_request_schema`` -- OpenAPI 3 ``requestBody`` or Swagger 2 ``in: body``.
* ``_response_schema`` -- the first successful response, by status
  preference.

A missing or malformed ``paths`` section yields no endpoints rather than an
error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from specreg.models import HTTPMethod, ParameterDef, ParameterLocation
from specreg.parser.document import DocumentStore

logger = logging.getLogger(__name__)

_HTTP_METHODS = {m.value: m for m in HTTPMethod}

# Success statuses tried in order before falling back to the first response.
SUCCESS_STATUS_PREFERENCE: tuple[str, ...] = ("200", "201", "202", "204")

JSON_MEDIA_TYPE = "application/json"


@dataclass(frozen=True)
class RawEndpoint:
    """Extractor output for one (path, method) pair, before key assignment."""

    method: HTTPMethod
    path: str
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = ()
    deprecated: bool = False
    parameters: tuple[ParameterDef, ...] = ()
    request_schema: Optional[dict[str, Any]] = None
    response_schema: Optional[dict[str, Any]] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


def extract_endpoints(store: DocumentStore) -> list[RawEndpoint]:
    """Return one :class:`RawEndpoint` per method under every path.

    Args:
        store: The loaded document.

    Returns:
        Endpoints in document order. Empty when ``paths`` is absent or is
        not a mapping.

    Example::

        store = DocumentStore({"paths": {"/pods": {"get": {"operationId": "listPods"}}}})
        [ep.operation_id for ep in extract_endpoints(store)]   # ["listPods"]
    """
    paths = store.get("paths")
    if paths is None:
        logger.warning("Document has no 'paths' section; no endpoints extracted")
        return []
    if not isinstance(paths, dict):
        logger.warning(
            "Document 'paths' is %s, not a mapping; no endpoints extracted",
            type(paths).__name__,
        )
        return []

    endpoints: list[RawEndpoint] = []
    for path, path_item in paths.items():
        path_item = store.deref(path_item)
        if not isinstance(path_item, dict):
            logger.debug("Skipping path %s: path item is not a mapping", path)
            continue

        path_params = _as_list(path_item.get("parameters"))

        for method_str, operation in path_item.items():
            method = _HTTP_METHODS.get(method_str.lower())
            if method is None:
                continue
            if not isinstance(operation, dict):
                logger.debug("Skipping %s %s: operation is not a mapping", method_str, path)
                continue
            endpoints.append(_extract_endpoint(store, path, method, operation, path_params))

    logger.debug("Extracted %d endpoints from %d paths", len(endpoints), len(paths))
    return endpoints


def _extract_endpoint(
    store: DocumentStore,
    path: str,
    method: HTTPMethod,
    operation: dict[str, Any],
    path_params: list[Any],
) -> RawEndpoint:
    merged = _merge_parameters(
        [store.deref(p) for p in path_params],
        [store.deref(p) for p in _as_list(operation.get("parameters"))],
    )
    tags = operation.get("tags")
    operation_id = operation.get("operationId")

    return RawEndpoint(
        method=method,
        path=path,
        operation_id=str(operation_id) if operation_id is not None else None,
        summary=_as_text(operation.get("summary")),
        description=_as_text(operation.get("description")),
        tags=tuple(str(t) for t in tags) if isinstance(tags, list) else (),
        deprecated=bool(operation.get("deprecated", False)),
        parameters=tuple(_extract_parameters(merged)),
        request_schema=_request_schema(store, operation, merged),
        response_schema=_response_schema(store, operation.get("responses")),
        raw=operation,
    )


def _merge_parameters(
    path_params: list[Any],
    op_params: list[Any],
) -> list[dict[str, Any]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field). Entries that are not mappings (for
    instance dangling references) are dropped.
    """
    path_params = [p for p in path_params if isinstance(p, dict)]
    op_params = [p for p in op_params if isinstance(p, dict)]

    op_keys = {(p.get("name", ""), p.get("in", "")) for p in op_params}
    merged = [p for p in path_params if (p.get("name", ""), p.get("in", "")) not in op_keys]
    merged.extend(op_params)
    return merged


def _extract_parameters(params_list: list[dict[str, Any]]) -> list[ParameterDef]:
    """Convert raw parameter dicts into :class:`~specreg.models.ParameterDef` models.

    Path parameters are always required regardless of the ``required``
    field. Parameters with unrecognised ``in`` locations are skipped.
    Swagger 2 non-body parameters carry their type inline rather than under
    ``schema``; the parameter object itself is kept as the raw schema then.
    """
    parameters: list[ParameterDef] = []

    for param in params_list:
        name = param.get("name")
        if not name:
            continue
        try:
            location = ParameterLocation(param.get("in", "query"))
        except ValueError:
            logger.debug("Skipping parameter %s with unknown location %r", name, param.get("in"))
            continue

        schema = param.get("schema")
        if not isinstance(schema, dict):
            schema = _inline_parameter_schema(param)

        required = bool(param.get("required", False))
        if location == ParameterLocation.PATH:
            required = True

        parameters.append(
            ParameterDef(
                name=str(name),
                location=location,
                required=required,
                description=_as_text(param.get("description")),
                raw_schema=schema,
            )
        )

    return parameters


def _inline_parameter_schema(param: dict[str, Any]) -> Optional[dict[str, Any]]:
    keys = ("type", "format", "items", "enum", "default")
    schema = {k: param[k] for k in keys if k in param}
    return schema or None


def _request_schema(
    store: DocumentStore,
    operation: dict[str, Any],
    parameters: list[dict[str, Any]],
) -> Optional[dict[str, Any]]:
    """Locate the request body schema (OpenAPI 3 first, then Swagger 2)."""
    body = store.deref(operation.get("requestBody"))
    if isinstance(body, dict):
        schema = _content_schema(body.get("content"))
        if schema is not None:
            return schema

    for param in parameters:
        if param.get("in") == ParameterLocation.BODY.value:
            schema = param.get("schema")
            if isinstance(schema, dict):
                return schema
    return None


def _response_schema(store: DocumentStore, responses: Any) -> Optional[dict[str, Any]]:
    """Locate the schema of the preferred successful response.

    Tries ``200``, ``201``, ``202`` and ``204`` in that order, then falls
    back to the first declared response.
    """
    if not isinstance(responses, dict) or not responses:
        return None

    chosen: Any = None
    for status in SUCCESS_STATUS_PREFERENCE:
        if status in responses:
            chosen = responses[status]
            break
    else:
        chosen = next(iter(responses.values()))

    chosen = store.deref(chosen)
    if not isinstance(chosen, dict):
        return None

    schema = _content_schema(chosen.get("content"))
    if schema is not None:
        return schema
    swagger_schema = chosen.get("schema")
    return swagger_schema if isinstance(swagger_schema, dict) else None


def _content_schema(content: Any) -> Optional[dict[str, Any]]:
    """Pick the schema from a media-type map, preferring JSON."""
    if not isinstance(content, dict):
        return None

    candidates: list[Any] = []
    if JSON_MEDIA_TYPE in content:
        candidates.append(content[JSON_MEDIA_TYPE])
    candidates.extend(v for k, v in content.items() if k != JSON_MEDIA_TYPE and "json" in k)
    candidates.extend(v for k, v in content.items() if "json" not in k)

    for media in candidates:
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return media["schema"]
    return None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None
