"""Build one Python callable per registry operation.

:func:`build_operation_functions` turns every
:class:`~specreg.models.EndpointRecord` into a plain function that forwards
to an *invoker* -- usually :meth:`specreg.client.ApiClient.invoke`::

    with ApiClient(registry, config) as api:
        ops = bind_operations(registry, api.invoke)
        ops.list_namespaced_pod(namespace="default")

**Naming rules:**

* The declared ``operationId`` is converted from camelCase to snake_case
  (``listCoreV1NamespacedPod`` -> ``list_core_v1_namespaced_pod``).
* Operations without a declared id use their synthesized key
  (``get-api-v1-pods`` -> ``get_api_v1_pods``).
* Python keywords get a trailing underscore; names that still collide get
  ``_2``, ``_3``, ... in registry order.

Each function accepts a parameter mapping and/or keyword arguments. Keyword
names may be either the document's parameter names or their snake_case
forms (``pet_id=1`` is sent as ``petId``). Functions carry a docstring built
from the operation's summary, description, parameters and schema names, and
the attributes ``operation_key``, ``http_method`` and ``path_template``.
"""

from __future__ import annotations

import keyword
import logging
import re
from typing import Any, Callable, Iterator, Mapping, Optional

from specreg.models import EndpointRecord, ParameterDef
from specreg.registry import OperationRegistry

logger = logging.getLogger(__name__)

Invoker = Callable[[str, Mapping[str, Any]], Any]

_INVALID_IDENT_RE = re.compile(r"[^a-zA-Z0-9_]")


def python_name(name: str) -> str:
    """Convert an operation id, key or parameter name to a Python identifier.

    Example::

        >>> python_name("listCoreV1NamespacedPod")
        'list_core_v1_namespaced_pod'
        >>> python_name("get-api-v1-pods")
        'get_api_v1_pods'
        >>> python_name("import")
        'import_'
    """
    result = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    result = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", result)
    result = _INVALID_IDENT_RE.sub("_", result.lower())
    result = re.sub(r"_+", "_", result).strip("_")
    if not result:
        result = "operation"
    if result[0].isdigit():
        result = f"_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result


def build_operation_functions(
    registry: OperationRegistry,
    invoker: Invoker,
) -> dict[str, Callable[..., Any]]:
    """Return ``{python_name: function}`` for every operation in *registry*."""
    functions: dict[str, Callable[..., Any]] = {}
    for key, record in registry.entries.items():
        base = python_name(record.operation_id or key)
        name = base
        suffix = 2
        while name in functions:
            name = f"{base}_{suffix}"
            suffix += 1
        if name != base:
            logger.debug("Binding for %s renamed to %s to avoid a collision", key, name)
        functions[name] = _make_operation_function(name, key, record, invoker)
    logger.debug("Built %d operation bindings", len(functions))
    return functions


class OperationBindings:
    """Attribute-style access to the functions from :func:`build_operation_functions`."""

    def __init__(self, functions: dict[str, Callable[..., Any]]) -> None:
        self._functions = functions

    def __getattr__(self, name: str) -> Callable[..., Any]:
        try:
            return self.__dict__["_functions"][name]
        except KeyError:
            raise AttributeError(f"No operation bound as '{name}'") from None

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self._functions))

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions


def bind_operations(registry: OperationRegistry, invoker: Invoker) -> OperationBindings:
    """Return an :class:`OperationBindings` namespace for *registry*."""
    return OperationBindings(build_operation_functions(registry, invoker))


def _make_operation_function(
    name: str,
    key: str,
    record: EndpointRecord,
    invoker: Invoker,
) -> Callable[..., Any]:
    aliases = {python_name(p.name): p.name for p in record.parameters}

    def operation(params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Any:
        merged: dict[str, Any] = dict(params or {})
        for arg, value in kwargs.items():
            merged[aliases.get(arg, arg)] = value
        return invoker(key, merged)

    operation.__name__ = name
    operation.__qualname__ = name
    operation.__doc__ = build_docstring(record)
    operation.operation_key = key  # type: ignore[attr-defined]
    operation.http_method = record.method.value  # type: ignore[attr-defined]
    operation.path_template = record.path_template  # type: ignore[attr-defined]
    return operation


def build_docstring(record: EndpointRecord) -> str:
    """Compose the docstring of an operation function."""
    parts: list[str] = []
    if record.deprecated:
        parts.append("[DEPRECATED]")
    if record.summary:
        parts.append(record.summary)
    if record.description and record.description != record.summary:
        if parts:
            parts.append("")
        parts.append(record.description)
    if parts:
        parts.append("")
    parts.append(f"{record.method.value.upper()} {record.path_template}")

    if record.parameters:
        parts.append("")
        parts.append("Parameters:")
        parts.extend(_format_parameter(p) for p in record.parameters)

    if record.request_schema is not None:
        parts.append("")
        parts.append(f"Body schema: {_schema_label(record.request_schema_ref, record.request_schema)}")
    if record.response_schema is not None:
        parts.append(
            f"Response schema: {_schema_label(record.response_schema_ref, record.response_schema)}"
        )
    return "\n".join(parts)


def _format_parameter(param: ParameterDef) -> str:
    requirement = "required" if param.required else "optional"
    line = f"    {param.name} ({param.location.value}, {requirement}, type: {_param_type(param)})"
    if param.description:
        line += "\n        " + param.description.replace("\n", "\n        ")
    return line


def _param_type(param: ParameterDef) -> str:
    schema = param.raw_schema or {}
    if isinstance(schema.get("type"), str):
        return schema["type"]
    if isinstance(schema.get("$ref"), str):
        return f"ref: {schema['$ref']}"
    return "any"


def _schema_label(ref: Optional[str], schema: dict[str, Any]) -> str:
    if ref:
        return ref
    declared = schema.get("type")
    return declared if isinstance(declared, str) else "object"
