"""specreg -- operation registry and schema resolution for OpenAPI documents.

This package ingests a Swagger 2.0 or OpenAPI 3.x document and builds two
indexes over it:

* an :class:`~specreg.registry.OperationRegistry` mapping stable operation
  keys (the declared ``operationId``, or ``method-path`` when there is none)
  to endpoint metadata, and
* a :class:`~specreg.schema.SchemaRegistry` that lazily converts named type
  definitions, recursive ones included, into frozen schema graphs usable for
  validation and sample generation.

Typical usage::

    from specreg.parser import load_document
    from specreg.registry import OperationRegistry
    from specreg.schema import SchemaRegistry

    store = load_document("k8s-openapi.json")
    operations = OperationRegistry.build(store)
    schemas = SchemaRegistry(store)

    key = operations.find_by_method_and_kind_pattern("list", "Pod")
    pod = schemas.get("io.k8s.api.core.v1.Pod")

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    registry: The operation registry.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
