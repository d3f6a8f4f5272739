"""Generate Python callables from the operation registry."""

from specreg.generator.bindings import (
    OperationBindings,
    bind_operations,
    build_docstring,
    build_operation_functions,
    python_name,
)

__all__ = [
    "OperationBindings",
    "bind_operations",
    "build_docstring",
    "build_operation_functions",
    "python_name",
]
