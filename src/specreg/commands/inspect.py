"""Inspect commands -- examine operations and schemas of an API document.

All commands here are read-only. They resolve the document through
:func:`~specreg.config.resolve_spec_source`, build the registries, and
present the result as a table or structured output.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from specreg.commands.common import SPEC_OPTION_HELP, handle_errors, load, parse_json_argument
from specreg.output import format_response, get_output, info, print_table, success, suggest, warning
from specreg.schema.validator import DEFAULT_SAMPLE_DEPTH, generate_sample, validate


def list_operations(
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
    filter_by: Optional[str] = typer.Option(
        None, "--filter", "-f", help="Case-insensitive regex on key, operation id or path."
    ),
) -> None:
    """List operations, optionally filtered.

    Example::

        specreg operations --spec k8s.json --filter pod
    """
    with handle_errors():
        doc = load(spec)
        rows = doc.operations.search(filter_by)

    if not rows:
        info("No matching operations.")
        return
    print_table(
        ["Key", "Method", "Path", "Summary"],
        [[r.key, r.method.value.upper(), r.path, r.summary or "-"] for r in rows],
        title=f"Operations ({len(rows)})",
    )


def show_operation(
    key: str = typer.Argument(..., help="Operation key."),
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
) -> None:
    """Show everything known about one operation."""
    with handle_errors():
        doc = load(spec)
    record = doc.operations.lookup(key)
    if record is None:
        get_output().error(f"Operation not found: {key}")
        suggest("List keys with: specreg operations --filter <pattern>")
        raise typer.Exit(code=4)
    format_response(record.model_dump(mode="json", exclude={"request_schema", "response_schema"}))


def find_operation(
    category: str = typer.Argument(..., help="get, list, create, update or delete."),
    kind: str = typer.Argument(..., help="Resource kind, e.g. Pod."),
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
) -> None:
    """Find the operation that performs CATEGORY on resources of KIND.

    Example::

        specreg find list Pod      # listNamespacedPod
    """
    with handle_errors():
        doc = load(spec)
        key = doc.operations.find_by_method_and_kind_pattern(category, kind)
    if key is None:
        get_output().error(f"No '{category}' operation found for kind '{kind}'")
        raise typer.Exit(code=4)
    get_output().print_data(key)


def explain_kind(
    kind: str = typer.Argument(..., help="Resource kind, e.g. Pod."),
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
) -> None:
    """Show every operation per method category for a resource kind."""
    with handle_errors():
        doc = load(spec)
        format_response({"kind": kind, **doc.operations.explain_kind(kind)})


def list_schemas(
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
) -> None:
    """Compile every named schema and report the ones that fail."""
    with handle_errors():
        doc = load(spec)
        failures = doc.schemas.compile_all()

    rows = [
        [name, "failed" if name in failures else "ok", str(failures.get(name, ""))]
        for name in doc.schemas.names()
    ]
    if not rows:
        info("No schemas defined in this document.")
        return
    print_table(["Schema", "Status", "Error"], rows, title=f"Schemas ({len(rows)})")
    if failures:
        warning(f"{len(failures)} of {len(rows)} schemas failed to compile")
        raise typer.Exit(code=9)


def show_schema(
    name: str = typer.Argument(..., help="Schema name, e.g. Pet."),
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
) -> None:
    """Print the resolved form of a named schema."""
    with handle_errors():
        doc = load(spec)
        schema = doc.schemas.get(name)
    get_output().print_schema(name, schema)


def sample_schema(
    name: str = typer.Argument(..., help="Schema name, e.g. Pet."),
    depth: int = typer.Option(DEFAULT_SAMPLE_DEPTH, "--depth", help="Maximum nesting depth."),
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
) -> None:
    """Generate an example value for a named schema."""
    with handle_errors():
        doc = load(spec)
        sample = generate_sample(doc.schemas.get(name), doc.schemas, max_depth=depth)
    format_response(sample)


def validate_data(
    name: str = typer.Argument(..., help="Schema name, e.g. Pet."),
    file: Path = typer.Argument(..., help="JSON file to validate ('-' for stdin)."),
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
) -> None:
    """Validate a JSON document against a named schema."""
    with handle_errors():
        doc = load(spec)
        schema = doc.schemas.get(name)
        if str(file) == "-":
            data = parse_json_argument(sys.stdin.read(), "input")
        else:
            data = parse_json_argument(f"@{file}", "input")
        issues = validate(schema, data, doc.schemas)

    if not issues:
        success(f"Valid {name}")
        return
    print_table(
        ["Path", "Problem"],
        [[issue.path, issue.message] for issue in issues],
        title=f"{len(issues)} validation issue(s)",
    )
    raise typer.Exit(code=1)
