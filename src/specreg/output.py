"""Console output for the specreg CLI.

Data (operation tables, compiled schemas, API responses) goes to stdout so
it can be piped; everything else (progress, warnings, errors, hints) goes
to stderr. The active format is one of JSON, tab-separated plain text, or
Rich markup, picked from the ``--json`` / ``--plain`` flags or from TTY
detection. ``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` turn colour off.

:func:`~specreg.app.main_callback` installs one :class:`OutputManager` per
invocation with :func:`set_output`; commands reach it through
:func:`get_output` or the module-level shortcuts. Library modules do not
print, they log.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from specreg.models import (
    AllOfSchema,
    ArraySchema,
    EnumSchema,
    MapSchema,
    NamedRef,
    ObjectSchema,
    PrimitiveSchema,
    ResolvedSchema,
    UnionSchema,
)


class OutputFormat(str, Enum):
    """How command results are rendered.

    ``AUTO`` becomes ``RICH`` on a colour-capable TTY and ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Writes command results to stdout and diagnostics to stderr.

    Args:
        format: Output format; ``AUTO`` is resolved from TTY detection.
        no_color: Strip colour and Rich markup.
        quiet: Drop ``info``, ``success`` and ``suggest`` messages.
        verbose: Show ``debug`` messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render a result to stdout in the active format.

        *data* may be a pydantic model (dumped by alias), a dict, a list, a
        scalar, or a string holding JSON.
        """
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json", by_alias=True)

        if self._format == OutputFormat.JSON:
            self._print_json(data)
        elif self._format == OutputFormat.PLAIN:
            self._print_plain(data)
        else:
            self._print_rich(data)

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows under *headers*.

        JSON mode emits a list of objects keyed by header, plain mode one
        tab-separated line per row (headers first). *title* is only shown
        in Rich mode.
        """
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
            return
        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*(escape(cell) for cell in row))
        self._stdout.print(table)

    def print_schema(self, name: str, schema: ResolvedSchema) -> None:
        """Print a compiled schema.

        Rich mode draws it as a tree, one branch per field, item type or
        variant, and stops at named references. Other modes print the model
        as data.
        """
        if self._format != OutputFormat.RICH:
            self.format_response(schema)
            return
        tree = Tree(f"[bold cyan]{escape(name)}[/bold cyan]: {escape(schema_label(schema))}")
        _grow_schema_tree(tree, schema)
        self._stdout.print(tree)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, escape(message))

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic(f"Warning: {message}", f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic(f"Error: {message}", f"[bold red]Error:[/bold red] {escape(message)}")

    def suggest(self, message: str) -> None:
        """Hint about what to run next."""
        if not self._quiet:
            hint = f"→ {message}"
            self._diagnostic(hint, f"[dim]{escape(hint)}[/dim]")

    def debug(self, message: str) -> None:
        if self._verbose:
            text = f"[debug] {message}"
            self._diagnostic(text, f"[dim]{escape(text)}[/dim]")

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _diagnostic(self, plain: str, markup: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup)

    def _print_json(self, data: Any) -> None:
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                self.print_data(data)
                return
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    def _print_plain(self, data: Any) -> None:
        if data is None:
            return
        if isinstance(data, dict):
            for key, value in data.items():
                self.print_data(f"{key}\t{_plain_cell(value)}")
        elif isinstance(data, list):
            for item in data:
                if isinstance(item, dict):
                    self.print_data("\t".join(_plain_cell(v) for v in item.values()))
                else:
                    self.print_data(_plain_cell(item))
        else:
            self.print_data(str(data))

    def _print_rich(self, data: Any) -> None:
        if data is None:
            return
        if isinstance(data, (dict, list)):
            text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(escape(str(data)))


# ---------------------------------------------------------------------- #
# Schema rendering
# ---------------------------------------------------------------------- #


def schema_label(schema: ResolvedSchema) -> str:
    """One-line description of *schema*, e.g. ``string (date-time)`` or ``Pet (ref)``."""
    if isinstance(schema, PrimitiveSchema):
        if schema.format:
            return f"{schema.type.value} ({schema.format})"
        return schema.type.value
    if isinstance(schema, EnumSchema):
        return "enum: " + " | ".join(json.dumps(v, default=str) for v in schema.values)
    if isinstance(schema, NamedRef):
        return f"{schema.name} (ref)"
    if isinstance(schema, UnionSchema):
        return "oneOf" if schema.exclusive else "anyOf"
    if isinstance(schema, AllOfSchema):
        return "allOf"
    if isinstance(schema, ObjectSchema) and schema.closed:
        return "object (closed)"
    return schema.kind


def _schema_children(schema: ResolvedSchema) -> list[tuple[str, ResolvedSchema]]:
    if isinstance(schema, ArraySchema):
        return [("items", schema.items)]
    if isinstance(schema, MapSchema):
        return [("values", schema.values)]
    if isinstance(schema, ObjectSchema):
        children = [(f.name + ("?" if f.optional else ""), f.schema_) for f in schema.fields]
        if schema.additional is not None:
            children.append(("*", schema.additional))
        return children
    if isinstance(schema, UnionSchema):
        return [(f"[{i}]", variant) for i, variant in enumerate(schema.variants)]
    if isinstance(schema, AllOfSchema):
        return [(f"[{i}]", member) for i, member in enumerate(schema.members)]
    return []


def _grow_schema_tree(node: Tree, schema: ResolvedSchema) -> None:
    # Compiled schemas are finite: cycles end at a NamedRef leaf.
    for label, child in _schema_children(schema):
        branch = node.add(f"[bold]{escape(label)}[/bold]: {escape(schema_label(child))}")
        _grow_schema_tree(branch, child)


def _plain_cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to anything, or ``TERM`` is ``dumb``."""
    if "NO_COLOR" in os.environ:
        return True
    return os.environ.get("TERM") == "dumb"


# ---------------------------------------------------------------------- #
# Process-wide instance
# ---------------------------------------------------------------------- #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def error(message: str) -> None:
    get_output().error(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def suggest(message: str) -> None:
    get_output().suggest(message)
