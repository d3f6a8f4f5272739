"""Helpers shared by the CLI command modules."""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterator, NamedTuple, Optional

import typer

from specreg.exceptions import SpecregError
from specreg.output import error, get_output
from specreg.parser.document import DocumentStore
from specreg.registry import OperationRegistry
from specreg.schema.registry import SchemaRegistry

SPEC_OPTION_HELP = "URL or file path of the API document ('-' for stdin)."


class LoadedDocument(NamedTuple):
    """A document with both registries built from it."""

    source: str
    store: DocumentStore
    operations: OperationRegistry
    schemas: SchemaRegistry


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report a :class:`SpecregError` on stderr and exit with its code."""
    try:
        yield
    except SpecregError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def load(spec: Optional[str], cli_token: Optional[str] = None) -> LoadedDocument:
    """Resolve, load and index the API document for a command.

    A document fetched by URL is requested with the resolved client
    settings (token, TLS verification, timeout).

    Raises:
        typer.Exit: With code 2 when no document is configured.
    """
    from specreg.config import resolve_client_config, resolve_spec_source
    from specreg.parser.loader import load_document

    source = resolve_spec_source(spec)
    if source is None:
        error("No API document given. Pass --spec or set SPECREG_SPEC.")
        raise typer.Exit(code=2)

    get_output().debug(f"Loading document from {source}")
    if source.startswith(("http://", "https://")):
        client = resolve_client_config(cli_token=cli_token)
        store = load_document(
            source, token=client.token, verify=not client.insecure, timeout=client.timeout
        )
    else:
        store = load_document(source)
    return LoadedDocument(
        source=source,
        store=store,
        operations=OperationRegistry.build(store),
        schemas=SchemaRegistry(store),
    )


def parse_json_argument(raw: str, what: str) -> Any:
    """Parse *raw* as JSON, or read it from a file when prefixed with ``@``."""
    from specreg.exceptions import InvalidUsageError

    text = raw
    if raw.startswith("@"):
        try:
            with open(raw[1:], encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            raise InvalidUsageError(f"Cannot read {what} file {raw[1:]}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"Invalid JSON in {what}: {exc}") from exc
