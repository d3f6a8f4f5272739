"""The ``call`` command -- invoke an operation by key over HTTP."""

from __future__ import annotations

from typing import Any, Optional

import typer

from specreg.commands.common import SPEC_OPTION_HELP, handle_errors, load, parse_json_argument
from specreg.exceptions import InvalidUsageError
from specreg.output import format_response, get_output, info


def call_operation(
    key: str = typer.Argument(..., help="Operation key."),
    param: list[str] = typer.Option(
        [], "--param", "-P", help="Parameter as name=value. Repeatable."
    ),
    body: Optional[str] = typer.Option(
        None, "--body", "-b", help="Request body as JSON, or @file."
    ),
    server: Optional[str] = typer.Option(None, "--server", help="API server base URL."),
    token: Optional[str] = typer.Option(
        None, "--token", help="Bearer token, or env:VAR / file:PATH."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Print the request instead of sending it."
    ),
    spec: Optional[str] = typer.Option(None, "--spec", "-s", help=SPEC_OPTION_HELP),
) -> None:
    """Invoke an operation.

    Example::

        specreg call readNamespacedPod -P namespace=default -P name=web
        specreg call createPet --body '{"name": "Rex"}' --dry-run
    """
    from specreg.client import ApiClient, extract_response_data
    from specreg.config import resolve_client_config

    with handle_errors():
        doc = load(spec, cli_token=token)
        params: dict[str, Any] = _parse_params(param)
        if body is not None:
            params["body"] = parse_json_argument(body, "--body")
        config = resolve_client_config(cli_server=server, cli_token=token)

        with ApiClient(doc.operations, config) as api:
            prepared = api.request_for(key, params)
            if dry_run:
                output = get_output()
                output.info(f"[dry-run] {prepared.method} {prepared.url}")
                for name, value in prepared.headers.items():
                    if name.lower() == "authorization":
                        value = "Bearer ***"
                    output.info(f"  Header: {name}: {value}")
                for name, value in prepared.query.items():
                    output.info(f"  Param: {name}={value}")
                if prepared.body is not None:
                    format_response(prepared.body)
                return

            response = api.send(prepared)

    info(f"HTTP {response.status_code} {response.reason_phrase or ''}")
    data = extract_response_data(response)
    if data is not None:
        format_response(data)


def _parse_params(raw: list[str]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for item in raw:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise InvalidUsageError(f"Invalid parameter '{item}', expected name=value")
        params[name] = value
    return params
