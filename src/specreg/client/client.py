"""Invoke registry operations over HTTP.

This module provides :class:`ApiClient`, a blocking client that turns an
operation key plus a flat parameter mapping into an HTTP request. It wraps
:class:`httpx.Client` and layers on:

- **Parameter routing** -- each supplied value is placed in the path,
  query string, headers, cookies, form or body according to the
  operation's :class:`~specreg.models.ParameterDef` entries.
- **Path interpolation** -- ``{name}`` placeholders are replaced with
  URL-escaped values; missing required path parameters are rejected
  before any traffic is sent.
- **Bearer auth** -- the token from :class:`~specreg.models.ClientConfig`
  is sent as ``Authorization: Bearer ...``.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- 401/403, 404 and other error statuses become typed
  :mod:`specreg.exceptions`.

Connection settings live on the client instance; there is no global
"current connection".
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from specreg.exceptions import (
    AuthError,
    ConnectionError_,
    InvalidUsageError,
    NotFoundError,
    OperationNotFoundError,
    ServerError,
)
from specreg.models import ClientConfig, EndpointRecord, ParameterLocation
from specreg.registry import OperationRegistry

logger = logging.getLogger(__name__)

# Key under which callers pass a request body explicitly.
BODY_KEY = "body"


class ParamBuckets(BaseModel):
    """Supplied parameter values grouped by where they travel."""

    path: dict[str, Any] = Field(default_factory=dict)
    query: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    cookies: dict[str, str] = Field(default_factory=dict)
    form: dict[str, Any] = Field(default_factory=dict)
    body: Any = None


class PreparedRequest(BaseModel):
    """Everything needed to send one operation call, without sending it."""

    operation_key: str
    method: str
    url: str
    path: str
    query: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    cookies: dict[str, str] = Field(default_factory=dict)
    form: Optional[dict[str, Any]] = None
    body: Any = None


def interpolate_path(template: str, values: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders in *template*.

    Values are converted with ``str`` and percent-escaped, so a value
    cannot introduce extra path segments.

    Example::

        >>> interpolate_path("/namespaces/{namespace}/pods", {"namespace": "kube system"})
        '/namespaces/kube%20system/pods'
    """
    result = template
    for name, value in values.items():
        result = result.replace("{" + name + "}", quote(str(value), safe=""))
    return result


def categorize_params(record: EndpointRecord, params: Mapping[str, Any]) -> ParamBuckets:
    """Route *params* into buckets using the operation's parameter definitions.

    Values whose name matches no declared parameter are ignored, except
    ``body``, which is always taken as the request body.
    """
    buckets = ParamBuckets()
    for definition in record.parameters:
        if definition.name not in params:
            continue
        value = params[definition.name]
        if value is None:
            continue
        location = definition.location
        if location == ParameterLocation.PATH:
            buckets.path[definition.name] = value
        elif location == ParameterLocation.QUERY:
            buckets.query[definition.name] = value
        elif location == ParameterLocation.HEADER:
            buckets.headers[definition.name] = str(value)
        elif location == ParameterLocation.COOKIE:
            buckets.cookies[definition.name] = str(value)
        elif location == ParameterLocation.FORM_DATA:
            buckets.form[definition.name] = value
        elif location == ParameterLocation.BODY:
            buckets.body = value

    if buckets.body is None and params.get(BODY_KEY) is not None:
        buckets.body = params[BODY_KEY]
    return buckets


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first. If that fails (e.g. the
    response is HTML or plain text), returns the raw text. Returns ``None``
    for responses with no content.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiClient:
    """Synchronous client that invokes operations by key.

    Use it as a context manager so that the underlying transport is opened
    and closed properly.

    Args:
        registry: Operations the client can invoke.
        config: Server URL, token and request settings. Defaults to
            :class:`~specreg.models.ClientConfig` defaults.
        transport: Optional :class:`httpx.BaseTransport`, mainly for tests
            (``httpx.MockTransport``).
        sleep: Function used to wait between retries.

    Example::

        with ApiClient(registry, ClientConfig(server="https://k8s:6443")) as api:
            pods = api.invoke("listNamespacedPod", {"namespace": "default"})
    """

    def __init__(
        self,
        registry: OperationRegistry,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._registry = registry
        self._config = config or ClientConfig()
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None

    @property
    def config(self) -> ClientConfig:
        """The connection settings this client was created with."""
        return self._config

    @property
    def registry(self) -> OperationRegistry:
        return self._registry

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ApiClient:
        self._client = httpx.Client(
            timeout=self._config.timeout,
            verify=not self._config.insecure,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def request_for(self, key: str, params: Optional[Mapping[str, Any]] = None) -> PreparedRequest:
        """Build the request for operation *key* without sending it.

        Raises:
            OperationNotFoundError: If *key* is not in the registry.
            InvalidUsageError: If a required path parameter is missing.
        """
        record = self._registry.lookup(key)
        if record is None:
            raise OperationNotFoundError(key)

        buckets = categorize_params(record, params or {})
        missing = [
            p.name
            for p in record.parameters_in(ParameterLocation.PATH)
            if p.name not in buckets.path
        ]
        if missing:
            raise InvalidUsageError(
                f"Missing required path parameter(s) for {key}: {', '.join(missing)}"
            )

        path = interpolate_path(record.path_template, buckets.path)
        headers: dict[str, str] = {"Accept": "application/json"}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        headers.update(buckets.headers)

        return PreparedRequest(
            operation_key=key,
            method=record.method.value.upper(),
            url=self._config.server.rstrip("/") + path,
            path=path,
            query=buckets.query,
            headers=headers,
            cookies=buckets.cookies,
            form=buckets.form or None,
            body=buckets.body,
        )

    def invoke(self, key: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Call operation *key* and return the decoded response body.

        Args:
            key: Operation key from the registry.
            params: Flat mapping of parameter names to values; ``body``
                holds the request body.

        Returns:
            Decoded JSON, raw text, or ``None`` for an empty body.

        Raises:
            OperationNotFoundError: If *key* is not in the registry.
            InvalidUsageError: If a required path parameter is missing.
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On 5xx after all retries, or any other error status.
            ConnectionError_: On network / timeout errors after all retries.
        """
        prepared = self.request_for(key, params)
        response = self.send(prepared)
        return extract_response_data(response)

    def send(self, prepared: PreparedRequest) -> httpx.Response:
        """Send a :class:`PreparedRequest` with retry and error mapping."""
        logger.debug("%s %s", prepared.method, prepared.url)
        response = self._execute_with_retry(prepared)
        logger.debug("%s %s -> %d", prepared.method, prepared.url, response.status_code)
        self._map_response_error(response)
        return response

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _execute_with_retry(self, prepared: PreparedRequest) -> httpx.Response:
        """Execute the request with exponential-backoff retry.

        Retries on 5xx status codes and connection / timeout errors up to
        ``max_retries`` times. The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        max_retries = self._config.max_retries
        kwargs: dict[str, Any] = {
            "method": prepared.method,
            "url": prepared.url,
            "headers": prepared.headers,
            "params": prepared.query,
        }
        if prepared.cookies:
            kwargs["cookies"] = prepared.cookies
        if prepared.form is not None:
            kwargs["data"] = prepared.form
        elif prepared.body is not None:
            kwargs["json"] = prepared.body

        for attempt in range(max_retries + 1):
            try:
                response = self._client.request(**kwargs)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2**attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ds (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    self._sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2**attempt
                logger.debug(
                    "Server error %d, retrying in %ds (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                self._sleep(delay)
                continue
            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        detail = extract_response_data(response)
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        elif detail is None:
            msg = ""
        else:
            msg = str(detail)[:200]

        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        # 5xx and any other 4xx.
        raise ServerError(full_msg)
