"""Tests for the operation-invoking HTTP client."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from specreg.client.client import (
    ApiClient,
    categorize_params,
    extract_response_data,
    interpolate_path,
)
from specreg.exceptions import (
    AuthError,
    ConnectionError_,
    InvalidUsageError,
    NotFoundError,
    OperationNotFoundError,
    ServerError,
)
from specreg.models import ClientConfig
from specreg.registry import OperationRegistry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_config(
    server: str = "https://k8s.example.com",
    token: str | None = None,
    max_retries: int = 3,
) -> ClientConfig:
    return ClientConfig(server=server, token=token, max_retries=max_retries)


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        headers={"content-type": "application/json"},
        json=data,
    )


class _Recorder:
    """Mock transport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(result, Exception):
            raise result
        return result


def _client(
    registry: OperationRegistry,
    handler: Callable[[httpx.Request], httpx.Response],
    delays: list[float] | None = None,
    **config: Any,
) -> ApiClient:
    sleep = delays.append if delays is not None else (lambda _: None)
    return ApiClient(
        registry,
        _make_config(**config),
        transport=httpx.MockTransport(handler),
        sleep=sleep,
    )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestInterpolatePath:
    def test_substitutes_placeholders(self) -> None:
        path = interpolate_path("/ns/{namespace}/pods/{name}", {"namespace": "default", "name": "web"})
        assert path == "/ns/default/pods/web"

    def test_escapes_values(self) -> None:
        assert interpolate_path("/pods/{name}", {"name": "a/b c"}) == "/pods/a%2Fb%20c"

    def test_non_string_values(self) -> None:
        assert interpolate_path("/pets/{petId}", {"petId": 42}) == "/pets/42"


class TestCategorizeParams:
    def test_routes_by_location(self, k8s_registry: OperationRegistry) -> None:
        record = k8s_registry.lookup("listNamespacedPod")
        buckets = categorize_params(
            record, {"namespace": "default", "limit": 5, "unknown": "ignored"}
        )
        assert buckets.path == {"namespace": "default"}
        assert buckets.query == {"limit": 5}
        assert buckets.body is None

    def test_header_values_are_strings(self, petstore_registry: OperationRegistry) -> None:
        record = petstore_registry.lookup("delete-pets-petId-")
        buckets = categorize_params(record, {"petId": 1, "X-Request-ID": 7})
        assert buckets.headers == {"X-Request-ID": "7"}

    def test_none_values_skipped(self, petstore_registry: OperationRegistry) -> None:
        record = petstore_registry.lookup("listPets")
        assert categorize_params(record, {"limit": None}).query == {}

    def test_swagger_body_parameter(self, k8s_registry: OperationRegistry) -> None:
        record = k8s_registry.lookup("createNamespacedPod")
        buckets = categorize_params(record, {"namespace": "x", "body": {"kind": "Pod"}})
        assert buckets.body == {"kind": "Pod"}

    def test_body_key_without_declared_body(self, petstore_registry: OperationRegistry) -> None:
        record = petstore_registry.lookup("createPet")
        buckets = categorize_params(record, {"body": {"name": "Rex"}})
        assert buckets.body == {"name": "Rex"}


class TestExtractResponseData:
    def test_json(self) -> None:
        assert extract_response_data(_json_response({"a": 1})) == {"a": 1}

    def test_text(self) -> None:
        assert extract_response_data(httpx.Response(200, text="<html>")) == "<html>"

    def test_empty(self) -> None:
        assert extract_response_data(httpx.Response(204)) is None


# ---------------------------------------------------------------------------
# Request preparation
# ---------------------------------------------------------------------------


class TestRequestFor:
    def test_builds_url_and_method(self, k8s_registry: OperationRegistry) -> None:
        api = ApiClient(k8s_registry, _make_config(server="https://k8s.example.com/"))
        prepared = api.request_for("readNamespacedPod", {"namespace": "default", "name": "web"})
        assert prepared.method == "GET"
        assert prepared.url == "https://k8s.example.com/api/v1/namespaces/default/pods/web"
        assert prepared.headers["Accept"] == "application/json"
        assert "Authorization" not in prepared.headers

    def test_bearer_token(self, k8s_registry: OperationRegistry) -> None:
        api = ApiClient(k8s_registry, _make_config(token="s3cret"))
        prepared = api.request_for("listNamespace")
        assert prepared.headers["Authorization"] == "Bearer s3cret"

    def test_unknown_operation(self, k8s_registry: OperationRegistry) -> None:
        api = ApiClient(k8s_registry)
        with pytest.raises(OperationNotFoundError, match="listWidgets"):
            api.request_for("listWidgets")

    def test_missing_path_param(self, k8s_registry: OperationRegistry) -> None:
        api = ApiClient(k8s_registry)
        with pytest.raises(InvalidUsageError) as excinfo:
            api.request_for("readNamespacedPod", {"name": "web"})
        assert "namespace" in str(excinfo.value)
        assert "readNamespacedPod" in str(excinfo.value)

    def test_default_config(self, k8s_registry: OperationRegistry) -> None:
        api = ApiClient(k8s_registry)
        assert api.config == ClientConfig()
        assert api.registry is k8s_registry


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------


class TestInvoke:
    def test_get_returns_json(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(_json_response({"kind": "PodList", "items": []}))
        with _client(k8s_registry, recorder) as api:
            data = api.invoke("listNamespacedPod", {"namespace": "default", "limit": 10})

        assert data == {"kind": "PodList", "items": []}
        (request,) = recorder.requests
        assert request.method == "GET"
        assert request.url.path == "/api/v1/namespaces/default/pods"
        assert request.url.params["limit"] == "10"

    def test_post_sends_json_body(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(_json_response({"kind": "Pod"}, status_code=201))
        pod = {"kind": "Pod", "metadata": {"name": "web"}}
        with _client(k8s_registry, recorder) as api:
            api.invoke("createNamespacedPod", {"namespace": "default", "body": pod})

        (request,) = recorder.requests
        assert request.method == "POST"
        assert json.loads(request.content) == pod

    def test_sends_authorization_header(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(_json_response({}))
        with _client(k8s_registry, recorder, token="tok") as api:
            api.invoke("listNamespace")
        assert recorder.requests[0].headers["authorization"] == "Bearer tok"

    def test_empty_body(self, petstore_registry: OperationRegistry) -> None:
        recorder = _Recorder(httpx.Response(204))
        with _client(petstore_registry, recorder) as api:
            assert api.invoke("delete-pets-petId-", {"petId": "1"}) is None
        assert recorder.requests[0].method == "DELETE"

    def test_context_manager_lifecycle(self, k8s_registry: OperationRegistry) -> None:
        api = ApiClient(k8s_registry)
        assert api._client is None
        with api:
            assert api._client is not None
        assert api._client is None


# ---------------------------------------------------------------------------
# Retry behaviour
# ---------------------------------------------------------------------------


class TestRetry:
    def test_retries_server_errors(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(
            _json_response({}, status_code=503),
            _json_response({}, status_code=502),
            _json_response({"ok": True}),
        )
        delays: list[float] = []
        with _client(k8s_registry, recorder, delays=delays) as api:
            assert api.invoke("listNamespace") == {"ok": True}
        assert len(recorder.requests) == 3
        assert delays == [1, 2]

    def test_gives_up_on_persistent_server_error(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(_json_response({"message": "down"}, status_code=500))
        delays: list[float] = []
        with _client(k8s_registry, recorder, delays=delays, max_retries=2) as api:
            with pytest.raises(ServerError, match="HTTP 500: down"):
                api.invoke("listNamespace")
        assert len(recorder.requests) == 3
        assert delays == [1, 2]

    def test_connection_error_after_retries(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(httpx.ConnectError("refused"))
        with _client(k8s_registry, recorder, max_retries=1) as api:
            with pytest.raises(ConnectionError_, match="after 2 attempts"):
                api.invoke("listNamespace")
        assert len(recorder.requests) == 2

    def test_recovers_from_timeout(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(httpx.ReadTimeout("slow"), _json_response({"ok": True}))
        with _client(k8s_registry, recorder) as api:
            assert api.invoke("listNamespace") == {"ok": True}

    def test_client_errors_not_retried(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(_json_response({}, status_code=400))
        with _client(k8s_registry, recorder) as api:
            with pytest.raises(ServerError):
                api.invoke("listNamespace")
        assert len(recorder.requests) == 1


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("status", "exc_type"),
        [(401, AuthError), (403, AuthError), (404, NotFoundError), (409, ServerError)],
    )
    def test_status_mapping(
        self, k8s_registry: OperationRegistry, status: int, exc_type: type[Exception]
    ) -> None:
        recorder = _Recorder(_json_response({"message": "nope"}, status_code=status))
        with _client(k8s_registry, recorder) as api:
            with pytest.raises(exc_type, match=f"HTTP {status}: nope"):
                api.invoke("listNamespace")

    def test_detail_field(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(_json_response({"detail": "bad token"}, status_code=401))
        with _client(k8s_registry, recorder) as api:
            with pytest.raises(AuthError, match="bad token"):
                api.invoke("listNamespace")

    def test_text_body(self, k8s_registry: OperationRegistry) -> None:
        recorder = _Recorder(httpx.Response(404, text="no such thing"))
        with _client(k8s_registry, recorder) as api:
            with pytest.raises(NotFoundError, match="HTTP 404: no such thing"):
                api.invoke("listNamespace")
