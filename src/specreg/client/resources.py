"""Kind-based helpers on top of :class:`~specreg.client.client.ApiClient`.

For Kubernetes-style APIs the right operation can be chosen from a resource
kind and a verb alone, so callers can write::

    resources = ResourceClient(api)
    resources.list("Pod", namespace="default")
    resources.create({"kind": "Pod", "metadata": {"name": "web"}}, namespace="default")
    resources.scale_deployment("web", "default", replicas=3)
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional

from specreg.client.client import BODY_KEY, ApiClient
from specreg.exceptions import InvalidUsageError, OperationNotFoundError

logger = logging.getLogger(__name__)

POD_LOG_OPERATION = "readNamespacedPodLog"


class ResourceClient:
    """Get, list, create, update and delete resources by kind."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    def operation_for(self, category: str, kind: str) -> str:
        """Return the operation key that performs *category* on *kind*.

        Raises:
            UnknownMethodCategoryError: If *category* is not recognised.
            OperationNotFoundError: If no operation matches.
        """
        key = self._api.registry.find_by_method_and_kind_pattern(category, kind)
        if key is None:
            raise OperationNotFoundError(f"{category} {kind}")
        logger.debug("Resolved %s %s to %s", category, kind, key)
        return key

    def get(self, kind: str, name: str, namespace: Optional[str] = None, **params: Any) -> Any:
        return self._call("get", kind, _scoped(params, name=name, namespace=namespace))

    def list(self, kind: str, namespace: Optional[str] = None, **params: Any) -> Any:
        """List resources of *kind*. Extra keyword arguments become query parameters."""
        return self._call("list", kind, _scoped(params, namespace=namespace))

    def create(self, resource: dict[str, Any], namespace: Optional[str] = None, **params: Any) -> Any:
        """Create *resource*; its ``kind`` field selects the operation."""
        kind = _kind_of(resource)
        return self._call("create", kind, _scoped(params, namespace=namespace, body=resource))

    def update(self, resource: dict[str, Any], **params: Any) -> Any:
        """Replace *resource*, addressed by its ``metadata.name`` and ``metadata.namespace``.

        A ``replace`` operation is used when the API has one; ``patch``
        operations expect a patch document rather than the full resource.
        """
        kind = _kind_of(resource)
        metadata = resource.get("metadata") or {}
        scoped = _scoped(
            params,
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
            body=resource,
        )
        return self._api.invoke(self._replace_operation(kind), scoped)

    def delete(self, kind: str, name: str, namespace: Optional[str] = None, **params: Any) -> Any:
        return self._call("delete", kind, _scoped(params, name=name, namespace=namespace))

    # ------------------------------------------------------------------ #
    # Shortcuts
    # ------------------------------------------------------------------ #

    def pod_logs(
        self,
        name: str,
        namespace: str,
        container: Optional[str] = None,
        previous: bool = False,
        tail_lines: Optional[int] = None,
        **params: Any,
    ) -> Any:
        """Return the log of pod *name*, as text.

        Args:
            container: Container to read when the pod has several.
            previous: Read the log of the previous, terminated container.
            tail_lines: Only return this many lines from the end.
        """
        if self._api.registry.lookup(POD_LOG_OPERATION) is None:
            raise OperationNotFoundError(POD_LOG_OPERATION)
        scoped = _scoped(params, name=name, namespace=namespace)
        if container is not None:
            scoped["container"] = container
        if previous:
            scoped["previous"] = True
        if tail_lines is not None:
            scoped["tailLines"] = tail_lines
        return self._api.invoke(POD_LOG_OPERATION, scoped)

    def scale_deployment(self, name: str, namespace: str, replicas: int, **params: Any) -> Any:
        """Set ``spec.replicas`` of a deployment: read it, change the count, replace it."""
        if replicas < 0:
            raise InvalidUsageError(f"Replica count must not be negative (got {replicas})")
        deployment = self.get("Deployment", name, namespace=namespace, **params)
        if not isinstance(deployment, dict):
            raise InvalidUsageError(f"Deployment {namespace}/{name} did not come back as an object")
        updated = copy.deepcopy(deployment)
        updated.setdefault("kind", "Deployment")
        metadata = updated.setdefault("metadata", {})
        metadata.setdefault("name", name)
        metadata.setdefault("namespace", namespace)
        updated.setdefault("spec", {})["replicas"] = replicas
        logger.debug("Scaling deployment %s/%s to %d", namespace, name, replicas)
        return self.update(updated, **params)

    def create_namespace(
        self, name: str, labels: Optional[dict[str, str]] = None, **params: Any
    ) -> Any:
        resource = {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": name, "labels": dict(labels or {})},
        }
        return self.create(resource, **params)

    def _call(self, category: str, kind: str, params: dict[str, Any]) -> Any:
        return self._api.invoke(self.operation_for(category, kind), params)

    def _replace_operation(self, kind: str) -> str:
        candidates = self._api.registry.explain_kind(kind)["update"]
        for key in candidates:
            if key.lower().startswith("replace"):
                logger.debug("Resolved update %s to %s", kind, key)
                return key
        return self.operation_for("update", kind)


def _kind_of(resource: dict[str, Any]) -> str:
    kind = resource.get("kind")
    if not isinstance(kind, str) or not kind:
        raise InvalidUsageError("Resource has no 'kind' field")
    return kind


def _scoped(
    params: dict[str, Any],
    name: Optional[str] = None,
    namespace: Optional[str] = None,
    body: Any = None,
) -> dict[str, Any]:
    merged = dict(params)
    if name is not None:
        merged["name"] = name
    if namespace is not None:
        merged["namespace"] = namespace
    if body is not None:
        merged[BODY_KEY] = body
    return merged
