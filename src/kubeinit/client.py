"""
Cluster API client

Thin synchronous wrapper over the Kubernetes API client. Every call is
addressed by a ResourceKind/ResourceDescriptor, works on plain dict
documents and is bounded by the configured request timeout. Resources are
addressed by group, version and plural directly, so no API discovery
requests are made. Library exceptions are translated into the kubeinit
error taxonomy.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol

import urllib3
from kubernetes import config as kube_config
from kubernetes.client import ApiClient, Configuration
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from kubeinit.config import default_kubeconfig
from kubeinit.errors import (
    ClientBootstrapError,
    ClusterApiError,
    ConflictError,
    NotFoundError,
    TransportError,
)
from kubeinit.state import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0

JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


class ClusterClient(Protocol):
    """Operations the reconciliation engine needs from the control plane."""

    def get(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        ...

    def create(self, descriptor: ResourceDescriptor, document: dict[str, Any]) -> dict[str, Any]:
        ...

    def update(self, descriptor: ResourceDescriptor, document: dict[str, Any]) -> dict[str, Any]:
        ...

    def list(
        self, kind: ResourceKind, namespace: str, label_selector: str | None = None
    ) -> list[dict[str, Any]]:
        ...


def resource_path(kind: ResourceKind, namespace: str, name: str | None = None) -> str:
    """REST path of a namespaced collection, or of one object in it."""
    if kind.group:
        prefix = f"/apis/{kind.group}/{kind.version}"
    else:
        prefix = f"/api/{kind.version}"
    path = f"{prefix}/namespaces/{namespace}/{kind.plural}"
    return f"{path}/{name}" if name else path


def translate_api_exception(
    exc: ApiException, operation: str, target: Any
) -> ClusterApiError:
    """Map an API status code onto the error taxonomy."""
    status = exc.status
    reason = exc.reason
    if status == 404:
        return NotFoundError(operation, target, status, reason)
    if status == 409:
        return ConflictError(operation, target, status, reason)
    if status in (401, 403):
        return TransportError(operation, target, status, reason)
    if not status:
        return TransportError(operation, target, reason=reason)
    return ClusterApiError(operation, target, status, reason)


class KubernetesClusterClient:
    """ClusterClient backed by the Kubernetes API client."""

    def __init__(self, api_client: ApiClient, request_timeout: float = DEFAULT_TIMEOUT):
        self.api_client = api_client
        self.request_timeout = request_timeout

    @classmethod
    def from_kubeconfig(
        cls, path: str | Path | None = None, request_timeout: float = DEFAULT_TIMEOUT
    ) -> "KubernetesClusterClient":
        """Build a client from a kubeconfig file (outside the cluster)."""
        config_path = Path(path or default_kubeconfig()).expanduser()
        try:
            api_client = kube_config.new_client_from_config(config_file=str(config_path))
        except (ConfigException, OSError) as e:
            logger.error(f"Error initializing external cluster client from {config_path}: {e}")
            raise ClientBootstrapError(f"cannot load kubeconfig {config_path}: {e}") from e

        logger.debug(f"Loaded kubeconfig from {config_path}")
        return cls(api_client, request_timeout)

    @classmethod
    def in_cluster(cls, request_timeout: float = DEFAULT_TIMEOUT) -> "KubernetesClusterClient":
        """Build a client from the pod's service account."""
        configuration = Configuration()
        try:
            kube_config.load_incluster_config(client_configuration=configuration)
        except ConfigException as e:
            logger.error(f"Error initializing in-cluster client: {e}")
            raise ClientBootstrapError(f"cannot load in-cluster config: {e}") from e

        logger.debug("Loaded in-cluster service account config")
        return cls(ApiClient(configuration), request_timeout)

    @contextmanager
    def _api_call(self, operation: str, target: Any) -> Iterator[None]:
        try:
            yield
        except ApiException as e:
            error = translate_api_exception(e, operation, target)
            if not isinstance(error, NotFoundError):
                logger.error(f"Cluster API {operation} failed for {target}: {e.status} {e.reason}")
            raise error from e
        except urllib3.exceptions.HTTPError as e:
            logger.error(f"Transport error during {operation} of {target}: {e}")
            raise TransportError(operation, target, reason=str(e)) from e

    def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        query_params: list[tuple[str, str]] | None = None,
    ) -> dict[str, Any]:
        return self.api_client.call_api(
            path,
            method,
            path_params={},
            query_params=query_params or [],
            header_params=dict(JSON_HEADERS),
            body=body,
            post_params=[],
            files={},
            response_type="object",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _preload_content=True,
            _request_timeout=self.request_timeout,
        )

    def get(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        path = resource_path(descriptor.kind, descriptor.namespace, descriptor.name)
        with self._api_call("get", descriptor):
            return self._request("GET", path)

    def create(self, descriptor: ResourceDescriptor, document: dict[str, Any]) -> dict[str, Any]:
        path = resource_path(descriptor.kind, descriptor.namespace)
        with self._api_call("create", descriptor):
            return self._request("POST", path, body=document)

    def update(self, descriptor: ResourceDescriptor, document: dict[str, Any]) -> dict[str, Any]:
        path = resource_path(descriptor.kind, descriptor.namespace, descriptor.name)
        with self._api_call("update", descriptor):
            return self._request("PUT", path, body=document)

    def list(
        self, kind: ResourceKind, namespace: str, label_selector: str | None = None
    ) -> list[dict[str, Any]]:
        query_params = [("labelSelector", label_selector)] if label_selector else []
        with self._api_call("list", f"{kind.plural}/{namespace}"):
            result = self._request("GET", resource_path(kind, namespace), query_params=query_params)
        return list((result or {}).get("items") or [])


def connect(in_cluster: bool, kubeconfig: str | Path | None, request_timeout: float) -> KubernetesClusterClient:
    """Build a client for either an in-cluster or an external caller."""
    if in_cluster:
        return KubernetesClusterClient.in_cluster(request_timeout)
    return KubernetesClusterClient.from_kubeconfig(kubeconfig, request_timeout)
