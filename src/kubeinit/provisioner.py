"""Deployment and load balancer provisioning."""

import logging
from dataclasses import dataclass, field
from typing import Any

from kubeinit.client import ClusterClient
from kubeinit.state import (
    DEFAULT_SECRET_MOUNTS,
    DEPLOYMENTS,
    SERVICES,
    DeploymentManifest,
    ResourceDescriptor,
    SecretMount,
    ServiceManifest,
)
from kubeinit.upsert import UpsertResult, upsert_resource

logger = logging.getLogger(__name__)


@dataclass
class WorkloadSpec:
    """Desired shape of a long-running workload and its endpoint."""

    namespace: str
    name: str
    image: str
    replicas: int = 1
    container_port: int = 8993
    exposed_port: int = 8993
    allocate_node_port: bool = False
    service_name: str | None = None
    deploy_service: bool = True
    secret_mounts: list[SecretMount] = field(default_factory=lambda: list(DEFAULT_SECRET_MOUNTS))
    image_pull_secret: str | None = "ghcr"

    @property
    def endpoint_name(self) -> str:
        return self.service_name or f"{self.name}-service"

    def deployment_manifest(self) -> DeploymentManifest:
        return DeploymentManifest(
            name=self.name,
            namespace=self.namespace,
            image=self.image,
            replicas=self.replicas,
            container_port=self.container_port,
            secret_mounts=list(self.secret_mounts),
            image_pull_secret=self.image_pull_secret,
        )

    def service_manifest(self) -> ServiceManifest:
        return ServiceManifest(
            name=self.endpoint_name,
            namespace=self.namespace,
            app_label=self.name,
            port=self.exposed_port,
            target_port=self.container_port,
            allocate_node_ports=self.allocate_node_port,
        )


@dataclass
class ProvisionResult:
    """Upserts performed for one workload."""

    deployment: UpsertResult
    service: UpsertResult | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "deployment": self.deployment.to_dict(),
            "service": self.service.to_dict() if self.service else None,
        }


class WorkloadProvisioner:
    """Converges a deployment and its load balancer service."""

    def __init__(self, client: ClusterClient):
        self.client = client

    def provision_deployment(self, spec: WorkloadSpec) -> UpsertResult:
        descriptor = ResourceDescriptor(DEPLOYMENTS, spec.namespace, spec.name)
        return upsert_resource(self.client, spec.deployment_manifest(), descriptor)

    def provision_service(self, spec: WorkloadSpec) -> UpsertResult:
        descriptor = ResourceDescriptor(SERVICES, spec.namespace, spec.endpoint_name)
        return upsert_resource(self.client, spec.service_manifest(), descriptor)

    def provision(self, spec: WorkloadSpec) -> ProvisionResult:
        """
        Upsert the deployment and, when enabled, its service.

        The service selects pods by the deployment's app label and may select
        nothing until the deployment's pods exist. The first failing upsert
        raises and the remaining one is not attempted.
        """
        deployment = self.provision_deployment(spec)

        if not spec.deploy_service:
            logger.info(f"Service deployment disabled for {spec.name}, skipping")
            return ProvisionResult(deployment)

        service = self.provision_service(spec)
        return ProvisionResult(deployment, service)
