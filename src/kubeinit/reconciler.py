"""Workload reconciliation engine."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from kubeinit.client import ClusterClient
from kubeinit.config import ReconcileConfig
from kubeinit.dispatcher import DispatchResult, MigrationDispatcher, utc_now
from kubeinit.errors import NotFoundError
from kubeinit.provisioner import ProvisionResult, WorkloadProvisioner, WorkloadSpec
from kubeinit.state import (
    PODS,
    MigrationJobManifest,
    ResourceDescriptor,
    format_timestamp,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Result of one reconciliation pass."""

    timestamp: datetime
    migration: DispatchResult | None = None
    workload: ProvisionResult | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "timestamp": format_timestamp(self.timestamp),
            "migration": self.migration.to_dict() if self.migration else None,
            "workload": self.workload.to_dict() if self.workload else None,
        }


@dataclass
class PodInventory:
    """Pods observed in a namespace."""

    namespace: str
    count: int
    pod_name: str | None = None
    pod_found: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "namespace": self.namespace,
            "count": self.count,
            "pod_name": self.pod_name,
            "pod_found": self.pod_found,
        }


class Reconciler:
    """Runs single reconciliation passes against a cluster."""

    def __init__(
        self,
        client: ClusterClient,
        config: ReconcileConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.config = config
        self.clock = clock

    def migration_manifest(self) -> MigrationJobManifest:
        cfg = self.config
        return MigrationJobManifest(
            name=cfg.migration_job_name,
            namespace=cfg.namespace,
            image=cfg.migration_image,
            volume_name=cfg.migration_volume,
            secret_name=cfg.migration_secret,
            app_label=cfg.deployment_name,
            ttl_seconds_after_finished=cfg.job_ttl_seconds,
            image_pull_secret=cfg.image_pull_secret or None,
        )

    def workload_spec(self) -> WorkloadSpec:
        cfg = self.config
        return WorkloadSpec(
            namespace=cfg.namespace,
            name=cfg.deployment_name,
            image=cfg.image,
            replicas=cfg.replicas,
            container_port=cfg.container_port,
            exposed_port=cfg.exposed_port,
            allocate_node_port=cfg.allocate_node_port,
            service_name=cfg.service_name,
            deploy_service=cfg.deploy_service,
            image_pull_secret=cfg.image_pull_secret or None,
        )

    def dispatcher(self) -> MigrationDispatcher:
        return MigrationDispatcher(
            self.client,
            self.migration_manifest(),
            threshold=self.config.staleness_threshold,
            clock=self.clock,
        )

    def reconcile(self) -> ReconcileReport:
        """
        Run one pass: migration dispatch, then workload provisioning.

        A failure raises and stops the pass; resources already converged in
        this pass are left as they are.
        """
        report = ReconcileReport(timestamp=self.clock())

        if self.config.run_migration:
            report.migration = self.dispatcher().dispatch()
        else:
            logger.info("Migration dispatch disabled, skipping")

        report.workload = WorkloadProvisioner(self.client).provision(self.workload_spec())
        return report

    def pod_inventory(self, pod_name: str | None = None) -> PodInventory:
        """Count pods in the namespace and optionally look one up by name."""
        namespace = self.config.namespace
        pods = self.client.list(PODS, namespace)
        inventory = PodInventory(namespace=namespace, count=len(pods))

        if pod_name:
            inventory.pod_name = pod_name
            try:
                self.client.get(ResourceDescriptor(PODS, namespace, pod_name))
                inventory.pod_found = True
            except NotFoundError:
                inventory.pod_found = False
        return inventory
