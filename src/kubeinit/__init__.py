"""Reconciliation engine for the migration job, deployment and load balancer."""

from kubeinit.config import ReconcileConfig
from kubeinit.dispatcher import MigrationDispatcher, evaluate_freshness
from kubeinit.history import latest_successful_job
from kubeinit.provisioner import WorkloadProvisioner, WorkloadSpec
from kubeinit.reconciler import Reconciler
from kubeinit.upsert import create_resource, upsert_resource

__all__ = [
    "MigrationDispatcher",
    "ReconcileConfig",
    "Reconciler",
    "WorkloadProvisioner",
    "WorkloadSpec",
    "create_resource",
    "evaluate_freshness",
    "latest_successful_job",
    "upsert_resource",
]
