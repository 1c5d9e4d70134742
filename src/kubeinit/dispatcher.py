"""
Freshness-gated migration dispatch

Decides, from the observed job history, whether the database migration job
has to run again and submits it when it does. Stateless between calls:
every pass lists the jobs again and recomputes the decision.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from kubeinit.client import ClusterClient
from kubeinit.errors import DispatchError, ReconcileError
from kubeinit.history import latest_successful_job
from kubeinit.state import (
    JOBS,
    MIGRATION_LABEL_SELECTOR,
    FreshnessDecision,
    JobRecord,
    MigrationJobManifest,
    ResourceDescriptor,
    format_timestamp,
)
from kubeinit.upsert import UpsertResult, create_resource

logger = logging.getLogger(__name__)

DEFAULT_STALENESS_THRESHOLD = timedelta(minutes=2)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def evaluate_freshness(
    latest: JobRecord | None,
    now: datetime,
    threshold: timedelta = DEFAULT_STALENESS_THRESHOLD,
) -> FreshnessDecision:
    """Classify the latest successful job against the staleness threshold."""
    if latest is None:
        return FreshnessDecision.NO_PRIOR_SUCCESS
    if latest.completion_time is None:
        return FreshnessDecision.AMBIGUOUS_COMPLETION
    if now - latest.completion_time <= threshold:
        return FreshnessDecision.FRESH_COMPLETION
    return FreshnessDecision.STALE_COMPLETION


@dataclass
class DispatchResult:
    """What one dispatcher pass observed and did."""

    decision: FreshnessDecision
    latest_job: JobRecord | None = None
    created: UpsertResult | None = None

    @property
    def dispatched(self) -> bool:
        return self.created is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "decision": self.decision.value,
            "latest_job": self.latest_job.name if self.latest_job else None,
            "completed_at": format_timestamp(
                self.latest_job.completion_time if self.latest_job else None
            ),
            "dispatched": self.dispatched,
            "created": self.created.to_dict() if self.created else None,
        }


class MigrationDispatcher:
    """Launches the migration job when the last success is missing or stale."""

    def __init__(
        self,
        client: ClusterClient,
        manifest: MigrationJobManifest,
        threshold: timedelta = DEFAULT_STALENESS_THRESHOLD,
        label_selector: str = MIGRATION_LABEL_SELECTOR,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.manifest = manifest
        self.threshold = threshold
        self.label_selector = label_selector
        self.clock = clock

    @property
    def descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(JOBS, self.manifest.namespace, self.manifest.name)

    def job_history(self) -> list[JobRecord]:
        """List migration jobs in the target namespace."""
        try:
            documents = self.client.list(
                JOBS, self.manifest.namespace, label_selector=self.label_selector
            )
        except ReconcileError as e:
            logger.error(f"Error retrieving batch jobs in {self.manifest.namespace}: {e}")
            raise DispatchError("error retrieving batch jobs", e) from e

        try:
            return [JobRecord.from_document(doc) for doc in documents]
        except ValueError as e:
            logger.error(f"Unreadable job status in {self.manifest.namespace}: {e}")
            raise DispatchError("error retrieving batch jobs", e) from e

    def decide(self) -> tuple[FreshnessDecision, JobRecord | None]:
        """Compute the freshness decision from the current job history."""
        latest = latest_successful_job(self.job_history())
        decision = evaluate_freshness(latest, self.clock(), self.threshold)

        if decision is FreshnessDecision.AMBIGUOUS_COMPLETION:
            logger.warning(
                f"Job {latest.name} reports completion without a completion time, "
                "treating it as stale"
            )
        return decision, latest

    def dispatch(self) -> DispatchResult:
        """Run one pass: decide, then create the migration job if needed."""
        decision, latest = self.decide()

        if not decision.requires_dispatch:
            logger.info(
                f"Migration job {latest.name} completed at "
                f"{format_timestamp(latest.completion_time)}, nothing to do"
            )
            return DispatchResult(decision, latest)

        logger.info(f"Dispatching migration job {self.manifest.name} ({decision.value})")
        try:
            created = create_resource(self.client, self.manifest, self.descriptor)
        except ReconcileError as e:
            logger.error(f"Error creating migration job {self.manifest.name}: {e}")
            raise DispatchError("error creating migration job", e) from e

        return DispatchResult(decision, latest, created)
