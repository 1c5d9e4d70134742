"""
Tests for kubeinit.state module
"""

from datetime import datetime, timezone

import pytest

from conftest import completed_job, job_document


class TestResourceAddressing:
    """Tests for ResourceKind and ResourceDescriptor."""

    def test_api_version_with_group(self):
        """Test grouped kinds join group and version."""
        from kubeinit.state import DEPLOYMENTS, JOBS

        assert JOBS.api_version == "batch/v1"
        assert DEPLOYMENTS.api_version == "apps/v1"

    def test_api_version_core_group(self):
        """Test core kinds use the bare version."""
        from kubeinit.state import PODS, SERVICES

        assert SERVICES.api_version == "v1"
        assert PODS.api_version == "v1"

    def test_descriptor_fields(self):
        """Test descriptor exposes its kind's coordinates."""
        from kubeinit.state import JOBS, ResourceDescriptor

        descriptor = ResourceDescriptor(JOBS, "infra", "migrate")

        assert descriptor.group == "batch"
        assert descriptor.version == "v1"
        assert descriptor.plural == "jobs"
        assert str(descriptor) == "jobs/infra/migrate"

    def test_descriptor_is_immutable(self):
        """Test descriptors cannot be modified after construction."""
        from dataclasses import FrozenInstanceError

        from kubeinit.state import JOBS, ResourceDescriptor

        descriptor = ResourceDescriptor(JOBS, "infra", "migrate")

        with pytest.raises(FrozenInstanceError):
            descriptor.name = "other"

    def test_descriptor_equality(self):
        """Test equal coordinates address the same object."""
        from kubeinit.state import SERVICES, ResourceDescriptor

        assert ResourceDescriptor(SERVICES, "a", "b") == ResourceDescriptor(SERVICES, "a", "b")


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_parse_zulu(self):
        """Test parsing an RFC 3339 UTC timestamp."""
        from kubeinit.state import parse_timestamp

        parsed = parse_timestamp("2025-12-13T10:00:00Z")

        assert parsed == datetime(2025, 12, 13, 10, 0, tzinfo=timezone.utc)

    def test_parse_empty(self):
        """Test empty values mean no timestamp."""
        from kubeinit.state import parse_timestamp

        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_parse_naive_datetime_assumes_utc(self):
        """Test naive datetimes are treated as UTC."""
        from kubeinit.state import parse_timestamp

        parsed = parse_timestamp(datetime(2025, 1, 1, 8, 30))

        assert parsed.tzinfo == timezone.utc

    def test_format(self):
        """Test formatting back to the API form."""
        from kubeinit.state import format_timestamp

        assert format_timestamp(datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == "2025-01-02T03:04:05Z"
        assert format_timestamp(None) is None


class TestJobRecord:
    """Tests for JobRecord parsing."""

    def test_from_document(self, now):
        """Test a completed job document is parsed."""
        from kubeinit.state import JobRecord

        record = JobRecord.from_document(completed_job("migrate-1", now))

        assert record.name == "migrate-1"
        assert record.namespace == "default"
        assert record.labels == {"workload-type": "db-migration"}
        assert record.completion_time == now
        assert len(record.conditions) == 1
        assert record.conditions[0].is_successful_completion

    def test_missing_status(self):
        """Test a job without status has no conditions."""
        from kubeinit.state import JobRecord

        record = JobRecord.from_document({"metadata": {"name": "pending"}})

        assert record.conditions == ()
        assert record.completion_time is None

    def test_condition_without_time_is_not_success(self):
        """Test a Complete/True condition needs a transition time."""
        from kubeinit.state import JobRecord

        doc = job_document("migrate", conditions=[("Complete", "True", None)])
        record = JobRecord.from_document(doc)

        assert not record.conditions[0].is_successful_completion

    def test_failed_condition_is_not_success(self, now):
        """Test Failed conditions never count."""
        from kubeinit.state import JobCondition

        assert not JobCondition("Failed", "True", now).is_successful_completion
        assert not JobCondition("Complete", "False", now).is_successful_completion


class TestFreshnessDecision:
    """Tests for FreshnessDecision enum."""

    def test_only_fresh_skips_dispatch(self):
        """Test every decision but fresh requires a new job."""
        from kubeinit.state import FreshnessDecision

        assert not FreshnessDecision.FRESH_COMPLETION.requires_dispatch
        assert FreshnessDecision.NO_PRIOR_SUCCESS.requires_dispatch
        assert FreshnessDecision.STALE_COMPLETION.requires_dispatch
        assert FreshnessDecision.AMBIGUOUS_COMPLETION.requires_dispatch


class TestMigrationJobManifest:
    """Tests for the migration job document."""

    @pytest.fixture
    def manifest(self):
        from kubeinit.state import MigrationJobManifest

        return MigrationJobManifest(
            name="go-infra-db-migration",
            namespace="infra",
            image="ghcr.io/example/app:v1.0.0",
            volume_name="k3s-env",
            secret_name="k3s-env",
        )

    def test_job_lifetime_and_restart(self, manifest):
        """Test TTL and restart policy."""
        doc = manifest.to_document()

        assert doc["apiVersion"] == "batch/v1"
        assert doc["kind"] == "Job"
        assert doc["spec"]["ttlSecondsAfterFinished"] == 120
        assert doc["spec"]["template"]["spec"]["restartPolicy"] == "OnFailure"

    def test_secret_volume(self, manifest):
        """Test the secret volume is mounted at the fixed path."""
        pod = manifest.to_document()["spec"]["template"]["spec"]
        container = pod["containers"][0]

        assert pod["volumes"] == [{"name": "k3s-env", "secret": {"secretName": "k3s-env"}}]
        assert container["volumeMounts"] == [
            {"name": "k3s-env", "mountPath": "/app/.env", "subPath": ".env"}
        ]
        assert container["image"] == "ghcr.io/example/app:v1.0.0"
        assert container["command"] == ["/app/migrate"]

    def test_labels_on_job_and_template(self, manifest):
        """Test the migration label is selectable on the job itself."""
        doc = manifest.to_document()

        assert doc["metadata"]["labels"]["workload-type"] == "db-migration"
        assert doc["spec"]["template"]["metadata"]["labels"]["workload-type"] == "db-migration"

    def test_round_trip(self, manifest):
        """Test the document converts back to the same manifest."""
        from kubeinit.state import MigrationJobManifest

        assert MigrationJobManifest.from_document(manifest.to_document()) == manifest

    def test_documents_are_independent(self, manifest):
        """Test mutating a document does not touch the manifest."""
        doc = manifest.to_document()
        doc["spec"]["template"]["spec"]["containers"][0]["command"].append("--dry-run")

        assert manifest.command == ["/app/migrate"]


class TestDeploymentManifest:
    """Tests for the deployment document."""

    def test_selector_matches_template(self):
        """Test selector and template share the name label."""
        from kubeinit.state import DeploymentManifest

        doc = DeploymentManifest(name="go-infra", namespace="infra", image="img", replicas=3).to_document()

        assert doc["spec"]["replicas"] == 3
        assert doc["spec"]["selector"]["matchLabels"] == {"app": "go-infra"}
        assert doc["spec"]["template"]["metadata"]["labels"] == {"app": "go-infra"}

    def test_default_secret_mounts(self):
        """Test both default secrets are mounted."""
        from kubeinit.state import DeploymentManifest

        doc = DeploymentManifest(name="go-infra", namespace="infra", image="img").to_document()
        container = doc["spec"]["template"]["spec"]["containers"][0]

        assert [m["mountPath"] for m in container["volumeMounts"]] == [
            "/run/secrets/cf_token.ini",
            "/app/.env",
        ]
        assert container["ports"] == [{"containerPort": 8993}]
        assert container["resources"]["limits"] == {"cpu": "500m", "memory": "512Mi"}

    def test_round_trip(self):
        """Test the document converts back to the same manifest."""
        from kubeinit.state import DeploymentManifest

        manifest = DeploymentManifest(
            name="go-infra", namespace="infra", image="img", replicas=2, container_port=8080
        )

        assert DeploymentManifest.from_document(manifest.to_document()) == manifest


class TestServiceManifest:
    """Tests for the load balancer document."""

    def test_port_forwarding(self):
        """Test exposure port forwards to the container port."""
        from kubeinit.state import ServiceManifest

        doc = ServiceManifest(
            name="go-infra-service", namespace="infra", app_label="go-infra", port=80, target_port=8993
        ).to_document()

        assert doc["spec"]["type"] == "LoadBalancer"
        assert doc["spec"]["selector"] == {"app": "go-infra"}
        assert doc["spec"]["ports"] == [
            {"name": "http", "port": 80, "targetPort": 8993, "protocol": "TCP"}
        ]
        assert "allocateLoadBalancerNodePorts" not in doc["spec"]

    def test_node_port_flag(self):
        """Test node-port allocation is passed through."""
        from kubeinit.state import ServiceManifest

        manifest = ServiceManifest(
            name="svc", namespace="infra", app_label="app", port=80, target_port=80,
            allocate_node_ports=False,
        )

        assert manifest.to_document()["spec"]["allocateLoadBalancerNodePorts"] is False
        assert ServiceManifest.from_document(manifest.to_document()) == manifest
