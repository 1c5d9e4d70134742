"""State definitions for workload reconciliation."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

# Condition type the orchestrator sets on a job that finished successfully
JOB_COMPLETE = "Complete"
CONDITION_TRUE = "True"

MIGRATION_LABEL_SELECTOR = "workload-type=db-migration"

DEFAULT_REQUESTS = {"cpu": "250m", "memory": "256Mi"}
DEFAULT_LIMITS = {"cpu": "500m", "memory": "512Mi"}


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp; empty values map to None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    """Format a datetime the way the cluster API does."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class ResourceKind:
    """API group, version and plural name of a resource type."""

    group: str
    version: str
    plural: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def __str__(self) -> str:
        return f"{self.plural}.{self.api_version}"


JOBS = ResourceKind("batch", "v1", "jobs")
DEPLOYMENTS = ResourceKind("apps", "v1", "deployments")
SERVICES = ResourceKind("", "v1", "services")
PODS = ResourceKind("", "v1", "pods")


@dataclass(frozen=True)
class ResourceDescriptor:
    """Address of exactly one live cluster object."""

    kind: ResourceKind
    namespace: str
    name: str

    @property
    def group(self) -> str:
        return self.kind.group

    @property
    def version(self) -> str:
        return self.kind.version

    @property
    def plural(self) -> str:
        return self.kind.plural

    def __str__(self) -> str:
        return f"{self.plural}/{self.namespace}/{self.name}"


class FreshnessDecision(str, Enum):
    """Outcome of the migration freshness policy."""

    NO_PRIOR_SUCCESS = "no_prior_success"
    STALE_COMPLETION = "stale_completion"
    FRESH_COMPLETION = "fresh_completion"
    AMBIGUOUS_COMPLETION = "ambiguous_completion"

    @property
    def requires_dispatch(self) -> bool:
        """Whether a new migration job must be created."""
        return self is not FreshnessDecision.FRESH_COMPLETION


@dataclass(frozen=True)
class JobCondition:
    """A status condition reported on a batch job."""

    type: str
    status: str
    last_transition_time: datetime | None = None

    @property
    def is_successful_completion(self) -> bool:
        return (
            self.type == JOB_COMPLETE
            and self.status == CONDITION_TRUE
            and self.last_transition_time is not None
        )

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "JobCondition":
        return cls(
            type=doc.get("type", ""),
            status=doc.get("status", ""),
            last_transition_time=parse_timestamp(doc.get("lastTransitionTime")),
        )


@dataclass(frozen=True)
class JobRecord:
    """Read-only snapshot of a batch job as observed in the cluster."""

    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    conditions: tuple[JobCondition, ...] = ()
    completion_time: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "JobRecord":
        """Build a record from a job document returned by the cluster."""
        metadata = doc.get("metadata") or {}
        status = doc.get("status") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            labels=dict(metadata.get("labels") or {}),
            conditions=tuple(
                JobCondition.from_document(c) for c in status.get("conditions") or []
            ),
            completion_time=parse_timestamp(status.get("completionTime")),
        )


class DocumentConvertible(Protocol):
    """Desired state that converts to a generic document and back."""

    def to_document(self) -> dict[str, Any]:
        ...

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "DocumentConvertible":
        ...


@dataclass(frozen=True)
class SecretMount:
    """A secret exposed to a container as a single mounted file."""

    volume_name: str
    secret_name: str
    mount_path: str
    sub_path: str | None = None

    def volume_mount(self) -> dict[str, Any]:
        mount = {"name": self.volume_name, "mountPath": self.mount_path}
        if self.sub_path:
            mount["subPath"] = self.sub_path
        return mount

    def volume(self) -> dict[str, Any]:
        return {"name": self.volume_name, "secret": {"secretName": self.secret_name}}


DEFAULT_SECRET_MOUNTS = (
    SecretMount("cf-token-ini", "cf-token-ini", "/run/secrets/cf_token.ini", "cf_token.ini"),
    SecretMount("k3s-env", "k3s-env", "/app/.env", "k3s.env"),
)


def _resources(requests: dict[str, str], limits: dict[str, str]) -> dict[str, Any]:
    return {"limits": dict(limits), "requests": dict(requests)}


def _pull_secrets(secret: str | None) -> list[dict[str, str]]:
    return [{"name": secret}] if secret else []


def _first_pull_secret(pod_spec: dict[str, Any]) -> str | None:
    secrets = pod_spec.get("imagePullSecrets") or []
    return secrets[0]["name"] if secrets else None


def _mounts_from_pod(container: dict[str, Any], pod_spec: dict[str, Any]) -> list[SecretMount]:
    secret_names = {
        v["name"]: (v.get("secret") or {}).get("secretName", v["name"])
        for v in pod_spec.get("volumes") or []
    }
    return [
        SecretMount(
            volume_name=m["name"],
            secret_name=secret_names.get(m["name"], m["name"]),
            mount_path=m["mountPath"],
            sub_path=m.get("subPath"),
        )
        for m in container.get("volumeMounts") or []
    ]


@dataclass
class MigrationJobManifest:
    """Desired state of the database migration batch job."""

    name: str
    namespace: str
    image: str
    volume_name: str
    secret_name: str
    app_label: str = "go-infra"
    mount_path: str = "/app/.env"
    sub_path: str = ".env"
    command: list[str] = field(default_factory=lambda: ["/app/migrate"])
    ttl_seconds_after_finished: int = 120
    image_pull_secret: str | None = "ghcr"
    requests: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_REQUESTS))
    limits: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LIMITS))

    @property
    def labels(self) -> dict[str, str]:
        return {
            "workload": "job",
            "app": self.app_label,
            "workload-type": "db-migration",
        }

    def to_document(self) -> dict[str, Any]:
        mount = SecretMount(self.volume_name, self.secret_name, self.mount_path, self.sub_path)
        pod_spec: dict[str, Any] = {
            "restartPolicy": "OnFailure",
            "containers": [
                {
                    "name": self.name,
                    "image": self.image,
                    "imagePullPolicy": "Always",
                    "command": list(self.command),
                    "volumeMounts": [mount.volume_mount()],
                    "resources": _resources(self.requests, self.limits),
                }
            ],
            "volumes": [mount.volume()],
        }
        if self.image_pull_secret:
            pod_spec["imagePullSecrets"] = _pull_secrets(self.image_pull_secret)

        return {
            "apiVersion": JOBS.api_version,
            "kind": "Job",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": self.labels,
            },
            "spec": {
                "ttlSecondsAfterFinished": self.ttl_seconds_after_finished,
                "template": {
                    "metadata": {"labels": self.labels},
                    "spec": pod_spec,
                },
            },
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "MigrationJobManifest":
        metadata = doc["metadata"]
        spec = doc["spec"]
        pod_spec = spec["template"]["spec"]
        container = pod_spec["containers"][0]
        mount = _mounts_from_pod(container, pod_spec)[0]
        resources = container.get("resources") or {}
        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace", ""),
            image=container["image"],
            volume_name=mount.volume_name,
            secret_name=mount.secret_name,
            app_label=(metadata.get("labels") or {}).get("app", "go-infra"),
            mount_path=mount.mount_path,
            sub_path=mount.sub_path or "",
            command=list(container.get("command") or []),
            ttl_seconds_after_finished=spec.get("ttlSecondsAfterFinished", 120),
            image_pull_secret=_first_pull_secret(pod_spec),
            requests=dict(resources.get("requests") or {}),
            limits=dict(resources.get("limits") or {}),
        )


@dataclass
class DeploymentManifest:
    """Desired state of the long-running service deployment."""

    name: str
    namespace: str
    image: str
    replicas: int = 1
    container_port: int = 8993
    command: list[str] = field(default_factory=lambda: ["/app/server"])
    secret_mounts: list[SecretMount] = field(default_factory=lambda: list(DEFAULT_SECRET_MOUNTS))
    image_pull_secret: str | None = "ghcr"
    requests: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_REQUESTS))
    limits: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LIMITS))

    @property
    def labels(self) -> dict[str, str]:
        return {"app": self.name}

    def to_document(self) -> dict[str, Any]:
        pod_spec: dict[str, Any] = {
            "containers": [
                {
                    "name": self.name,
                    "image": self.image,
                    "imagePullPolicy": "Always",
                    "command": list(self.command),
                    "ports": [{"containerPort": self.container_port}],
                    "volumeMounts": [m.volume_mount() for m in self.secret_mounts],
                    "resources": _resources(self.requests, self.limits),
                }
            ],
            "volumes": [m.volume() for m in self.secret_mounts],
        }
        if self.image_pull_secret:
            pod_spec["imagePullSecrets"] = _pull_secrets(self.image_pull_secret)

        return {
            "apiVersion": DEPLOYMENTS.api_version,
            "kind": "Deployment",
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": {
                "replicas": self.replicas,
                "selector": {"matchLabels": self.labels},
                "template": {
                    "metadata": {"labels": self.labels},
                    "spec": pod_spec,
                },
            },
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "DeploymentManifest":
        metadata = doc["metadata"]
        spec = doc["spec"]
        pod_spec = spec["template"]["spec"]
        container = pod_spec["containers"][0]
        ports = container.get("ports") or [{}]
        resources = container.get("resources") or {}
        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace", ""),
            image=container["image"],
            replicas=spec.get("replicas", 1),
            container_port=ports[0].get("containerPort", 8993),
            command=list(container.get("command") or []),
            secret_mounts=_mounts_from_pod(container, pod_spec),
            image_pull_secret=_first_pull_secret(pod_spec),
            requests=dict(resources.get("requests") or {}),
            limits=dict(resources.get("limits") or {}),
        )


@dataclass
class ServiceManifest:
    """Desired state of the load balancer exposing a deployment."""

    name: str
    namespace: str
    app_label: str
    port: int
    target_port: int
    allocate_node_ports: bool | None = None
    service_type: str = "LoadBalancer"
    port_name: str = "http"
    protocol: str = "TCP"

    def to_document(self) -> dict[str, Any]:
        spec: dict[str, Any] = {
            "type": self.service_type,
            "selector": {"app": self.app_label},
            "ports": [
                {
                    "name": self.port_name,
                    "port": self.port,
                    "targetPort": self.target_port,
                    "protocol": self.protocol,
                }
            ],
        }
        if self.allocate_node_ports is not None:
            spec["allocateLoadBalancerNodePorts"] = self.allocate_node_ports

        return {
            "apiVersion": SERVICES.api_version,
            "kind": "Service",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": {"app": self.app_label},
            },
            "spec": spec,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ServiceManifest":
        metadata = doc["metadata"]
        spec = doc["spec"]
        port = spec["ports"][0]
        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace", ""),
            app_label=(spec.get("selector") or {}).get("app", ""),
            port=port["port"],
            target_port=port.get("targetPort", port["port"]),
            allocate_node_ports=spec.get("allocateLoadBalancerNodePorts"),
            service_type=spec.get("type", "LoadBalancer"),
            port_name=port.get("name", "http"),
            protocol=port.get("protocol", "TCP"),
        )
