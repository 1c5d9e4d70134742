"""
kubeinit Configuration

Every default the reconciler needs lives on ReconcileConfig and is passed
explicitly into the engine. Values are layered: dataclass defaults, then an
optional YAML file, then KUBEINIT_* environment variables, then CLI flags.
"""

import os
from dataclasses import dataclass, field, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

from kubeinit.errors import ConfigError

ENV_PREFIX = "KUBEINIT_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def default_kubeconfig() -> str:
    return str(Path.home() / ".kube" / "config")


@dataclass(frozen=True)
class ReconcileConfig:
    """Configuration for one reconciliation pass."""

    # Workload
    namespace: str = "default"
    deployment_name: str = "go-infra"
    service_name: str = "go-infra-service"
    replicas: int = 1
    container_port: int = 8993
    exposed_port: int = 8993
    image: str = "ghcr.io/babbage88/go-infra:latest"
    allocate_node_port: bool = False
    deploy_service: bool = True
    image_pull_secret: str = "ghcr"

    # Migration job
    run_migration: bool = True
    migration_image: str = "ghcr.io/babbage88/go-infra:latest"
    migration_job_name: str = "go-infra-db-migration"
    migration_volume: str = "k3s-env"
    migration_secret: str = "k3s-env"
    staleness_threshold_seconds: int = 120
    job_ttl_seconds: int = 120

    # Cluster access
    kubeconfig: str = field(default_factory=default_kubeconfig)
    in_cluster: bool = False
    request_timeout: float = 2.0

    @property
    def staleness_threshold(self) -> timedelta:
        return timedelta(seconds=self.staleness_threshold_seconds)

    def merged(self, overrides: Mapping[str, Any]) -> "ReconcileConfig":
        """Return a copy with the given fields replaced; None values are ignored."""
        values = {}
        for key, value in overrides.items():
            if value is None:
                continue
            values[key] = _coerce(key, value)
        return replace(self, **values)

    @classmethod
    def from_env(
        cls, base: "ReconcileConfig | None" = None, environ: Mapping[str, str] | None = None
    ) -> "ReconcileConfig":
        """Apply KUBEINIT_<FIELD> environment overrides."""
        env = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            value = env.get(ENV_PREFIX + f.name.upper())
            if value is not None:
                overrides[f.name] = value
        return (base or cls()).merged(overrides)

    @classmethod
    def from_yaml(cls, path: str | Path, base: "ReconcileConfig | None" = None) -> "ReconcileConfig":
        """Load configuration from a YAML file."""
        import yaml

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a mapping")

        # Accept kebab-case keys as written on the command line
        return (base or cls()).merged({k.replace("-", "_"): v for k, v in data.items()})

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce(key: str, value: Any) -> Any:
    types = {f.name: f.type for f in fields(ReconcileConfig)}
    if key not in types:
        raise ConfigError(f"unknown configuration key: {key}")

    kind = types[key]
    if kind in (bool, "bool"):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigError(f"{key} must be a boolean, got {value!r}")
    if kind in (int, "int"):
        if isinstance(value, bool):
            raise ConfigError(f"{key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from e
    if kind in (float, "float"):
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{key} must be a number, got {value!r}") from e
    return str(value)
