"""Exception types raised by the reconciliation engine."""

from typing import Any


class ReconcileError(Exception):
    """Base class for every error surfaced by kubeinit."""


class ConfigError(ReconcileError):
    """Invalid configuration value or file."""


class ClientBootstrapError(ReconcileError):
    """The cluster client could not be constructed."""


class ClusterApiError(ReconcileError):
    """A call to the cluster control plane failed."""

    def __init__(
        self,
        operation: str,
        resource: Any,
        status: int | None = None,
        reason: str | None = None,
    ):
        self.operation = operation
        self.resource = resource
        self.status = status
        self.reason = reason
        detail = f" ({status} {reason})" if status else f" ({reason})" if reason else ""
        super().__init__(f"{operation} {resource} failed{detail}")


class NotFoundError(ClusterApiError):
    """The addressed resource does not exist."""


class TransportError(ClusterApiError):
    """Network, authentication or timeout failure talking to the cluster."""


class ConflictError(ClusterApiError):
    """The resource changed between read and write."""


class ConversionError(ReconcileError):
    """A desired-state object could not be turned into a document."""


class UpsertError(ReconcileError):
    """A phase of create-or-update failed."""

    def __init__(self, phase: str, resource: Any, cause: BaseException):
        self.phase = phase
        self.resource = resource
        self.cause = cause
        super().__init__(f"error during {phase} of {resource}: {cause}")


class DispatchError(ReconcileError):
    """The migration dispatcher could not complete its pass."""

    def __init__(self, message: str, cause: BaseException):
        self.cause = cause
        super().__init__(f"{message}: {cause}")


class VersionFormatError(ValueError):
    """Version string is not vMAJOR.MINOR.PATCH."""
