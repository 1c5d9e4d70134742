"""Generic create-or-update for any resource kind."""

import copy
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kubeinit.client import ClusterClient
from kubeinit.errors import ConversionError, NotFoundError, ReconcileError, UpsertError
from kubeinit.state import DocumentConvertible, ResourceDescriptor

logger = logging.getLogger(__name__)

# Server-owned metadata carried over from the live object on update
PRESERVED_METADATA = ("uid", "resourceVersion", "creationTimestamp", "generation", "selfLink")


class UpsertAction(str, Enum):
    """Mutation performed by an upsert."""

    CREATED = "created"
    UPDATED = "updated"


@dataclass
class UpsertResult:
    """Outcome of a single upsert call."""

    descriptor: ResourceDescriptor
    action: UpsertAction
    document: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "resource": str(self.descriptor),
            "action": self.action.value,
        }


def to_document(desired: DocumentConvertible, descriptor: ResourceDescriptor) -> dict[str, Any]:
    """
    Convert a desired-state object into a standalone document.

    The result is a deep copy, guaranteed JSON-serializable, and addressed to
    the descriptor's namespace and name.
    """
    try:
        document = copy.deepcopy(desired.to_document())
        json.dumps(document)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ConversionError(
            f"cannot convert {type(desired).__name__} for {descriptor}: {e}"
        ) from e

    if not isinstance(document, dict):
        raise ConversionError(
            f"{type(desired).__name__} produced {type(document).__name__}, expected a mapping"
        )

    metadata = document.setdefault("metadata", {})
    metadata["name"] = descriptor.name
    metadata["namespace"] = descriptor.namespace
    return document


def merge_live_metadata(live: dict[str, Any], document: dict[str, Any]) -> dict[str, Any]:
    """Replace the live object's body with document, keeping server-owned metadata."""
    merged = copy.deepcopy(document)
    metadata = merged.setdefault("metadata", {})
    live_metadata = live.get("metadata") or {}
    for key in PRESERVED_METADATA:
        if live_metadata.get(key) is not None:
            metadata[key] = live_metadata[key]
    return merged


def _convert(desired: DocumentConvertible, descriptor: ResourceDescriptor) -> dict[str, Any]:
    try:
        return to_document(desired, descriptor)
    except ConversionError as e:
        logger.error(f"Conversion failed for {descriptor}: {e}")
        raise UpsertError("convert", descriptor, e) from e


def upsert_resource(
    client: ClusterClient, desired: DocumentConvertible, descriptor: ResourceDescriptor
) -> UpsertResult:
    """
    Make the live object at descriptor match desired.

    Performs exactly one mutation: create when the object is absent, update
    otherwise. Any failure is raised as UpsertError naming the phase; nothing
    is retried here.
    """
    document = _convert(desired, descriptor)

    try:
        live = client.get(descriptor)
    except NotFoundError:
        logger.info(f"{descriptor} not found, creating")
        try:
            created = client.create(descriptor, document)
        except ReconcileError as e:
            raise UpsertError("create", descriptor, e) from e
        logger.info(f"Created {descriptor}")
        return UpsertResult(descriptor, UpsertAction.CREATED, created)
    except ReconcileError as e:
        raise UpsertError("get", descriptor, e) from e

    try:
        updated = client.update(descriptor, merge_live_metadata(live, document))
    except ReconcileError as e:
        raise UpsertError("update", descriptor, e) from e

    logger.info(f"Updated {descriptor}")
    return UpsertResult(descriptor, UpsertAction.UPDATED, updated)


def create_resource(
    client: ClusterClient, desired: DocumentConvertible, descriptor: ResourceDescriptor
) -> UpsertResult:
    """Create-only variant: never reads or updates an existing object."""
    document = _convert(desired, descriptor)
    try:
        created = client.create(descriptor, document)
    except ReconcileError as e:
        raise UpsertError("create", descriptor, e) from e

    logger.info(f"Created {descriptor}")
    return UpsertResult(descriptor, UpsertAction.CREATED, created)
