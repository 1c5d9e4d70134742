"""
Pytest configuration and fixtures for kubeinit tests
"""

import copy
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from kubeinit.errors import ConflictError, NotFoundError  # noqa: E402
from kubeinit.state import JOBS, format_timestamp  # noqa: E402

NOW = datetime(2025, 12, 13, 10, 0, 0, tzinfo=timezone.utc)


class FakeClusterClient:
    """In-memory ClusterClient that records every call."""

    def __init__(self):
        self.objects = {}
        self.calls = []
        self.errors = {}
        self._uid = 0
        self._version = 0

    @staticmethod
    def _key(descriptor):
        return (descriptor.kind, descriptor.namespace, descriptor.name)

    def _next_version(self):
        self._version += 1
        return str(self._version)

    def _maybe_fail(self, operation):
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def calls_to(self, operation):
        return [target for op, target in self.calls if op == operation]

    def seed(self, kind, document):
        """Store a document as if it already existed in the cluster."""
        metadata = document["metadata"]
        self._uid += 1
        stored = copy.deepcopy(document)
        stored["metadata"].setdefault("uid", f"uid-{self._uid}")
        stored["metadata"].setdefault("resourceVersion", self._next_version())
        self.objects[(kind, metadata.get("namespace", "default"), metadata["name"])] = stored
        return stored

    def get(self, descriptor):
        self.calls.append(("get", str(descriptor)))
        self._maybe_fail("get")
        key = self._key(descriptor)
        if key not in self.objects:
            raise NotFoundError("get", descriptor, 404, "Not Found")
        return copy.deepcopy(self.objects[key])

    def create(self, descriptor, document):
        self.calls.append(("create", str(descriptor)))
        self._maybe_fail("create")
        key = self._key(descriptor)
        if key in self.objects:
            raise ConflictError("create", descriptor, 409, "AlreadyExists")
        self._uid += 1
        stored = copy.deepcopy(document)
        stored["metadata"]["uid"] = f"uid-{self._uid}"
        stored["metadata"]["resourceVersion"] = self._next_version()
        stored["metadata"]["creationTimestamp"] = format_timestamp(NOW)
        self.objects[key] = stored
        return copy.deepcopy(stored)

    def update(self, descriptor, document):
        self.calls.append(("update", str(descriptor)))
        self._maybe_fail("update")
        key = self._key(descriptor)
        if key not in self.objects:
            raise NotFoundError("update", descriptor, 404, "Not Found")
        live = self.objects[key]
        live_version = live["metadata"]["resourceVersion"]
        if document["metadata"].get("resourceVersion") != live_version:
            raise ConflictError("update", descriptor, 409, "Conflict")

        stored = copy.deepcopy(document)
        if stored != live:
            stored["metadata"]["resourceVersion"] = self._next_version()
        self.objects[key] = stored
        return copy.deepcopy(stored)

    def list(self, kind, namespace, label_selector=None):
        self.calls.append(("list", f"{kind.plural}/{namespace}"))
        self._maybe_fail("list")
        wanted = {}
        if label_selector:
            for term in label_selector.split(","):
                k, _, v = term.partition("=")
                wanted[k.strip()] = v.strip()

        items = []
        for (obj_kind, obj_namespace, _), obj in self.objects.items():
            if obj_kind != kind or obj_namespace != namespace:
                continue
            labels = obj["metadata"].get("labels") or {}
            if all(labels.get(k) == v for k, v in wanted.items()):
                items.append(copy.deepcopy(obj))
        return items


def job_document(
    name,
    namespace="default",
    conditions=(),
    completion_time=None,
    labels=None,
):
    """Build a batch job document as returned by the cluster."""
    status = {
        "conditions": [
            {
                "type": ctype,
                "status": cstatus,
                "lastTransitionTime": format_timestamp(when) if when else None,
            }
            for ctype, cstatus, when in conditions
        ]
    }
    if completion_time is not None:
        status["completionTime"] = format_timestamp(completion_time)

    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": labels if labels is not None else {"workload-type": "db-migration"},
        },
        "status": status,
    }


def completed_job(name, finished_at, namespace="default"):
    """A job document that completed successfully at finished_at."""
    return job_document(
        name,
        namespace=namespace,
        conditions=[("Complete", "True", finished_at)],
        completion_time=finished_at,
    )


@pytest.fixture
def fake_client():
    """Fixture for an empty in-memory cluster."""
    return FakeClusterClient()


@pytest.fixture
def now():
    """Fixed reference time."""
    return NOW


@pytest.fixture
def clock():
    """Clock callable returning the fixed reference time."""
    return lambda: NOW


@pytest.fixture
def seed_jobs(fake_client):
    """Fixture that stores job documents in the fake cluster."""

    def _seed(*documents):
        for doc in documents:
            fake_client.seed(JOBS, doc)
        return fake_client

    return _seed


@pytest.fixture
def minutes_ago():
    """Fixture returning a helper for timestamps relative to NOW."""
    return lambda minutes, seconds=0: NOW - timedelta(minutes=minutes, seconds=seconds)


# Markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
