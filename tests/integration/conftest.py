"""Shared fixtures for kubeident integration tests.

Provides a fake ClusterClient that serves a fixed pod listing and then
whatever events a test pushes into its watch queue, so resolver and cache
behaviour can be exercised end to end without a Kubernetes cluster.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest

from kubeident.models.config import ResolverConfig
from kubeident.models.workloads import WatchEventType, WorkloadEvent, WorkloadRecord
from kubeident.resolver.builder import ResolverBuilder
from kubeident.resolver.identity import IdentityResolver

# ---------------------------------------------------------------------------
# Fake cluster
# ---------------------------------------------------------------------------


class FakeClusterClient:
    """In-memory ClusterClient.

    ``list_workloads`` returns *records*; ``watch_workloads`` yields events
    put on ``events`` until a ``None`` sentinel closes the current watch.
    """

    def __init__(self, records: list[WorkloadRecord] | None = None, list_delay: float = 0.0) -> None:
        self.records = list(records or [])
        self.list_delay = list_delay
        self.events: asyncio.Queue[WorkloadEvent | None] = asyncio.Queue()
        self.list_calls = 0
        self.watch_versions: list[str] = []
        self.closed = False

    async def list_workloads(self) -> tuple[list[WorkloadRecord], str]:
        self.list_calls += 1
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        return list(self.records), str(self.list_calls)

    async def watch_workloads(self, resource_version: str) -> AsyncIterator[WorkloadEvent]:
        self.watch_versions.append(resource_version)
        while True:
            event = await self.events.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        self.closed = True

    async def push(self, event_type: WatchEventType, record: WorkloadRecord, resource_version: str = "") -> None:
        await self.events.put(WorkloadEvent(type=event_type, record=record, resource_version=resource_version))


class RecordingFactory:
    """Client factory that records the path and env it was called with."""

    def __init__(self, client: Any) -> None:
        self.client = client
        self.called_path: str | None = None
        self.called_env: Any = None
        self.calls = 0

    async def __call__(self, config_path: str, env: Any) -> Any:
        self.calls += 1
        self.called_path = config_path
        self.called_env = env
        return self.client


async def failing_factory(config_path: str, env: Any) -> Any:
    raise RuntimeError("can't build k8s client")


async def wait_for(predicate: Any, timeout: float = 2.0) -> None:
    """Poll *predicate* until it returns True, letting the sync task run."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Cluster contents
# ---------------------------------------------------------------------------


def mesh_workloads() -> list[WorkloadRecord]:
    """Pods covering every canonicalization and lookup path."""
    return [
        WorkloadRecord(
            namespace="testns",
            name="test-pod",
            labels={"app": "test", "something": ""},
            host_ip="10.1.1.10",
            pod_ip="10.10.10.1",
            service_account_name="test",
        ),
        WorkloadRecord(
            namespace="testns",
            name="pod-cluster",
            labels={"app": "alt-svc-with-cluster.testns.svc.cluster:8080"},
        ),
        WorkloadRecord(
            namespace="testns",
            name="long-pod",
            labels={"app": "long-svc.testns.svc.cluster.local.solar"},
        ),
        WorkloadRecord(namespace="testns", name="empty", labels={"app": ""}),
        WorkloadRecord(namespace="testns", name="alt-pod", labels={"app": "alt-svc.testns"}),
        WorkloadRecord(namespace="testns", name="bad-svc-pod", labels={"app": ":"}),
        WorkloadRecord(
            namespace="testns",
            name="ip-svc-pod",
            labels={"app": "ipAddr"},
            pod_ip="192.168.234.3",
        ),
        WorkloadRecord(namespace="istio-system", name="ingress", labels={"istio": "ingress"}),
        WorkloadRecord(namespace="testns", name="ipApp", labels={"app": "10.1.10.1"}),
    ]


@pytest.fixture()
def resolver_config() -> ResolverConfig:
    return ResolverConfig(cache_sync_timeout=2.0)


@pytest.fixture()
def fake_client() -> FakeClusterClient:
    return FakeClusterClient(mesh_workloads())


@pytest.fixture()
async def resolver(fake_client: FakeClusterClient, resolver_config: ResolverConfig) -> AsyncIterator[IdentityResolver]:
    """Resolver built through ResolverBuilder against the fake cluster."""
    builder = ResolverBuilder(client_factory=RecordingFactory(fake_client))
    builder.set_config(resolver_config)
    built = await builder.build()
    try:
        yield built
    finally:
        await built.close()


@pytest.fixture(autouse=True)
def _no_kubeconfig_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("KUBECONFIG", raising=False)
