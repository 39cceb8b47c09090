"""Shared helpers for kubeident unit tests."""

from __future__ import annotations


class IdleClusterClient:
    """ClusterClient for caches populated directly through ``replace``/``apply``."""

    async def list_workloads(self):
        raise AssertionError("unit tests never start the sync task")

    def watch_workloads(self, resource_version: str):
        raise AssertionError("unit tests never start the sync task")

    async def close(self) -> None:
        pass
