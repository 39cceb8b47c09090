"""Workload (pod) cache data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class CacheState(StrEnum):
    """Workload cache synchronization state."""

    UNSYNCED = "unsynced"
    SYNCED = "synced"
    STOPPED = "stopped"


class WatchEventType(StrEnum):
    """Kind of change delivered by the workload feed."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"


@dataclass(frozen=True)
class WorkloadRecord:
    """One observed workload instance (pod).

    Immutable: the cache replaces a record wholesale on every update, so a
    reader holding a record never observes a mix of old and new fields.
    """

    namespace: str
    name: str
    labels: dict[str, str] = field(default_factory=dict)
    host_ip: str = ""
    pod_ip: str = ""
    service_account_name: str = ""

    @property
    def key(self) -> tuple[str, str]:
        """Return the unique (namespace, name) key for this record."""
        return (self.namespace, self.name)


@dataclass(frozen=True)
class WorkloadEvent:
    """A single change from the workload feed, applied in received order."""

    type: WatchEventType
    record: WorkloadRecord | None = None
    resource_version: str = ""
