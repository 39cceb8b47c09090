"""In-memory workload (pod) cache kept current by a list + watch feed.

The cache holds two indices over immutable WorkloadRecords:

    primary   (namespace, name) -> record
    secondary pod IP            -> record

Both are guarded by one lock, held only for a single read or a single event
application. Lookups never touch the network; the background sync task is
the only writer once the cache is started.

State machine: UNSYNCED -> SYNCED -> STOPPED.
"""

from __future__ import annotations

import asyncio
import ipaddress
import threading
from collections.abc import Iterable

import structlog

from kubeident.cluster.client import ClusterClient, WatchExpired
from kubeident.models.workloads import CacheState, WatchEventType, WorkloadEvent, WorkloadRecord
from kubeident.observability.metrics import (
    cache_events_total,
    cache_sync_restarts_total,
    cache_synced,
    cache_workloads,
)

_log = structlog.get_logger(component="cache.workload_cache")

_INITIAL_BACKOFF_SECONDS = 0.5
_MAX_BACKOFF_SECONDS = 30.0


class SyncTimeout(TimeoutError):
    """Raised when the initial workload listing is not applied in time."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"workload cache did not sync within {timeout}s")
        self.timeout = timeout


def normalize_ip(value: str) -> str | None:
    """Return the canonical text form of an IP address, or None if invalid."""
    try:
        return ipaddress.ip_address(value.strip()).compressed
    except ValueError:
        return None


class WorkloadCache:
    """Indexed, thread-safe snapshot of every pod in the cluster."""

    def __init__(self, client: ClusterClient) -> None:
        self._client = client
        self._lock = threading.Lock()
        self._by_key: dict[tuple[str, str], WorkloadRecord] = {}
        self._by_ip: dict[str, WorkloadRecord] = {}

        self._state = CacheState.UNSYNCED
        self._synced = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._resource_version = ""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, timeout: float) -> None:
        """Start synchronization and wait for the first full listing.

        Raises SyncTimeout (after stopping the sync task) if the listing is
        not applied within *timeout* seconds.
        """
        if self._state == CacheState.STOPPED:
            raise RuntimeError("workload cache has been stopped")
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="workload-cache-sync")
        try:
            await asyncio.wait_for(self._synced.wait(), timeout=timeout)
        except TimeoutError as exc:
            _log.error("cache_sync_timeout", timeout=timeout)
            await self.stop()
            raise SyncTimeout(timeout) from exc
        _log.info("cache_synced", workloads=len(self), resource_version=self._resource_version)

    async def stop(self) -> None:
        """Stop the sync task. Safe to call more than once."""
        if self._state == CacheState.STOPPED:
            return
        self._state = CacheState.STOPPED
        cache_synced.set(0)
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        _log.info("cache_stopped")

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def resource_version(self) -> str:
        return self._resource_version

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, namespace: str, name: str) -> WorkloadRecord | None:
        with self._lock:
            return self._by_key.get((namespace, name))

    def get_by_ip(self, ip: str) -> WorkloadRecord | None:
        key = normalize_ip(ip)
        if key is None:
            return None
        with self._lock:
            return self._by_ip.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_key)

    # ------------------------------------------------------------------
    # Mutation (sync task only, plus tests)
    # ------------------------------------------------------------------

    def apply(self, event: WorkloadEvent) -> None:
        """Apply one feed event to both indices atomically."""
        if event.resource_version:
            self._resource_version = event.resource_version
        if event.type == WatchEventType.BOOKMARK or event.record is None:
            return

        record = event.record
        with self._lock:
            previous = self._by_key.get(record.key)
            if previous is not None:
                self._unindex_ip(previous)
            if event.type == WatchEventType.DELETED:
                self._by_key.pop(record.key, None)
            else:
                self._by_key[record.key] = record
                ip = normalize_ip(record.pod_ip) if record.pod_ip else None
                if ip is not None:
                    self._by_ip[ip] = record
            size = len(self._by_key)

        cache_events_total.labels(type=event.type.value).inc()
        cache_workloads.set(size)

    def replace(self, records: Iterable[WorkloadRecord], resource_version: str = "") -> None:
        """Atomically swap the cache contents for a full listing."""
        by_key: dict[tuple[str, str], WorkloadRecord] = {}
        by_ip: dict[str, WorkloadRecord] = {}
        for record in records:
            by_key[record.key] = record
            ip = normalize_ip(record.pod_ip) if record.pod_ip else None
            if ip is not None:
                by_ip[ip] = record
        with self._lock:
            self._by_key = by_key
            self._by_ip = by_ip
        if resource_version:
            self._resource_version = resource_version
        cache_workloads.set(len(by_key))

    def _unindex_ip(self, record: WorkloadRecord) -> None:
        # Caller holds the lock. Another record may have claimed the IP since.
        ip = normalize_ip(record.pod_ip) if record.pod_ip else None
        if ip is not None and self._by_ip.get(ip) is record:
            del self._by_ip[ip]

    # ------------------------------------------------------------------
    # Sync loop
    # ------------------------------------------------------------------

    def _mark_synced(self) -> None:
        if self._synced.is_set():
            return
        self._state = CacheState.SYNCED
        self._synced.set()
        cache_synced.set(1)

    async def _run(self) -> None:
        """List, then watch; relist on expiry, back off on errors."""
        backoff = _INITIAL_BACKOFF_SECONDS
        needs_list = True
        while self._state != CacheState.STOPPED:
            try:
                if needs_list:
                    records, resource_version = await self._client.list_workloads()
                    self.replace(records, resource_version)
                    self._mark_synced()
                    needs_list = False
                    _log.debug("cache_listed", workloads=len(self), resource_version=resource_version)

                delivered = 0
                async for event in self._client.watch_workloads(self._resource_version):
                    self.apply(event)
                    delivered += 1
                cache_sync_restarts_total.labels(reason="watch_closed").inc()
                if delivered:
                    backoff = _INITIAL_BACKOFF_SECONDS
                else:
                    # An empty watch must not turn into a busy loop.
                    await asyncio.sleep(backoff)
            except WatchExpired as exc:
                _log.info("cache_watch_expired", error=str(exc), resource_version=self._resource_version)
                cache_sync_restarts_total.labels(reason="expired").inc()
                needs_list = True
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                _log.warning("cache_sync_error", error=str(exc), retry_in=backoff)
                cache_sync_restarts_total.labels(reason="error").inc()
                needs_list = True
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, _MAX_BACKOFF_SECONDS)
