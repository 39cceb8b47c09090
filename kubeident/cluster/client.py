"""Cluster client: the pod list + watch feed consumed by the workload cache.

ClusterClient          -- Protocol the cache depends on (list, watch, close).
KubernetesClusterClient -- kubernetes-asyncio implementation over CoreV1Api.
obtain_cluster_client  -- Default client factory injected into ResolverBuilder.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from kubeident.models.workloads import WatchEventType, WorkloadEvent, WorkloadRecord

if TYPE_CHECKING:
    from kubeident.models.config import ResolverConfig

_log = structlog.get_logger(component="cluster.client")

KUBECONFIG_ENV = "KUBECONFIG"

_LIST_PAGE_SIZE = 500
_WATCH_TIMEOUT_SECONDS = 300
_HTTP_GONE = 410


class ClientBuildFailure(RuntimeError):
    """Raised when the cluster client factory cannot produce a client."""

    def __init__(self, config_path: str, cause: Exception) -> None:
        where = config_path or "<in-cluster/default>"
        super().__init__(f"could not build cluster client from {where}: {cause}")
        self.config_path = config_path
        self.cause = cause


class WatchExpired(Exception):
    """The watch resource version is too old; the caller must relist."""


class ClusterClient(Protocol):
    """Source of workload state: an initial listing followed by change events."""

    async def list_workloads(self) -> tuple[list[WorkloadRecord], str]:
        """Return every pod in the cluster and the listing's resource version."""
        ...

    def watch_workloads(self, resource_version: str) -> AsyncIterator[WorkloadEvent]:
        """Yield change events after *resource_version*, in server order.

        Raises WatchExpired when the server no longer holds that version.
        """
        ...

    async def close(self) -> None:
        ...


ClientFactory = Callable[[str, Any], Awaitable[ClusterClient]]


def resolve_kubeconfig_path(config: ResolverConfig) -> str:
    """$KUBECONFIG overrides the configured path."""
    return os.environ.get(KUBECONFIG_ENV) or config.kubeconfig_path


def _to_dict(value: Any) -> dict[str, str]:
    if not value:
        return {}
    return {str(k): str(v) for k, v in dict(value).items()}


def pod_to_record(pod: Any) -> WorkloadRecord | None:
    """Convert a kubernetes-asyncio V1Pod into a WorkloadRecord.

    Returns None for objects without a name (never stored).
    """
    metadata = getattr(pod, "metadata", None)
    if metadata is None or not getattr(metadata, "name", None):
        return None
    spec = getattr(pod, "spec", None)
    status = getattr(pod, "status", None)
    return WorkloadRecord(
        namespace=str(metadata.namespace or ""),
        name=str(metadata.name),
        labels=_to_dict(metadata.labels),
        host_ip=str(getattr(status, "host_ip", None) or ""),
        pod_ip=str(getattr(status, "pod_ip", None) or ""),
        service_account_name=str(getattr(spec, "service_account_name", None) or ""),
    )


def _raw_resource_version(raw: Any) -> str:
    if not isinstance(raw, dict):
        return ""
    return str(raw.get("metadata", {}).get("resourceVersion", "") or "")


class KubernetesClusterClient:
    """ClusterClient backed by a kubernetes-asyncio ApiClient."""

    def __init__(self, api_client: Any) -> None:
        from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

        self._api_client = api_client
        self._core = k8s_client.CoreV1Api(api_client)

    async def list_workloads(self) -> tuple[list[WorkloadRecord], str]:
        records: list[WorkloadRecord] = []
        continue_token: str | None = None
        resource_version = ""
        while True:
            kwargs: dict[str, Any] = {"limit": _LIST_PAGE_SIZE}
            if continue_token:
                kwargs["_continue"] = continue_token
            result = await self._core.list_pod_for_all_namespaces(**kwargs)
            for pod in result.items or []:
                record = pod_to_record(pod)
                if record is not None:
                    records.append(record)
            meta = result.metadata
            resource_version = str(getattr(meta, "resource_version", "") or "") if meta else ""
            continue_token = getattr(meta, "_continue", None) if meta else None
            if not continue_token:
                break
        _log.debug("pods_listed", count=len(records), resource_version=resource_version)
        return records, resource_version

    async def watch_workloads(self, resource_version: str) -> AsyncIterator[WorkloadEvent]:
        from kubernetes_asyncio import watch  # type: ignore[import-untyped]
        from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

        watcher = watch.Watch()
        try:
            stream = watcher.stream(
                self._core.list_pod_for_all_namespaces,
                resource_version=resource_version,
                timeout_seconds=_WATCH_TIMEOUT_SECONDS,
                allow_watch_bookmarks=True,
            )
            async for event in stream:
                event_type = str(event.get("type", ""))
                raw = event.get("raw_object")
                if event_type == "ERROR":
                    code = raw.get("code") if isinstance(raw, dict) else None
                    if code == _HTTP_GONE:
                        raise WatchExpired(str(raw.get("message", "")))
                    raise RuntimeError(f"watch error event: {raw}")
                if event_type == WatchEventType.BOOKMARK:
                    yield WorkloadEvent(
                        type=WatchEventType.BOOKMARK,
                        resource_version=_raw_resource_version(raw),
                    )
                    continue
                if event_type not in (WatchEventType.ADDED, WatchEventType.MODIFIED, WatchEventType.DELETED):
                    _log.debug("watch_event_ignored", type=event_type)
                    continue
                record = pod_to_record(event.get("object"))
                if record is None:
                    continue
                yield WorkloadEvent(
                    type=WatchEventType(event_type),
                    record=record,
                    resource_version=_raw_resource_version(raw),
                )
        except ApiException as exc:
            if exc.status == _HTTP_GONE:
                raise WatchExpired(str(exc.reason)) from exc
            raise
        finally:
            watcher.stop()

    async def close(self) -> None:
        await self._api_client.close()


async def obtain_cluster_client(config_path: str, env: Any) -> ClusterClient:
    """Default client factory.

    With no *config_path*, in-cluster service-account credentials are tried
    first and the default kubeconfig second; otherwise *config_path* is loaded.
    *env* is the bound logger of the caller.
    """
    from kubernetes_asyncio import client as k8s_client
    from kubernetes_asyncio import config as k8s_config

    configuration = k8s_client.Configuration()
    if config_path:
        await k8s_config.load_kube_config(config_file=config_path, client_configuration=configuration)
        env.info("cluster_client_configured", source="kubeconfig", path=config_path)
    else:
        try:
            k8s_config.load_incluster_config(client_configuration=configuration)
            env.info("cluster_client_configured", source="in_cluster")
        except k8s_config.ConfigException:
            await k8s_config.load_kube_config(client_configuration=configuration)
            env.info("cluster_client_configured", source="default_kubeconfig")

    return KubernetesClusterClient(k8s_client.ApiClient(configuration))
