"""Workload identity resolution.

IdentityResolver turns a ResolutionRequest into one AttributeBundle per side
(source, destination, origin) using only the in-memory WorkloadCache, so
``resolve`` never blocks on I/O and is safe to call from any thread.

Resolution is best-effort: a reference that is malformed, unknown, or points
outside the mesh yields an empty bundle rather than an error.
"""

from __future__ import annotations

import ipaddress
from typing import TYPE_CHECKING

import structlog

from kubeident.models.attributes import AttributeBundle, ResolutionRequest, ResolutionResponse
from kubeident.observability.metrics import resolutions_total
from kubeident.resolver.canonical import canonicalize

if TYPE_CHECKING:
    from kubeident.cache.workload_cache import WorkloadCache
    from kubeident.cluster.client import ClusterClient
    from kubeident.models.config import ResolverConfig
    from kubeident.models.workloads import WorkloadRecord

_log = structlog.get_logger(component="resolver.identity")

UID_SCHEME = "kubernetes://"

# Destination workloads carrying this label, whatever its value, are mesh gateways.
GATEWAY_LABEL = "istio"


class _Malformed:
    """Sentinel for a reference that cannot name a workload."""


MALFORMED = _Malformed()


def parse_uid(uid: str) -> tuple[str, str] | str | _Malformed:
    """Parse a workload reference.

    Returns ``(namespace, name)`` for ``kubernetes://name.namespace`` or
    ``namespace/name``, the normalized address for an IP literal, and
    MALFORMED for anything else.
    """
    ref = uid.strip()
    ip = _parse_ip(ref)
    if ip is not None:
        return ip

    ref = ref.removeprefix(UID_SCHEME)
    if "/" in ref:
        parts = ref.split("/")
        if len(parts) == 2 and all(parts):
            return (parts[0], parts[1])
        return MALFORMED

    parts = ref.split(".")
    if len(parts) == 2 and all(parts):
        return (parts[1], parts[0])
    return MALFORMED


def _parse_ip(value: str) -> str | None:
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return None
    if address.is_unspecified:
        return None
    return address.compressed


def is_gateway(bundle: AttributeBundle) -> bool:
    return GATEWAY_LABEL in bundle.labels


class IdentityResolver:
    """Resolves request references against a synced WorkloadCache.

    Args:
        cache:  Started WorkloadCache.
        config: Validated ResolverConfig.
        client: ClusterClient feeding *cache*; closed by ``close()``.
    """

    def __init__(
        self,
        cache: WorkloadCache,
        config: ResolverConfig,
        client: ClusterClient | None = None,
    ) -> None:
        self._cache = cache
        self._config = config
        self._client = client

    @property
    def cache(self) -> WorkloadCache:
        return self._cache

    @property
    def config(self) -> ResolverConfig:
        return self._config

    def resolve(self, request: ResolutionRequest) -> ResolutionResponse:
        """Resolve every side present in *request*.

        Source and origin are skipped when the destination is an ingress
        gateway, unless ``lookup_ingress_source_and_origin_values`` is set.
        """
        destination = self._resolve_side("destination", request.destination_uid, request.destination_ip)

        if is_gateway(destination) and not self._config.lookup_ingress_source_and_origin_values:
            for side, uid, ip in (
                ("source", request.source_uid, request.source_ip),
                ("origin", request.origin_uid, request.origin_ip),
            ):
                if uid or ip:
                    resolutions_total.labels(side=side, outcome="skipped").inc()
            return ResolutionResponse(destination=destination)

        return ResolutionResponse(
            source=self._resolve_side("source", request.source_uid, request.source_ip),
            destination=destination,
            origin=self._resolve_side("origin", request.origin_uid, request.origin_ip),
        )

    def lookup(self, uid: str = "", ip: str = "") -> WorkloadRecord | None:
        """Find the workload for one side; the uid wins over the IP."""
        if uid:
            return self._lookup_ref(parse_uid(uid))
        if ip:
            address = _parse_ip(ip)
            if address is not None:
                return self._cache.get_by_ip(address)
        return None

    def _lookup_ref(self, ref: tuple[str, str] | str | _Malformed) -> WorkloadRecord | None:
        if isinstance(ref, _Malformed):
            return None
        if isinstance(ref, tuple):
            return self._cache.get(*ref)
        return self._cache.get_by_ip(ref)

    def bundle_for(self, record: WorkloadRecord) -> AttributeBundle:
        """Build the attribute bundle for a cached workload."""
        return AttributeBundle(
            labels=dict(record.labels),
            namespace=record.namespace,
            pod_name=record.name,
            pod_ip=ipaddress.ip_address(record.pod_ip) if _parse_ip(record.pod_ip) else None,
            host_ip=ipaddress.ip_address(record.host_ip) if _parse_ip(record.host_ip) else None,
            service=self.service_name(record),
            service_account_name=record.service_account_name,
        )

    def service_name(self, record: WorkloadRecord) -> str:
        """Canonical service name from the service label, else the gateway service label."""
        labels = record.labels
        cfg = self._config
        if cfg.pod_label_for_service in labels:
            value = labels[cfg.pod_label_for_service]
        elif cfg.pod_label_for_gateway_service in labels:
            value = labels[cfg.pod_label_for_gateway_service]
        else:
            return ""
        return canonicalize(value, record.namespace, cfg.cluster_domain_name)

    def _resolve_side(self, side: str, uid: str, ip: str) -> AttributeBundle:
        if not uid and not ip:
            return AttributeBundle()
        if uid:
            ref = parse_uid(uid)
            if isinstance(ref, _Malformed):
                resolutions_total.labels(side=side, outcome="malformed").inc()
                _log.debug("reference_malformed", side=side, uid=uid)
                return AttributeBundle()
            record = self._lookup_ref(ref)
        else:
            record = self.lookup(ip=ip)
        if record is None:
            resolutions_total.labels(side=side, outcome="not_found").inc()
            _log.debug("workload_not_found", side=side, uid=uid, ip=ip)
            return AttributeBundle()

        resolutions_total.labels(side=side, outcome="resolved").inc()
        return self.bundle_for(record)

    async def close(self) -> None:
        """Stop the cache and release the cluster client. Idempotent."""
        await self._cache.stop()
        client, self._client = self._client, None
        if client is not None:
            await client.close()
