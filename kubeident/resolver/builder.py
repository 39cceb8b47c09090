"""Resolver construction.

ResolverBuilder owns the configuration lifecycle of an IdentityResolver:

    builder = ResolverBuilder(client_factory=obtain_cluster_client)
    builder.set_config(config)
    builder.validate()           # ConfigValidationError, all violations at once
    resolver = await builder.build()   # ClientBuildFailure | SyncTimeout

The client factory is injected so tests can hand in a fake cluster.
"""

from __future__ import annotations

import copy

import structlog

from kubeident.cache.workload_cache import WorkloadCache
from kubeident.cluster.client import (
    ClientBuildFailure,
    ClientFactory,
    ClusterClient,
    obtain_cluster_client,
    resolve_kubeconfig_path,
)
from kubeident.config import validate_resolver_config
from kubeident.models.config import ResolverConfig
from kubeident.resolver.identity import IdentityResolver

_log = structlog.get_logger(component="resolver.builder")


class ResolverBuilder:
    """Validates a ResolverConfig and builds ready-to-use resolvers.

    Args:
        client_factory: ``async (config_path, env) -> ClusterClient``.
                        Defaults to the kubernetes-asyncio factory.
    """

    def __init__(self, client_factory: ClientFactory = obtain_cluster_client) -> None:
        self._client_factory = client_factory
        self._config = ResolverConfig()

    @property
    def config(self) -> ResolverConfig:
        return self._config

    def set_config(self, config: ResolverConfig) -> None:
        # Copied so later mutation by the caller cannot leak into built resolvers.
        self._config = copy.deepcopy(config)

    def validate(self) -> None:
        validate_resolver_config(self._config)

    async def build(self) -> IdentityResolver:
        """Build a resolver whose cache has completed its initial sync."""
        self.validate()
        config = copy.deepcopy(self._config)
        config_path = resolve_kubeconfig_path(config)
        log = _log.bind(kubeconfig=config_path or "<default>")

        client = await self._build_client(config_path, log)

        cache = WorkloadCache(client)
        try:
            await cache.start(config.cache_sync_timeout)
        except BaseException:
            await client.close()
            raise

        log.info("resolver_built", workloads=len(cache))
        return IdentityResolver(cache, config, client=client)

    async def _build_client(self, config_path: str, log: structlog.stdlib.BoundLogger) -> ClusterClient:
        try:
            return await self._client_factory(config_path, log)
        except Exception as exc:
            log.error("cluster_client_build_failed", error=str(exc))
            raise ClientBuildFailure(config_path, exc) from exc


async def build_resolver(
    config: ResolverConfig,
    client_factory: ClientFactory = obtain_cluster_client,
) -> IdentityResolver:
    """One-shot convenience wrapper around ResolverBuilder."""
    builder = ResolverBuilder(client_factory)
    builder.set_config(config)
    return await builder.build()
