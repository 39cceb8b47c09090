"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ResolverConfig:
    """Workload attribute resolution configuration."""

    cluster_domain_name: str = "cluster.local"
    pod_label_for_service: str = "app"
    pod_label_for_gateway_service: str = "istio"
    cache_sync_timeout: float = 30.0
    lookup_ingress_source_and_origin_values: bool = False
    kubeconfig_path: str = ""

    @classmethod
    def empty(cls) -> ResolverConfig:
        """Return a config with every field unset, as a caller supplying nothing would."""
        return cls(
            cluster_domain_name="",
            pod_label_for_service="",
            pod_label_for_gateway_service="",
            cache_sync_timeout=0.0,
            lookup_ingress_source_and_origin_values=False,
            kubeconfig_path="",
        )


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class KubeIdentConfig:
    """Top-level kubeident configuration."""

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
