"""Core data structures for kubeident."""

from kubeident.models.attributes import (
    AttributeBundle,
    ResolutionRequest,
    ResolutionResponse,
)
from kubeident.models.config import APIConfig, KubeIdentConfig, LogConfig, ResolverConfig
from kubeident.models.workloads import (
    CacheState,
    WatchEventType,
    WorkloadEvent,
    WorkloadRecord,
)

__all__ = [
    "APIConfig",
    "AttributeBundle",
    "CacheState",
    "KubeIdentConfig",
    "LogConfig",
    "ResolutionRequest",
    "ResolutionResponse",
    "ResolverConfig",
    "WatchEventType",
    "WorkloadEvent",
    "WorkloadRecord",
]
