"""Cluster access for kubeident.

The workload cache depends only on the ClusterClient protocol; the
kubernetes-asyncio implementation and its factory live here so tests can
substitute a fake client without touching a real cluster.
"""

from kubeident.cluster.client import (
    ClientBuildFailure,
    ClientFactory,
    ClusterClient,
    KubernetesClusterClient,
    WatchExpired,
    obtain_cluster_client,
    pod_to_record,
    resolve_kubeconfig_path,
)

__all__ = [
    "ClientBuildFailure",
    "ClientFactory",
    "ClusterClient",
    "KubernetesClusterClient",
    "WatchExpired",
    "obtain_cluster_client",
    "pod_to_record",
    "resolve_kubeconfig_path",
]
