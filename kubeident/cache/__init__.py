"""Cache layer for kubeident.

Provides the in-memory workload cache backed by a Kubernetes pod list + watch
feed. Readers get immutable WorkloadRecords; only the sync task writes.

Submodules:
    workload_cache  -- Indexed pod cache with UNSYNCED/SYNCED/STOPPED states.
"""

from kubeident.cache.workload_cache import SyncTimeout, WorkloadCache, normalize_ip

__all__ = ["SyncTimeout", "WorkloadCache", "normalize_ip"]
