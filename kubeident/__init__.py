"""kubeident: workload-identity resolution backed by a watched pod cache."""

from kubeident.cache.workload_cache import SyncTimeout, WorkloadCache
from kubeident.cluster.client import ClientBuildFailure
from kubeident.config import ConfigValidationError
from kubeident.resolver.builder import ResolverBuilder
from kubeident.resolver.identity import IdentityResolver

__version__ = "0.3.0"

__all__ = [
    "ClientBuildFailure",
    "ConfigValidationError",
    "IdentityResolver",
    "ResolverBuilder",
    "SyncTimeout",
    "WorkloadCache",
    "__version__",
]
