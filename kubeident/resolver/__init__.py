"""Workload identity resolution.

Submodules:
    canonical  -- Service-label canonicalization into cluster DNS names.
    identity   -- IdentityResolver: request references -> attribute bundles.
    builder    -- ResolverBuilder: config validation, client and cache startup.
"""

from kubeident.resolver.builder import ResolverBuilder, build_resolver
from kubeident.resolver.canonical import canonicalize
from kubeident.resolver.identity import IdentityResolver, parse_uid

__all__ = [
    "IdentityResolver",
    "ResolverBuilder",
    "build_resolver",
    "canonicalize",
    "parse_uid",
]
