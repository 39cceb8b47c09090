"""Configuration loading from environment variables, and resolver config validation."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from kubeident.models.config import APIConfig, KubeIdentConfig, LogConfig, ResolverConfig

_DNS_LABEL = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")


@dataclass(frozen=True)
class ConfigViolation:
    """A single violated configuration constraint."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ConfigValidationError(ValueError):
    """Raised when a ResolverConfig violates one or more constraints.

    Every violation is collected before raising, so callers see all problems
    in a single pass. ``violations`` is never empty.
    """

    def __init__(self, violations: list[ConfigViolation]) -> None:
        if not violations:
            raise ValueError("ConfigValidationError requires at least one violation")
        self.violations = list(violations)
        super().__init__(f"{len(self.violations)} config error(s): " + "; ".join(str(v) for v in self.violations))


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEIDENT_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    return float(_env(key, str(default)))


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def is_dns_domain(value: str) -> bool:
    """Return True if *value* is a dot-separated DNS domain of two or more labels."""
    if not value or value != value.strip() or any(ch.isspace() for ch in value):
        return False
    labels = value.lower().split(".")
    if len(labels) < 2:
        return False
    return all(_DNS_LABEL.match(label) for label in labels)


def validate_resolver_config(config: ResolverConfig) -> None:
    """Check *config*, raising ConfigValidationError listing every violation."""
    violations: list[ConfigViolation] = []

    if not config.pod_label_for_service:
        violations.append(ConfigViolation("pod_label_for_service", "field must be populated"))
    if not config.pod_label_for_gateway_service:
        violations.append(ConfigViolation("pod_label_for_gateway_service", "field must be populated"))
    if not config.cluster_domain_name:
        violations.append(ConfigViolation("cluster_domain_name", "field must be populated"))
    elif not is_dns_domain(config.cluster_domain_name):
        violations.append(
            ConfigViolation(
                "cluster_domain_name",
                f"'{config.cluster_domain_name}' is not a valid DNS domain",
            )
        )
    if config.cache_sync_timeout <= 0:
        violations.append(ConfigViolation("cache_sync_timeout", "must be strictly positive"))

    if violations:
        raise ConfigValidationError(violations)


def load_config() -> KubeIdentConfig:
    """Load configuration from KUBEIDENT_* environment variables."""
    return KubeIdentConfig(
        resolver=ResolverConfig(
            cluster_domain_name=_env("CLUSTER_DOMAIN_NAME", "cluster.local"),
            pod_label_for_service=_env("POD_LABEL_FOR_SERVICE", "app"),
            pod_label_for_gateway_service=_env("POD_LABEL_FOR_GATEWAY_SERVICE", "istio"),
            cache_sync_timeout=_env_float("CACHE_SYNC_TIMEOUT", 30.0),
            lookup_ingress_source_and_origin_values=_env_bool("LOOKUP_INGRESS_SOURCE_AND_ORIGIN_VALUES", False),
            kubeconfig_path=_env("KUBECONFIG_PATH", ""),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_env("LOG_FORMAT", "json"),
        ),
    )
