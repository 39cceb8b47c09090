"""Service-name canonicalization.

Turns the value of a workload's service label into a fully-qualified
cluster DNS name. The rules are order-sensitive:

1. empty value or an IP literal     -> no service
2. strip a ``:port`` suffix; nothing left, a non-DNS character,
   an empty label, or an IP literal  -> no service
3. already under the cluster domain  -> unchanged
4. contains ``.svc.cluster``         -> truncate at ``.svc``, append ``.svc.<domain>``
5. contains a ``.``                  -> append ``.svc.<domain>``
6. bare name                         -> ``<name>.<namespace>.svc.<domain>``

"No service" is the empty string, never an exception: a label that cannot
denote a service is common and must not fail resolution.
"""

from __future__ import annotations

import ipaddress
import re

_DNS_CHARS = re.compile(r"^[A-Za-z0-9.-]+$")
_PARTIAL_CLUSTER_DOMAIN = ".svc.cluster"


def _is_ip_literal(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def _is_fully_qualified(name: str, cluster_domain: str) -> bool:
    suffix = "." + cluster_domain
    # "x.ns.svc.cluster.local.solar" sits under a domain extending the suffix.
    return name.endswith(suffix) or (suffix + ".") in name


def canonicalize(value: str, namespace: str, cluster_domain: str) -> str:
    """Return the canonical service name for *value*, or "" if it names no service."""
    if not value or _is_ip_literal(value):
        return ""

    name = value.split(":", 1)[0]
    if not name or not _DNS_CHARS.match(name) or _is_ip_literal(name):
        return ""
    if not all(name.split(".")):
        return ""

    if _is_fully_qualified(name, cluster_domain):
        return name

    if _PARTIAL_CLUSTER_DOMAIN in name:
        head = name[: name.index(_PARTIAL_CLUSTER_DOMAIN)]
        return f"{head}.svc.{cluster_domain}"

    if "." in name:
        return f"{name}.svc.{cluster_domain}"

    return f"{name}.{namespace}.svc.{cluster_domain}"
