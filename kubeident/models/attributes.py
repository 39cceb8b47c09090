"""Resolution request and attribute bundle data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv6Address

IPAddress = IPv4Address | IPv6Address


@dataclass(frozen=True)
class ResolutionRequest:
    """References to the endpoints of one transaction.

    Each side may carry a structured identifier (``kubernetes://name.namespace``),
    an IP address, both, or neither. The identifier wins when both are set.
    """

    source_uid: str = ""
    source_ip: str = ""
    destination_uid: str = ""
    destination_ip: str = ""
    origin_uid: str = ""
    origin_ip: str = ""


@dataclass(frozen=True)
class AttributeBundle:
    """Attributes describing one resolved workload.

    Every field is empty (or None) when the corresponding workload data is
    unavailable; an entirely empty bundle means "no workload found".
    """

    labels: dict[str, str] = field(default_factory=dict)
    namespace: str = ""
    pod_name: str = ""
    pod_ip: IPAddress | None = None
    host_ip: IPAddress | None = None
    service: str = ""
    service_account_name: str = ""

    @property
    def is_empty(self) -> bool:
        return self == _EMPTY_BUNDLE


_EMPTY_BUNDLE = AttributeBundle()


@dataclass(frozen=True)
class ResolutionResponse:
    """Merged output for one request: a bundle per side."""

    source: AttributeBundle = field(default_factory=AttributeBundle)
    destination: AttributeBundle = field(default_factory=AttributeBundle)
    origin: AttributeBundle = field(default_factory=AttributeBundle)
