"""Unit tests for workload reference parsing and service-label selection."""

from __future__ import annotations

from ipaddress import ip_address

import pytest

from kubeident.cache.workload_cache import WorkloadCache
from kubeident.models.attributes import AttributeBundle, ResolutionRequest
from kubeident.models.config import ResolverConfig
from kubeident.models.workloads import WorkloadRecord
from kubeident.resolver import identity
from kubeident.resolver.identity import MALFORMED, IdentityResolver, is_gateway, parse_uid

from .conftest import IdleClusterClient


def _resolver(records: list[WorkloadRecord], **config) -> IdentityResolver:
    cache = WorkloadCache(IdleClusterClient())
    cache.replace(records)
    return IdentityResolver(cache, ResolverConfig(**config))


class TestParseUid:
    @pytest.mark.parametrize(
        ("uid", "want"),
        [
            ("kubernetes://test-pod.testns", ("testns", "test-pod")),
            ("test-pod.testns", ("testns", "test-pod")),
            ("testns/test-pod", ("testns", "test-pod")),
            ("kubernetes://testns/test-pod", ("testns", "test-pod")),
            (" kubernetes://a.b ", ("b", "a")),
        ],
    )
    def test_workload_references(self, uid: str, want: tuple[str, str]) -> None:
        assert parse_uid(uid) == want

    @pytest.mark.parametrize(
        ("uid", "want"),
        [("10.1.1.1", "10.1.1.1"), ("2001:db8:0::1", "2001:db8::1")],
    )
    def test_ip_literals(self, uid: str, want: str) -> None:
        assert parse_uid(uid) == want

    @pytest.mark.parametrize(
        "uid",
        [
            "kubernetes://",
            "kubernetes://no-namespace",
            "kubernetes://a.b.c",
            "kubernetes://.ns",
            "kubernetes://name.",
            "a/b/c",
            "/name",
            "0.0.0.0",
        ],
    )
    def test_malformed(self, uid: str) -> None:
        assert parse_uid(uid) is MALFORMED


class TestServiceName:
    def test_service_label_wins(self) -> None:
        record = WorkloadRecord("ns", "p", {"app": "web", "istio": "ingress"})
        assert _resolver([record]).service_name(record) == "web.ns.svc.cluster.local"

    def test_gateway_label_is_fallback(self) -> None:
        record = WorkloadRecord("istio-system", "gw", {"istio": "ingress"})
        assert _resolver([record]).service_name(record) == "ingress.istio-system.svc.cluster.local"

    def test_present_but_empty_service_label_has_no_fallback(self) -> None:
        record = WorkloadRecord("ns", "p", {"app": "", "istio": "ingress"})
        assert _resolver([record]).service_name(record) == ""

    def test_no_labels(self) -> None:
        record = WorkloadRecord("ns", "p", {})
        assert _resolver([record]).service_name(record) == ""

    def test_configured_labels_and_domain(self) -> None:
        record = WorkloadRecord("shop", "p", {"svc": "cart"})
        resolver = _resolver([record], pod_label_for_service="svc", cluster_domain_name="corp.example")
        assert resolver.service_name(record) == "cart.shop.svc.corp.example"


class TestBundle:
    def test_bundle_fields(self) -> None:
        record = WorkloadRecord("ns", "p", {"app": "web"}, host_ip="10.0.0.1", pod_ip="10.1.0.1", service_account_name="sa")
        bundle = _resolver([record]).bundle_for(record)
        assert bundle == AttributeBundle(
            labels={"app": "web"},
            namespace="ns",
            pod_name="p",
            pod_ip=ip_address("10.1.0.1"),
            host_ip=ip_address("10.0.0.1"),
            service="web.ns.svc.cluster.local",
            service_account_name="sa",
        )

    def test_missing_addresses_are_none(self) -> None:
        record = WorkloadRecord("ns", "p", {"app": "web"})
        bundle = _resolver([record]).bundle_for(record)
        assert bundle.pod_ip is None
        assert bundle.host_ip is None
        assert not bundle.is_empty

    @pytest.mark.parametrize("value", ["ingress", "ingressgateway", ""])
    def test_gateway_is_label_presence(self, value: str) -> None:
        assert is_gateway(AttributeBundle(labels={"istio": value}))

    def test_not_gateway_without_label(self) -> None:
        assert not is_gateway(AttributeBundle(labels={"app": "istio"}))
        assert not is_gateway(AttributeBundle())


class TestResolve:
    def test_empty_request_gives_empty_response(self) -> None:
        response = _resolver([]).resolve(ResolutionRequest())
        assert response.source.is_empty
        assert response.destination.is_empty
        assert response.origin.is_empty

    def test_gateway_flag_enables_source_lookup(self) -> None:
        records = [
            WorkloadRecord("istio-system", "ingress", {"istio": "ingress"}),
            WorkloadRecord("ns", "client", {"app": "client"}, pod_ip="10.2.0.1"),
        ]
        request = ResolutionRequest(source_ip="10.2.0.1", destination_uid="kubernetes://ingress.istio-system")

        assert _resolver(records).resolve(request).source.is_empty
        enabled = _resolver(records, lookup_ingress_source_and_origin_values=True)
        assert enabled.resolve(request).source.pod_name == "client"

    def test_any_gateway_label_value_skips_source(self) -> None:
        records = [
            WorkloadRecord("istio-system", "gw", {"istio": "ingressgateway"}),
            WorkloadRecord("ns", "client", {"app": "client"}, pod_ip="10.2.0.1"),
        ]
        request = ResolutionRequest(
            source_ip="10.2.0.1",
            destination_uid="istio-system/gw",
            origin_uid="kubernetes://client.ns",
        )

        response = _resolver(records).resolve(request)
        assert response.destination.pod_name == "gw"
        assert response.source.is_empty
        assert response.origin.is_empty

    def test_uid_parsed_once_per_side(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[str] = []

        def counting_parse(uid: str):
            calls.append(uid)
            return parse_uid(uid)

        monkeypatch.setattr(identity, "parse_uid", counting_parse)
        record = WorkloadRecord("ns", "client", {"app": "client"})
        response = _resolver([record]).resolve(ResolutionRequest(source_uid="kubernetes://client.ns"))

        assert response.source.pod_name == "client"
        assert calls == ["kubernetes://client.ns"]
