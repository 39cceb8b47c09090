"""Pydantic request/response models for the REST API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from kubeident.models.attributes import AttributeBundle


class ResolveRequest(BaseModel):
    """Body of ``POST /api/v1/resolve``. Every field is optional."""

    source_uid: str = Field(default="", max_length=512)
    source_ip: str = Field(default="", max_length=64)
    destination_uid: str = Field(default="", max_length=512)
    destination_ip: str = Field(default="", max_length=64)
    origin_uid: str = Field(default="", max_length=512)
    origin_ip: str = Field(default="", max_length=64)


class BundleModel(BaseModel):
    labels: dict[str, str] = Field(default_factory=dict)
    namespace: str = ""
    pod_name: str = ""
    pod_ip: str = ""
    host_ip: str = ""
    service: str = ""
    service_account_name: str = ""

    @classmethod
    def from_bundle(cls, bundle: AttributeBundle) -> BundleModel:
        return cls(
            labels=dict(bundle.labels),
            namespace=bundle.namespace,
            pod_name=bundle.pod_name,
            pod_ip=str(bundle.pod_ip) if bundle.pod_ip is not None else "",
            host_ip=str(bundle.host_ip) if bundle.host_ip is not None else "",
            service=bundle.service,
            service_account_name=bundle.service_account_name,
        )


class ResolveResponse(BaseModel):
    source: BundleModel
    destination: BundleModel
    origin: BundleModel


class HealthResponse(BaseModel):
    status: str
    cache_state: str
    workloads: int
    resource_version: str = ""


class ErrorResponse(BaseModel):
    error: str
    detail: str
