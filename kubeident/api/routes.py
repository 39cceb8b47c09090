"""REST routes: resolve, health."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from kubeident.api.schemas import BundleModel, HealthResponse, ResolveRequest, ResolveResponse
from kubeident.models.attributes import ResolutionRequest
from kubeident.models.workloads import CacheState

router = APIRouter()


@router.post("/resolve", response_model=ResolveResponse)
def resolve(body: ResolveRequest, request: Request) -> ResolveResponse:
    """Resolve the source, destination and origin references of one transaction."""
    resolver = request.app.state.resolver
    result = resolver.resolve(ResolutionRequest(**body.model_dump()))
    return ResolveResponse(
        source=BundleModel.from_bundle(result.source),
        destination=BundleModel.from_bundle(result.destination),
        origin=BundleModel.from_bundle(result.origin),
    )


@router.get("/health", response_model=HealthResponse)
def health(request: Request) -> JSONResponse:
    """Report cache state; 503 until the initial listing has been applied."""
    cache = request.app.state.resolver.cache
    state = cache.state
    body = HealthResponse(
        status="ok" if state == CacheState.SYNCED else "unavailable",
        cache_state=str(state),
        workloads=len(cache),
        resource_version=cache.resource_version,
    )
    status_code = 200 if state == CacheState.SYNCED else 503
    return JSONResponse(status_code=status_code, content=body.model_dump())
