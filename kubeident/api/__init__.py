"""REST API for kubeident (FastAPI)."""

from kubeident.api.app import create_app

__all__ = ["create_app"]
