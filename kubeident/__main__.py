"""Entry point for `python -m kubeident`.

Usage:
    python -m kubeident
    uv run python -m kubeident
"""

from __future__ import annotations

from kubeident.app import run

run()
