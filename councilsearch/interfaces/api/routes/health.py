"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter

from councilsearch import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "councilsearch"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "CouncilSearch API",
        "version": __version__,
        "description": "Hybrid search over council meeting subjects and index sync safety",
        "docs": "/docs",
    }
