"""
Health check endpoints.
"""

from fastapi import APIRouter

from app.core.config import settings

router = APIRouter()


@router.get("")
async def health_check() -> dict:
    """Health check básico."""
    return {
        "status": "healthy",
        "version": settings.VERSION,
    }


@router.get("/ready")
async def readiness_check() -> dict:
    """
    Readiness check.

    Informa quais integrações estão configuradas, sem chamá-las.
    """
    return {
        "status": "ready",
        "checks": {
            "record_store": "ok" if settings.SUPABASE_SERVICE_ROLE_KEY else "not_configured",
            "identity_provider": settings.IDENTITY_PROVIDER,
        },
    }
