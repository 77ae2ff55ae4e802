from fastapi import APIRouter

from src.maternity.config import settings

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint."""
    return {"status": "ok", "version": "v1"}


@router.get("/system/info")
async def system_info_v1() -> dict:
    """Non-sensitive runtime configuration, useful when debugging deployments."""

    return {
        "storage": "sql" if settings.use_sql_repos and settings.database_url else "memory",
        "risk_llm_backend": settings.risk_llm_backend,
        "auth_enabled": settings.enable_api_auth,
        "slot_duration_minutes": settings.slot_duration_minutes,
        "link_code_ttl_hours": settings.link_code_ttl_hours,
    }
