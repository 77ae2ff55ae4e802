from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.maternity.api.errors import register_exception_handlers
from src.maternity.api.v1.routes_system import router as system_router_v1
from src.maternity.api.v1.routes_patients import router as patients_router_v1
from src.maternity.api.v1.routes_links import router as links_router_v1
from src.maternity.api.v1.routes_availability import router as availability_router_v1
from src.maternity.api.v1.routes_appointments import router as appointments_router_v1
from src.maternity.api.v1.routes_prescriptions import router as prescriptions_router_v1
from src.maternity.api.v1.routes_notes import router as notes_router_v1
from src.maternity.api.v1.routes_recommendations import router as recommendations_router_v1
from src.maternity.api.v1.routes_records import router as records_router_v1
from src.maternity.api.v1.routes_referrals import router as referrals_router_v1
from src.maternity.api.v1.routes_tasks import router as tasks_router_v1
from src.maternity.api.v1.routes_messaging import router as messaging_router_v1
from src.maternity.api.v1.routes_alerts import router as alerts_router_v1
from src.maternity.api.v1.routes_institutions import router as institutions_router_v1
from src.maternity.api.v1.routes_analytics import router as analytics_router_v1
from src.maternity.api.v1.routes_providers import router as providers_router_v1
from src.maternity.config import settings
from src.maternity.infra.db.bootstrap import init_sql_repositories

app = FastAPI(title="Maternal Care API")


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    When USE_SQL_REPOS is enabled and a DATABASE_URL is configured, every
    document collection is switched to the SQL-backed repository. In tests
    and local development this is a no-op and the in-memory store is used.
    """

    init_sql_repositories()


# CORS configuration; permissive by default for development. Tighten via
# CORS_ALLOW_ORIGINS in production deployments.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness check for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(patients_router_v1, prefix="/api/v1")
app.include_router(links_router_v1, prefix="/api/v1")
app.include_router(availability_router_v1, prefix="/api/v1")
app.include_router(appointments_router_v1, prefix="/api/v1")
app.include_router(prescriptions_router_v1, prefix="/api/v1")
app.include_router(notes_router_v1, prefix="/api/v1")
app.include_router(recommendations_router_v1, prefix="/api/v1")
app.include_router(records_router_v1, prefix="/api/v1")
app.include_router(referrals_router_v1, prefix="/api/v1")
app.include_router(tasks_router_v1, prefix="/api/v1")
app.include_router(messaging_router_v1, prefix="/api/v1")
app.include_router(alerts_router_v1, prefix="/api/v1")
app.include_router(institutions_router_v1, prefix="/api/v1")
app.include_router(analytics_router_v1, prefix="/api/v1")
app.include_router(providers_router_v1, prefix="/api/v1")
