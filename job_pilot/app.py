from contextlib import asynccontextmanager

from fastapi import FastAPI

from job_pilot.config import settings
from job_pilot.database import init_db
from job_pilot.utils.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    init_db()
    yield


def create_app() -> FastAPI:
    setup_logging(settings.log_file, settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Register routes
    from job_pilot.routes.cron import router as cron_router
    from job_pilot.routes.applications import router as applications_router
    from job_pilot.routes.jobs import router as jobs_router
    from job_pilot.routes.settings import router as settings_router
    from job_pilot.routes.webhooks import router as webhooks_router

    app.include_router(cron_router, prefix="/api/cron", tags=["cron"])
    app.include_router(applications_router, prefix="/api/applications", tags=["applications"])
    app.include_router(jobs_router, prefix="/api/jobs", tags=["jobs"])
    app.include_router(settings_router, prefix="/api/settings", tags=["settings"])
    app.include_router(webhooks_router, prefix="/api/webhooks", tags=["webhooks"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
