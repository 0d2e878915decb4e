"""
BriefDesk API

FastAPI application that:
1. Serves the daily brief archive (latest, by date, listing, delete)
2. Accepts analyzed issues and publishes today's brief
3. Starts trend and weekly report jobs in the background
4. Serves job status to pollers until the record expires
"""

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from briefdesk import __version__
from briefdesk.errors import BriefDeskError, NotFoundError
from briefdesk.services import build_services
from briefdesk.utils.config import get_settings

from api import briefs, reports

# Configure logging to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="BriefDesk",
    description="Daily news briefs and LLM trend reports",
    version=__version__,
)

app.include_router(briefs.router)
app.include_router(reports.router)


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Wire storage, job tracking and report pipelines."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())

    # Tests install their own services before the app starts
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)

    services = app.state.services
    logger.info(
        f"Storage ready: archive={services.persistence.archive_backend.name}, "
        f"jobs={services.persistence.job_backend.name}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Let running jobs finish, then close connections."""
    services = getattr(app.state, "services", None)
    if services is None:
        return
    active = services.supervisor.active_count
    if active:
        logger.info(f"Waiting for {active} running job(s) before shutdown")
    await services.close()


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(BriefDeskError)
async def briefdesk_error_handler(request: Request, exc: BriefDeskError):
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    elif not isinstance(exc, NotFoundError):
        logger.warning(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")

    return JSONResponse(
        status_code=exc.http_status,
        content={"success": False, "error": exc.to_dict()},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", [])), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": {"errors": errors},
            },
        },
    )


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/")
async def root():
    return {"service": "BriefDesk", "version": __version__, "status": "ok"}


@app.get("/api/health")
async def health(request: Request):
    services = request.app.state.services
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "storage": services.persistence.archive_backend.name,
            "jobStorage": services.persistence.job_backend.name,
            "activeJobs": services.supervisor.active_count,
        },
    }


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
