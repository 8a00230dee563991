"""
Orchestrator backend service: job queue over HTTP.

Run with:
    uvicorn --factory orchestrator.main:create_app --port 8085

The app is built on demand so importing this module never touches a state
directory.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .routes import narration_router, orchestrate_router, whatsapp_router
from .service import JobService
from .settings import OrchestratorSettings

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[OrchestratorSettings] = None,
    service: Optional[JobService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Storage settings (read from the environment when omitted)
        service: Pre-built service, overrides settings
    """
    if service is None:
        settings = settings or OrchestratorSettings.from_env()
        service = JobService.from_settings(settings)

    app = FastAPI(title="Content Orchestrator", version=__version__)

    # CORS middleware for the dashboard dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Malformed bodies are client errors, same as service-level ValidationError
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"detail": problems})

    # Heal any archive move interrupted by a previous crash
    repaired = service.start()
    if repaired:
        logger.warning("Startup reconcile repaired %d job(s)", repaired)

    app.state.job_service = service

    app.include_router(orchestrate_router)
    app.include_router(narration_router)
    app.include_router(whatsapp_router)

    @app.get("/")
    async def root():
        return {"service": "content-orchestrator", "status": "running"}

    return app

