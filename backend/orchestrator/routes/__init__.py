"""
HTTP adapter for the job queue.

Thin FastAPI routers over JobService. All business rules live in the
service; routes only translate requests and map errors to status codes.
"""

from .narration import router as narration_router
from .orchestrate import router as orchestrate_router
from .whatsapp import router as whatsapp_router

__all__ = ["orchestrate_router", "narration_router", "whatsapp_router"]
