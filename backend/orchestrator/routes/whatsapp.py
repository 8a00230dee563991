"""
Chat ingestion endpoint.

The WhatsApp bridge posts parsed requests here. Jobs created through this
route carry source=whatsapp and keep the sender's phone number for replies.
"""

import logging

from fastapi import APIRouter, Request

from ..jobs.errors import JobError
from ..jobs.models import JobSource
from ..persistence.errors import PersistenceError
from .common import get_service, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


@router.post("/jobs", status_code=201)
def create_whatsapp_job_endpoint(body: dict, request: Request):
    try:
        job = get_service(request).create(body, source=JobSource.WHATSAPP)
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    logger.info("Queued WhatsApp job %s", job.id)
    return {"ok": True, "job": job.to_json_dict()}
