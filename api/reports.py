"""
Report Jobs API

Starts background report jobs and serves their status to pollers.

Endpoints:
- POST /api/trend-report     {step: research, issue} | {step: synthesize, jobId}
- POST /api/weekly-report    {domain}
- GET  /api/jobs/{job_id}    job status
- GET  /api/trend/status     job status (?jobId=...)
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from briefdesk.errors import NotFoundError, ValidationError
from briefdesk.jobs.models import JobRecord
from briefdesk.models import CamelModel, IssueItem
from briefdesk.persistence.archive import DEFAULT_DOMAIN
from briefdesk.services import AppServices

from api.dependencies import get_services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Reports"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class TrendReportRequest(CamelModel):
    """Either starts research for an issue or synthesis for a researched job."""
    step: Literal["research", "synthesize"] = "research"
    issue: Optional[IssueItem] = None
    job_id: Optional[str] = None


class WeeklyReportRequest(CamelModel):
    domain: str = Field(default=DEFAULT_DOMAIN)


def _accepted(job: JobRecord, message: str) -> dict:
    return {
        "success": True,
        "data": {"jobId": job.job_id, "status": job.status.value, "message": message},
    }


async def _job_status(services: AppServices, job_id: str) -> dict:
    job = await services.tracker.get_job(job_id)
    if job is None:
        raise NotFoundError("Job not found or expired", details={"job_id": job_id})
    return {"success": True, "data": job.to_public()}


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/trend-report", status_code=202)
async def trend_report(
    request: TrendReportRequest,
    services: AppServices = Depends(get_services),
):
    if request.step == "research":
        if request.issue is None:
            raise ValidationError("Issue data is required for the research step")
        job = await services.trend_jobs.start_research(request.issue)
        return _accepted(job, "Research started")

    if not request.job_id:
        raise ValidationError("jobId is required for the synthesize step")
    job = await services.trend_jobs.start_synthesis(request.job_id)
    return _accepted(job, "Synthesis started")


@router.post("/weekly-report", status_code=202)
async def weekly_report(
    request: WeeklyReportRequest,
    services: AppServices = Depends(get_services),
):
    job = await services.weekly_jobs.start(request.domain)
    return _accepted(job, "Weekly report started")


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, services: AppServices = Depends(get_services)):
    return await _job_status(services, job_id)


@router.get("/trend/status")
async def trend_status(
    job_id: str = Query(..., alias="jobId"),
    services: AppServices = Depends(get_services),
):
    return await _job_status(services, job_id)
