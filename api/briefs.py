"""
Brief Archive API

Endpoints:
- GET    /api/brief              latest brief, one date, or the archive listing
- POST   /api/brief              publish today's brief from analyzed issues
- DELETE /api/brief/{date}       remove one brief (admin)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from briefdesk.briefing import publish_brief
from briefdesk.errors import NotFoundError
from briefdesk.models import CamelModel, IssueItem
from briefdesk.persistence.archive import DEFAULT_DOMAIN
from briefdesk.services import AppServices

from api.dependencies import get_services, require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/brief", tags=["Briefs"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class PublishBriefRequest(CamelModel):
    """Analyzed issues for today's brief."""
    issues: List[IssueItem] = Field(..., min_length=1)
    domain: str = Field(default=DEFAULT_DOMAIN, pattern=r"^[a-z][a-z0-9_]{0,31}$")
    force: bool = Field(default=False, description="Overwrite today's brief if it exists")


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("")
async def get_brief(
    date: Optional[str] = Query(None, description="Brief date key, e.g. 2026-02-22"),
    list_all: bool = Query(False, alias="list"),
    limit: int = Query(30, ge=1, le=100),
    services: AppServices = Depends(get_services),
):
    archive = services.archive

    if list_all:
        briefs = await archive.get_all_briefs(limit)
        summaries = [
            {
                "id": brief.id,
                "date": brief.date,
                "dayOfWeek": brief.day_of_week,
                "totalIssues": brief.total_issues,
                "generatedAt": brief.generated_at.isoformat(),
            }
            for brief in briefs
        ]
        return {"success": True, "data": summaries}

    if date:
        brief = await archive.get_brief_by_date(date)
        if brief is None:
            raise NotFoundError(f"No brief for {date}", details={"date": date})
        return {"success": True, "data": brief.to_dict()}

    brief = await archive.get_latest_brief()
    if brief is None:
        raise NotFoundError("No brief has been published yet")
    return {"success": True, "data": brief.to_dict()}


@router.post("")
async def create_brief(
    request: PublishBriefRequest,
    services: AppServices = Depends(get_services),
):
    result = await publish_brief(
        services.archive,
        request.issues,
        domain=request.domain,
        force=request.force,
    )
    return {
        "success": True,
        "data": result.brief.to_dict(),
        "created": result.created,
    }


@router.delete("/{date}", dependencies=[Depends(require_admin)])
async def delete_brief(
    date: str,
    services: AppServices = Depends(get_services),
):
    deleted = await services.archive.delete_brief(date)
    logger.info(f"[Brief] Delete {date}: {'removed' if deleted else 'nothing stored'}")
    return {"success": True, "data": {"date": date, "deleted": deleted}}
