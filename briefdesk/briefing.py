"""
Brief assembly.

Turns a list of already-analyzed issues into a dated BriefReport and
publishes it to the archive. Dates follow Korea Standard Time, the
newsroom's reference clock.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from briefdesk.models import BriefReport, IssueItem
from briefdesk.persistence.archive import DEFAULT_DOMAIN, BriefArchive, date_key_for

logger = logging.getLogger(__name__)

KST = ZoneInfo("Asia/Seoul")

# Sunday-first, matching the labels stored by earlier deployments
DAY_LABELS = ["일", "월", "화", "수", "목", "금", "토"]

DOMAIN_TITLES = {
    "ai": "AI Daily Brief",
    "battery": "🔋 Battery Daily Brief",
}


def day_of_week_label(moment: datetime) -> str:
    # isoweekday: Monday=1 .. Sunday=7
    return DAY_LABELS[moment.isoweekday() % 7]


def build_markdown(issues: List[IssueItem], moment: datetime, domain: str = DEFAULT_DOMAIN) -> str:
    """Render the brief body."""
    title = DOMAIN_TITLES.get(domain, f"{domain.title()} Daily Brief")
    md = f"# {title} - {moment:%Y-%m-%d}\n\n"

    if not issues:
        return md + "No issues were collected for this day.\n"

    for idx, issue in enumerate(issues, start=1):
        md += f"## Issue {idx}. {issue.headline}\n\n"
        for fact in issue.key_facts:
            md += f"• {fact}\n"
        md += f"\n**Insight:** {issue.insight}\n\n"
        if issue.framework:
            md += f"**Framework:** {issue.framework}\n\n"
        md += "**Sources:**\n"
        for url in issue.sources:
            md += f"- {url}\n"
        md += "\n---\n\n"

    return md


def build_brief(
    issues: List[IssueItem],
    domain: str = DEFAULT_DOMAIN,
    now: Optional[datetime] = None,
) -> BriefReport:
    """Assemble a BriefReport for today's KST date."""
    moment = (now or datetime.now(KST)).astimezone(KST)
    date = date_key_for(domain, moment.strftime("%Y-%m-%d"))

    return BriefReport(
        id=date,
        date=date,
        day_of_week=day_of_week_label(moment),
        generated_at=moment,
        total_issues=len(issues),
        issues=issues,
        markdown=build_markdown(issues, moment, domain),
    )


@dataclass
class PublishResult:
    """Outcome of a publish call."""
    brief: BriefReport
    created: bool


async def publish_brief(
    archive: BriefArchive,
    issues: List[IssueItem],
    domain: str = DEFAULT_DOMAIN,
    force: bool = False,
    now: Optional[datetime] = None,
) -> PublishResult:
    """
    Store today's brief unless one already exists.

    With force=True the existing brief is overwritten. Overlapping forced
    calls are not serialized; the last write wins.
    """
    brief = build_brief(issues, domain, now)

    if not force:
        existing = await archive.get_brief_by_date(brief.date)
        if existing is not None:
            logger.info(f"[Brief] {brief.date} already exists, keeping it")
            return PublishResult(brief=existing, created=False)
    else:
        logger.info(f"[Brief] Forced regeneration for {brief.date}")

    await archive.save_brief(brief)
    return PublishResult(brief=brief, created=True)
