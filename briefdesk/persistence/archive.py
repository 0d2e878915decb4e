"""
Brief Archive

CRUD over BriefReport records keyed by date, plus an ordered index used for
"latest" and listing queries.

Layout in the backend:
    brief:{date}    -> BriefReport (camelCase JSON)
    briefs_index    -> sorted index, score = epoch ms of the day, member = date

Save writes the record first and the index second; delete removes both.
There is no locking: two concurrent saves for the same date both succeed
and the last write wins.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from briefdesk.errors import StorageError, ValidationError
from briefdesk.models import BriefReport, IssueItem, split_date_key
from briefdesk.persistence.storage import StorageBackend

logger = logging.getLogger(__name__)

BRIEF_INDEX = "briefs_index"
DEFAULT_RETENTION_DAYS = 90
DEFAULT_DOMAIN = "ai"


def brief_key(date: str) -> str:
    return f"brief:{date}"


def date_score(date: str) -> float:
    """
    Index score for a date key: epoch milliseconds of the calendar day (UTC).

    Prefixed keys score the same as their calendar day.
    """
    _, day = split_date_key(date)
    if day is None:
        raise ValidationError(f"Invalid brief date: {date!r}", details={"date": date})
    parsed = datetime.strptime(day, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return float(int(parsed.timestamp() * 1000))


def date_key_for(domain: str, day: str) -> str:
    """Date key for a domain: the default domain is unprefixed."""
    if not domain or domain == DEFAULT_DOMAIN:
        return day
    return f"{domain}-{day}"


class BriefArchive:
    """
    Archive of daily briefs on top of any StorageBackend.

    Retention: briefs are written with a native TTL (90 days by default)
    only when the backend expires keys itself. On the file and memory
    backends retention is advisory and briefs are kept until deleted.
    """

    def __init__(
        self,
        backend: StorageBackend,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ):
        self.backend = backend
        self.retention_days = retention_days
        if not backend.native_ttl:
            logger.info(
                f"[Archive] {backend.name} backend has no native expiry; "
                f"{retention_days}-day brief retention is advisory only"
            )

    @property
    def retention_seconds(self) -> Optional[int]:
        """TTL applied to brief records, or None where retention is advisory."""
        if not self.backend.native_ttl or not self.retention_days:
            return None
        return self.retention_days * 24 * 60 * 60

    @staticmethod
    def _validate_date(date: str) -> str:
        if not date or split_date_key(date)[1] is None:
            raise ValidationError(f"Invalid brief date: {date!r}", details={"date": date})
        return date

    @staticmethod
    def _parse(date: str, data: dict) -> Optional[BriefReport]:
        try:
            return BriefReport.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"[Archive] Skipping unreadable brief {date}: {e}")
            return None

    async def save_brief(self, report: BriefReport) -> None:
        """
        Write (or overwrite) the brief for report.date and index it.

        Raises:
            StorageError: if either write fails. A failed index write after a
                successful record write is reported, not hidden.
        """
        score = date_score(report.date)
        await self.backend.put(brief_key(report.date), report.to_dict(), self.retention_seconds)

        try:
            await self.backend.index_add(BRIEF_INDEX, score, report.date)
        except StorageError as e:
            raise StorageError(
                f"Brief {report.date} was written but indexing failed: {e.message}",
                details={"date": report.date, "partial": True},
            ) from e

        logger.info(f"[Archive] Saved brief {report.date} ({report.total_issues} issues)")

    async def get_brief_by_date(self, date: str) -> Optional[BriefReport]:
        """Brief for the date key, or None when absent."""
        self._validate_date(date)
        data = await self.backend.get(brief_key(date))
        if data is None:
            return None
        return self._parse(date, data)

    async def get_latest_brief(self) -> Optional[BriefReport]:
        """Most recent brief according to the index."""
        dates = await self.backend.index_range_desc(BRIEF_INDEX, 0, 1)
        if not dates:
            return None
        return await self.get_brief_by_date(dates[0])

    async def get_all_briefs(self, limit: int = 30) -> List[BriefReport]:
        """
        Up to `limit` most recent briefs, newest first.

        Index entries whose record has gone missing (expired or removed out
        of band) are skipped.
        """
        if limit <= 0:
            return []

        dates = await self.backend.index_range_desc(BRIEF_INDEX, 0, limit)
        if not dates:
            return []

        records = await self.backend.get_many([brief_key(date) for date in dates])

        briefs = []
        for date, data in zip(dates, records):
            if data is None:
                logger.debug(f"[Archive] Index entry {date} has no record")
                continue
            brief = self._parse(date, data)
            if brief is not None:
                briefs.append(brief)
        return briefs

    async def delete_brief(self, date: str) -> bool:
        """Delete the brief and its index entry. Returns whether a record existed."""
        self._validate_date(date)
        existed = await self.backend.delete(brief_key(date))
        await self.backend.index_remove(BRIEF_INDEX, date)

        if existed:
            logger.info(f"[Archive] Deleted brief {date}")
        return existed

    async def get_recent_issues(
        self,
        days: int = 7,
        domain: str = DEFAULT_DOMAIN,
        now: Optional[datetime] = None,
        max_scan: int = 200,
    ) -> List[IssueItem]:
        """
        Issues from the domain's briefs dated within the last `days` days,
        newest brief first.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(days=days)).strftime("%Y-%m-%d")
        wanted_prefix = None if domain == DEFAULT_DOMAIN else domain

        dates = await self.backend.index_range_desc(BRIEF_INDEX, 0, max_scan)
        selected = []
        for date in dates:
            prefix, day = split_date_key(date)
            if day is None or prefix != wanted_prefix:
                continue
            if day < cutoff:
                # Index is ordered by day, so everything after is older
                break
            selected.append(date)

        if not selected:
            return []

        records = await self.backend.get_many([brief_key(date) for date in selected])
        issues: List[IssueItem] = []
        for date, data in zip(selected, records):
            if data is None:
                continue
            brief = self._parse(date, data)
            if brief is not None:
                issues.extend(brief.issues)

        logger.info(f"[Archive] Loaded {len(issues)} issues from {len(selected)} briefs ({domain}, {days}d)")
        return issues
