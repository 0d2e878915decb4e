"""
Service wiring.

Builds every long-lived object once at startup from Settings. Tests build
their own AppServices with a fresh MemoryStorage and a fake analyst.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from briefdesk.analyzer.client import ClaudeClient
from briefdesk.analyzer.trend import TrendAnalyst
from briefdesk.collector.sources import SourceFetcher
from briefdesk.jobs.pipelines import TrendReportJobs, WeeklyReportJobs
from briefdesk.jobs.supervisor import JobSupervisor
from briefdesk.jobs.tracker import JobTracker
from briefdesk.persistence.archive import BriefArchive
from briefdesk.persistence.expiring import ExpiringKeyStore
from briefdesk.persistence.factory import Persistence, build_persistence
from briefdesk.utils.config import Settings, StorageConfig

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 180.0


@dataclass
class AppServices:
    """Everything request handlers need."""
    persistence: Persistence
    archive: BriefArchive
    tracker: JobTracker
    supervisor: JobSupervisor
    trend_jobs: TrendReportJobs
    weekly_jobs: WeeklyReportJobs
    fetcher: Optional[SourceFetcher] = None
    admin_token: Optional[str] = None

    async def close(self, drain_timeout: float = SHUTDOWN_DRAIN_SECONDS) -> None:
        """Wait for running jobs, then release connections."""
        await self.supervisor.drain(timeout=drain_timeout)
        if self.fetcher is not None:
            await self.fetcher.close()
        await self.persistence.close()


def build_analyst(settings: Settings) -> Optional[TrendAnalyst]:
    if not settings.ANTHROPIC_API_KEY:
        logger.warning("ANTHROPIC_API_KEY not set - report jobs are disabled")
        return None
    client = ClaudeClient(api_key=settings.ANTHROPIC_API_KEY, model=settings.CLAUDE_MODEL)
    return TrendAnalyst(client)


def build_services(
    settings: Settings,
    persistence: Optional[Persistence] = None,
    analyst: Optional[TrendAnalyst] = None,
    fetcher: Optional[SourceFetcher] = None,
) -> AppServices:
    """Wire the application from settings; explicit arguments win."""
    if persistence is None:
        persistence = build_persistence(StorageConfig.from_settings(settings))
    if analyst is None:
        analyst = build_analyst(settings)
    if fetcher is None:
        fetcher = SourceFetcher(timeout=settings.SOURCE_FETCH_TIMEOUT)

    archive = BriefArchive(persistence.archive_backend, retention_days=settings.BRIEF_RETENTION_DAYS)
    store = ExpiringKeyStore(persistence.job_backend, default_ttl=settings.JOB_TTL_SECONDS)
    tracker = JobTracker(store)
    supervisor = JobSupervisor()

    return AppServices(
        persistence=persistence,
        archive=archive,
        tracker=tracker,
        supervisor=supervisor,
        trend_jobs=TrendReportJobs(tracker, supervisor, analyst, fetcher),
        weekly_jobs=WeeklyReportJobs(tracker, supervisor, analyst, archive),
        fetcher=fetcher,
        admin_token=settings.ADMIN_TOKEN,
    )
