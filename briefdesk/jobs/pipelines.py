"""
Report Pipelines

Units of work run by the JobSupervisor.

Trend deep report (two caller-initiated stages, same job id):
    research:   researching (10) -> research_completed (50)
    synthesize: synthesizing (60) -> completed (100)

Weekly report (one request, stages chained internally):
    collecting (5, 10) -> clustering (25) -> generating (50) -> completed (100)

Units never raise: every failure ends as a `failed` job record.
"""

import logging
import re
from typing import Optional

from briefdesk.analyzer.trend import TrendAnalyst
from briefdesk.collector.sources import SourceFetcher
from briefdesk.errors import BriefDeskError, JobStateError, NotFoundError, UpstreamError, ValidationError
from briefdesk.jobs.models import JobKind, JobRecord, JobStatus
from briefdesk.jobs.supervisor import JobSupervisor
from briefdesk.jobs.tracker import JobTracker
from briefdesk.models import IssueItem
from briefdesk.persistence.archive import BriefArchive

logger = logging.getLogger(__name__)

DOMAIN_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,31}$")


class JobPipeline:
    """Shared plumbing for report pipelines."""

    def __init__(
        self,
        tracker: JobTracker,
        supervisor: JobSupervisor,
        analyst: Optional[TrendAnalyst],
    ):
        self.tracker = tracker
        self.supervisor = supervisor
        self.analyst = analyst

    def _require_analyst(self) -> TrendAnalyst:
        if self.analyst is None:
            raise UpstreamError("Report generation is not configured (no ANTHROPIC_API_KEY)")
        return self.analyst

    async def _fail(self, job_id: str, error: Exception) -> None:
        """Record a unit failure. Never raises."""
        if isinstance(error, BriefDeskError):
            message = error.message
            logger.error(f"[Job {job_id}] {error.code}: {message}")
        else:
            message = str(error) or error.__class__.__name__
            logger.exception(f"[Job {job_id}] Unexpected failure")

        try:
            await self.tracker.fail_job(job_id, message)
        except Exception:
            logger.exception(f"[Job {job_id}] Could not record failure")


class TrendReportJobs(JobPipeline):
    """Deep-dive report for a single issue."""

    def __init__(
        self,
        tracker: JobTracker,
        supervisor: JobSupervisor,
        analyst: Optional[TrendAnalyst],
        fetcher: Optional[SourceFetcher] = None,
    ):
        super().__init__(tracker, supervisor, analyst)
        self.fetcher = fetcher

    async def start_research(self, issue: IssueItem) -> JobRecord:
        """Create the job and launch the research stage."""
        analyst = self._require_analyst()
        if not issue.headline.strip():
            raise ValidationError("Issue headline is required")

        job = await self.tracker.create_job(
            JobKind.TREND,
            status=JobStatus.RESEARCHING,
            progress=10,
            issue=issue.to_dict(),
        )
        logger.info(f"[Trend] Report requested: {issue.headline} (job: {job.job_id})")

        self.supervisor.launch(job.job_id, self._run_research(job.job_id, issue, analyst))
        return job

    async def _run_research(self, job_id: str, issue: IssueItem, analyst: TrendAnalyst) -> None:
        try:
            context = ""
            if self.fetcher is not None and issue.sources:
                context = await self.fetcher.gather_context(issue.sources)
            if not context:
                logger.warning(f"[Job {job_id}] No source text available, researching from the brief only")

            research = await analyst.research(issue, context)
            await self.tracker.update_job(
                job_id,
                JobStatus.RESEARCH_COMPLETED,
                progress=50,
                research_result=research,
            )
        except Exception as e:
            await self._fail(job_id, e)

    async def start_synthesis(self, job_id: str) -> JobRecord:
        """Launch the synthesis stage for a job whose research is done."""
        analyst = self._require_analyst()

        job = await self.tracker.get_job(job_id)
        if job is None or job.kind != JobKind.TREND or not job.research_result:
            raise NotFoundError(
                "Research result not found or expired",
                details={"job_id": job_id},
            )
        if job.status != JobStatus.RESEARCH_COMPLETED:
            raise JobStateError(job_id, job.status.value, JobStatus.SYNTHESIZING.value)

        issue = IssueItem.model_validate(job.issue or {})
        research = job.research_result
        job = await self.tracker.update_job(job_id, JobStatus.SYNTHESIZING, progress=60)

        self.supervisor.launch(job_id, self._run_synthesis(job_id, issue, research, analyst))
        return job

    async def _run_synthesis(
        self,
        job_id: str,
        issue: IssueItem,
        research: str,
        analyst: TrendAnalyst,
    ) -> None:
        try:
            report = await analyst.synthesize(issue, research)
            await self.tracker.complete_job(job_id, result=report)
        except Exception as e:
            await self._fail(job_id, e)


class WeeklyReportJobs(JobPipeline):
    """Weekly trend report over the last `days` days of briefs."""

    def __init__(
        self,
        tracker: JobTracker,
        supervisor: JobSupervisor,
        analyst: Optional[TrendAnalyst],
        archive: BriefArchive,
        days: int = 7,
    ):
        super().__init__(tracker, supervisor, analyst)
        self.archive = archive
        self.days = days

    async def start(self, domain: str = "ai") -> JobRecord:
        analyst = self._require_analyst()
        if not DOMAIN_PATTERN.match(domain or ""):
            raise ValidationError(f"Invalid domain: {domain!r}", details={"domain": domain})

        job = await self.tracker.create_job(
            JobKind.WEEKLY,
            status=JobStatus.COLLECTING,
            progress=5,
            metadata={"domain": domain},
        )
        logger.info(f"[Weekly] Report requested for {domain} (job: {job.job_id})")

        self.supervisor.launch(job.job_id, self._run(job.job_id, domain, analyst))
        return job

    async def _run(self, job_id: str, domain: str, analyst: TrendAnalyst) -> None:
        try:
            await self.tracker.update_job(job_id, JobStatus.COLLECTING, progress=10)
            issues = await self.archive.get_recent_issues(self.days, domain)

            if not issues:
                await self.tracker.fail_job(job_id, f"No issues were collected in the last {self.days} days")
                return

            await self.tracker.update_job(
                job_id,
                JobStatus.CLUSTERING,
                progress=25,
                message=f"Grouping {len(issues)} issues by theme",
            )
            clusters = await analyst.cluster_issues(issues)

            await self.tracker.update_job(
                job_id,
                JobStatus.GENERATING,
                progress=50,
                message=f"Writing report across {len(clusters)} clusters",
            )
            report = await analyst.weekly_report(clusters, issues, domain)

            await self.tracker.complete_job(
                job_id,
                result=report,
                metadata={"clusterCount": len(clusters), "issueCount": len(issues)},
            )
        except Exception as e:
            await self._fail(job_id, e)
