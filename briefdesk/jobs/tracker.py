"""
Job Tracking

Track background jobs from submission to completion. Records live in the
expiring key store, so a job becomes unreachable once its TTL has passed.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from briefdesk.errors import JobStateError, NotFoundError
from briefdesk.jobs.models import JobKind, JobRecord, JobStatus
from briefdesk.persistence.expiring import ExpiringKeyStore

logger = logging.getLogger(__name__)


def new_job_id(kind: JobKind) -> str:
    return f"{kind.value}_{uuid.uuid4().hex[:16]}"


class JobTracker:
    """
    Tracks background jobs.

    Every write re-applies the full TTL. Status changes go through the
    forward-only state machine on JobStatus.
    """

    def __init__(self, store: ExpiringKeyStore, ttl_seconds: Optional[int] = None):
        self.store = store
        self.ttl_seconds = ttl_seconds or store.default_ttl

    async def _save(self, job: JobRecord) -> JobRecord:
        await self.store.set(job.key, job.to_dict(), self.ttl_seconds)
        return job

    async def create_job(
        self,
        kind: JobKind,
        status: JobStatus = JobStatus.PROCESSING,
        progress: int = 0,
        message: Optional[str] = None,
        issue: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> JobRecord:
        """
        Create and persist a new job record.

        Returns:
            The created JobRecord
        """
        if status.is_terminal:
            raise ValueError("A job cannot start in a terminal state")

        job = JobRecord(
            job_id=new_job_id(kind),
            kind=kind,
            status=status,
            progress=progress,
            message=message,
            issue=issue,
            metadata=metadata or {},
        )
        await self._save(job)

        logger.info(f"Created job {job.job_id} ({status.value})")
        return job

    async def get_job(self, job_id: str) -> Optional[JobRecord]:
        """Job by id, or None when unknown or expired."""
        kind = JobKind.from_job_id(job_id)
        if kind is None:
            return None

        data = await self.store.get(f"{kind.key_prefix}:{job_id}")
        if data is None:
            return None
        return JobRecord.from_dict(data)

    async def _require(self, job_id: str) -> JobRecord:
        job = await self.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found or expired", details={"job_id": job_id})
        return job

    def _apply(self, job: JobRecord, status: JobStatus, progress: Optional[int]) -> None:
        if not job.status.can_move_to(status):
            raise JobStateError(job.job_id, job.status.value, status.value)
        job.status = status
        if progress is not None:
            job.progress = max(job.progress, min(progress, 100))
        job.updated_at = datetime.now(timezone.utc)

    async def update_job(
        self,
        job_id: str,
        status: JobStatus,
        progress: Optional[int] = None,
        message: Optional[str] = None,
        **fields,
    ) -> JobRecord:
        """
        Move a job to a non-terminal status and/or update its fields.

        Args:
            job_id: Job ID
            status: New status (same status for a progress update)
            progress: Progress percentage (0-100), never decreases
            message: Human-readable stage description
            **fields: Additional JobRecord fields (research_result, metadata, ...)

        Raises:
            NotFoundError: job unknown or expired
            JobStateError: transition not allowed
        """
        if status.is_terminal:
            raise ValueError("Use complete_job or fail_job for terminal states")

        job = await self._require(job_id)
        self._apply(job, status, progress)
        if message is not None:
            job.message = message

        for key, value in fields.items():
            if not hasattr(job, key):
                raise AttributeError(f"JobRecord has no field {key!r}")
            setattr(job, key, value)

        return await self._save(job)

    async def complete_job(
        self,
        job_id: str,
        result: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> JobRecord:
        """Mark job as completed with its result payload."""
        job = await self._require(job_id)
        self._apply(job, JobStatus.COMPLETED, 100)
        job.result = result
        job.message = None
        # The intermediate artifact is no longer needed
        job.research_result = None
        if metadata:
            job.metadata.update(metadata)

        await self._save(job)
        logger.info(f"Completed job {job_id}")
        return job

    async def fail_job(self, job_id: str, error_message: str) -> Optional[JobRecord]:
        """
        Mark job as failed.

        Returns None (and logs) when the record has expired or already
        reached a terminal state, so callers in background units can always
        call this safely.
        """
        job = await self.get_job(job_id)
        if job is None:
            logger.warning(f"Cannot fail job {job_id}: record expired")
            return None
        if job.status.is_terminal:
            logger.warning(f"Job {job_id} already {job.status.value}, ignoring failure: {error_message}")
            return None

        self._apply(job, JobStatus.FAILED, None)
        job.error = error_message
        job.message = None

        await self._save(job)
        logger.error(f"Failed job {job_id}: {error_message}")
        return job
