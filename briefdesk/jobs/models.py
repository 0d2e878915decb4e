"""
Job Records

Status state machine and the record stored for every background job.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class JobStatus(Enum):
    """Job status states."""
    PROCESSING = "processing"                  # Accepted, nothing started
    COLLECTING = "collecting"                  # Gathering input issues
    RESEARCHING = "researching"                # Fetching sources + research call
    CLUSTERING = "clustering"                  # Grouping issues by theme
    RESEARCH_COMPLETED = "research_completed"  # Waiting for the synthesize request
    GENERATING = "generating"                  # Writing the weekly report
    SYNTHESIZING = "synthesizing"              # Writing the deep-dive report
    COMPLETED = "completed"                    # Successfully finished
    FAILED = "failed"                          # Failed with error

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_move_to(self, target: "JobStatus") -> bool:
        """
        Forward-only transitions: never out of a terminal state, never to a
        lower rank, and a status may only repeat itself (progress updates).
        """
        if self.is_terminal:
            return False
        if target == self:
            return True
        return target.rank > self.rank


_RANKS = {
    JobStatus.PROCESSING: 0,
    JobStatus.COLLECTING: 10,
    JobStatus.RESEARCHING: 10,
    JobStatus.CLUSTERING: 20,
    JobStatus.RESEARCH_COMPLETED: 30,
    JobStatus.GENERATING: 40,
    JobStatus.SYNTHESIZING: 40,
    JobStatus.COMPLETED: 100,
    JobStatus.FAILED: 100,
}


class JobKind(Enum):
    """Kinds of background jobs; the value prefixes ids and keys."""
    TREND = "trend"
    WEEKLY = "weekly"

    @property
    def key_prefix(self) -> str:
        return f"{self.value}_job"

    @classmethod
    def from_job_id(cls, job_id: str) -> Optional["JobKind"]:
        prefix = (job_id or "").split("_", 1)[0]
        for kind in cls:
            if kind.value == prefix:
                return kind
        return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRecord:
    """Background job data model."""
    job_id: str
    kind: JobKind
    status: JobStatus
    progress: int = 0
    message: Optional[str] = None

    # Outcome
    result: Optional[Any] = None
    error: Optional[str] = None

    # Intermediate artifact handed from research to synthesis
    research_result: Optional[str] = None
    issue: Optional[Dict[str, Any]] = None

    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def key(self) -> str:
        return f"{self.kind.key_prefix}:{self.job_id}"

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        data = asdict(self)
        data["kind"] = self.kind.value
        data["status"] = self.status.value
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "JobRecord":
        """Create from dictionary."""
        data = dict(data)
        data["kind"] = JobKind(data["kind"])
        data["status"] = JobStatus(data["status"])
        data["created_at"] = datetime.fromisoformat(data["created_at"])
        data["updated_at"] = datetime.fromisoformat(data["updated_at"])
        return cls(**data)

    def to_public(self) -> Dict[str, Any]:
        """Status view returned to pollers."""
        payload: Dict[str, Any] = {
            "jobId": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
        }
        if self.message:
            payload["message"] = self.message
        if self.result is not None:
            payload["result"] = self.result
        if self.error:
            payload["error"] = self.error
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload
