"""
Background Jobs

Job records, tracking through the expiring key store, the supervisor that
keeps detached work alive, and the report pipelines built on them.
"""

from .models import JobKind, JobRecord, JobStatus
from .tracker import JobTracker
from .supervisor import JobSupervisor
from .pipelines import TrendReportJobs, WeeklyReportJobs

__all__ = [
    "JobKind",
    "JobRecord",
    "JobStatus",
    "JobTracker",
    "JobSupervisor",
    "TrendReportJobs",
    "WeeklyReportJobs",
]
