"""Read-only status projection over the job store."""

from typing import List

from app.jobs.models import Job, JobState
from app.jobs.store import JobStore
from app.schemas import JobStatusResponse


class StatusTracker:
    def __init__(self, store: JobStore):
        self.store = store

    def get_status(self, job_id: str) -> JobStatusResponse:
        """Latest state of one job. Raises JobNotFound for unknown or expired ids."""
        return self._view(self.store.get(job_id))

    def list_jobs(self, owner_id: str) -> List[JobStatusResponse]:
        jobs = self.store.list_for_owner(owner_id)
        jobs.sort(key=lambda job: job.submitted_at, reverse=True)
        return [self._view(job) for job in jobs]

    @staticmethod
    def _view(job: Job) -> JobStatusResponse:
        return JobStatusResponse(
            job_id=job.id,
            status=job.state,
            result=job.result if job.state == JobState.COMPLETED else None,
            failure_reason=job.failure_reason if job.state != JobState.COMPLETED else None,
            attempts=job.attempts,
            submitted_at=job.submitted_at,
            started_at=job.started_at,
            finished_at=job.finished_at,
        )
