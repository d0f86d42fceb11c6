"""Job queue: submission, claiming, retry policy and administrative removal.

Dispatch to the worker pool is a plain callable ``dispatch(job_id, countdown)``
so the queue does not care whether Celery or a test harness runs the job.
"""

import logging
import time
import traceback
from typing import Any, Callable, Dict, List, Optional

from app.errors import (
    ConfigurationError,
    DetectionError,
    InvalidInput,
    InvalidTransition,
    JobNotFound,
    OwnerNotFound,
)
from app.jobs.models import Job, JobState
from app.jobs.store import JobStore
from app.utils.image_utils import validate_upload

logger = logging.getLogger(__name__)

Dispatch = Callable[[str, float], None]
Checkpoint = Callable[[Dict[str, Any]], None]
Handler = Callable[[Job, bytes, Checkpoint], Dict[str, Any]]


class JobQueue:
    def __init__(
        self,
        store: JobStore,
        dispatch: Dispatch,
        *,
        owner_exists: Optional[Callable[[str], bool]] = None,
        max_upload_bytes: int = 5 * 1024 * 1024,
        max_attempts: int = 5,
        backoff_seconds: float = 2.0,
        backoff_max_seconds: float = 60.0,
    ):
        self.store = store
        self.dispatch = dispatch
        self.owner_exists = owner_exists
        self.max_upload_bytes = max_upload_bytes
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds

    # Submission

    def submit(self, owner_id: str, image_bytes: bytes, mime_type: Optional[str], filename: Optional[str] = None) -> str:
        """Validate the upload, persist a waiting job and hand it to the worker pool.

        Validation problems raise InvalidInput / OwnerNotFound here and nothing
        is enqueued. Anything that goes wrong later is only visible through the
        job status.
        """
        if not owner_id:
            raise OwnerNotFound("Access forbidden for this request")
        validate_upload(image_bytes, mime_type, self.max_upload_bytes)
        if self.owner_exists is not None and not self.owner_exists(owner_id):
            raise OwnerNotFound("Access forbidden for this request")

        job = Job(owner_id=owner_id, mime_type=mime_type, filename=filename)
        self.store.create(job, image_bytes)
        logger.info(f"[Job {job.id}] Submitted by owner {owner_id} ({len(image_bytes)} bytes)")
        try:
            self.dispatch(job.id, 0.0)
        except Exception as e:
            # The job is already durable; recover_stale dispatches it later
            logger.error(f"[Job {job.id}] Dispatch failed, left waiting for recovery: {e}")
        return job.id

    # Worker side

    def backoff(self, attempts: int) -> float:
        delay = self.backoff_seconds * (2 ** max(attempts - 1, 0))
        return min(delay, self.backoff_max_seconds)

    def claim(self, job_id: str) -> Optional[Job]:
        """Move a waiting job to active. Returns None if another worker got it first."""
        try:
            job = self.store.transition(job_id, JobState.WAITING, JobState.ACTIVE)
        except JobNotFound:
            logger.warning(f"[Job {job_id}] Not found, it was removed or has expired")
            return None
        except InvalidTransition as e:
            logger.info(f"[Job {job_id}] Not claimable: {e}")
            return None
        logger.info(f"[Job {job_id}] Claimed, attempt {job.attempts}/{self.max_attempts}")
        return job

    def process(self, job_id: str, handler: Handler) -> Optional[Job]:
        """Claim a job, run ``handler`` on it and record the outcome."""
        job = self.claim(job_id)
        if job is None:
            return None

        def checkpoint(payload: Dict[str, Any]) -> None:
            self.store.update(job.id, JobState.ACTIVE, pending_result=payload)

        try:
            image_bytes = b""
            if job.pending_result is None:
                image_bytes = self.store.load_image(job.id)
                if image_bytes is None:
                    raise InvalidInput("Uploaded image is no longer available")
            result = handler(job, image_bytes, checkpoint)
        except DetectionError as e:
            if e.retryable:
                return self._retry_or_fail(job, f"{type(e).__name__}: {e.message}")
            if isinstance(e, ConfigurationError):
                logger.error(f"[Job {job.id}] Configuration error, operator action required: {e.message}")
            return self._finish(job, JobState.FAILED, reason=f"{type(e).__name__}: {e.message}")
        except Exception as e:
            logger.error(f"[Job {job.id}] Unexpected error: {e}\n{traceback.format_exc()}")
            return self._finish(job, JobState.FAILED, reason=f"{type(e).__name__}: {e}")

        return self._finish(job, JobState.COMPLETED, result=result)

    def _finish(self, job: Job, state: JobState, reason: Optional[str] = None, result: Optional[Dict[str, Any]] = None) -> Optional[Job]:
        changes = {"pending_result": None}
        if result is not None:
            changes["result"] = result
        try:
            updated = self.store.transition(job.id, JobState.ACTIVE, state, reason=reason, **changes)
        except (JobNotFound, InvalidTransition) as e:
            logger.warning(f"[Job {job.id}] Could not record {state.value}: {e}")
            return None
        if state == JobState.FAILED:
            logger.warning(f"[Job {job.id}] Failed after {updated.attempts} attempt(s): {reason}")
        else:
            logger.info(f"[Job {job.id}] Completed after {updated.attempts} attempt(s)")
        return updated

    def _retry_or_fail(self, job: Job, reason: str) -> Optional[Job]:
        if job.attempts >= self.max_attempts:
            return self._finish(job, JobState.FAILED, reason=reason)

        delay = self.backoff(job.attempts)
        try:
            updated = self.store.transition(
                job.id, JobState.ACTIVE, JobState.WAITING, reason=reason, due_at=time.time() + delay
            )
        except (JobNotFound, InvalidTransition) as e:
            logger.warning(f"[Job {job.id}] Could not re-enqueue: {e}")
            return None
        logger.info(f"[Job {job.id}] Transient failure ({reason}), retrying in {delay:.1f}s")
        self.dispatch(job.id, delay)
        return updated

    # Administration

    def remove(self, job_id: str) -> Job:
        return self.store.remove(job_id)

    def recover_stale(self, max_age_seconds: float) -> List[str]:
        """Requeue jobs whose worker vanished and redispatch overdue waiting jobs.

        An attempt left active for longer than ``max_age_seconds`` counts as a
        transient failure and goes through the normal retry policy.
        """
        cutoff = time.time() - max_age_seconds
        recovered = []

        for job_id in self.store.ids_in_state(JobState.ACTIVE, cutoff):
            try:
                job = self.store.get(job_id)
            except JobNotFound:
                continue
            if job.state != JobState.ACTIVE:
                continue
            logger.warning(f"[Job {job_id}] Active for more than {max_age_seconds:.0f}s, recovering")
            if self._retry_or_fail(job, "Worker did not finish the attempt in time") is not None:
                recovered.append(job_id)

        # Duplicate dispatches are harmless: only one claim can succeed
        for job_id in self.store.ids_in_state(JobState.WAITING, cutoff):
            logger.warning(f"[Job {job_id}] Waiting past its due time, redispatching")
            self.dispatch(job_id, 0.0)
            recovered.append(job_id)

        return recovered
