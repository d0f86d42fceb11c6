"""Redis-backed durable job store.

Layout (all keys under ``prefix``):
    job:<id>          JSON-encoded Job
    job:<id>:image    base64 image bytes, deleted once the job is terminal
    owner:<id>:jobs   list of job ids, most recent first
    state:waiting     sorted set, score = time the job becomes due
    state:active      sorted set, score = time the attempt started

Every state change goes through ``transition``, a WATCH/MULTI check-and-set
on the job key, so two workers can never claim the same job.
"""

import base64
import logging
import time
from typing import List, Optional

import redis

from app.errors import InvalidTransition, JobNotFound
from app.jobs.models import Job, JobState, Transition

logger = logging.getLogger(__name__)


class JobStore:
    def __init__(self, client: redis.Redis, retention_seconds: int = 7 * 24 * 3600, prefix: str = "cropscan"):
        self.client = client
        self.retention_seconds = retention_seconds
        self.prefix = prefix

    def _job_key(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    def _image_key(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}:image"

    def _owner_key(self, owner_id: str) -> str:
        return f"{self.prefix}:owner:{owner_id}:jobs"

    def _state_key(self, state: JobState) -> str:
        return f"{self.prefix}:state:{state.value}"

    def create(self, job: Job, image_bytes: bytes) -> Job:
        if not job.history:
            job.history.append(Transition(state=job.state, at=job.submitted_at))
        job.image_key = self._image_key(job.id)

        pipe = self.client.pipeline(transaction=True)
        pipe.set(self._job_key(job.id), job.model_dump_json())
        pipe.set(job.image_key, base64.b64encode(image_bytes).decode("ascii"))
        pipe.lpush(self._owner_key(job.owner_id), job.id)
        pipe.expire(self._owner_key(job.owner_id), self.retention_seconds)
        pipe.zadd(self._state_key(JobState.WAITING), {job.id: time.time()})
        pipe.execute()
        return job

    def get(self, job_id: str) -> Job:
        raw = self.client.get(self._job_key(job_id))
        if raw is None:
            raise JobNotFound(f"Job {job_id} not found")
        return Job.model_validate_json(raw)

    def load_image(self, job_id: str) -> Optional[bytes]:
        raw = self.client.get(self._image_key(job_id))
        if raw is None:
            return None
        return base64.b64decode(raw)

    def list_for_owner(self, owner_id: str) -> List[Job]:
        job_ids = self.client.lrange(self._owner_key(owner_id), 0, -1)
        if not job_ids:
            return []
        raws = self.client.mget([self._job_key(job_id) for job_id in job_ids])
        # Expired jobs leave their id behind in the owner list
        return [Job.model_validate_json(raw) for raw in raws if raw is not None]

    def transition(
        self,
        job_id: str,
        expected: JobState,
        new_state: JobState,
        reason: Optional[str] = None,
        due_at: Optional[float] = None,
        **changes,
    ) -> Job:
        """Atomically move a job from ``expected`` to ``new_state``.

        ``due_at`` is the epoch time a re-enqueued job becomes runnable.
        Extra keyword arguments are written onto the job in the same commit.
        """
        key = self._job_key(job_id)

        def _apply(pipe) -> Job:
            raw = pipe.get(key)
            if raw is None:
                raise JobNotFound(f"Job {job_id} not found")
            job = Job.model_validate_json(raw)
            if job.state != expected:
                raise InvalidTransition(
                    f"Job {job_id} is {job.state.value}, expected {expected.value}"
                )
            updated = job.transition(new_state, reason)
            for field, value in changes.items():
                setattr(updated, field, value)

            pipe.multi()
            pipe.set(key, updated.model_dump_json())
            pipe.zrem(self._state_key(expected), job_id)
            if new_state == JobState.WAITING:
                pipe.zadd(self._state_key(JobState.WAITING), {job_id: due_at or time.time()})
            elif new_state == JobState.ACTIVE:
                pipe.zadd(self._state_key(JobState.ACTIVE), {job_id: time.time()})
            else:
                pipe.expire(key, self.retention_seconds)
                pipe.delete(self._image_key(job_id))
            return updated

        return self.client.transaction(_apply, key, value_from_callable=True)

    def update(self, job_id: str, expected: JobState, **changes) -> Job:
        """Write fields onto a job without changing its state."""
        key = self._job_key(job_id)

        def _apply(pipe) -> Job:
            raw = pipe.get(key)
            if raw is None:
                raise JobNotFound(f"Job {job_id} not found")
            job = Job.model_validate_json(raw)
            if job.state != expected:
                raise InvalidTransition(
                    f"Job {job_id} is {job.state.value}, expected {expected.value}"
                )
            for field, value in changes.items():
                setattr(job, field, value)
            pipe.multi()
            pipe.set(key, job.model_dump_json())
            return job

        return self.client.transaction(_apply, key, value_from_callable=True)

    def ids_in_state(self, state: JobState, older_than: float) -> List[str]:
        """Job ids that entered ``state`` (or became due) before ``older_than``."""
        return list(self.client.zrangebyscore(self._state_key(state), "-inf", older_than))

    def remove(self, job_id: str) -> Job:
        job = self.get(job_id)
        pipe = self.client.pipeline(transaction=True)
        pipe.delete(self._job_key(job_id), self._image_key(job_id))
        pipe.lrem(self._owner_key(job.owner_id), 0, job_id)
        for state in (JobState.WAITING, JobState.ACTIVE):
            pipe.zrem(self._state_key(state), job_id)
        pipe.execute()
        logger.info(f"[Job {job_id}] Removed from store")
        return job

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False
