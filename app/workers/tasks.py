from celery import shared_task
from app.config import settings
from app.dependencies import get_job_queue, get_pipeline
from typing import List
import logging

logger = logging.getLogger(__name__)

@shared_task(name="cropscan.process_detection_job")
def process_detection_job(job_id: str) -> str:
    """
    Run one attempt of a detection job. Retries are re-dispatched by the
    job queue with their own countdown, not through Celery's retry.
    """
    logger.info(f"[Task {job_id}] Starting process_detection_job")
    job = get_job_queue().process(job_id, get_pipeline().run)
    if job is None:
        logger.info(f"[Task {job_id}] Skipped")
        return "skipped"
    logger.info(f"[Task {job_id}] Finished attempt {job.attempts} -> {job.state.value}")
    return job.state.value


@shared_task(name="cropscan.recover_stale_jobs")
def recover_stale_jobs() -> List[str]:
    """
    Requeue jobs abandoned by a dead worker. Scheduled through Celery beat.
    """
    recovered = get_job_queue().recover_stale(settings.STALE_JOB_SECONDS)
    if recovered:
        logger.warning(f"Recovered {len(recovered)} stale job(s): {recovered}")
    return recovered
