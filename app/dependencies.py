"""Builds the pipeline components from settings.

Components take their configuration through their constructors; this is the
only module that reads ``settings`` to wire them together. The getters are
cached so the API process and each worker process build one instance of each.
"""

from functools import lru_cache

import redis

from app.config import settings
from app.database import SessionLocal
from app.jobs.queue import JobQueue
from app.jobs.store import JobStore
from app.jobs.tracker import StatusTracker
from app.services.cache import DiseaseInfoCache
from app.services.enrichment import (
    EnrichmentChain,
    OpenRouterProvider,
    StaticTableProvider,
    WikipediaProvider,
)
from app.services.inference import InferenceClient
from app.services.records import RecordStore
from app.services.storage import ImageStore
from app.workers.pipeline import DetectionPipeline


@lru_cache()
def get_redis() -> redis.Redis:
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


@lru_cache()
def get_job_store() -> JobStore:
    return JobStore(get_redis(), retention_seconds=settings.JOB_RETENTION_SECONDS)


@lru_cache()
def get_record_store() -> RecordStore:
    return RecordStore(SessionLocal)


def dispatch_job(job_id: str, countdown: float = 0.0) -> None:
    from app.workers.tasks import process_detection_job

    process_detection_job.apply_async(args=[job_id], countdown=countdown or None)


@lru_cache()
def get_job_queue() -> JobQueue:
    return JobQueue(
        get_job_store(),
        dispatch_job,
        owner_exists=get_record_store().find_owner,
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        max_attempts=settings.MAX_ATTEMPTS,
        backoff_seconds=settings.RETRY_BACKOFF_SECONDS,
        backoff_max_seconds=settings.RETRY_BACKOFF_MAX_SECONDS,
    )


@lru_cache()
def get_status_tracker() -> StatusTracker:
    return StatusTracker(get_job_store())


@lru_cache()
def get_image_store() -> ImageStore:
    return ImageStore(
        settings.MINIO_ENDPOINT,
        settings.MINIO_ACCESS_KEY,
        settings.MINIO_SECRET_KEY,
        settings.MINIO_BUCKET,
        max_bytes=settings.MAX_UPLOAD_BYTES,
        public_url=settings.MINIO_PUBLIC_URL,
        url_expiry_seconds=settings.IMAGE_URL_EXPIRY_SECONDS,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
    )


@lru_cache()
def get_inference_client() -> InferenceClient:
    return InferenceClient(
        settings.ROBOFLOW_API_KEY,
        settings.ROBOFLOW_ENDPOINT,
        timeout=settings.INFERENCE_TIMEOUT_SECONDS,
    )


@lru_cache()
def get_ai_provider() -> OpenRouterProvider:
    return OpenRouterProvider(
        settings.OPENROUTER_API_KEY,
        settings.OPENROUTER_BASE_URL,
        settings.OPENROUTER_MODEL,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )


@lru_cache()
def get_enrichment_chain() -> EnrichmentChain:
    providers = [
        get_ai_provider(),
        WikipediaProvider(settings.WIKIPEDIA_SUMMARY_URL, timeout=settings.PROVIDER_TIMEOUT_SECONDS),
        StaticTableProvider(),
    ]
    cache = DiseaseInfoCache(
        get_redis(),
        ttl=settings.DISEASE_INFO_CACHE_TTL_SECONDS,
        enabled=settings.CACHE_ENABLED,
    )
    # Hard deadline slightly above the HTTP timeout so requests gets to report first
    return EnrichmentChain(providers, timeout=settings.PROVIDER_TIMEOUT_SECONDS + 5.0, cache=cache)


@lru_cache()
def get_pipeline() -> DetectionPipeline:
    return DetectionPipeline(
        get_image_store(),
        get_inference_client(),
        get_enrichment_chain(),
        get_record_store(),
        persist_max_attempts=settings.PERSIST_MAX_ATTEMPTS,
        persist_retry_delay=settings.PERSIST_RETRY_DELAY_SECONDS,
    )
