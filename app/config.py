from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "CropScan"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./cropscan.db"

    # Redis (job store + Celery broker)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Storage
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_BUCKET: str = "cropscan-images"
    MINIO_PUBLIC_URL: Optional[str] = None  # serve objects from here instead of presigning
    IMAGE_URL_EXPIRY_SECONDS: int = 7 * 24 * 3600
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    STORAGE_TIMEOUT_SECONDS: float = 10.0

    # Inference (Roboflow workflow)
    ROBOFLOW_API_KEY: Optional[str] = None
    ROBOFLOW_ENDPOINT: str = "https://serverless.roboflow.com/infer/workflows/agrinix/agrinix-workflow-3"
    INFERENCE_TIMEOUT_SECONDS: float = 10.0

    # Enrichment providers
    OPENROUTER_API_KEY: Optional[str] = None
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_MODEL: str = "openai/gpt-4o-mini"
    WIKIPEDIA_SUMMARY_URL: str = "https://en.wikipedia.org/api/rest_v1/page/summary"
    PROVIDER_TIMEOUT_SECONDS: float = 15.0
    CACHE_ENABLED: bool = True
    DISEASE_INFO_CACHE_TTL_SECONDS: int = 7 * 24 * 3600

    # Jobs
    WORKER_CONCURRENCY: int = 4
    MAX_ATTEMPTS: int = 5
    RETRY_BACKOFF_SECONDS: float = 2.0
    RETRY_BACKOFF_MAX_SECONDS: float = 60.0
    PERSIST_MAX_ATTEMPTS: int = 3
    PERSIST_RETRY_DELAY_SECONDS: float = 1.0
    JOB_RETENTION_SECONDS: int = 7 * 24 * 3600
    STALE_JOB_SECONDS: int = 15 * 60

    class Config:
        env_file = ".env"

settings = Settings()
