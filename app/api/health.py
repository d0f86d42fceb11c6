from fastapi import APIRouter, Depends
from app.schemas import HealthResponse
from app.dependencies import get_image_store, get_job_store, get_record_store
from app.jobs.store import JobStore
from app.services.records import RecordStore
from app.services.storage import ImageStore

router = APIRouter()

@router.get("/health", response_model=HealthResponse)
def health_check(
    jobs: JobStore = Depends(get_job_store),
    records: RecordStore = Depends(get_record_store),
    images: ImageStore = Depends(get_image_store),
):
    """
    Check system health.
    """
    services = {
        "redis": "healthy" if jobs.ping() else "unavailable",
        "database": "healthy" if records.ping() else "unavailable",
        "storage": "healthy" if images.ping() else "unavailable",
    }
    # Storage is only needed by workers; the API can still accept jobs without it
    core_ok = services["redis"] == "healthy" and services["database"] == "healthy"

    return {
        "status": "healthy" if core_ok else "degraded",
        "services": services,
    }
