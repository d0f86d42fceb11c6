from fastapi import APIRouter, Depends, HTTPException, File, Form, UploadFile
from app.dependencies import get_job_queue, get_record_store, get_status_tracker
from app.errors import InvalidInput, JobNotFound, OwnerNotFound, PersistenceError
from app.jobs.queue import JobQueue
from app.jobs.tracker import StatusTracker
from app.schemas import DiagnosisResponse, JobListResponse, JobStatusResponse, JobSubmitResponse
from app.services.records import RecordStore
from app.config import settings
from typing import List
import logging
import redis

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])
owners_router = APIRouter(prefix="/owners", tags=["Owners"])

@router.post("/detect", status_code=202, response_model=JobSubmitResponse)
async def detect_disease(
    file: UploadFile = File(None),
    owner_id: str = Form(...),
    queue: JobQueue = Depends(get_job_queue),
):
    """
    Upload a crop photo for disease detection.
    Returns a job id immediately; poll the status URL for the result.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    contents = await file.read()

    try:
        job_id = queue.submit(owner_id, contents, file.content_type, file.filename)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=e.message)
    except OwnerNotFound as e:
        raise HTTPException(status_code=403, detail=e.message)
    except redis.RedisError as e:
        logger.error(f"Job store unavailable: {e}")
        raise HTTPException(status_code=503, detail="Job queue unavailable")
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.message)

    return JobSubmitResponse(
        job_id=job_id,
        status="processing",
        status_url=f"{settings.API_V1_STR}/jobs/{job_id}",
    )

@router.get("", response_model=JobListResponse)
def read_jobs(owner_id: str, tracker: StatusTracker = Depends(get_status_tracker)):
    """
    List all detection jobs of an owner, most recent first.
    """
    return JobListResponse(owner_id=owner_id, jobs=tracker.list_jobs(owner_id))

@router.get("/{job_id}", response_model=JobStatusResponse)
def read_job(job_id: str, tracker: StatusTracker = Depends(get_status_tracker)):
    """
    Get job status and, once completed, its result.
    """
    try:
        return tracker.get_status(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")

@router.delete("/{job_id}", status_code=204)
def remove_job(job_id: str, queue: JobQueue = Depends(get_job_queue)):
    """
    Administrative removal of a job.
    """
    try:
        queue.remove(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="Job not found")

@owners_router.get("/{owner_id}/diagnoses", response_model=List[DiagnosisResponse])
def read_diagnoses(owner_id: str, records: RecordStore = Depends(get_record_store)):
    """
    Stored diagnoses of an owner, most recent first.
    """
    try:
        return records.list_diagnoses(owner_id)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.message)
