from pydantic import BaseModel, Field
from typing import Any, List, Optional, Dict
from datetime import datetime
from enum import Enum

from app.jobs.models import JobState

class ImageRef(BaseModel):
    url: str
    public_id: str
    size: int = 0
    mime_type: str = "application/octet-stream"

    class Config:
        frozen = True

class NormalizedPrediction(BaseModel):
    disease_class_raw: str
    disease_class_display: str
    crop_name: str
    is_healthy: bool
    confidence: float = 1.0
    top_score: str = ""
    inference_id: Optional[str] = None
    image_width: int = 0
    image_height: int = 0

    class Config:
        frozen = True

class EmptyKind(str, Enum):
    NO_OUTPUTS = "no_outputs"
    NO_PREDICTIONS = "no_predictions"
    MALFORMED = "malformed"

class EmptyResult(BaseModel):
    """A valid negative outcome: the model answered but predicted nothing usable."""
    kind: EmptyKind
    message: str

    class Config:
        frozen = True

class DiseaseInfo(BaseModel):
    description: str
    causes: List[str]
    symptoms: List[str]
    prevention: List[str]
    treatment: List[str]
    source: str

    class Config:
        frozen = True

    def is_complete(self) -> bool:
        return bool(
            self.description.strip()
            and self.causes
            and self.symptoms
            and self.prevention
            and self.treatment
        )

# API

class JobSubmitResponse(BaseModel):
    job_id: str
    status: str = "processing"
    status_url: str

class JobStatusResponse(BaseModel):
    job_id: str
    status: JobState
    result: Optional[Dict[str, Any]] = None
    failure_reason: Optional[str] = None
    attempts: int = 0
    submitted_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class JobListResponse(BaseModel):
    owner_id: str
    jobs: List[JobStatusResponse]

class DiseaseInfoRequest(BaseModel):
    disease_class: str = Field(..., min_length=1)

class AskRequest(BaseModel):
    question: str = Field(..., min_length=1)
    disease_class: Optional[str] = None

class AskResponse(BaseModel):
    answer: str

class DiagnosisResponse(BaseModel):
    id: str
    job_id: str
    crop_id: str
    crop_name: str
    disease_class: str
    disease_class_display: Optional[str] = None
    is_healthy: bool
    confidence: Optional[float] = None
    description: Optional[str] = None
    causes: List[str] = []
    symptoms: List[str] = []
    prevention: List[str] = []
    treatment: List[str] = []
    info_source: Optional[str] = None
    image_urls: List[str] = []
    created_at: Optional[datetime] = None

class HealthResponse(BaseModel):
    status: str
    services: Dict[str, str]
