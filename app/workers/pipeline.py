"""One detection attempt: Image Store -> Inference -> Normalize -> Enrich -> Persist."""

import logging
import time
from typing import Any, Callable, Dict, Optional

from app.errors import OwnerNotFound, RecordStoreUnavailable
from app.jobs.models import Job
from app.schemas import DiseaseInfo, EmptyResult, ImageRef, NormalizedPrediction
from app.services.enrichment import EnrichmentChain
from app.services.inference import InferenceClient
from app.services.normalizer import normalize
from app.services.records import RecordStore
from app.services.storage import ImageStore

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Model prediction successful"


class DetectionPipeline:
    def __init__(
        self,
        image_store: ImageStore,
        inference: InferenceClient,
        enrichment: EnrichmentChain,
        records: RecordStore,
        *,
        persist_max_attempts: int = 3,
        persist_retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.image_store = image_store
        self.inference = inference
        self.enrichment = enrichment
        self.records = records
        self.persist_max_attempts = max(persist_max_attempts, 1)
        self.persist_retry_delay = persist_retry_delay
        self.sleep = sleep

    def run(self, job: Job, image_bytes: bytes, checkpoint: Optional[Callable[[Dict[str, Any]], None]] = None) -> Dict[str, Any]:
        """Run one attempt and return the job result payload.

        Nothing is written to the Record Store until normalize and enrich have
        both succeeded. A job that already carries ``pending_result`` from an
        earlier attempt goes straight to the write.
        """
        if job.pending_result is not None:
            logger.info(f"[Job {job.id}] Resuming at persist step")
            composed = job.pending_result
        else:
            if not self.records.find_owner(job.owner_id):
                raise OwnerNotFound("User forbidden from performing this request")

            image = self.image_store.upload(image_bytes, job.mime_type)
            logger.info(f"[Job {job.id}] Image uploaded as {image.public_id}")

            raw = self.inference.classify(image.url)
            outcome = normalize(raw)
            if isinstance(outcome, EmptyResult):
                logger.info(f"[Job {job.id}] No usable prediction ({outcome.kind.value})")
                return {
                    "message": outcome.message,
                    "outcome": outcome.kind.value,
                    "diagnosis_id": None,
                    "image": image.model_dump(),
                }

            logger.info(
                f"[Job {job.id}] Predicted {outcome.disease_class_raw} "
                f"(confidence {outcome.confidence:.2f}, {outcome.image_width}x{outcome.image_height})"
            )
            info = self.enrichment.enrich(outcome.disease_class_raw)
            composed = {
                "prediction": outcome.model_dump(),
                "disease_info": info.model_dump(),
                "images": [image.model_dump()],
            }
            if checkpoint is not None:
                checkpoint(composed)

        diagnosis_id = self._persist(job, composed)
        return {
            "message": SUCCESS_MESSAGE,
            "outcome": "diagnosed",
            "diagnosis_id": diagnosis_id,
            **composed,
        }

    def _persist(self, job: Job, composed: Dict[str, Any]) -> str:
        prediction = NormalizedPrediction.model_validate(composed["prediction"])
        info = DiseaseInfo.model_validate(composed["disease_info"])
        images = [ImageRef.model_validate(image) for image in composed["images"]]

        for attempt in range(1, self.persist_max_attempts + 1):
            try:
                return self.records.create_diagnosis(job.owner_id, job.id, prediction, info, images)
            except RecordStoreUnavailable as e:
                if attempt == self.persist_max_attempts:
                    raise
                logger.warning(
                    f"[Job {job.id}] Persist attempt {attempt}/{self.persist_max_attempts} failed: {e.message}"
                )
                self.sleep(self.persist_retry_delay)
