import logging
from typing import Callable, List

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import PersistenceError, RecordStoreUnavailable
from app.models import Crop, Diagnosis, User
from app.schemas import DiagnosisResponse, DiseaseInfo, ImageRef, NormalizedPrediction

logger = logging.getLogger(__name__)

class RecordStore:
    """Owner lookup and diagnosis persistence on top of SQLAlchemy."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def find_owner(self, owner_id: str) -> bool:
        db = self.session_factory()
        try:
            return db.query(User.id).filter(User.id == owner_id).first() is not None
        except SQLAlchemyError as e:
            raise _classify(e)
        finally:
            db.close()

    def create_diagnosis(
        self,
        owner_id: str,
        job_id: str,
        prediction: NormalizedPrediction,
        info: DiseaseInfo,
        images: List[ImageRef],
    ) -> str:
        """Create a crop + diagnosis for a finished job and return the diagnosis id.

        Idempotent per job: if the job already has a diagnosis its id is returned.
        """
        db = self.session_factory()
        try:
            existing = db.query(Diagnosis).filter(Diagnosis.job_id == job_id).first()
            if existing is not None:
                logger.info(f"[Job {job_id}] Diagnosis {existing.id} already stored")
                return existing.id

            if db.query(User.id).filter(User.id == owner_id).first() is None:
                raise PersistenceError(f"Owner {owner_id} no longer exists")

            crop = Crop(user_id=owner_id, name=prediction.crop_name)
            db.add(crop)
            db.flush()

            diagnosis = Diagnosis(
                job_id=job_id,
                crop_id=crop.id,
                disease_class=prediction.disease_class_raw,
                disease_class_display=prediction.disease_class_display,
                is_healthy=prediction.is_healthy,
                disease_top=prediction.top_score,
                confidence=prediction.confidence,
                inference_id=prediction.inference_id,
                description=info.description,
                causes=list(info.causes),
                symptoms=list(info.symptoms),
                prevention=list(info.prevention),
                treatment=list(info.treatment),
                info_source=info.source,
                image_urls=[image.url for image in images],
                image_width=prediction.image_width,
                image_height=prediction.image_height,
            )
            db.add(diagnosis)
            db.commit()
            logger.info(f"[Job {job_id}] Stored diagnosis {diagnosis.id} for crop {crop.id}")
            return diagnosis.id
        except IntegrityError:
            # A concurrent write for the same job won the unique job_id race
            db.rollback()
            existing = db.query(Diagnosis).filter(Diagnosis.job_id == job_id).first()
            if existing is not None:
                return existing.id
            raise PersistenceError(f"Failed to save prediction for job {job_id}")
        except SQLAlchemyError as e:
            db.rollback()
            raise _classify(e)
        finally:
            db.close()

    def list_diagnoses(self, owner_id: str) -> List[DiagnosisResponse]:
        db = self.session_factory()
        try:
            rows = (
                db.query(Diagnosis, Crop)
                .join(Crop, Diagnosis.crop_id == Crop.id)
                .filter(Crop.user_id == owner_id)
                .order_by(Diagnosis.created_at.desc())
                .all()
            )
            return [
                DiagnosisResponse(
                    id=diagnosis.id,
                    job_id=diagnosis.job_id,
                    crop_id=crop.id,
                    crop_name=crop.name,
                    disease_class=diagnosis.disease_class,
                    disease_class_display=diagnosis.disease_class_display,
                    is_healthy=bool(diagnosis.is_healthy),
                    confidence=diagnosis.confidence,
                    description=diagnosis.description,
                    causes=diagnosis.causes or [],
                    symptoms=diagnosis.symptoms or [],
                    prevention=diagnosis.prevention or [],
                    treatment=diagnosis.treatment or [],
                    info_source=diagnosis.info_source,
                    image_urls=diagnosis.image_urls or [],
                    created_at=diagnosis.created_at,
                )
                for diagnosis, crop in rows
            ]
        except SQLAlchemyError as e:
            raise _classify(e)
        finally:
            db.close()

    def ping(self) -> bool:
        try:
            self.find_owner("")
            return True
        except PersistenceError:
            return False

def _classify(error: SQLAlchemyError) -> PersistenceError:
    if isinstance(error, OperationalError) or (isinstance(error, DBAPIError) and error.connection_invalidated):
        logger.warning(f"Record store unavailable: {error}")
        return RecordStoreUnavailable(f"Record store unavailable: {error}")
    logger.error(f"Record store error: {error}")
    return PersistenceError(f"Failed to save prediction to database: {error}")
