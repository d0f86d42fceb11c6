import io

import fakeredis
import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.errors import InferenceTimeoutError
from app.jobs.queue import JobQueue
from app.jobs.store import JobStore
from app.models import User
from app.schemas import DiseaseInfo, ImageRef
from app.services.records import RecordStore


def make_raw_prediction(disease_class="potato_early_blight", confidence=0.93, width=640, height=480):
    return {
        "outputs": [
            {
                "model_prediction_output": {
                    "inference_id": "inf-123",
                    "image": {"width": width, "height": height},
                    "predictions": [
                        {"class": disease_class, "class_id": 3, "confidence": confidence},
                        {"class": "potato_late_blight", "class_id": 4, "confidence": 0.05},
                    ],
                    "top": disease_class,
                    "confidence": confidence,
                }
            }
        ]
    }


class FakeImageStore:
    def __init__(self):
        self.uploads = []

    def upload(self, image_bytes, mime_type):
        self.uploads.append((image_bytes, mime_type))
        return ImageRef(url="http://images.test/crops/abc.png", public_id="crops/abc.png", size=len(image_bytes), mime_type=mime_type)


class FakeInference:
    """Returns queued responses in order; exceptions in the queue are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def classify(self, image_url):
        self.calls.append(image_url)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class TimingOutInference(FakeInference):
    def __init__(self):
        super().__init__(InferenceTimeoutError("Inference did not respond within 10s"))


class FakeEnrichment:
    def __init__(self):
        self.calls = []

    def enrich(self, disease_class):
        self.calls.append(disease_class)
        return DiseaseInfo(
            description="Early blight is a fungal disease.",
            causes=["Fungal infection"],
            symptoms=["Dark spots on leaves"],
            prevention=["Crop rotation"],
            treatment=["Apply fungicide"],
            source="Test",
        )


@pytest.fixture
def png_bytes():
    img = Image.new('RGB', (64, 64), color='green')
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def job_store(redis_client):
    return JobStore(redis_client, retention_seconds=3600, prefix="test")


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def record_store(session_factory):
    return RecordStore(session_factory)


@pytest.fixture
def owner_id(session_factory):
    db = session_factory()
    user = User(email="farmer@example.com", name="Test Farmer")
    db.add(user)
    db.commit()
    user_id = user.id
    db.close()
    return user_id


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def job_queue(job_store, record_store, dispatched):
    return JobQueue(
        job_store,
        lambda job_id, countdown: dispatched.append((job_id, countdown)),
        owner_exists=record_store.find_owner,
        max_attempts=5,
        backoff_seconds=2.0,
        backoff_max_seconds=60.0,
    )
