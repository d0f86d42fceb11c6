from unittest.mock import MagicMock

import pytest
import redis
from fastapi.testclient import TestClient
from kombu.exceptions import OperationalError as BrokerError

from app import dependencies
from app.errors import ConfigurationError, UpstreamError
from app.jobs.models import JobState
from app.jobs.queue import JobQueue
from app.jobs.tracker import StatusTracker
from app.main import app
from app.services.enrichment import EnrichmentChain, StaticTableProvider
from app.workers.pipeline import DetectionPipeline
from conftest import FakeEnrichment, FakeImageStore, FakeInference, make_raw_prediction


@pytest.fixture
def ai_provider():
    return MagicMock()


@pytest.fixture
def client(job_queue, job_store, record_store, ai_provider):
    images = MagicMock()
    images.ping.return_value = True
    app.dependency_overrides[dependencies.get_job_queue] = lambda: job_queue
    app.dependency_overrides[dependencies.get_job_store] = lambda: job_store
    app.dependency_overrides[dependencies.get_status_tracker] = lambda: StatusTracker(job_store)
    app.dependency_overrides[dependencies.get_record_store] = lambda: record_store
    app.dependency_overrides[dependencies.get_image_store] = lambda: images
    app.dependency_overrides[dependencies.get_ai_provider] = lambda: ai_provider
    app.dependency_overrides[dependencies.get_enrichment_chain] = lambda: EnrichmentChain([StaticTableProvider()])
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client, owner_id, data, content_type="image/png"):
    return client.post(
        "/api/v1/jobs/detect",
        files={"file": ("leaf.png", data, content_type)},
        data={"owner_id": owner_id},
    )


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "CropScan" in response.json()["message"]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"] == {"redis": "healthy", "database": "healthy", "storage": "healthy"}


def test_health_degraded_without_redis(client, job_store):
    job_store.client = MagicMock()
    job_store.client.ping.side_effect = redis.ConnectionError("down")

    data = client.get("/health").json()

    assert data["status"] == "degraded"
    assert data["services"]["redis"] == "unavailable"


def test_detect_returns_job_immediately(client, owner_id, png_bytes, dispatched):
    response = _upload(client, owner_id, png_bytes)

    assert response.status_code == 202
    data = response.json()
    assert data["status"] == "processing"
    assert data["status_url"] == f"/api/v1/jobs/{data['job_id']}"
    assert dispatched == [(data["job_id"], 0.0)]

    status = client.get(data["status_url"]).json()
    assert status["status"] == "waiting"
    assert status["result"] is None


def test_detect_without_file(client, owner_id):
    response = client.post("/api/v1/jobs/detect", data={"owner_id": owner_id})

    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


def test_detect_non_image(client, owner_id):
    response = _upload(client, owner_id, b"%PDF-1.4", "application/pdf")

    assert response.status_code == 400
    assert response.json()["detail"] == "Uploaded file must be an image"


def test_detect_unknown_owner(client, png_bytes, dispatched):
    response = _upload(client, "no-such-user", png_bytes)

    assert response.status_code == 403
    assert dispatched == []


def test_detect_with_queue_down(client, job_queue, owner_id, png_bytes):
    job_queue.store.client = MagicMock()
    job_queue.store.client.pipeline.side_effect = redis.ConnectionError("down")

    response = _upload(client, owner_id, png_bytes)

    assert response.status_code == 503


def test_job_lifecycle_through_api(client, job_queue, record_store, owner_id, png_bytes):
    job_id = _upload(client, owner_id, png_bytes).json()["job_id"]
    pipeline = DetectionPipeline(FakeImageStore(), FakeInference(make_raw_prediction()), FakeEnrichment(), record_store, sleep=lambda s: None)
    job_queue.process(job_id, pipeline.run)

    status = client.get(f"/api/v1/jobs/{job_id}").json()

    assert status["status"] == JobState.COMPLETED.value
    assert status["attempts"] == 1
    assert status["result"]["prediction"]["disease_class_raw"] == "potato_early_blight"
    assert status["finished_at"] is not None

    listing = client.get("/api/v1/jobs", params={"owner_id": owner_id}).json()
    assert [job["job_id"] for job in listing["jobs"]] == [job_id]

    diagnoses = client.get(f"/api/v1/owners/{owner_id}/diagnoses").json()
    assert len(diagnoses) == 1
    assert diagnoses[0]["job_id"] == job_id
    assert diagnoses[0]["crop_name"] == "Potato"


def test_unknown_job(client):
    assert client.get("/api/v1/jobs/does-not-exist").status_code == 404


def test_remove_job(client, owner_id, png_bytes):
    job_id = _upload(client, owner_id, png_bytes).json()["job_id"]

    assert client.delete(f"/api/v1/jobs/{job_id}").status_code == 204
    assert client.get(f"/api/v1/jobs/{job_id}").status_code == 404
    assert client.delete(f"/api/v1/jobs/{job_id}").status_code == 404


def test_disease_info(client):
    response = client.post("/api/v1/ai/disease-info", json={"disease_class": "potato_late_blight"})

    assert response.status_code == 200
    assert response.json()["source"] == "Default Database"


def test_disease_info_unknown_class_uses_default(client):
    data = client.post("/api/v1/ai/disease-info", json={"disease_class": "mystery_spot"}).json()

    assert data["source"] == "default"
    assert data["causes"] and data["treatment"]


def test_ask(client, ai_provider):
    ai_provider.ask.return_value = "Remove infected leaves."

    response = client.post("/api/v1/ai/ask", json={"question": "What now?", "disease_class": "tomato_leaf_mold"})

    assert response.status_code == 200
    assert response.json() == {"answer": "Remove infected leaves."}
    ai_provider.ask.assert_called_once_with("What now?", "tomato_leaf_mold")


@pytest.mark.parametrize("error,status", [
    (ConfigurationError("OpenRouter API key is not configured."), 503),
    (UpstreamError("OpenRouter returned HTTP 500", status_code=500), 502),
])
def test_ask_errors(client, ai_provider, error, status):
    ai_provider.ask.side_effect = error

    assert client.post("/api/v1/ai/ask", json={"question": "Hello?"}).status_code == status


def test_detect_accepts_job_when_broker_is_down(client, job_store, record_store, owner_id, png_bytes):
    def dispatch(job_id, countdown):
        raise BrokerError("broker down")

    app.dependency_overrides[dependencies.get_job_queue] = lambda: JobQueue(job_store, dispatch, owner_exists=record_store.find_owner)

    response = _upload(client, owner_id, png_bytes)

    assert response.status_code == 202
    listing = client.get("/api/v1/jobs", params={"owner_id": owner_id}).json()
    assert [job["job_id"] for job in listing["jobs"]] == [response.json()["job_id"]]
