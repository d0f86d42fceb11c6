import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager
from app.api import ai, health, jobs
from app.database import Base, engine
from app.config import settings
from app.workers.celery_app import celery_app # Ensure Celery app is loaded

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create DB tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created.")
    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Asynchronous crop disease detection API",
    version="1.0.0",
    lifespan=lifespan,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

app.include_router(health.router, tags=["Health"])
app.include_router(jobs.router, prefix=settings.API_V1_STR)
app.include_router(jobs.owners_router, prefix=settings.API_V1_STR)
app.include_router(ai.router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": "Welcome to CropScan API. Visit /docs for documentation."}
