from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import uuid

def _uuid() -> str:
    return str(uuid.uuid4())

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True, default=_uuid)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    crops = relationship("Crop", back_populates="owner", cascade="all, delete-orphan")

class Crop(Base):
    __tablename__ = "crops"

    id = Column(String, primary_key=True, index=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("User", back_populates="crops")
    diagnoses = relationship("Diagnosis", back_populates="crop", cascade="all, delete-orphan")

class Diagnosis(Base):
    __tablename__ = "diagnoses"

    id = Column(String, primary_key=True, index=True, default=_uuid)
    # One diagnosis per job; a retried write finds the existing row
    job_id = Column(String, unique=True, index=True, nullable=False)
    crop_id = Column(String, ForeignKey("crops.id"), index=True, nullable=False)

    disease_class = Column(String, nullable=False)
    disease_class_display = Column(String)
    is_healthy = Column(Boolean, default=False)
    disease_top = Column(String)
    confidence = Column(Float)
    inference_id = Column(String, nullable=True)

    description = Column(Text)
    causes = Column(JSON)
    symptoms = Column(JSON)
    prevention = Column(JSON)
    treatment = Column(JSON)
    info_source = Column(String)

    image_urls = Column(JSON)
    image_width = Column(Integer, default=0)
    image_height = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    crop = relationship("Crop", back_populates="diagnoses")
