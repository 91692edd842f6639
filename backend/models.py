import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Survey(Base):
    __tablename__ = "surveys"
    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    questions = Column(JSON, nullable=False, default=list)
    is_published = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    responses = relationship("SurveyResponse", back_populates="survey", cascade="all, delete-orphan")


class SurveyResponse(Base):
    __tablename__ = "survey_responses"
    id = Column(String(36), primary_key=True, default=_uuid)
    survey_id = Column(String(36), ForeignKey("surveys.id", ondelete="CASCADE"), index=True, nullable=False)
    response_data = Column(JSON, nullable=False)
    user_agent = Column(String(500), nullable=True)
    # always NULL; client addresses are not stored
    ip_address = Column(String(64), nullable=True)
    submitted_at = Column(DateTime(timezone=True), default=_now_utc, index=True)
    survey = relationship("Survey", back_populates="responses")


class RateLimitRecord(Base):
    __tablename__ = "rate_limits"
    client_key = Column(String(255), primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    window_reset_at = Column(Float, nullable=False)
