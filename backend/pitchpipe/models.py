from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, String, Text, Integer, Float, DateTime, JSON, UniqueConstraint, func
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus:
    UPLOADED = "uploaded"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = (COMPLETED, FAILED)
    ALL = (UPLOADED, TRANSCRIBING, ANALYZING, COMPLETED, FAILED)


class ConnectionStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class VideoJob(Base):
    __tablename__ = "videos"
    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    session_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=True)
    storage_path = Column(String, nullable=False)
    status = Column(String, nullable=False, default=JobStatus.UPLOADED, index=True)
    transcription_text = Column(Text, nullable=True)
    analysis = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


def pair_key(user_a: str, user_b: str) -> str:
    """Canonical key of the unordered pair {user_a, user_b}."""
    low, high = sorted((user_a, user_b))
    return f"{low}|{high}"


class ConnectionRequest(Base):
    __tablename__ = "connections"
    __table_args__ = (UniqueConstraint("pair_key", name="uq_connections_pair_key"),)

    id = Column(String, primary_key=True, index=True)
    requester_id = Column(String, nullable=False, index=True)
    target_id = Column(String, nullable=False, index=True)
    pair_key = Column(String, nullable=False)
    video_id = Column(String, nullable=True)
    status = Column(String, nullable=False, default=ConnectionStatus.PENDING)
    analysis_data = Column(JSON, nullable=True)
    match_score = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class Profile(Base):
    """Read-only view of the profiles table owned by the account service."""
    __tablename__ = "profiles"
    user_id = Column(String, primary_key=True)
    email = Column(String, nullable=True)
