"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

# ===== Common Schemas =====

class HealthResponse(BaseModel):
    status: str

class VersionResponse(BaseModel):
    version: str

# ===== Video Job Schemas =====

class VideoJobOut(BaseModel):
    id: str
    user_id: str
    session_id: Optional[str] = None
    title: Optional[str] = None
    storage_path: str
    status: str
    transcription_text: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job) -> "VideoJobOut":
        return cls(
            id=job.id,
            user_id=job.user_id,
            session_id=job.session_id,
            title=job.title,
            storage_path=job.storage_path,
            status=job.status,
            transcription_text=job.transcription_text,
            analysis=job.analysis,
            error_message=job.error_message,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )

class JournalEntryOut(BaseModel):
    id: str
    user_id: str
    session_id: Optional[str] = None
    storage_path: str
    status: str
    transcription_text: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job) -> "JournalEntryOut":
        return cls(**{name: getattr(job, name) for name in cls.model_fields})

class JournalResponse(BaseModel):
    data: List[JournalEntryOut]
    totalCount: int

class TriggerResponse(BaseModel):
    job_id: Optional[str] = None
    status: str
    detail: Optional[str] = None

# ===== Storage Schemas =====

class SignedUrlRequest(BaseModel):
    storage_path: str = Field(min_length=1)
    expires_in: Optional[int] = Field(default=None, ge=1)

class SignedUrlResponse(BaseModel):
    signed_url: str

# ===== Connection Schemas =====

class ConnectionRequestIn(BaseModel):
    requester_id: str
    target_id: str
    video_id: Optional[str] = None
    analysis_data: Optional[Dict[str, Any]] = None

class ConnectionRequestOut(BaseModel):
    id: str
    requester_id: str
    target_id: str
    video_id: Optional[str] = None
    status: str
    analysis_data: Optional[Dict[str, Any]] = None
    match_score: Optional[float] = None
    created_at: Optional[datetime] = None
