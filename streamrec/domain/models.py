import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

class JobStatus(str, Enum):
    PENDING = "pending"
    CAPTURING = "capturing"
    TRANSCODING = "transcoding"
    COMPLETED = "completed"
    FAILED = "failed"

class AccessLevel(str, Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def new_job_id() -> str:
    return uuid.uuid4().hex

def check_output_name(name: str) -> str:
    """Rejects names that would place the capture outside the recordings directory."""
    if "/" in name or "\\" in name or name.strip() in (".", ".."):
        raise ValueError(f"invalid output name {name!r}: must be a plain file name")
    return name

class RecordingJob(BaseModel):
    """One scheduled capture-to-publish unit of work."""

    id: str = Field(default_factory=new_job_id, min_length=1)
    source: str = Field(min_length=1)
    name: str = Field(min_length=1)
    duration_seconds: int = Field(gt=0)
    start_time: datetime
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    error_detail: Optional[str] = None

    @field_validator('source', 'name')
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator('start_time', 'created_at')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are taken as UTC so comparisons with the clock never mix kinds
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

class CatalogEntry(BaseModel):
    id: int
    folder_name: str
    name: str
    access_level: AccessLevel = AccessLevel.AUTHENTICATED
    created_at: str
    file_path: str
