from pathlib import Path
from typing import List
from pydantic import BaseModel
from .models import RecordingJob

class Event(BaseModel):
    """Base class for all domain events."""
    pass

class JobEvent(Event):
    job: RecordingJob

class JobScheduled(JobEvent):
    pass

class JobCancelled(JobEvent):
    pass

class CaptureStarted(JobEvent):
    output_path: Path

class TranscodeStarted(JobEvent):
    input_path: Path

class JobCompleted(JobEvent):
    pass

class JobFailed(JobEvent):
    error_message: str

class JobsRecovered(Event):
    """Published once reconcile() has rebuilt timers after a restart."""
    rearmed: List[str]
    missed: List[str]
