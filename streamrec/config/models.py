from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

class SchedulerConfig(BaseModel):
    schedules_path: Path = Path("/var/lib/streamrec/schedules.json")
    safety_margin_seconds: float = Field(default=30.0, ge=0)
    max_concurrent_transcodes: int = Field(default=2, gt=0)

class CaptureConfig(BaseModel):
    recordings_dir: Path = Path("/var/lib/streamrec/recordings")
    vlc_binary: str = "vlc"
    use_screen: bool = True
    screen_binary: str = "screen"
    screen_session: str = "vlc_record"
    extension: str = ".mp4"

class TranscodeConfig(BaseModel):
    script_path: Path = Path("scripts/make-hls.sh")
    shell: str = "bash"
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    stderr_excerpt_chars: int = Field(default=2000, gt=0)

class CatalogConfig(BaseModel):
    enabled: bool = True
    database_path: Path = Path("/var/lib/streamrec/recordings.db")

class LoggingConfig(BaseModel):
    log_dir: Path = Path("logs")
    debug: bool = False

class AppConfig(BaseModel):
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    transcode: TranscodeConfig = Field(default_factory=TranscodeConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
