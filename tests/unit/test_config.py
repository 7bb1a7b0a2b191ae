import pytest
from pathlib import Path
from pydantic import ValidationError
from streamrec.config.loader import load_config
from streamrec.config.models import AppConfig, SchedulerConfig, TranscodeConfig


def test_defaults():
    config = AppConfig()
    assert config.scheduler.safety_margin_seconds == 30
    assert config.scheduler.max_concurrent_transcodes == 2
    assert config.capture.use_screen is True
    assert config.transcode.shell == "bash"
    assert config.catalog.enabled is True


def test_invalid_values():
    with pytest.raises(ValidationError):
        SchedulerConfig(safety_margin_seconds=-1)
    with pytest.raises(ValidationError):
        SchedulerConfig(max_concurrent_transcodes=0)
    with pytest.raises(ValidationError):
        TranscodeConfig(timeout_seconds=0)


def test_load_config(tmp_path):
    f = tmp_path / "streamrec.yaml"
    f.write_text("""
scheduler:
  schedules_path: /data/schedules.json
  safety_margin_seconds: 45
capture:
  recordings_dir: /data/recordings
  use_screen: false
transcode:
  script_path: /opt/make-hls.sh
""")
    config = load_config(f, environ={})

    assert config.scheduler.schedules_path == Path("/data/schedules.json")
    assert config.scheduler.safety_margin_seconds == 45
    assert config.capture.recordings_dir == Path("/data/recordings")
    assert config.capture.use_screen is False
    assert config.transcode.script_path == Path("/opt/make-hls.sh")
    assert config.catalog.enabled is True


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml", environ={})
    assert config == AppConfig()


def test_environment_overrides(tmp_path):
    f = tmp_path / "streamrec.yaml"
    f.write_text("capture:\n  recordings_dir: /from/file\ncatalog:\n")
    config = load_config(f, environ={
        "STREAMREC_RECORDINGS_DIR": "/from/env",
        "STREAMREC_CATALOG_PATH": "/env/recordings.db",
    })

    assert config.capture.recordings_dir == Path("/from/env")
    assert config.catalog.database_path == Path("/env/recordings.db")


def test_invalid_yaml_values(tmp_path):
    f = tmp_path / "streamrec.yaml"
    f.write_text("scheduler:\n  max_concurrent_transcodes: 0\n")
    with pytest.raises(ValidationError):
        load_config(f, environ={})
