import os
import logging
from pathlib import Path
from typing import Optional, Mapping
import yaml
from streamrec.config.models import AppConfig

logger = logging.getLogger(__name__)

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "STREAMREC_RECORDINGS_DIR": ("capture", "recordings_dir"),
    "STREAMREC_SCHEDULES_PATH": ("scheduler", "schedules_path"),
    "STREAMREC_CATALOG_PATH": ("catalog", "database_path"),
    "STREAMREC_HLS_SCRIPT": ("transcode", "script_path"),
}


def load_config(config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load configuration from a YAML file, then apply STREAMREC_* environment overrides.

    A missing file yields the defaults. Invalid values raise pydantic.ValidationError.
    """
    data = {}
    if config_path is not None and Path(config_path).exists():
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{config_path}: top level must be a mapping")
        # An empty section ("catalog:") parses as None; treat it as absent
        data = {section: values for section, values in data.items() if values is not None}
    elif config_path is not None:
        logger.info(f"Config file {config_path} not found, using defaults")

    env = os.environ if environ is None else environ
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            section_data = data.get(section) or {}
            section_data[key] = value
            data[section] = section_data

    return AppConfig(**data)
