import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from aive.config.models import AppConfig

logger = logging.getLogger(__name__)

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "OLLAMA_HOST": ("llm", "host"),
    "AIVE_LLM_MODEL": ("llm", "model"),
}


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Loads YAML config (defaults if missing) and applies environment overrides."""
    data: Dict[str, Any] = {}
    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file {config_path} must contain a mapping")
        else:
            logger.warning(f"Config file not found at {config_path}, using defaults.")

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            section_data = data.get(section) or {}
            section_data[key] = value
            data[section] = section_data

    return AppConfig(**data)
