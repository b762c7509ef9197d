import os
from pathlib import Path
from typing import Any, Optional

import yaml

from coursebooks.utils.logger import LoggerManager

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"
CONFIG_ENV_VAR = "COURSEBOOKS_CONFIG"

logger = LoggerManager.get_logger(__name__)


class ConfigLoader:
    """
    Loads and provides access to a YAML configuration file.
    Supports nested keys via dot notation.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.config = self._load()

    def _load(self) -> dict:
        path = self.path
        if not path.exists():
            logger.error("config.missing", extra={"extra_data": {"path": str(path)}})
            raise FileNotFoundError(f"Config file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error("config.load.fail", extra={"extra_data": {"path": str(path), "error": str(e)}})
            raise ValueError(f"Invalid YAML in config {path}: {e}") from e

        if not isinstance(data, dict):
            logger.error("config.invalid_type", extra={"extra_data": {"path": str(path)}})
            raise ValueError(f"Invalid config (expected mapping) at {path}")
        logger.debug("config.loaded", extra={"extra_data": {"path": str(path)}})
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """Supports dot notation for nested access."""
        parts = key.split(".")
        val = self.config
        for part in parts:
            if isinstance(val, dict) and part in val:
                val = val[part]
            else:
                return default
        return val

    def as_dict(self) -> dict:
        return self.config


def load_settings(path: Optional[str | Path] = None) -> ConfigLoader:
    """Load settings from `path`, $COURSEBOOKS_CONFIG, or the packaged defaults."""
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    return ConfigLoader(path)
