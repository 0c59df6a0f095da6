"""
Runtime configuration.

Values come from environment variables, optionally overridden by a YAML
settings file named in SPEEDOPS_CONFIG. The state directory falls back to
/tmp when the configured location is not writable.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger("config")

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------
DEFAULT_STATE_DIR = "/var/lib/speedops"
FALLBACK_STATE_DIR = "/tmp/speedops"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-lite-latest"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
ACTIVITY_FEED_LIMIT = 50


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Resolved settings for one process."""
    state_dir: Path
    store_backend: str = "file"  # "file" or "memory"
    gateway_timeout: float = 10.0
    gateway_max_attempts: int = 3
    gateway_backoff_base: float = 0.5
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    gemini_timeout: float = 60.0
    activity_limit: int = ACTIVITY_FEED_LIMIT
    require_proof: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        return cls(
            state_dir=Path(os.getenv("SPEEDOPS_STATE_DIR", DEFAULT_STATE_DIR)),
            store_backend=os.getenv("SPEEDOPS_STORE_BACKEND", "file"),
            gateway_timeout=float(os.getenv("SPEEDOPS_GATEWAY_TIMEOUT", "10.0")),
            gateway_max_attempts=int(os.getenv("SPEEDOPS_GATEWAY_MAX_ATTEMPTS", "3")),
            gateway_backoff_base=float(os.getenv("SPEEDOPS_GATEWAY_BACKOFF_BASE", "0.5")),
            gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
            gemini_model=os.getenv("SPEEDOPS_GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            gemini_base_url=os.getenv("SPEEDOPS_GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL),
            gemini_timeout=float(os.getenv("SPEEDOPS_GEMINI_TIMEOUT", "60.0")),
            activity_limit=int(os.getenv("SPEEDOPS_ACTIVITY_LIMIT", str(ACTIVITY_FEED_LIMIT))),
            require_proof=_env_bool("SPEEDOPS_REQUIRE_PROOF", False),
        )

    def apply_overrides(self, overrides: Dict[str, Any]) -> None:
        """Apply known keys from a mapping; unknown keys are logged and ignored."""
        known = {f.name for f in fields(self)}
        for key, value in overrides.items():
            if key not in known:
                logger.warning(f"Ignoring unknown setting: {key}")
                continue
            if key == "state_dir":
                value = Path(value)
            setattr(self, key, value)

    def ensure_state_dir(self) -> Path:
        """Create the state directory, falling back to /tmp when not writable."""
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.debug(f"Could not create state directory {self.state_dir}: {e}")
            self.state_dir = Path(FALLBACK_STATE_DIR)
            self.state_dir.mkdir(parents=True, exist_ok=True)
        return self.state_dir


def read_yaml_file(file_path: Path) -> dict:
    """Read a YAML file, returning an empty dict for empty files."""
    with open(file_path) as f:
        return yaml.safe_load(f) or {}


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from the environment and an optional YAML file.

    The YAML file path is taken from the argument, then SPEEDOPS_CONFIG.
    """
    settings = Settings.from_env()
    path = config_path or (Path(os.environ["SPEEDOPS_CONFIG"]) if os.getenv("SPEEDOPS_CONFIG") else None)
    if path is not None:
        if path.exists():
            settings.apply_overrides(read_yaml_file(path))
            logger.info(f"Loaded settings overrides from {path}")
        else:
            logger.warning(f"Settings file not found: {path}")
    return settings
