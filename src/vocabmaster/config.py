"""Configuration settings loaded from the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

BACKENDS = ("json", "sqlite")


def _state_dir() -> Path:
    return Path(os.environ.get("VOCABMASTER_STATE_DIR", Path.cwd() / ".vocabmaster"))


@dataclass
class Settings:
    """Runtime settings; defaults are read when the instance is created."""

    state_dir: Path = field(default_factory=_state_dir)
    backend: str = field(default_factory=lambda: os.environ.get("VOCABMASTER_BACKEND", "json"))
    user_id: str | None = field(default_factory=lambda: os.environ.get("VOCABMASTER_USER_ID"))
    log_level: str = field(
        default_factory=lambda: os.environ.get("VOCABMASTER_LOG_LEVEL", "WARNING").upper()
    )
    log_file: str | None = field(default_factory=lambda: os.environ.get("VOCABMASTER_LOG_FILE"))
    log_format: str = "%(name)s - %(message)s"

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown storage backend: {self.backend} (expected one of {BACKENDS})")


def load_settings(env_file: str | None = None) -> Settings:
    """Load .env (if present) and build settings from the environment."""
    load_dotenv(env_file)
    return Settings()
