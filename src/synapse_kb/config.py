"""Configuration module for the Synapse knowledge base."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, lives alongside the default data directory
_USER_ENV = Path.home() / ".synapse" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Journal modes accepted by SQLite's PRAGMA journal_mode
_JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class SynapseConfig(BaseModel):
    """Configuration for the knowledge base."""

    # Base directory that relative paths are resolved against
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("SYNAPSE_BASE_DIR", "."))
    )
    # Data directory holding notes/ and attachments/
    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("SYNAPSE_DATA_DIR", "data"))
    )
    # Relational index file
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("SYNAPSE_DATABASE_PATH", "data/synapse.db")
        )
    )
    # Transient store, nothing survives the process
    in_memory_db: bool = Field(
        default_factory=lambda: _env_flag("SYNAPSE_IN_MEMORY_DB", "false")
    )
    sqlite_journal_mode: str = Field(
        default_factory=lambda: os.getenv("SYNAPSE_JOURNAL_MODE", "WAL")
    )
    # Maximum length of the title slug used in note file names
    slug_max_length: int = Field(default=50, ge=1)
    # Logging
    log_level: str = Field(
        default_factory=lambda: os.getenv("SYNAPSE_LOG_LEVEL", "INFO")
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("SYNAPSE_LOG_DIR"))
            if os.getenv("SYNAPSE_LOG_DIR")
            else None
        )
    )

    model_config = {"validate_assignment": True}

    @field_validator("sqlite_journal_mode")
    @classmethod
    def _validate_journal_mode(cls, v: str) -> str:
        mode = v.strip().upper()
        if mode not in _JOURNAL_MODES:
            raise ValueError(
                f"sqlite_journal_mode must be one of {sorted(_JOURNAL_MODES)}, got '{v}'"
            )
        return mode

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{v}'")
        return level

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_data_dir(self) -> Path:
        """Get the absolute data directory (not created here)."""
        return self.get_absolute_path(self.data_dir)

    def get_database_path(self) -> Path:
        """Get the absolute database path, creating its parent directory."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return db_path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory_db:
            return "sqlite://"
        return f"sqlite:///{self.get_database_path()}"

    def get_log_level(self) -> int:
        return logging.getLevelName(self.log_level)


# Create a global config instance
config = SynapseConfig()
