"""
Material store configuration.

Defaults live under ~/.matstore/. Every path can be overridden with an
environment variable (optional, advanced):

    MATSTORE_DATA_DIR        directory holding both files
    MATSTORE_DB_PATH         durable catalog database
    MATSTORE_SNAPSHOT_PATH   session snapshot JSON
    MATSTORE_SYNC_WRITES     "1" to run persistence writes inline
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator


# Environment variable overrides
ENV_DATA_DIR = "MATSTORE_DATA_DIR"
ENV_DB_PATH = "MATSTORE_DB_PATH"
ENV_SNAPSHOT_PATH = "MATSTORE_SNAPSHOT_PATH"
ENV_SYNC_WRITES = "MATSTORE_SYNC_WRITES"

DEFAULT_DATA_DIR = Path.home() / ".matstore"
DB_FILENAME = "materials.db"
SNAPSHOT_FILENAME = "snapshot.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class StoreConfig(BaseModel):
    """
    Settings for a MaterialStore.

    Attributes:
        db_path: SQLite database holding the durable catalog
        snapshot_path: JSON file holding the session snapshot
        background_writes: Run persistence on the write queue thread
        initial_target: Target selected at startup
        initial_layer: Layer selected at startup (None = default layer)
    """

    model_config = ConfigDict(extra="forbid")

    db_path: Path = DEFAULT_DATA_DIR / DB_FILENAME
    snapshot_path: Path = DEFAULT_DATA_DIR / SNAPSHOT_FILENAME
    background_writes: bool = True
    initial_target: str = "glassChip"
    initial_layer: Optional[str] = None

    @field_validator("initial_target")
    @classmethod
    def validate_initial_target(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("initial_target cannot be empty")
        return v

    @classmethod
    def for_directory(cls, data_dir: Path, **overrides) -> "StoreConfig":
        """Place both files in one directory."""
        data_dir = Path(data_dir)
        return cls(
            db_path=data_dir / DB_FILENAME,
            snapshot_path=data_dir / SNAPSHOT_FILENAME,
            **overrides,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StoreConfig":
        """
        Build a config from environment variables.

        Priority: explicit file variable > MATSTORE_DATA_DIR > default.
        """
        env = os.environ if environ is None else environ

        data_dir = Path(env[ENV_DATA_DIR]).expanduser() if env.get(ENV_DATA_DIR) else DEFAULT_DATA_DIR
        db_path = env.get(ENV_DB_PATH)
        snapshot_path = env.get(ENV_SNAPSHOT_PATH)
        sync_writes = env.get(ENV_SYNC_WRITES, "").strip().lower() in _TRUE_VALUES

        return cls(
            db_path=Path(db_path).expanduser() if db_path else data_dir / DB_FILENAME,
            snapshot_path=(
                Path(snapshot_path).expanduser() if snapshot_path else data_dir / SNAPSHOT_FILENAME
            ),
            background_writes=not sync_writes,
        )
