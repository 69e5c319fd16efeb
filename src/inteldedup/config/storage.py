"""Where the candidate store lives.

``DATABASE_URI`` wins when set (e.g. a shared PostgreSQL database for the
HTTP service). Otherwise a SQLite file is kept under ``INTELDEDUP_DATA_DIR``,
falling back to ``$XDG_DATA_HOME/inteldedup``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DATA_DIR_ENV = "INTELDEDUP_DATA_DIR"
DATABASE_URI_ENV = "DATABASE_URI"
DATABASE_FILENAME = "inteldedup.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def database_path(self) -> Path:
        directory = self.data_dir.expanduser().resolve()
        directory.mkdir(parents=True, exist_ok=True)
        return directory / DATABASE_FILENAME


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def get_storage_config() -> StorageConfig:
    configured = os.getenv(DATA_DIR_ENV)
    if configured:
        return StorageConfig(data_dir=Path(configured))
    xdg_home = os.getenv("XDG_DATA_HOME")
    base = Path(xdg_home) if xdg_home else Path.home() / ".local" / "share"
    return StorageConfig(data_dir=base / "inteldedup")


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    uri = os.getenv(DATABASE_URI_ENV, "").strip()
    if uri:
        return DatabaseConfig(uri=uri)
    path = (storage or get_storage_config()).database_path()
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{path}")
