from __future__ import annotations

import logging
from typing import Any

from deskforms.config import Settings
from deskforms.repo_json import JSONStorage
from deskforms.repo_sqlite import SQLiteStorage

logger = logging.getLogger(__name__)


def init_storage(settings: Settings) -> Any:
    if settings.storage_backend == "json":
        logger.info("Using JSON storage at %s", settings.json_path)
        return JSONStorage(settings.json_path)
    if settings.storage_backend != "sqlite":
        raise ValueError(f"unknown storage backend: {settings.storage_backend}")
    logger.info("Using SQLite storage at %s", settings.sqlite_path)
    return SQLiteStorage(settings.sqlite_path)
