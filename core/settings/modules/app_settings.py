from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from core.infrastructure.database.config import DatabaseSettings
from core.settings.modules.queue_settings import QueueSettings
from core.settings.modules.worker_settings import WorkerSettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    queue: QueueSettings
    worker: WorkerSettings
    database: DatabaseSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        queue=QueueSettings(),
        worker=WorkerSettings(),
        database=DatabaseSettings(),
    )
