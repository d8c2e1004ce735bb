from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from core.settings.base import SeoAgentBaseSettings


class QueueSettings(SeoAgentBaseSettings):
    """
    Job queue settings.

    Every field reads QUEUE_<FIELD_NAME> except redis_url, which reads REDIS_URL.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        env_prefix="QUEUE_",
    )

    backend: Literal["redis", "memory"] = "redis"
    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL")
    key_prefix: str = "seoagent:queue"

    # Retry / retention
    retry_attempts: int = 3
    retry_backoff_seconds: float = 2.0
    remove_on_complete: int = 100
    remove_on_fail: int = 50

    # Active jobs whose lock lapses are treated as stalled (Redis backend)
    lock_duration_ms: int = 900_000

    # Workers
    poll_interval_seconds: float = 1.0
    dry_run_delay_seconds: float = 1.0

    concurrency_agent_actions: int = 5
    concurrency_content_generation: int = 3
    concurrency_technical_seo: int = 5
    concurrency_cms_publishing: int = 2
    concurrency_verification: int = 10

    @field_validator(
        "retry_attempts",
        "lock_duration_ms",
        "concurrency_agent_actions",
        "concurrency_content_generation",
        "concurrency_technical_seo",
        "concurrency_cms_publishing",
        "concurrency_verification",
    )
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    def concurrency_for(self, queue_name: str) -> int:
        """Concurrency limit for a queue name such as 'content-generation'."""
        return getattr(self, f"concurrency_{queue_name.replace('-', '_')}")
