"""Job queue infrastructure - Redis integration."""
from .redis_job_broker import RedisJobBroker

__all__ = [
    "RedisJobBroker",
]
