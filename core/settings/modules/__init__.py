# Settings modules
from .app_settings import AppSettings, get_app_settings
from .queue_settings import QueueSettings
from .worker_settings import WorkerSettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "QueueSettings",
    "WorkerSettings",
]
