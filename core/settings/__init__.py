# Settings package
from core.settings.modules import AppSettings, QueueSettings, WorkerSettings, get_app_settings

__all__ = ["get_app_settings", "AppSettings", "QueueSettings", "WorkerSettings"]
