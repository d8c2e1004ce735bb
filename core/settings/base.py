# core/settings/base.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class SeoAgentBaseSettings(BaseSettings):
    """
    Base for every settings module.

    Values come from the process environment; api.dependencies loads .env
    into it once at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )
