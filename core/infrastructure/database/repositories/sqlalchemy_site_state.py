"""
SQLAlchemy site state store.

Answers dependency lookups from the websites, integration_connections
and gsc_performance_data tables.
"""
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.application.interfaces import ISiteStateStore
from core.infrastructure.adapters.persistence.in_memory_site_state import strip_scheme
from core.infrastructure.database.models import (
    IntegrationConnectionModel,
    PerformanceDataModel,
    WebsiteModel,
)


class SQLAlchemySiteStateStore(ISiteStateStore):
    """SQLAlchemy implementation of every site-state lookup."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def is_managed(self, user_token: str, site_url: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(WebsiteModel.is_managed)
                .where(
                    WebsiteModel.user_token == user_token,
                    WebsiteModel.domain.ilike(f"%{strip_scheme(site_url)}%"),
                )
                .limit(1)
            )
            return bool(result.scalar_one_or_none())

    async def has_active_connection(self, user_token: str, site_url: str, provider: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(IntegrationConnectionModel.id)
                .where(
                    IntegrationConnectionModel.user_token == user_token,
                    IntegrationConnectionModel.site_url == site_url,
                    IntegrationConnectionModel.provider == provider,
                    IntegrationConnectionModel.is_active.is_(True),
                )
                .limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def has_rows_since(self, user_token: str, since: datetime) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PerformanceDataModel.id)
                .where(
                    PerformanceDataModel.user_token == user_token,
                    PerformanceDataModel.date_start >= since,
                )
                .limit(1)
            )
            return result.scalar_one_or_none() is not None
