"""Application layer interfaces."""
from abc import ABC, abstractmethod
from datetime import datetime


class ISiteRegistry(ABC):
    """
    Interface for site ownership and management lookups.

    A "managed" site is one the user has authorized the agent to modify.
    """

    @abstractmethod
    async def is_managed(self, user_token: str, site_url: str) -> bool:
        """
        Check whether the user's site is flagged as managed.

        Args:
            user_token: Owner token
            site_url: Site URL or domain (scheme is ignored)

        Returns:
            True if a managed website record exists
        """
        pass


class IIntegrationStatusStore(ABC):
    """Interface for third-party connection existence checks."""

    @abstractmethod
    async def has_active_connection(self, user_token: str, site_url: str, provider: str) -> bool:
        """
        Check for an active connection record.

        Args:
            user_token: Owner token
            site_url: Site the connection is bound to
            provider: Integration key, e.g. "google_search_console"

        Returns:
            True if an active connection exists
        """
        pass


class IPerformanceDataStore(ABC):
    """Interface for search performance data availability."""

    @abstractmethod
    async def has_rows_since(self, user_token: str, since: datetime) -> bool:
        """
        Check whether any performance row starts on or after ``since``.

        Args:
            user_token: Owner token
            since: Window start (timezone-aware UTC)

        Returns:
            True if at least one row exists in the window
        """
        pass


class ISiteStateStore(ISiteRegistry, IIntegrationStatusStore, IPerformanceDataStore):
    """Convenience interface for stores that answer all site-state lookups."""
