"""
In-memory site state store.

Answers site registry, integration and performance-data lookups from
plain dictionaries. Used by tests and local runs.
"""
from datetime import datetime
from typing import Dict, List, Set, Tuple

from core.application.interfaces import ISiteStateStore


def strip_scheme(site_url: str) -> str:
    """Return the host part of a URL or domain, without scheme or trailing slash."""
    host = site_url.split("://", 1)[-1]
    return host.rstrip("/").lower()


class InMemorySiteStateStore(ISiteStateStore):
    """In-memory implementation of every site-state lookup."""

    def __init__(self):
        self._managed: Dict[Tuple[str, str], bool] = {}
        self._connections: Set[Tuple[str, str, str]] = set()
        self._performance_rows: Dict[str, List[datetime]] = {}

    # Seeding helpers

    def add_website(self, user_token: str, domain: str, is_managed: bool = True) -> None:
        self._managed[(user_token, strip_scheme(domain))] = is_managed

    def add_connection(self, user_token: str, site_url: str, provider: str) -> None:
        self._connections.add((user_token, site_url, provider))

    def add_performance_row(self, user_token: str, date_start: datetime) -> None:
        self._performance_rows.setdefault(user_token, []).append(date_start)

    # Lookups

    async def is_managed(self, user_token: str, site_url: str) -> bool:
        host = strip_scheme(site_url)
        return any(
            managed
            for (token, domain), managed in self._managed.items()
            if token == user_token and host in domain
        )

    async def has_active_connection(self, user_token: str, site_url: str, provider: str) -> bool:
        return (user_token, site_url, provider) in self._connections

    async def has_rows_since(self, user_token: str, since: datetime) -> bool:
        return any(date_start >= since for date_start in self._performance_rows.get(user_token, []))
