"""Application layer - interfaces to external collaborators."""

from .interfaces import (
    IIntegrationStatusStore,
    IPerformanceDataStore,
    ISiteRegistry,
    ISiteStateStore,
)

__all__ = [
    "IIntegrationStatusStore",
    "IPerformanceDataStore",
    "ISiteRegistry",
    "ISiteStateStore",
]
