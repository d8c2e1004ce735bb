"""Dependency resolver - checks workflow prerequisites against live site state."""

from datetime import timedelta

from core.application.interfaces import (
    IIntegrationStatusStore,
    IPerformanceDataStore,
    ISiteRegistry,
)
from core.domain.entities import WorkflowDependency
from core.domain.enums import DependencyType
from core.infrastructure.logging import get_logger
from core.utils.datetime import utc_now

# Requirement keys that are answered by the same check as another key.
REQUIREMENT_ALIASES = {"technical_modifications": "website_management"}

PERFORMANCE_WINDOW = timedelta(days=90)


def normalize_requirement(requirement: str) -> str:
    return REQUIREMENT_ALIASES.get(requirement, requirement)


class DependencyResolver:
    """
    Evaluate WorkflowDependency entries.

    Lookup errors never propagate: the dependency is reported as satisfied
    only if it is optional.
    """

    def __init__(
        self,
        site_registry: ISiteRegistry,
        integrations: IIntegrationStatusStore,
        performance_data: IPerformanceDataStore,
        performance_window: timedelta = PERFORMANCE_WINDOW,
    ):
        self.site_registry = site_registry
        self.integrations = integrations
        self.performance_data = performance_data
        self.performance_window = performance_window
        self.logger = get_logger("orchestration.resolver")

    async def check_dependencies(
        self,
        dependencies: tuple[WorkflowDependency, ...] | list[WorkflowDependency],
        user_token: str,
        site_url: str,
    ) -> list[WorkflowDependency]:
        """
        Return the dependencies that are not satisfied, in declaration order.

        Args:
            dependencies: Template dependencies
            user_token: Owner token
            site_url: Target site

        Returns:
            Unmet dependencies
        """
        missing = []
        for dependency in dependencies:
            if not await self.is_dependency_satisfied(dependency, user_token, site_url):
                missing.append(dependency)
        return missing

    async def is_dependency_satisfied(
        self,
        dependency: WorkflowDependency,
        user_token: str,
        site_url: str,
    ) -> bool:
        try:
            if dependency.type == DependencyType.INTEGRATION:
                return await self.integrations.has_active_connection(
                    user_token, site_url, dependency.requirement
                )
            if dependency.type == DependencyType.PERMISSION:
                return await self._check_permission(dependency.requirement, user_token, site_url)
            if dependency.type == DependencyType.DATA:
                return await self._check_data(dependency.requirement, user_token)
            return True
        except Exception as e:
            self.logger.error(
                f"Dependency check error for {dependency.requirement}: {e}", exc_info=True
            )
            return dependency.optional

    async def _check_permission(self, requirement: str, user_token: str, site_url: str) -> bool:
        if normalize_requirement(requirement) == "website_management":
            return await self.site_registry.is_managed(user_token, site_url)
        return False

    async def _check_data(self, requirement: str, user_token: str) -> bool:
        if requirement == "search_performance_data":
            since = utc_now() - self.performance_window
            return await self.performance_data.has_rows_since(user_token, since)
        return False
