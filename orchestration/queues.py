"""Queue names, concurrency limits and action-type routing."""

from enum import Enum
from typing import Iterable

from core.domain.exceptions import ConfigurationFailure, UnknownQueueError
from core.infrastructure.logging import get_logger

logger = get_logger("orchestration.queues")


class QueueName(str, Enum):
    """Logical work classes, each processed by its own bounded pool."""

    AGENT_ACTIONS = "agent-actions"
    CONTENT_GENERATION = "content-generation"
    TECHNICAL_SEO = "technical-seo"
    CMS_PUBLISHING = "cms-publishing"
    VERIFICATION = "verification"


QUEUE_CONCURRENCY: dict[QueueName, int] = {
    QueueName.AGENT_ACTIONS: 5,
    QueueName.CONTENT_GENERATION: 3,
    QueueName.TECHNICAL_SEO: 5,
    QueueName.CMS_PUBLISHING: 2,
    QueueName.VERIFICATION: 10,
}

ACTION_QUEUE_ROUTES: dict[str, QueueName] = {
    "technical_seo_crawl": QueueName.TECHNICAL_SEO,
    "technical_seo_fix": QueueName.TECHNICAL_SEO,
    "seoagent_installation": QueueName.TECHNICAL_SEO,
    "content_analysis": QueueName.CONTENT_GENERATION,
    "content_generation": QueueName.CONTENT_GENERATION,
    "sitemap_generation": QueueName.AGENT_ACTIONS,
    "sitemap_management": QueueName.AGENT_ACTIONS,
    "performance_analysis": QueueName.AGENT_ACTIONS,
    "schema_injection": QueueName.AGENT_ACTIONS,
    "cms_publishing": QueueName.CMS_PUBLISHING,
    "verify_technical_fix": QueueName.VERIFICATION,
    "verify_content": QueueName.VERIFICATION,
    "verify_sitemap": QueueName.VERIFICATION,
}


def parse_queue_name(name: str) -> QueueName:
    """Resolve a queue name string, raising UnknownQueueError if it is not a logical queue."""
    try:
        return QueueName(name)
    except ValueError:
        raise UnknownQueueError(str(name)) from None


def _fallback_queue(action_type: str) -> QueueName:
    if "content" in action_type:
        return QueueName.CONTENT_GENERATION
    if "seo" in action_type or "technical" in action_type:
        return QueueName.TECHNICAL_SEO
    if "cms" in action_type or "publish" in action_type:
        return QueueName.CMS_PUBLISHING
    if "verify" in action_type:
        return QueueName.VERIFICATION
    return QueueName.AGENT_ACTIONS


def route_action_type(action_type: str, routes: dict[str, QueueName] = ACTION_QUEUE_ROUTES) -> QueueName:
    """
    Pick the queue for an action type.

    Args:
        action_type: Action type key
        routes: Explicit routing table

    Returns:
        Queue from the routing table, or from name-based rules for unknown types
    """
    queue = routes.get(action_type)
    if queue is not None:
        return queue

    queue = _fallback_queue(action_type)
    logger.warning(f"No explicit route for action type '{action_type}', using {queue.value}")
    return queue


def validate_routes(
    action_types: Iterable[str],
    routes: dict[str, QueueName] = ACTION_QUEUE_ROUTES,
) -> None:
    """Raise ConfigurationFailure if any action type lacks an explicit route."""
    unrouted = sorted({action_type for action_type in action_types if action_type not in routes})
    if unrouted:
        raise ConfigurationFailure(f"No queue route for action types: {', '.join(unrouted)}")
