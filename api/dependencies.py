"""
FastAPI Dependencies.

Provides dependency injection for the orchestrator and its stores.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables ONCE before any settings objects are created
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

from core.application.interfaces import ISiteStateStore
from core.domain.repositories import StatusRepository
from core.infrastructure.database.config import get_session_factory
from core.infrastructure.database.repositories.sqlalchemy_site_state import SQLAlchemySiteStateStore
from core.infrastructure.database.repositories.sqlalchemy_status_repository import (
    SQLAlchemyStatusRepository,
)
from core.settings import get_app_settings
from orchestration import WorkflowOrchestrator, create_default_orchestrator

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

_status_repository: Optional[StatusRepository] = None
_site_state: Optional[ISiteStateStore] = None
_orchestrator: Optional[WorkflowOrchestrator] = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_status_repository() -> StatusRepository:
    global _status_repository
    if _status_repository is None:
        _status_repository = SQLAlchemyStatusRepository(get_session_factory())
        logger.info("Created SQLAlchemyStatusRepository instance")
    return _status_repository


def get_site_state() -> ISiteStateStore:
    global _site_state
    if _site_state is None:
        _site_state = SQLAlchemySiteStateStore(get_session_factory())
        logger.info("Created SQLAlchemySiteStateStore instance")
    return _site_state


def get_orchestrator() -> WorkflowOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_default_orchestrator(
            status_repository=get_status_repository(),
            site_state=get_site_state(),
            settings=get_app_settings(),
        )
        logger.info("Created WorkflowOrchestrator instance")
    return _orchestrator


async def shutdown_dependencies() -> None:
    """Release the orchestrator's broker connection if one was created."""
    if _orchestrator is not None:
        await _orchestrator.shutdown()
    reset_dependencies()


# =============================================================================
# RESET (for testing)
# =============================================================================

def reset_dependencies():
    global _status_repository, _site_state, _orchestrator

    _status_repository = None
    _site_state = None
    _orchestrator = None

    logger.info("Dependencies reset")
