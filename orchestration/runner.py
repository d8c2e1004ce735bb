"""
Worker process entrypoint.

Starts a worker pool per queue against the configured broker and database
and runs until SIGINT/SIGTERM.

    python -m orchestration.runner
"""
import asyncio
import signal
from typing import Optional

from dotenv import load_dotenv

from core.infrastructure.database.config import close_database, get_session_factory, init_database
from core.infrastructure.database.repositories.sqlalchemy_site_state import SQLAlchemySiteStateStore
from core.infrastructure.database.repositories.sqlalchemy_status_repository import (
    SQLAlchemyStatusRepository,
)
from core.infrastructure.logging import configure_logging, get_logger
from core.settings import AppSettings, get_app_settings

from . import create_default_orchestrator
from .handlers import HandlerRegistry
from .orchestrator import WorkflowOrchestrator

logger = get_logger("orchestration.runner")


async def run_workers(orchestrator: WorkflowOrchestrator, stop: asyncio.Event) -> None:
    """Run the orchestrator's worker pools until ``stop`` is set, then shut down."""
    await orchestrator.start_workers()
    try:
        await stop.wait()
    finally:
        await orchestrator.shutdown()


async def serve(settings: AppSettings, handlers: Optional[HandlerRegistry] = None) -> None:
    await init_database()
    session_factory = get_session_factory()

    handlers = handlers or HandlerRegistry()
    if not handlers.registrations():
        logger.warning("No action handlers registered; only DRY_RUN actions can succeed")

    orchestrator = create_default_orchestrator(
        SQLAlchemyStatusRepository(session_factory),
        SQLAlchemySiteStateStore(session_factory),
        settings,
        handlers=handlers,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logger.info("🚀 Worker process starting...")
    try:
        await run_workers(orchestrator, stop)
    finally:
        await close_database()
        logger.info("👋 Worker process stopped")


def main() -> None:
    load_dotenv()
    configure_logging()
    asyncio.run(serve(get_app_settings()))


if __name__ == "__main__":
    main()
