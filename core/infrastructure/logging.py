"""
Logging infrastructure.

Process entrypoints (API, worker runner) call ``configure_logging`` once;
library code only asks for named loggers.
"""
import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVEL_ENV = "SEOAGENT_LOG_LEVEL"

# Libraries that are too chatty at INFO.
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "uvicorn.access")

# Names of loggers that got a stand-alone handler from get_logger.
_fallback_loggers: set[str] = set()


def _resolve_level(level: str | None) -> int:
    name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance.

    Before ``configure_logging`` has run (scripts, ad-hoc imports) the logger
    gets its own stream handler so messages are not lost. That handler stops
    propagation, so a root handler added later does not print each record
    twice.

    Args:
        name: Logger name, e.g. "orchestration.broker"

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_resolve_level(None))
        logger.propagate = False
        _fallback_loggers.add(name)
    return logger


def configure_logging(level: str | None = None) -> None:
    """Configure root logging; ``level`` falls back to $SEOAGENT_LOG_LEVEL, then INFO."""
    logging.basicConfig(level=_resolve_level(level), format=LOG_FORMAT)
    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    # Hand loggers created before configuration back to the root handler.
    for name in list(_fallback_loggers):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
        _fallback_loggers.discard(name)
