"""Domain repository interfaces."""

from .status_repository import StatusRepository, ensure_action_transition, ensure_run_transition

__all__ = ["StatusRepository", "ensure_action_transition", "ensure_run_transition"]
