"""Per-action-type policy defaults and runtime limit checks."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from core.domain.entities import WorkflowAction

DEFAULT_POLICIES: dict[str, dict[str, Any]] = {
    "technical_seo_crawl": {
        "environment": "PRODUCTION",
        "max_pages": 100,
        "timeout_ms": 300_000,
        "respect_robots": True,
        "requires_approval": False,
        "blast_radius": {"scope": "site_wide", "max_affected_pages": 0, "risk_level": "low"},
    },
    "content_generation": {
        "environment": "DRY_RUN",
        "max_pages": 1,
        "requires_approval": False,
        "blast_radius": {"scope": "single_page", "max_affected_pages": 1, "risk_level": "low"},
    },
    "technical_seo_fix": {
        "environment": "DRY_RUN",
        "max_pages": 20,
        "max_patches": 50,
        "timeout_ms": 600_000,
        "requires_approval": True,
        "blast_radius": {"scope": "site_wide", "max_affected_pages": 50, "risk_level": "medium"},
    },
    "cms_publishing": {
        "environment": "DRY_RUN",
        "max_pages": 1,
        "requires_approval": True,
        "blast_radius": {"scope": "single_page", "max_affected_pages": 1, "risk_level": "medium"},
    },
    "schema_injection": {
        "environment": "DRY_RUN",
        "max_pages": 10,
        "max_patches": 20,
        "requires_approval": True,
        "blast_radius": {"scope": "section", "max_affected_pages": 20, "risk_level": "high"},
    },
}


def default_policy(action_type: str) -> dict[str, Any]:
    """Return a copy of the default policy for ``action_type`` (empty if none)."""
    return dict(DEFAULT_POLICIES.get(action_type, {}))


def build_run_policy(action: WorkflowAction) -> dict[str, Any]:
    """
    Policy snapshot stored with an action and its runs.

    The action's own policy wins over the type defaults; workflow
    scheduling metadata is added on top.
    """
    policy = default_policy(action.action_type)
    policy.update(action.policy.to_dict())
    policy["workflow_order"] = action.order
    policy["workflow_dependencies"] = list(action.depends_on)
    policy["estimated_duration"] = action.estimated_duration
    return policy


@dataclass(frozen=True)
class RuntimeLimitResult:
    within_limits: bool
    should_stop: bool
    reason: Optional[str] = None


def enforce_runtime_limits(policy: Mapping[str, Any], stats: Mapping[str, Any]) -> RuntimeLimitResult:
    """
    Check execution stats against the policy's page, patch and time limits.

    Args:
        policy: Policy snapshot (max_pages, max_patches, timeout_ms)
        stats: pages_processed, patches_applied, execution_time_ms

    Returns:
        RuntimeLimitResult describing the first limit reached, if any
    """
    pages = int(stats.get("pages_processed") or 0)
    patches = int(stats.get("patches_applied") or 0)
    elapsed = int(stats.get("execution_time_ms") or 0)

    max_pages = policy.get("max_pages")
    if max_pages and pages >= max_pages:
        return RuntimeLimitResult(False, True, f"Page limit reached: {pages}/{max_pages}")

    max_patches = policy.get("max_patches")
    if max_patches and patches >= max_patches:
        return RuntimeLimitResult(False, True, f"Patch limit reached: {patches}/{max_patches}")

    timeout_ms = policy.get("timeout_ms")
    if timeout_ms and elapsed >= timeout_ms:
        return RuntimeLimitResult(False, True, f"Timeout reached: {elapsed}ms >= {timeout_ms}ms")

    return RuntimeLimitResult(True, False)
