"""Tests for priority scoring and run policies."""

import pytest

from core.domain.entities import ActionPolicy, WorkflowAction
from core.domain.enums import PolicyEnvironment, RiskLevel
from orchestration.catalog import get_template
from orchestration.policy import build_run_policy, default_policy, enforce_runtime_limits
from orchestration.priority import calculate_priority_score


def _action(order, duration):
    return WorkflowAction(
        id="a",
        action_type="performance_analysis",
        title="a",
        description="",
        payload={},
        policy=ActionPolicy(),
        order=order,
        estimated_duration=duration,
    )


# =============================================================================
# PRIORITY
# =============================================================================

def test_priority_formula():
    # 50 + (10 - 2) * 5 + 5 (medium) + 5 (short)
    assert calculate_priority_score(_action(2, 5), RiskLevel.MEDIUM) == 100
    # 50 + (10 - 3) * 5 + 0 (low)
    assert calculate_priority_score(_action(3, 10), RiskLevel.LOW) == 85


def test_priority_is_clamped():
    assert calculate_priority_score(_action(1, 1), RiskLevel.HIGH) == 100
    assert calculate_priority_score(_action(30, 60), RiskLevel.LOW) == 1


@pytest.mark.parametrize("order", range(1, 21))
@pytest.mark.parametrize("risk_level", [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH])
@pytest.mark.parametrize("duration", [0, 5, 10, 30])
def test_priority_always_within_bounds(order, risk_level, duration):
    assert 1 <= calculate_priority_score(_action(order, duration), risk_level) <= 100


def test_earlier_actions_score_higher():
    template = get_template("new_site_seo_setup")
    crawl = calculate_priority_score(template.get_action("crawl_site"), template.risk_level)
    fix = calculate_priority_score(template.get_action("fix_technical_issues"), template.risk_level)
    assert crawl > fix


# =============================================================================
# POLICY
# =============================================================================

def test_default_policy_is_a_copy():
    policy = default_policy("technical_seo_fix")
    policy["max_pages"] = 1
    assert default_policy("technical_seo_fix")["max_pages"] == 20
    assert default_policy("unknown_type") == {}


def test_run_policy_merges_defaults_action_policy_and_schedule():
    action = get_template("technical_seo_audit_fix").get_action("fix_critical_issues")

    policy = build_run_policy(action)

    assert policy["environment"] == PolicyEnvironment.STAGING.value
    assert policy["max_pages"] == 50
    assert policy["max_patches"] == 50
    assert policy["timeout_ms"] == 600_000
    assert policy["requires_approval"] is True
    assert policy["workflow_order"] == 3
    assert policy["workflow_dependencies"] == ["comprehensive_crawl"]
    assert policy["estimated_duration"] == 25


def test_runtime_limits_within():
    result = enforce_runtime_limits(
        {"max_pages": 10, "max_patches": 5, "timeout_ms": 1000},
        {"pages_processed": 9, "patches_applied": 4, "execution_time_ms": 999},
    )
    assert result.within_limits is True
    assert result.should_stop is False
    assert result.reason is None


def test_runtime_limits_page_limit_reached():
    result = enforce_runtime_limits({"max_pages": 10}, {"pages_processed": 10})
    assert result.within_limits is False
    assert result.should_stop is True
    assert "Page limit" in result.reason


def test_runtime_limits_patch_and_timeout():
    assert "Patch limit" in enforce_runtime_limits({"max_patches": 2}, {"patches_applied": 3}).reason
    assert "Timeout" in enforce_runtime_limits({"timeout_ms": 100}, {"execution_time_ms": 150}).reason


def test_runtime_limits_ignore_unset_limits():
    assert enforce_runtime_limits({}, {"pages_processed": 10_000}).within_limits is True
