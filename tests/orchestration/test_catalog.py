"""Tests for the workflow template catalog."""

from core.domain.enums import PolicyEnvironment, RiskLevel
from orchestration.catalog import (
    WORKFLOW_TEMPLATES,
    catalog_action_types,
    get_template,
    get_workflow_templates,
)
from orchestration.queues import ACTION_QUEUE_ROUTES


def test_catalog_contains_three_templates_in_order():
    assert [t.id for t in WORKFLOW_TEMPLATES] == [
        "new_site_seo_setup",
        "content_optimization_workflow",
        "technical_seo_audit_fix",
    ]


def test_template_metadata():
    setup = get_template("new_site_seo_setup")
    assert setup.category == "setup"
    assert setup.estimated_duration == 45
    assert setup.risk_level == RiskLevel.LOW

    technical = get_template("technical_seo_audit_fix")
    assert technical.risk_level == RiskLevel.HIGH
    fix = technical.get_action("fix_critical_issues")
    assert fix.policy.environment == PolicyEnvironment.STAGING
    assert fix.policy.requires_approval is True
    assert fix.policy.max_pages == 50


def test_action_dependencies_reference_actions_of_same_template():
    for template in WORKFLOW_TEMPLATES:
        ids = set(template.action_ids)
        for action in template.actions:
            assert set(action.depends_on) <= ids


def test_filter_by_category():
    templates = get_workflow_templates(category="content")
    assert [t.id for t in templates] == ["content_optimization_workflow"]


def test_search_matches_name_description_and_triggers():
    assert [t.id for t in get_workflow_templates(search_term="AUDIT")] == ["technical_seo_audit_fix"]
    assert [t.id for t in get_workflow_templates(search_term="improve rankings")] == [
        "content_optimization_workflow"
    ]
    assert [t.id for t in get_workflow_templates(search_term="new website")] == ["new_site_seo_setup"]


def test_category_and_search_combined():
    assert get_workflow_templates(category="setup", search_term="audit") == []


def test_no_filter_returns_all():
    assert len(get_workflow_templates()) == 3


def test_unknown_template_returns_none():
    assert get_template("does_not_exist") is None


def test_every_catalog_action_type_has_explicit_route():
    assert catalog_action_types() <= set(ACTION_QUEUE_ROUTES)
