"""Tests for idea-to-template matching."""

from orchestration.catalog import get_template
from orchestration.matcher import IdeaEvidence, score_template, suggest_workflow


def test_trigger_in_title_selects_template():
    template = suggest_workflow("Run a technical audit on the blog")
    assert template.id == "technical_seo_audit_fix"


def test_hypothesis_is_searched_too():
    template = suggest_workflow("Grow traffic", hypothesis="Page optimization will improve rankings")
    assert template.id == "content_optimization_workflow"


def test_no_match_returns_none():
    assert suggest_workflow("Rewrite the pricing page copy") is None


def test_new_site_title_with_new_site_evidence():
    template = suggest_workflow("new site seo setup", None, {"site_age": "new"})
    assert template.id == "new_site_seo_setup"


def test_evidence_alone_can_select_template():
    template = suggest_workflow("Grow traffic", evidence={"site_age": "new"})
    assert template.id == "new_site_seo_setup"


def test_evidence_outweighs_single_trigger():
    # technical: 1 trigger; content: poor performance boost (+2)
    template = suggest_workflow(
        "Look into site health",
        evidence=IdeaEvidence(content_performance="poor"),
    )
    assert template.id == "content_optimization_workflow"


def test_tie_goes_to_first_template_in_catalog():
    template = suggest_workflow("seo setup and technical audit")
    assert template.id == "new_site_seo_setup"


def test_matching_is_case_insensitive():
    template = suggest_workflow("NEW SITE launch")
    assert template.id == "new_site_seo_setup"


def test_score_template_counts_triggers_and_boost():
    technical = get_template("technical_seo_audit_fix")
    evidence = IdeaEvidence(has_technical_issues=True)
    assert score_template(technical, "technical audit of seo issues", evidence) == 4
    assert score_template(technical, "nothing relevant", None) == 0


def test_evidence_from_mapping():
    evidence = IdeaEvidence.from_mapping({"has_technical_issues": 1, "content_performance": "poor"})
    assert evidence.has_technical_issues is True
    assert evidence.boosts("content") is True
    assert evidence.boosts("setup") is False
