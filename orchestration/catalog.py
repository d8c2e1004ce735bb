"""
Workflow template catalog.

Built-in multi-step SEO procedures. Templates are immutable and loaded
once at import time.
"""
from typing import Optional

from core.domain.entities import (
    ActionPolicy,
    WorkflowAction,
    WorkflowDependency,
    WorkflowTemplate,
)
from core.domain.enums import DependencyType, PolicyEnvironment, RiskLevel

PRODUCTION = PolicyEnvironment.PRODUCTION
DRY_RUN = PolicyEnvironment.DRY_RUN
STAGING = PolicyEnvironment.STAGING


NEW_SITE_SEO_SETUP = WorkflowTemplate(
    id="new_site_seo_setup",
    name="New Site SEO Setup",
    description="Complete SEO setup for a new website",
    category="setup",
    triggers=("new site", "seo setup", "initial optimization"),
    estimated_duration=45,
    risk_level=RiskLevel.LOW,
    actions=(
        WorkflowAction(
            id="crawl_site",
            action_type="technical_seo_crawl",
            title="Initial site crawl and analysis",
            description="Comprehensive crawl to identify all pages and technical issues",
            payload={"crawl_type": "full", "max_pages": 100},
            policy=ActionPolicy(environment=PRODUCTION, respect_robots=True),
            order=1,
            parallelizable=False,
            estimated_duration=15,
        ),
        WorkflowAction(
            id="install_seoagent",
            action_type="seoagent_installation",
            title="Install SEOAgent.js tracking",
            description="Set up automatic meta and alt tag generation",
            payload={"generate_snippet": True, "enable_automation": True},
            policy=ActionPolicy(environment=PRODUCTION),
            order=2,
            parallelizable=True,
            estimated_duration=5,
        ),
        WorkflowAction(
            id="generate_sitemap",
            action_type="sitemap_generation",
            title="Generate and submit sitemap",
            description="Create XML sitemap and submit to Google Search Console",
            payload={"include_images": True, "submit_to_gsc": True},
            policy=ActionPolicy(environment=PRODUCTION),
            order=3,
            depends_on=("crawl_site",),
            parallelizable=True,
            estimated_duration=10,
        ),
        WorkflowAction(
            id="fix_technical_issues",
            action_type="technical_seo_fix",
            title="Fix critical technical SEO issues",
            description="Auto-fix issues found during crawl",
            payload={"fix_types": ["schema_markup", "canonical_tags", "meta_tags"]},
            policy=ActionPolicy(environment=DRY_RUN, requires_approval=True),
            order=4,
            depends_on=("crawl_site",),
            parallelizable=False,
            estimated_duration=15,
        ),
    ),
    dependencies=(
        WorkflowDependency(
            type=DependencyType.INTEGRATION,
            requirement="google_search_console",
            description="Google Search Console connection for sitemap submission",
            optional=True,
        ),
        WorkflowDependency(
            type=DependencyType.PERMISSION,
            requirement="website_management",
            description="Website must be marked as managed",
            optional=False,
        ),
    ),
)


CONTENT_OPTIMIZATION_WORKFLOW = WorkflowTemplate(
    id="content_optimization_workflow",
    name="Content SEO Optimization",
    description="Optimize existing content for better search performance",
    category="content",
    triggers=("content optimization", "improve rankings", "page optimization"),
    estimated_duration=30,
    risk_level=RiskLevel.MEDIUM,
    actions=(
        WorkflowAction(
            id="analyze_content_gaps",
            action_type="content_analysis",
            title="Analyze content performance and gaps",
            description="Identify underperforming content and optimization opportunities",
            payload={"include_competitors": True, "min_impressions": 100},
            policy=ActionPolicy(environment=PRODUCTION),
            order=1,
            parallelizable=False,
            estimated_duration=10,
        ),
        WorkflowAction(
            id="optimize_meta_tags",
            action_type="technical_seo_fix",
            title="Optimize meta titles and descriptions",
            description="Update meta tags based on performance data",
            payload={"fix_types": ["meta_tags"], "focus_low_ctr": True},
            policy=ActionPolicy(environment=DRY_RUN, requires_approval=True),
            order=2,
            depends_on=("analyze_content_gaps",),
            parallelizable=False,
            estimated_duration=15,
        ),
        WorkflowAction(
            id="generate_related_content",
            action_type="content_generation",
            title="Generate supporting content",
            description="Create content for identified gaps",
            payload={"content_type": "supporting_articles", "max_articles": 3},
            policy=ActionPolicy(environment=DRY_RUN, requires_approval=True),
            order=3,
            depends_on=("analyze_content_gaps",),
            parallelizable=True,
            estimated_duration=20,
        ),
    ),
    dependencies=(
        WorkflowDependency(
            type=DependencyType.INTEGRATION,
            requirement="google_search_console",
            description="GSC data needed for performance analysis",
            optional=False,
        ),
        WorkflowDependency(
            type=DependencyType.DATA,
            requirement="search_performance_data",
            description="At least 3 months of search performance data",
            optional=False,
        ),
    ),
)


TECHNICAL_SEO_AUDIT_FIX = WorkflowTemplate(
    id="technical_seo_audit_fix",
    name="Technical SEO Audit & Fix",
    description="Comprehensive technical SEO audit with automated fixes",
    category="technical",
    triggers=("technical audit", "seo issues", "site health"),
    estimated_duration=60,
    risk_level=RiskLevel.HIGH,
    actions=(
        WorkflowAction(
            id="comprehensive_crawl",
            action_type="technical_seo_crawl",
            title="Deep technical SEO crawl",
            description="Comprehensive site crawl with technical analysis",
            payload={"crawl_type": "technical_seo", "max_pages": 500, "crawl_depth": 5},
            policy=ActionPolicy(environment=PRODUCTION, respect_robots=True),
            order=1,
            parallelizable=False,
            estimated_duration=20,
        ),
        WorkflowAction(
            id="analyze_core_vitals",
            action_type="performance_analysis",
            title="Core Web Vitals analysis",
            description="Analyze page speed and core web vitals",
            payload={"check_mobile": True, "include_recommendations": True},
            policy=ActionPolicy(environment=PRODUCTION),
            order=2,
            depends_on=("comprehensive_crawl",),
            parallelizable=True,
            estimated_duration=15,
        ),
        WorkflowAction(
            id="fix_critical_issues",
            action_type="technical_seo_fix",
            title="Fix critical technical issues",
            description="Automatically fix high-priority technical issues",
            payload={
                "fix_types": ["schema_markup", "canonical_tags", "robots_issues"],
                "priority": "critical",
            },
            policy=ActionPolicy(environment=STAGING, requires_approval=True, max_pages=50),
            order=3,
            depends_on=("comprehensive_crawl",),
            parallelizable=False,
            estimated_duration=25,
        ),
        WorkflowAction(
            id="update_sitemaps",
            action_type="sitemap_management",
            title="Update and optimize sitemaps",
            description="Regenerate sitemaps and submit to search engines",
            payload={"update_existing": True, "submit_to_gsc": True},
            policy=ActionPolicy(environment=PRODUCTION),
            order=4,
            depends_on=("fix_critical_issues",),
            parallelizable=True,
            estimated_duration=10,
        ),
    ),
    dependencies=(
        WorkflowDependency(
            type=DependencyType.PERMISSION,
            requirement="technical_modifications",
            description="Permission to make technical changes to the website",
            optional=False,
        ),
        WorkflowDependency(
            type=DependencyType.INTEGRATION,
            requirement="google_search_console",
            description="GSC integration for sitemap submission",
            optional=True,
        ),
    ),
)


WORKFLOW_TEMPLATES: tuple[WorkflowTemplate, ...] = (
    NEW_SITE_SEO_SETUP,
    CONTENT_OPTIMIZATION_WORKFLOW,
    TECHNICAL_SEO_AUDIT_FIX,
)


def get_workflow_templates(
    category: Optional[str] = None,
    search_term: Optional[str] = None,
    templates: tuple[WorkflowTemplate, ...] = WORKFLOW_TEMPLATES,
) -> list[WorkflowTemplate]:
    """
    List templates, optionally filtered.

    Args:
        category: Exact category match (setup, content, technical)
        search_term: Case-insensitive substring of name, description or a trigger

    Returns:
        Matching templates in catalog order
    """
    result = list(templates)
    if category:
        result = [t for t in result if t.category == category]
    if search_term:
        search = search_term.lower()
        result = [
            t
            for t in result
            if search in t.name.lower()
            or search in t.description.lower()
            or any(search in trigger.lower() for trigger in t.triggers)
        ]
    return result


def get_template(
    template_id: str,
    templates: tuple[WorkflowTemplate, ...] = WORKFLOW_TEMPLATES,
) -> Optional[WorkflowTemplate]:
    for template in templates:
        if template.id == template_id:
            return template
    return None


def catalog_action_types(templates: tuple[WorkflowTemplate, ...] = WORKFLOW_TEMPLATES) -> set[str]:
    """Every action type used by the given templates."""
    return {action.action_type for template in templates for action in template.actions}
