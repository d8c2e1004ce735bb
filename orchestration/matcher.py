"""Workflow matcher - picks the template that best fits an idea."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from .catalog import WORKFLOW_TEMPLATES
from core.domain.entities import WorkflowTemplate

EVIDENCE_BOOST = 2


@dataclass(frozen=True)
class IdeaEvidence:
    """Signals collected about a site that bias template selection."""

    site_age: Optional[str] = None
    has_technical_issues: bool = False
    content_performance: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "IdeaEvidence":
        return cls(
            site_age=data.get("site_age"),
            has_technical_issues=bool(data.get("has_technical_issues", False)),
            content_performance=data.get("content_performance"),
        )

    def boosts(self, category: str) -> bool:
        if category == "setup":
            return self.site_age == "new"
        if category == "technical":
            return self.has_technical_issues
        if category == "content":
            return self.content_performance == "poor"
        return False


def score_template(
    template: WorkflowTemplate,
    search_text: str,
    evidence: Optional[IdeaEvidence] = None,
) -> int:
    """+1 per trigger found in ``search_text``, +2 when evidence aligns with the category."""
    score = sum(1 for trigger in template.triggers if trigger.lower() in search_text)
    if evidence is not None and evidence.boosts(template.category):
        score += EVIDENCE_BOOST
    return score


def suggest_workflow(
    title: str,
    hypothesis: Optional[str] = None,
    evidence: Union[IdeaEvidence, Mapping[str, Any], None] = None,
    templates: tuple[WorkflowTemplate, ...] = WORKFLOW_TEMPLATES,
) -> Optional[WorkflowTemplate]:
    """
    Suggest the best workflow template for an idea.

    Ties go to the template that appears first in the catalog.

    Args:
        title: Idea title
        hypothesis: Optional idea hypothesis
        evidence: IdeaEvidence or a plain mapping with the same keys

    Returns:
        Highest-scoring template, or None when nothing matched
    """
    if evidence is not None and not isinstance(evidence, IdeaEvidence):
        evidence = IdeaEvidence.from_mapping(evidence)

    search_text = f"{title} {hypothesis or ''}".lower()

    best: Optional[WorkflowTemplate] = None
    best_score = 0
    for template in templates:
        score = score_template(template, search_text, evidence)
        if score > best_score:
            best, best_score = template, score

    return best
