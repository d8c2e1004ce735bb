"""Priority scorer for queued actions."""

from core.domain.entities import WorkflowAction
from core.domain.enums import RiskLevel

BASE_SCORE = 50
MIN_SCORE = 1
MAX_SCORE = 100
SHORT_ACTION_MINUTES = 10

RISK_BONUS = {
    RiskLevel.HIGH: 10,
    RiskLevel.MEDIUM: 5,
    RiskLevel.LOW: 0,
}


def calculate_priority_score(action: WorkflowAction, risk_level: RiskLevel) -> int:
    """
    Score an action for queue dispatch; higher runs sooner.

    Earlier stages, riskier workflows and short actions score higher.
    The result is clamped to [1, 100].
    """
    score = BASE_SCORE + (10 - action.order) * 5
    score += RISK_BONUS.get(RiskLevel(risk_level), 0)
    if action.estimated_duration < SHORT_ACTION_MINUTES:
        score += 5
    return min(MAX_SCORE, max(MIN_SCORE, score))
