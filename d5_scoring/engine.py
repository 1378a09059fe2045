"""
Audit scoring engine

Reduces a flat issue list to per-category scores and one weighted overall
score. Every category starts at 100 and loses a fixed number of points per
issue depending on severity.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from core.utils import clamp, round_half_up
from d3_assessment.types import Issue, IssueCategory

from .constants import CATEGORY_WEIGHTS, MAX_SCORE, MIN_SCORE, SEVERITY_DEDUCTIONS


@dataclass(frozen=True)
class AuditScore:
    """Overall score plus one score per category"""

    overall_score: int
    category_scores: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {"score": self.overall_score, "categoryScores": dict(self.category_scores)}


def deduplicate_issues(issues: Iterable[Issue]) -> List[Issue]:
    """Keep the first issue per (message, url) pair, preserving order"""
    seen = set()
    unique = []
    for issue in issues:
        key = issue.dedupe_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(issue)
    return unique


def calculate_category_scores(issues: Iterable[Issue]) -> Dict[IssueCategory, int]:
    """Score every category; categories without issues stay at 100"""
    deductions: Counter = Counter()

    for issue in issues:
        category = IssueCategory.coerce(issue.category)
        deductions[category] += SEVERITY_DEDUCTIONS.get(issue.severity, 0)

    return {
        category: round_half_up(clamp(MAX_SCORE - deductions[category], MIN_SCORE, MAX_SCORE))
        for category in CATEGORY_WEIGHTS
    }


def calculate_audit_score(issues: Iterable[Issue]) -> AuditScore:
    """
    Calculate the overall and per-category scores for a list of issues.

    The result does not depend on the order of `issues`.
    """
    scores = calculate_category_scores(issues)

    weighted = sum(weight * scores[category] for category, weight in CATEGORY_WEIGHTS.items())
    overall = round_half_up(clamp(float(weighted), MIN_SCORE, MAX_SCORE))

    return AuditScore(
        overall_score=overall,
        category_scores={category.value: score for category, score in scores.items()},
    )
