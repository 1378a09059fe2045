"""
D5 Scoring - Deduction-based audit health score
"""

from .engine import AuditScore, calculate_audit_score, calculate_category_scores, deduplicate_issues

__all__ = [
    "AuditScore",
    "calculate_audit_score",
    "calculate_category_scores",
    "deduplicate_issues",
]
