"""Constants for audit score calculation."""
from decimal import Decimal

from d3_assessment.types import IssueCategory, IssueSeverity

# Category weights for the overall score; must sum to 1.0
CATEGORY_WEIGHTS = {
    IssueCategory.TECHNICAL: Decimal("0.35"),
    IssueCategory.PERFORMANCE: Decimal("0.30"),
    IssueCategory.VISUAL: Decimal("0.15"),
    IssueCategory.ACCESSIBILITY: Decimal("0.20"),
}

# Points deducted per issue
SEVERITY_DEDUCTIONS = {
    IssueSeverity.ERROR: 10,
    IssueSeverity.WARNING: 3,
    IssueSeverity.NOTICE: 1,
    IssueSeverity.INFO: 1,
    IssueSeverity.PASSED: 0,
}

MAX_SCORE = 100
MIN_SCORE = 0
