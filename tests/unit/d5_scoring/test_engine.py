"""
Tests for the deduction-based scoring engine
"""
import random

import pytest

from d3_assessment.types import Issue, IssueCategory, IssueSeverity, IssueSource, make_issue
from d5_scoring import calculate_audit_score, calculate_category_scores, deduplicate_issues
from d5_scoring.constants import CATEGORY_WEIGHTS


def issue(category, severity, message="check", url=None):
    return make_issue(category, severity, message, IssueSource.HTML, url=url)


class TestCalculateAuditScore:
    def test_empty_issue_list_scores_100(self):
        result = calculate_audit_score([])

        assert result.overall_score == 100
        assert result.category_scores == {
            "technical": 100,
            "performance": 100,
            "visual": 100,
            "accessibility": 100,
        }

    def test_weighted_example(self):
        issues = [
            issue(IssueCategory.PERFORMANCE, IssueSeverity.ERROR, "psiScoreLow"),
            issue(IssueCategory.TECHNICAL, IssueSeverity.PASSED, "titleGood"),
        ]

        result = calculate_audit_score(issues)

        assert result.category_scores["technical"] == 100
        assert result.category_scores["performance"] == 90
        assert result.category_scores["accessibility"] == 100
        assert result.category_scores["visual"] == 100
        assert result.overall_score == 97

    def test_only_passed_issues_score_100(self):
        issues = [issue(category, IssueSeverity.PASSED, f"ok{i}") for i, category in enumerate(IssueCategory)]

        assert calculate_audit_score(issues).overall_score == 100

    @pytest.mark.parametrize(
        "severity,expected",
        [
            (IssueSeverity.ERROR, 90),
            (IssueSeverity.WARNING, 97),
            (IssueSeverity.NOTICE, 99),
            (IssueSeverity.INFO, 99),
            (IssueSeverity.PASSED, 100),
        ],
    )
    def test_severity_deductions(self, severity, expected):
        scores = calculate_category_scores([issue(IssueCategory.VISUAL, severity)])

        assert scores[IssueCategory.VISUAL] == expected

    def test_category_floor_is_zero(self):
        issues = [issue(IssueCategory.TECHNICAL, IssueSeverity.ERROR, f"e{i}") for i in range(25)]

        result = calculate_audit_score(issues)

        assert result.category_scores["technical"] == 0
        # 0*.35 + 100*(.30 + .15 + .20)
        assert result.overall_score == 65

    def test_unknown_category_counts_as_technical(self):
        stored = Issue.from_dict({"type": "seo", "severity": "error", "message": "audit.issues.noTitle"})

        result = calculate_audit_score([stored])

        assert result.category_scores["technical"] == 90

    def test_score_is_order_independent(self):
        issues = [
            issue(category, severity, f"m{i}")
            for i, (category, severity) in enumerate(
                (c, s) for c in IssueCategory for s in IssueSeverity
            )
        ] * 2
        expected = calculate_audit_score(issues)

        shuffled = list(issues)
        random.Random(42).shuffle(shuffled)

        assert calculate_audit_score(shuffled) == expected

    def test_scores_stay_in_range(self):
        rng = random.Random(7)
        categories = list(IssueCategory)
        severities = list(IssueSeverity)
        for _ in range(50):
            issues = [
                issue(rng.choice(categories), rng.choice(severities), f"m{i}") for i in range(rng.randint(0, 80))
            ]
            result = calculate_audit_score(issues)
            assert 0 <= result.overall_score <= 100
            assert all(0 <= value <= 100 for value in result.category_scores.values())

    def test_weights_sum_to_one(self):
        assert sum(CATEGORY_WEIGHTS.values()) == 1

    def test_to_dict(self):
        result = calculate_audit_score([issue(IssueCategory.ACCESSIBILITY, IssueSeverity.WARNING)])

        assert result.to_dict() == {
            "score": 99,
            "categoryScores": {"technical": 100, "performance": 100, "visual": 100, "accessibility": 97},
        }


class TestDeduplicateIssues:
    def test_keeps_first_occurrence_per_message_and_url(self):
        first = issue(IssueCategory.TECHNICAL, IssueSeverity.ERROR, "noTitle", url="https://a.test/")
        duplicate = issue(IssueCategory.TECHNICAL, IssueSeverity.WARNING, "noTitle", url="https://a.test/")
        other_page = issue(IssueCategory.TECHNICAL, IssueSeverity.ERROR, "noTitle", url="https://a.test/about")

        result = deduplicate_issues([first, duplicate, other_page])

        assert result == [first, other_page]
        assert result[0].severity == IssueSeverity.ERROR

    def test_site_wide_issues_share_global_key(self):
        a = issue(IssueCategory.TECHNICAL, IssueSeverity.PASSED, "robotsTxtFound")
        b = issue(IssueCategory.TECHNICAL, IssueSeverity.PASSED, "robotsTxtFound")

        assert a.dedupe_key == "audit.issues.robotsTxtFound::global"
        assert deduplicate_issues([a, b]) == [a]

    def test_is_idempotent(self):
        issues = [
            issue(IssueCategory.TECHNICAL, IssueSeverity.ERROR, f"m{i % 4}", url=f"https://a.test/{i % 3}")
            for i in range(30)
        ]

        once = deduplicate_issues(issues)

        assert deduplicate_issues(once) == once
