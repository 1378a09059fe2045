"""
Test Prometheus metrics collection
"""
from prometheus_client import CONTENT_TYPE_LATEST

from core.metrics import REGISTRY, get_metrics_response, metrics
from d3_assessment.types import IssueCategory, IssueSeverity, IssueSource, make_issue


def sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0


class TestMetricsCollector:
    def test_audit_finished_counts_by_status_and_reason(self):
        before = sample("siteauditor_audits_finished_total", status="FAILED", reason="NO_SITEMAP")

        metrics.track_audit_finished("FAILED", 1.5, reason="NO_SITEMAP")

        assert sample("siteauditor_audits_finished_total", status="FAILED", reason="NO_SITEMAP") == before + 1

    def test_score_only_observed_when_given(self):
        before = sample("siteauditor_audit_score_count")

        metrics.track_audit_finished("FAILED", 0.1, reason="ERROR")
        metrics.track_audit_finished("COMPLETED", 12.0, score=88)

        assert sample("siteauditor_audit_score_count") == before + 1

    def test_page_scan_and_issues(self):
        scans_before = sample("siteauditor_pages_scanned_total", scanner="fetch", outcome="ok")
        issues_before = sample("siteauditor_issues_reported_total", category="technical", severity="error")

        metrics.track_page_scan("fetch", "ok", 0.4)
        metrics.track_issues(
            [make_issue(IssueCategory.TECHNICAL, IssueSeverity.ERROR, "noH1", IssueSource.HTML, url="https://acme.test")]
        )

        assert sample("siteauditor_pages_scanned_total", scanner="fetch", outcome="ok") == scans_before + 1
        assert sample("siteauditor_issues_reported_total", category="technical", severity="error") == issues_before + 1

    def test_metrics_response_exposition(self):
        metrics.track_discovery("sitemap", True)

        body, content_type = get_metrics_response()

        assert content_type == CONTENT_TYPE_LATEST
        assert b"siteauditor_discovery_runs_total" in body
        assert b'method="sitemap"' in body
