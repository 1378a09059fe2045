"""
Core metrics collection for SiteAuditor using Prometheus
"""
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, Info, generate_latest

from core.config import settings
from core.logging import get_logger

# Create a global registry for the application
REGISTRY = CollectorRegistry()

# Application info
app_info = Info("siteauditor_app", "SiteAuditor application information", registry=REGISTRY)

# Audit lifecycle
audits_started = Counter(
    "siteauditor_audits_started_total",
    "Total number of audits started",
    registry=REGISTRY,
)

audits_finished = Counter(
    "siteauditor_audits_finished_total",
    "Total number of audits reaching a terminal state",
    ["status", "reason"],
    registry=REGISTRY,
)

audit_duration = Histogram(
    "siteauditor_audit_duration_seconds",
    "Wall-clock duration of a full audit",
    buckets=(10, 30, 60, 120, 300, 600, 1200),
    registry=REGISTRY,
)

audit_score = Histogram(
    "siteauditor_audit_score",
    "Overall score of completed audits",
    buckets=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
    registry=REGISTRY,
)

# Discovery
discovery_runs = Counter(
    "siteauditor_discovery_runs_total",
    "URL discovery runs by winning method",
    ["method", "has_sitemap"],
    registry=REGISTRY,
)

# Page scans
pages_scanned = Counter(
    "siteauditor_pages_scanned_total",
    "Pages scanned by scanner path and outcome",
    ["scanner", "outcome"],
    registry=REGISTRY,
)

page_scan_duration = Histogram(
    "siteauditor_page_scan_duration_seconds",
    "Duration of a single page scan",
    ["scanner"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 60.0),
    registry=REGISTRY,
)

issues_reported = Counter(
    "siteauditor_issues_reported_total",
    "Issues reported after deduplication",
    ["category", "severity"],
    registry=REGISTRY,
)


class MetricsCollector:
    """Helper class for collecting metrics"""

    def __init__(self):
        self.logger = get_logger("metrics")
        app_info.info({"version": settings.app_version, "environment": settings.environment})

    def track_audit_started(self):
        audits_started.inc()

    def track_audit_finished(self, status: str, duration: float, reason: str = "", score: int = None):
        """Track an audit reaching COMPLETED or FAILED"""
        audits_finished.labels(status=status, reason=reason or "none").inc()
        audit_duration.observe(duration)
        if score is not None:
            audit_score.observe(score)

    def track_discovery(self, method: str, has_sitemap: bool):
        discovery_runs.labels(method=method, has_sitemap=str(has_sitemap).lower()).inc()

    def track_page_scan(self, scanner: str, outcome: str, duration: float):
        """Track one page scan"""
        pages_scanned.labels(scanner=scanner, outcome=outcome).inc()
        page_scan_duration.labels(scanner=scanner).observe(duration)

    def track_issues(self, issues):
        for issue in issues:
            issues_reported.labels(category=issue.category.value, severity=issue.severity.value).inc()

    def get_metrics(self) -> bytes:
        """Get current metrics in Prometheus format"""
        return generate_latest(REGISTRY)


# Global metrics collector instance
metrics = MetricsCollector()


def get_metrics_response() -> tuple:
    """Return (body, content type) for a Prometheus scrape"""
    return metrics.get_metrics(), CONTENT_TYPE_LATEST
