"""
Audit of a single page: browser scan with fetch fallback, static analysis
and optional performance diagnostics
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.logging import get_logger
from core.metrics import metrics
from d0_gateway.providers.pagespeed import PageSpeedDiagnostics
from d2_scanner.fetch import extract_meta
from d2_scanner.types import PageScanResult, ScannerKind, ScanOptions
from d3_assessment.html_analyzer import StaticHtmlAnalyzer
from d3_assessment.types import Issue, IssueCategory, IssueSeverity, IssueSource, make_issue

from .collaborators import DiagnosticsProvider, PageScanner
from .merge import first_present

logger = get_logger(__name__, domain="d4")


@dataclass
class PageOutcome:
    """Scan result plus everything derived from it for one page"""

    url: str
    scan: Optional[PageScanResult] = None
    issues: List[Issue] = field(default_factory=list)
    diagnostics: Optional[PageSpeedDiagnostics] = None

    @property
    def screenshots(self) -> Dict[str, bytes]:
        return self.scan.screenshots if self.scan else {}

    def page_result(self, media: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Enriched per-page record stored on the run"""
        scan = self.scan
        dom = scan.dom if scan else None
        psi = self.diagnostics
        media = media or {}
        raw = extract_meta(scan.html) if scan and scan.html else None
        return {
            "url": self.url,
            "statusCode": (scan.status_code or None) if scan else None,
            "title": first_present(dom.title if dom else None, raw.title if raw else None, default=None),
            "metaDescription": first_present(
                dom.meta_description if dom else None, raw.meta_description if raw else None, default=None
            ),
            "ttfb": (scan.ttfb or None) if scan else None,
            "performanceScore": first_present(psi.score if psi else None, default=None),
            "lcp": first_present(psi.lcp if psi else None, default=None),
            "cls": first_present(psi.cls if psi else None, default=None),
            "inp": first_present(psi.inp if psi else None, default=None),
            "jsErrors": [error.text for error in scan.console_errors] if scan else [],
            "brokenResources": [str(resource) for resource in scan.broken_resources] if scan else [],
            "issueCount": len(self.issues),
            "screenshotDesktop": first_present(media.get("screenshotDesktop"), default=None),
            "screenshotMobile": first_present(media.get("screenshotMobile"), default=None),
            "screenshotsDesktop": first_present(media.get("screenshotsDesktop"), default=[]),
            "screenshotsMobile": first_present(media.get("screenshotsMobile"), default=[]),
            "filmstripDesktop": first_present(media.get("filmstripDesktop"), default=None),
            "filmstripMobile": first_present(media.get("filmstripMobile"), default=None),
        }


def scan_failed_issue(url: str) -> Issue:
    return make_issue(
        IssueCategory.TECHNICAL,
        IssueSeverity.ERROR,
        "pageLoadFailed",
        IssueSource.SYSTEM,
        url=url,
        suggestion="checkUrl",
    )


class PageAuditor:
    """Runs every per-page step for one URL"""

    def __init__(
        self,
        fetcher: PageScanner,
        analyzer: StaticHtmlAnalyzer,
        browser: Optional[PageScanner] = None,
        diagnostics: Optional[DiagnosticsProvider] = None,
        diagnostics_concurrency: int = 2,
        options: Optional[ScanOptions] = None,
    ):
        self.fetcher = fetcher
        self.analyzer = analyzer
        self.browser = browser
        self.diagnostics = diagnostics
        self.options = options or ScanOptions()
        self._diagnostics_semaphore = asyncio.Semaphore(diagnostics_concurrency)

    async def _scan(self, url: str) -> PageScanResult:
        if self.browser is not None:
            started = time.monotonic()
            try:
                result = await self.browser.scan(url, self.options)
            except Exception as e:
                metrics.track_page_scan(ScannerKind.BROWSER.value, "error", time.monotonic() - started)
                logger.warning(f"Browser scan failed for {url}, falling back to fetch: {e}")
            else:
                outcome = "failed" if result.load_failed else "ok"
                metrics.track_page_scan(ScannerKind.BROWSER.value, outcome, time.monotonic() - started)
                return result

        started = time.monotonic()
        result = await self.fetcher.scan(url)
        outcome = "ok" if result.html else "failed"
        metrics.track_page_scan(ScannerKind.FETCH.value, outcome, time.monotonic() - started)
        return result

    async def _diagnose(self, url: str) -> Optional[PageSpeedDiagnostics]:
        if self.diagnostics is None or not self.diagnostics.is_available():
            return None
        async with self._diagnostics_semaphore:
            try:
                return await self.diagnostics.get_diagnostics(url)
            except Exception as e:
                logger.warning(f"PSI failed for {url}: {e}")
                return None

    async def audit(self, url: str, run_diagnostics: bool = False) -> PageOutcome:
        """
        Audit one page

        Raises:
            Whatever the fetch scanner raises when both scan paths fail
        """
        scan = await self._scan(url)
        issues = list(scan.issues)

        # Fetch results already include static analysis
        if scan.scanner == ScannerKind.BROWSER and scan.html:
            issues.extend(self.analyzer.analyze(scan.html, url, scan.headers, scan.ttfb))

        diagnostics = await self._diagnose(url) if run_diagnostics else None
        if diagnostics is not None:
            issues.extend(diagnostics.issues)

        return PageOutcome(url=url, scan=scan, issues=issues, diagnostics=diagnostics)
