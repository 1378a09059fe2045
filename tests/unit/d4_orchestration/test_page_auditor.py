"""
Tests for single-page auditing
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from d2_scanner.types import DomSummary, PageScanResult, ScannerKind
from d3_assessment.types import IssueCategory, IssueSeverity, IssueSource, make_issue
from d4_orchestration.page_auditor import PageAuditor, PageOutcome, scan_failed_issue

from .fakes import FakeAnalyzer, FakeFetcher

URL = "https://acme.test/about"


class FakeBrowserScanner:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    async def scan(self, url, options=None):
        self.calls += 1
        if self.error:
            raise self.error
        return PageScanResult(url=url, scanner=ScannerKind.BROWSER, html="<html></html>", status_code=200, ttfb=80)


def diagnostics_provider(available=True):
    provider = MagicMock()
    provider.is_available.return_value = available
    diagnostics = MagicMock(
        score=72,
        lcp=2.1,
        cls=0.02,
        inp=150,
        issues=[make_issue(IssueCategory.PERFORMANCE, IssueSeverity.WARNING, "psiScoreModerate", IssueSource.PSI, url=URL)],
    )
    provider.get_diagnostics = AsyncMock(return_value=diagnostics)
    return provider


class TestPageAuditor:
    @pytest.mark.asyncio
    async def test_browser_scan_gets_static_analysis(self):
        analyzer = FakeAnalyzer()
        auditor = PageAuditor(fetcher=FakeFetcher(), analyzer=analyzer, browser=FakeBrowserScanner())

        outcome = await auditor.audit(URL)

        assert outcome.scan.scanner == ScannerKind.BROWSER
        assert analyzer.analyzed == [URL]
        assert [issue.message for issue in outcome.issues] == ["audit.issues.h1Good"]

    @pytest.mark.asyncio
    async def test_browser_error_falls_back_to_fetch(self):
        fetcher = FakeFetcher()
        analyzer = FakeAnalyzer()
        auditor = PageAuditor(fetcher=fetcher, analyzer=analyzer, browser=FakeBrowserScanner(error=RuntimeError("crash")))

        outcome = await auditor.audit(URL)

        assert outcome.scan.scanner == ScannerKind.FETCH
        assert fetcher.scanned == [URL]
        # fetch results already carry their static analysis
        assert analyzer.analyzed == []

    @pytest.mark.asyncio
    async def test_both_paths_failing_raises(self):
        auditor = PageAuditor(
            fetcher=FakeFetcher(failing=[URL]), analyzer=FakeAnalyzer(), browser=FakeBrowserScanner(error=RuntimeError("crash"))
        )

        with pytest.raises(RuntimeError):
            await auditor.audit(URL)

    @pytest.mark.asyncio
    async def test_diagnostics_only_when_requested(self):
        provider = diagnostics_provider()
        auditor = PageAuditor(fetcher=FakeFetcher(), analyzer=FakeAnalyzer(), diagnostics=provider)

        skipped = await auditor.audit(URL, run_diagnostics=False)
        diagnosed = await auditor.audit(URL, run_diagnostics=True)

        assert skipped.diagnostics is None
        assert diagnosed.diagnostics.score == 72
        assert "audit.issues.psiScoreModerate" in [issue.message for issue in diagnosed.issues]
        provider.get_diagnostics.assert_awaited_once_with(URL)

    @pytest.mark.asyncio
    async def test_unavailable_diagnostics_are_skipped(self):
        provider = diagnostics_provider(available=False)
        auditor = PageAuditor(fetcher=FakeFetcher(), analyzer=FakeAnalyzer(), diagnostics=provider)

        outcome = await auditor.audit(URL, run_diagnostics=True)

        assert outcome.diagnostics is None
        provider.get_diagnostics.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_diagnostics_error_is_absorbed(self):
        provider = diagnostics_provider()
        provider.get_diagnostics = AsyncMock(side_effect=RuntimeError("quota"))

        outcome = await PageAuditor(fetcher=FakeFetcher(), analyzer=FakeAnalyzer(), diagnostics=provider).audit(
            URL, run_diagnostics=True
        )

        assert outcome.diagnostics is None
        assert outcome.scan is not None


class TestPageOutcome:
    @pytest.mark.asyncio
    async def test_page_result_merges_scan_and_diagnostics(self):
        auditor = PageAuditor(fetcher=FakeFetcher(), analyzer=FakeAnalyzer(), diagnostics=diagnostics_provider())
        outcome = await auditor.audit(URL, run_diagnostics=True)

        result = outcome.page_result({"screenshotDesktop": "https://cdn.test/d.jpg", "screenshotsDesktop": []})

        assert result["url"] == URL
        assert result["statusCode"] == 200
        assert result["title"] == f"Title of {URL}"
        assert result["metaDescription"] is None
        assert result["ttfb"] == 120
        assert (result["performanceScore"], result["lcp"], result["cls"], result["inp"]) == (72, 2.1, 0.02, 150)
        assert result["issueCount"] == 3
        assert result["screenshotDesktop"] == "https://cdn.test/d.jpg"
        assert result["screenshotMobile"] is None
        assert result["screenshotsDesktop"] == []
        assert result["filmstripDesktop"] is None

    def test_page_result_without_scan(self):
        outcome = PageOutcome(url=URL, issues=[scan_failed_issue(URL)])

        result = outcome.page_result()

        assert result["statusCode"] is None
        assert result["jsErrors"] == []
        assert result["issueCount"] == 1
        assert outcome.screenshots == {}

    def test_title_falls_back_to_raw_html(self):
        html = '<html><head><title> Raw Title </title><meta name="description" content="Raw desc"></head></html>'
        scan = PageScanResult(
            url=URL, scanner=ScannerKind.BROWSER, html=html, status_code=200, dom=DomSummary(meta_description="From DOM")
        )

        result = PageOutcome(url=URL, scan=scan).page_result()

        assert result["title"] == "Raw Title"
        assert result["metaDescription"] == "From DOM"

    def test_scan_failed_issue(self):
        issue = scan_failed_issue(URL)

        assert issue.message == "audit.issues.pageLoadFailed"
        assert issue.source == "system"
        assert issue.suggestion == "audit.suggestions.checkUrl"
