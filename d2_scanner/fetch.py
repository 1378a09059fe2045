"""
Plain HTTP page scanner

Used when the browser is unavailable or a browser scan raised.
"""
import re
import time
from typing import Optional

import httpx

from core.config import get_settings
from core.logging import get_logger
from d0_gateway.base import http_session
from d3_assessment.html_analyzer import StaticHtmlAnalyzer
from d3_assessment.types import IssueCategory, IssueSeverity, IssueSource, make_issue

from .types import DomSummary, PageScanResult, ScannerKind

logger = get_logger(__name__, domain="d2")

TITLE_PATTERN = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.IGNORECASE)
META_DESCRIPTION_PATTERN = re.compile(
    r"""<meta[^>]+name=["']description["'][^>]+content=["']([^"']*?)["']""", re.IGNORECASE
)


def extract_meta(html: str) -> DomSummary:
    title = TITLE_PATTERN.search(html)
    description = META_DESCRIPTION_PATTERN.search(html)
    return DomSummary(
        title=title.group(1).strip() if title else "",
        meta_description=description.group(1).strip() if description else "",
    )


class FetchScanner:
    """Timed GET plus static HTML analysis"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, analyzer: Optional[StaticHtmlAnalyzer] = None):
        self.client = client
        self.analyzer = analyzer or StaticHtmlAnalyzer(client=client)
        self.timeout = get_settings().fetch_timeout

    async def scan(self, url: str) -> PageScanResult:
        """Never raises: an unreachable page yields a siteUnreachable issue"""
        try:
            async with http_session(self.client) as client:
                started = time.monotonic()
                response = await client.get(url, timeout=self.timeout)
                ttfb = int((time.monotonic() - started) * 1000)
                html = response.text
        except httpx.HTTPError as e:
            logger.warning(f"Fetch scan failed for {url}: {e}")
            return PageScanResult(
                url=url,
                scanner=ScannerKind.FETCH,
                issues=[
                    make_issue(
                        IssueCategory.TECHNICAL,
                        IssueSeverity.ERROR,
                        "siteUnreachable",
                        IssueSource.FETCH,
                        url=url,
                        suggestion="checkUrl",
                    )
                ],
            )

        headers = {key.lower(): value for key, value in response.headers.items()}
        return PageScanResult(
            url=url,
            scanner=ScannerKind.FETCH,
            html=html,
            dom=extract_meta(html),
            status_code=response.status_code,
            ttfb=ttfb,
            headers=headers,
            issues=self.analyzer.analyze(html, url, headers, ttfb),
        )
