"""
Google PageSpeed Insights API v5 client implementation

Works with or without an API key (anonymous calls are more tightly rate
limited). `get_diagnostics` never raises: any failure yields None.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from core.exceptions import ExternalAPIError
from d3_assessment.types import Issue, IssueCategory, IssueSeverity, IssueSource, make_issue

from ..base import BaseAPIClient

RUN_PAGESPEED_ENDPOINT = "/pagespeedonline/v5/runPagespeed"

MAX_RETRIES = 1
RETRY_DELAY_SECONDS = 3.0


@dataclass
class PageSpeedDiagnostics:
    """Performance score (0-100) and Core Web Vitals for one URL"""

    score: int
    lcp: Optional[float] = None  # seconds
    cls: Optional[float] = None
    inp: Optional[int] = None  # milliseconds
    fcp: Optional[float] = None  # seconds
    speed_index: Optional[float] = None  # seconds
    total_blocking_time: Optional[int] = None  # milliseconds
    issues: List[Issue] = field(default_factory=list)


def _numeric(audits: Dict[str, Any], key: str) -> Optional[float]:
    value = (audits.get(key) or {}).get("numericValue")
    return value if isinstance(value, (int, float)) else None


def _rate(value, poor, needs_work, poor_key, needs_work_key, good_key, suggestion, url, display):
    perf = IssueCategory.PERFORMANCE
    if value > poor:
        return make_issue(perf, IssueSeverity.ERROR, poor_key, IssueSource.PSI, url=url, suggestion=suggestion, value=display)
    if value > needs_work:
        return make_issue(perf, IssueSeverity.WARNING, needs_work_key, IssueSource.PSI, url=url, suggestion=suggestion, value=display)
    return make_issue(perf, IssueSeverity.PASSED, good_key, IssueSource.PSI, url=url, value=display)


def parse_pagespeed_response(data: Dict[str, Any], url: str) -> Optional[PageSpeedDiagnostics]:
    """Turn a runPagespeed payload into diagnostics plus issues"""
    lighthouse = data.get("lighthouseResult")
    if not lighthouse:
        return None

    audits = lighthouse.get("audits") or {}
    performance = (lighthouse.get("categories") or {}).get("performance") or {}
    score = round((performance.get("score") or 0) * 100)

    lcp_ms = _numeric(audits, "largest-contentful-paint")
    cls = _numeric(audits, "cumulative-layout-shift")
    inp = _numeric(audits, "interaction-to-next-paint")
    fcp_ms = _numeric(audits, "first-contentful-paint")
    si_ms = _numeric(audits, "speed-index")
    tbt = _numeric(audits, "total-blocking-time")

    diagnostics = PageSpeedDiagnostics(
        score=score,
        lcp=round(lcp_ms) / 1000 if lcp_ms else None,
        cls=cls,
        inp=round(inp) if inp else None,
        fcp=round(fcp_ms) / 1000 if fcp_ms else None,
        speed_index=round(si_ms) / 1000 if si_ms else None,
        total_blocking_time=round(tbt) if tbt else None,
    )

    perf = IssueCategory.PERFORMANCE
    if score < 50:
        diagnostics.issues.append(
            make_issue(perf, IssueSeverity.ERROR, "psiScoreLow", IssueSource.PSI, url=url, suggestion="improvePageSpeed", value=f"{score}/100")
        )
    elif score < 90:
        diagnostics.issues.append(
            make_issue(perf, IssueSeverity.WARNING, "psiScoreModerate", IssueSource.PSI, url=url, suggestion="improvePageSpeed", value=f"{score}/100")
        )
    else:
        diagnostics.issues.append(make_issue(perf, IssueSeverity.PASSED, "psiScoreGood", IssueSource.PSI, url=url, value=f"{score}/100"))

    if diagnostics.lcp is not None:
        diagnostics.issues.append(
            _rate(diagnostics.lcp, 4, 2.5, "lcpPoor", "lcpNeedsWork", "lcpGood", "improveLcp", url, f"{diagnostics.lcp:.1f}s")
        )
    if diagnostics.cls is not None:
        diagnostics.issues.append(
            _rate(diagnostics.cls, 0.25, 0.1, "clsPoor", "clsNeedsWork", "clsGood", "improveCls", url, f"{diagnostics.cls:.3f}")
        )
    if diagnostics.inp is not None:
        diagnostics.issues.append(
            _rate(diagnostics.inp, 500, 200, "inpPoor", "inpNeedsWork", "inpGood", "improveInp", url, f"{diagnostics.inp}ms")
        )

    return diagnostics


class PageSpeedClient(BaseAPIClient):
    """Google PageSpeed Insights API v5 client"""

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        from core.config import get_settings

        settings = get_settings()
        if api_key is None and settings.google_api_key:
            api_key = settings.google_api_key.get_secret_value()

        super().__init__(
            provider="pagespeed",
            api_key=api_key,
            client=client,
            timeout=settings.pagespeed_timeout,
        )

    def _get_base_url(self) -> str:
        return "https://www.googleapis.com"

    def _get_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    def is_available(self) -> bool:
        return self.settings.enable_pagespeed

    async def analyze_url(self, url: str, strategy: str = "mobile") -> Dict[str, Any]:
        """
        Run a performance-only analysis

        Raises:
            ExternalAPIError: On HTTP or transport failure
        """
        params = {"url": url, "strategy": strategy, "category": "performance"}
        if self.api_key:
            params["key"] = self.api_key

        return await self.make_request("GET", RUN_PAGESPEED_ENDPOINT, params=params)

    async def get_diagnostics(self, url: str, strategy: str = "mobile") -> Optional[PageSpeedDiagnostics]:
        """
        Fetch diagnostics for a URL, retrying once after a short backoff

        Returns:
            PageSpeedDiagnostics, or None when the API is unreachable or returns garbage
        """
        for attempt in range(MAX_RETRIES + 1):
            if attempt:
                self.logger.info(f"PSI retry {attempt}/{MAX_RETRIES} for {url}")
                await asyncio.sleep(RETRY_DELAY_SECONDS * attempt)

            try:
                data = await self.analyze_url(url, strategy)
            except ExternalAPIError as e:
                self.logger.warning(f"PSI request failed for {url} (attempt {attempt + 1}): {e.message}")
                continue

            diagnostics = parse_pagespeed_response(data, url)
            if diagnostics is None:
                self.logger.warning(f"PSI returned no lighthouse result for {url}")
            return diagnostics

        self.metrics.record_failure(self.provider, "exhausted_retries")
        return None
