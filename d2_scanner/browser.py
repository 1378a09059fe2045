"""
Headless Chromium page scanner

One BrowserSession (a single Chromium process) is shared by every scan task.
Each device pass opens its own isolated browser context.
"""
import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from core.config import get_settings
from core.logging import get_logger
from d3_assessment.accessibility import AccessibilityAnalyzer
from d3_assessment.types import Issue, IssueCategory, IssueSeverity, IssueSource, make_issue

from .exceptions import BrowserUnavailableError, ScanError
from .types import (
    BrokenResource,
    ConsoleError,
    DomSummary,
    FilmstripFrame,
    FilmstripStage,
    PageScanResult,
    ScannerKind,
    ScanOptions,
)

logger = get_logger(__name__, domain="d2")

DESKTOP_VIEWPORT = {"width": 1920, "height": 1080}
MOBILE_VIEWPORT = {"width": 375, "height": 812}
MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]

FILMSTRIP_QUALITY = 50
FULL_PAGE_QUALITY = 60
SEGMENT_QUALITY = 55
SETTLE_MS = 1000
SEGMENT_SETTLE_MS = 300

MAX_CONSOLE_TEXT = 500
MAX_RESOURCE_URL = 300
MAX_FAILURE_TEXT = 200

DOM_SUMMARY_SCRIPT = """() => {
    const meta = document.querySelector('meta[name="description"]');
    const canonical = document.querySelector('link[rel="canonical"]');
    return {
        title: document.title || '',
        metaDescription: meta ? meta.content : '',
        h1s: [...document.querySelectorAll('h1')].map((el) => (el.textContent || '').trim()),
        canonical: canonical ? canonical.href : '',
        lang: document.documentElement.lang || '',
    };
}"""

SCRIPT_SOURCES_SCRIPT = """() => [...document.querySelectorAll('script[src]')]
    .map((s) => s.getAttribute('src')).filter(Boolean)"""


class BrowserSession:
    """
    Owns the Playwright driver and one Chromium instance

    Use explicitly (`await session.open()` / `await session.close()`) or as an
    async context manager.
    """

    def __init__(self, headless: bool = True, launch_args: Optional[List[str]] = None):
        self.headless = headless
        self.launch_args = launch_args or LAUNCH_ARGS
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @property
    def is_open(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    @property
    def browser(self) -> Browser:
        if not self.is_open:
            raise BrowserUnavailableError("Browser session is not open")
        return self._browser

    async def open(self) -> "BrowserSession":
        if self.is_open:
            return self
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless, args=self.launch_args)
        except PlaywrightError as e:
            await self.close()
            raise BrowserUnavailableError(f"Could not launch Chromium: {e}") from e
        logger.info("Chromium launched")
        return self

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> "BrowserSession":
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def new_context(self, mobile: bool = False) -> BrowserContext:
        if mobile:
            return await self.browser.new_context(
                viewport=MOBILE_VIEWPORT,
                user_agent=MOBILE_USER_AGENT,
                is_mobile=True,
                has_touch=True,
                ignore_https_errors=True,
            )
        return await self.browser.new_context(viewport=DESKTOP_VIEWPORT, ignore_https_errors=True)


def derive_page_issues(
    url: str, console_errors: List[ConsoleError], broken_resources: List[BrokenResource]
) -> List[Issue]:
    """Issues for console errors, 4xx resources and 5xx resources seen while loading"""
    issues = []
    if console_errors:
        issues.append(
            make_issue(
                IssueCategory.TECHNICAL,
                IssueSeverity.WARNING,
                "jsConsoleErrors",
                IssueSource.PLAYWRIGHT,
                url=url,
                suggestion="fixJsErrors",
                value=f"{len(console_errors)} errors",
                detailedSources=[error.to_dict() for error in console_errors],
            )
        )

    client_errors = [r for r in broken_resources if 400 <= r.status < 500]
    server_errors = [r for r in broken_resources if r.status >= 500]
    if client_errors:
        issues.append(
            make_issue(
                IssueCategory.TECHNICAL,
                IssueSeverity.WARNING,
                "brokenResources",
                IssueSource.PLAYWRIGHT,
                url=url,
                suggestion="fixBrokenResources",
                value=f"{len(client_errors)} resources",
                detailedSources=[{"resource": str(r)} for r in client_errors],
            )
        )
    if server_errors:
        issues.append(
            make_issue(
                IssueCategory.TECHNICAL,
                IssueSeverity.ERROR,
                "serverErrors",
                IssueSource.PLAYWRIGHT,
                url=url,
                suggestion="fixServerErrors",
                value=f"{len(server_errors)} server errors",
                detailedSources=[{"resource": str(r)} for r in server_errors],
            )
        )
    return issues


def page_load_failed(url: str, error: Exception) -> Issue:
    return Issue(
        category=IssueCategory.TECHNICAL,
        severity=IssueSeverity.ERROR,
        message="audit.issues.pageLoadFailed",
        source=IssueSource.PLAYWRIGHT.value,
        url=url,
        suggestion=str(error)[:MAX_FAILURE_TEXT] or None,
    )


@dataclass
class _DeviceCapture:
    """Mutable accumulator for one device pass"""

    html: str = ""
    dom: DomSummary = field(default_factory=DomSummary)
    status_code: int = 0
    ttfb: int = 0
    console_errors: List[ConsoleError] = field(default_factory=list)
    broken_resources: List[BrokenResource] = field(default_factory=list)
    screenshot: Optional[bytes] = None
    segments: List[bytes] = field(default_factory=list)
    filmstrip: List[FilmstripFrame] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)
    accessibility_issues: List[Issue] = field(default_factory=list)
    load_error: Optional[PlaywrightError] = None


class BrowserScanner:
    """Scans pages in a shared BrowserSession"""

    def __init__(self, session: BrowserSession, accessibility: Optional[AccessibilityAnalyzer] = None):
        self.session = session
        self.accessibility = accessibility or AccessibilityAnalyzer()
        settings = get_settings()
        self.timeout_ms = settings.page_timeout_ms
        self.max_segments = settings.max_segments

    @staticmethod
    def _listen(page: Page, capture: _DeviceCapture) -> None:
        def on_console(message) -> None:
            if message.type != "error":
                return
            location = message.location or {}
            stack = None
            if location.get("url"):
                stack = f"\n  at {location['url']}:{location.get('lineNumber', 0)}:{location.get('columnNumber', 0)}"
            capture.console_errors.append(ConsoleError(text=message.text[:MAX_CONSOLE_TEXT], stack_trace=stack))

        def on_response(response) -> None:
            if response.status >= 400:
                capture.broken_resources.append(BrokenResource(status=response.status, url=response.url[:MAX_RESOURCE_URL]))

        page.on("console", on_console)
        page.on("response", on_response)

    async def _frame(self, page: Page, stage: FilmstripStage, capture: _DeviceCapture) -> None:
        try:
            data = await page.screenshot(type="jpeg", quality=FILMSTRIP_QUALITY)
        except PlaywrightError as e:
            logger.debug(f"Filmstrip frame {stage.value} failed: {e}")
            return
        capture.filmstrip.append(FilmstripFrame(stage=stage, data=data))

    async def _load(self, page: Page, url: str, capture: _DeviceCapture, filmstrip: bool) -> None:
        """Navigate, then wait through the three filmstrip stages"""
        started = time.monotonic()
        response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
        capture.ttfb = int((time.monotonic() - started) * 1000)
        capture.status_code = response.status if response else 0

        if filmstrip:
            await self._frame(page, FilmstripStage.DOM_CONTENT_LOADED, capture)
        try:
            await page.wait_for_load_state("networkidle", timeout=self.timeout_ms)
        except PlaywrightError:
            logger.debug(f"Network never went idle on {url}")
        if filmstrip:
            await self._frame(page, FilmstripStage.NETWORK_IDLE, capture)

        await page.wait_for_timeout(SETTLE_MS)
        if filmstrip:
            await self._frame(page, FilmstripStage.FULLY_LOADED, capture)

    async def capture_segments(self, page: Page, viewport: Dict[str, int]) -> List[bytes]:
        """Viewport-height bands from the top of the page, at most `max_segments`"""
        total_height = await page.evaluate("() => document.body.scrollHeight")
        height = viewport["height"]
        count = min(self.max_segments, math.ceil((total_height or 0) / height))

        segments = []
        for index in range(count):
            offset = index * height
            await page.evaluate("(y) => window.scrollTo(0, y)", offset)
            await page.wait_for_timeout(SEGMENT_SETTLE_MS)
            segments.append(
                await page.screenshot(
                    type="jpeg",
                    quality=SEGMENT_QUALITY,
                    clip={"x": 0, "y": offset, "width": viewport["width"], "height": min(height, total_height - offset)},
                )
            )
        await page.evaluate("() => window.scrollTo(0, 0)")
        return segments

    async def _screens(self, page: Page, viewport: Dict[str, int], capture: _DeviceCapture) -> None:
        try:
            capture.screenshot = await page.screenshot(full_page=True, type="jpeg", quality=FULL_PAGE_QUALITY)
        except PlaywrightError as e:
            logger.warning(f"Full-page screenshot failed: {e}")
        try:
            capture.segments = await self.capture_segments(page, viewport)
        except PlaywrightError as e:
            logger.debug(f"Segmented capture failed: {e}")

    async def _read_page(self, page: Page, url: str, capture: _DeviceCapture) -> None:
        """DOM summary, HTML and script sources of a loaded page; each read may fail on its own"""
        try:
            capture.dom = DomSummary.from_dict(await page.evaluate(DOM_SUMMARY_SCRIPT))
        except PlaywrightError as e:
            logger.warning(f"DOM summary failed for {url}: {e}")
        try:
            capture.html = await page.content()
        except PlaywrightError as e:
            logger.warning(f"Could not read HTML of {url}: {e}")
        try:
            capture.scripts = await page.evaluate(SCRIPT_SOURCES_SCRIPT)
        except PlaywrightError:
            capture.scripts = []

    async def _primary_pass(self, url: str, mobile: bool, options: ScanOptions) -> _DeviceCapture:
        """Navigation errors are kept on the capture; anything else propagates"""
        capture = _DeviceCapture()
        context = await self.session.new_context(mobile=mobile)
        page = None
        try:
            page = await context.new_page()
            self._listen(page, capture)
            try:
                await self._load(page, url, capture, filmstrip=options.capture_screenshots)
            except PlaywrightError as e:
                capture.load_error = e
                return capture

            await self._read_page(page, url, capture)

            if options.capture_screenshots:
                await self._screens(page, MOBILE_VIEWPORT if mobile else DESKTOP_VIEWPORT, capture)

            if options.run_accessibility:
                await page.evaluate("() => window.scrollTo(0, 0)")
                capture.accessibility_issues = await self.accessibility.analyze(page, url)
        finally:
            if page is not None:
                await page.close()
            await context.close()
        return capture

    async def _mobile_screens(self, url: str) -> Optional[_DeviceCapture]:
        capture = _DeviceCapture()
        try:
            context = await self.session.new_context(mobile=True)
        except PlaywrightError as e:
            logger.warning(f"Mobile context unavailable for {url}: {e}")
            return None
        page = None
        try:
            page = await context.new_page()
            await self._load(page, url, capture, filmstrip=True)
            await self._screens(page, MOBILE_VIEWPORT, capture)
        except PlaywrightError as e:
            logger.warning(f"Mobile capture failed for {url}: {e}")
            return None
        finally:
            if page is not None:
                await page.close()
            await context.close()
        return capture

    async def scan(self, url: str, options: Optional[ScanOptions] = None) -> PageScanResult:
        """
        Scan one page

        Navigation failures are reported as a single pageLoadFailed issue,
        keeping the console errors and failed responses seen before the failure.

        Raises:
            BrowserUnavailableError: when the session is closed or Chromium crashed
            ScanError: any other browser failure outside navigation
        """
        options = options or ScanOptions()
        primary_is_mobile = not options.scan_desktop

        try:
            primary = await self._primary_pass(url, primary_is_mobile, options)
        except BrowserUnavailableError:
            raise
        except PlaywrightError as e:
            if not self.session.is_open:
                raise BrowserUnavailableError(f"Browser went away while scanning {url}: {e}") from e
            raise ScanError(f"Browser scan failed for {url}: {e}", url=url, scanner=ScannerKind.BROWSER.value) from e

        if primary.load_error is not None:
            if not self.session.is_open:
                raise BrowserUnavailableError(f"Browser went away while scanning {url}: {primary.load_error}")
            logger.warning(f"Page load failed for {url}: {primary.load_error}")
            return PageScanResult(
                url=url,
                scanner=ScannerKind.BROWSER,
                status_code=primary.status_code,
                console_errors=primary.console_errors,
                broken_resources=primary.broken_resources,
                issues=[page_load_failed(url, primary.load_error)],
            )

        primary_device = "mobile" if primary_is_mobile else "desktop"
        screenshots: Dict[str, bytes] = {}
        segments: Dict[str, List[bytes]] = {}
        filmstrip: Dict[str, List[FilmstripFrame]] = {}
        if options.capture_screenshots:
            if primary.screenshot:
                screenshots[primary_device] = primary.screenshot
            segments[primary_device] = primary.segments
            filmstrip[primary_device] = primary.filmstrip

            if not primary_is_mobile and options.scan_mobile:
                mobile = await self._mobile_screens(url)
                if mobile is not None:
                    if mobile.screenshot:
                        screenshots["mobile"] = mobile.screenshot
                    segments["mobile"] = mobile.segments
                    filmstrip["mobile"] = mobile.filmstrip

        issues = derive_page_issues(url, primary.console_errors, primary.broken_resources)
        issues.extend(primary.accessibility_issues)

        return PageScanResult(
            url=url,
            scanner=ScannerKind.BROWSER,
            html=primary.html,
            dom=primary.dom,
            status_code=primary.status_code,
            ttfb=primary.ttfb,
            console_errors=primary.console_errors,
            broken_resources=primary.broken_resources,
            screenshots=screenshots,
            segments=segments,
            filmstrip=filmstrip,
            issues=issues,
            scripts=primary.scripts,
        )
