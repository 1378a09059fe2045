"""
Audit Orchestrator

Drives one audit run through PENDING -> RUNNING -> COMPLETED | FAILED:
discovery, per-page scans through a bounded pool, site-wide checks, AI vision,
scoring, media upload, persistence, summary and notification.
"""
import asyncio
import time
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urlparse

from core.config import Settings, get_settings
from core.exceptions import SiteAuditError
from core.logging import get_logger
from core.metrics import metrics
from core.utils import normalize_url
from d1_discovery.discovery import UrlDiscovery
from d1_discovery.types import SiteRecord
from d2_scanner.browser import BrowserScanner, BrowserSession
from d2_scanner.exceptions import BrowserUnavailableError
from d2_scanner.fetch import FetchScanner
from d2_scanner.types import ScanOptions
from d3_assessment.html_analyzer import StaticHtmlAnalyzer
from d3_assessment.types import Issue, IssueCategory, IssueSeverity, IssueSource, make_issue
from d3_assessment.vision import ScreenCapture
from d5_scoring.engine import calculate_audit_score, deduplicate_issues
from database.models import AuditStatus
from database.repository import utcnow

from .collaborators import AuditStore, DiagnosticsProvider, Discovery, ImageStorage, Notifier, Summarizer, VisionProvider
from .media import MediaUploader, audit_folder
from .page_auditor import PageAuditor, PageOutcome, scan_failed_issue
from .pool import WorkerPool
from .progress import ProgressSnapshot, ProgressTracker, no_sitemap_progress

logger = get_logger(__name__, domain="d4")

MAX_FAILURE_MESSAGE = 300


def no_sitemap_issue(url: str) -> Issue:
    return make_issue(
        IssueCategory.TECHNICAL,
        IssueSeverity.ERROR,
        "noSitemap",
        IssueSource.SYSTEM,
        url=url,
        suggestion="addSitemap",
    )


def audit_failed_issue(error: BaseException) -> Issue:
    return Issue(
        category=IssueCategory.TECHNICAL,
        severity=IssueSeverity.ERROR,
        message="audit.issues.auditFailed",
        source=IssueSource.SYSTEM.value,
        suggestion=(str(error) or error.__class__.__name__)[:MAX_FAILURE_MESSAGE],
    )


class AuditOrchestrator:
    """
    Runs audits against injected collaborators

    Collaborators left as None fall back to the default adapters, except the
    optional ones (browser, diagnostics, vision, summarizer, storage, notifier)
    whose absence simply skips that step.
    """

    def __init__(
        self,
        store: AuditStore,
        discovery: Optional[Discovery] = None,
        browser: Optional[BrowserSession] = None,
        fetcher: Optional[FetchScanner] = None,
        analyzer: Optional[StaticHtmlAnalyzer] = None,
        diagnostics: Optional[DiagnosticsProvider] = None,
        vision: Optional[VisionProvider] = None,
        summarizer: Optional[Summarizer] = None,
        storage: Optional[ImageStorage] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.discovery = discovery or UrlDiscovery(store=store)
        self.browser = browser
        self.analyzer = analyzer or StaticHtmlAnalyzer()
        self.fetcher = fetcher or FetchScanner(analyzer=self.analyzer)
        self.diagnostics = diagnostics
        self.vision = vision
        self.summarizer = summarizer
        self.storage = storage
        self.notifier = notifier
        self._background_tasks: Set[asyncio.Task] = set()

    # Run lifecycle

    async def start_audit(self, site: SiteRecord, device_type: Optional[str] = None) -> Dict[str, Any]:
        """Create a run for `site`, execute it and return the final run record"""
        run = await self.store.create_run(site.id, device_type)
        await self.run(run["id"], site, device_type)
        return await self.store.get_run(run["id"])

    async def run(self, run_id: str, site: SiteRecord, device_type: Optional[str] = None) -> None:
        """Execute an audit run. Never raises."""
        started = time.monotonic()
        metrics.track_audit_started()
        try:
            await self._execute(run_id, site, device_type, started)
        except Exception as e:
            logger.exception(f"Fatal error for audit {run_id}: {e}")
            await self._fail(run_id, e, started)

    async def _execute(self, run_id: str, site: SiteRecord, device_type: Optional[str], started: float) -> None:
        home = normalize_url(site.url)
        await self.store.update_run(run_id, status=AuditStatus.RUNNING, started_at=utcnow())

        discovered = await self.discovery.discover(site)
        logger.info(
            f"Discovered {len(discovered.urls)} URLs via {discovered.method.value} for audit {run_id} "
            f"(sitemap: {discovered.has_sitemap})"
        )

        if not discovered.has_sitemap:
            logger.info(f"No sitemap found, aborting audit {run_id}")
            await self.store.update_run(
                run_id,
                status=AuditStatus.FAILED,
                completed_at=utcnow(),
                score=0,
                pages_scanned=0,
                discovery_method=discovered.method.value,
                progress=no_sitemap_progress().to_dict(),
                issues=[no_sitemap_issue(home).to_dict()],
            )
            metrics.track_audit_finished(AuditStatus.FAILED.value, time.monotonic() - started, reason="NO_SITEMAP")
            return

        pages = discovered.urls[: self.settings.max_pages]
        tracker = ProgressTracker(len(pages))
        await self.store.update_run(
            run_id,
            pages_found=len(discovered.urls),
            discovery_method=discovered.method.value,
            progress=tracker.discovery().to_dict(),
        )

        owns_browser, scanner = await self._open_browser()
        try:
            outcomes = await self._scan_pages(run_id, pages, tracker, scanner, device_type)
        finally:
            if owns_browser:
                await self.browser.close()

        issues: List[Issue] = [issue for outcome in outcomes for issue in outcome.issues]

        origin = "{0.scheme}://{0.netloc}".format(urlparse(home))
        issues.extend(await self.analyzer.check_robots_and_sitemap(origin))

        issues.extend(await self._vision_issues(run_id, outcomes, home, tracker))

        await self._update_progress(run_id, tracker.scoring())
        deduped = deduplicate_issues(issues)
        audit_score = calculate_audit_score(deduped)
        metrics.track_issues(deduped)

        page_results, homepage_screens = await self._upload_media(site, run_id, outcomes, pages[0] if pages else home)

        try:
            await self.store.update_run(
                run_id,
                status=AuditStatus.COMPLETED,
                completed_at=utcnow(),
                score=audit_score.overall_score,
                category_scores=audit_score.category_scores,
                device_type=device_type,
                pages_scanned=len(page_results),
                progress=tracker.complete().to_dict(),
                issues=[issue.to_dict() for issue in deduped],
                screenshots=homepage_screens,
                page_results=page_results,
            )
        except Exception as e:
            logger.error(f"Final write failed for audit {run_id}: {e}")
            await self._fail(run_id, e, started)
            return

        metrics.track_audit_finished(
            AuditStatus.COMPLETED.value, time.monotonic() - started, score=audit_score.overall_score
        )
        logger.info(
            f"Audit {run_id} complete: score={audit_score.overall_score}, pages={len(page_results)}, "
            f"issues={len(deduped)}"
        )

        await self._attach_summary(
            run_id, deduped, audit_score.overall_score, audit_score.category_scores, home, len(page_results)
        )
        self._schedule_notification(
            site.account_id,
            {
                "type": "audit_complete",
                "title": "notifications.auditComplete.title",
                "message": "notifications.auditComplete.message",
                "data": {
                    "auditId": run_id,
                    "siteId": site.id,
                    "siteUrl": site.url,
                    "score": audit_score.overall_score,
                    "deviceType": device_type,
                },
            },
        )

    async def _fail(self, run_id: str, error: BaseException, started: float) -> None:
        """Best-effort FAILED write; skipped when the run is already terminal"""
        try:
            run = await self.store.get_run(run_id)
            if run and AuditStatus(run["status"]).is_terminal:
                logger.warning(f"Audit {run_id} already {run['status']}, not marking FAILED")
                return
            await self.store.update_run(
                run_id,
                status=AuditStatus.FAILED,
                completed_at=utcnow(),
                score=0,
                issues=[audit_failed_issue(error).to_dict()],
            )
            metrics.track_audit_finished(AuditStatus.FAILED.value, time.monotonic() - started, reason="ERROR")
        except Exception as e:
            logger.error(f"Could not mark audit {run_id} as FAILED: {e}")

    # Scanning

    async def _open_browser(self):
        """Returns (opened_here, scanner); scanner is None in fetch-only mode"""
        if self.browser is None or not self.settings.use_browser:
            return False, None
        if self.browser.is_open:
            return False, BrowserScanner(self.browser)
        try:
            await self.browser.open()
        except BrowserUnavailableError as e:
            logger.warning(f"Playwright unavailable, using fetch-only mode: {e.message}")
            return False, None
        return True, BrowserScanner(self.browser)

    async def _scan_pages(
        self,
        run_id: str,
        pages: List[str],
        tracker: ProgressTracker,
        scanner: Optional[BrowserScanner],
        device_type: Optional[str],
    ) -> List[PageOutcome]:
        auditor = PageAuditor(
            fetcher=self.fetcher,
            analyzer=self.analyzer,
            browser=scanner,
            diagnostics=self.diagnostics,
            diagnostics_concurrency=self.settings.psi_concurrency,
            options=ScanOptions(
                capture_screenshots=self.settings.capture_screenshots,
                device_type=device_type,
                run_accessibility=self.settings.run_accessibility,
            ),
        )
        diagnosed = set(pages[: self.settings.psi_max_pages])

        async def audit_page(url: str) -> PageOutcome:
            try:
                return await auditor.audit(url, run_diagnostics=url in diagnosed)
            except Exception as e:
                logger.warning(f"Page scan failed for {url}: {e}")
                return PageOutcome(url=url, issues=[scan_failed_issue(url)])

        async def publish(snapshot: ProgressSnapshot, scanned: int) -> None:
            await self._update_progress(run_id, snapshot, pages_scanned=scanned)

        async def page_done(url: str, outcome: PageOutcome) -> None:
            await tracker.page_done(url, publish=publish)

        pool = WorkerPool(self.settings.scan_concurrency)
        results = await pool.map(pages, audit_page, on_done=page_done)

        outcomes = []
        for url, result in zip(pages, results):
            if isinstance(result, PageOutcome):
                outcomes.append(result)
            else:
                logger.warning(f"Page task for {url} ended with {result!r}")
                outcomes.append(PageOutcome(url=url, issues=[scan_failed_issue(url)]))
        return outcomes

    async def _update_progress(self, run_id: str, snapshot: ProgressSnapshot, **fields) -> None:
        try:
            await self.store.update_run(run_id, progress=snapshot.to_dict(), **fields)
        except SiteAuditError as e:
            logger.debug(f"Progress update skipped for {run_id}: {e.message}")
        except Exception as e:
            logger.warning(f"Progress update failed for {run_id}: {e}")

    # Post-scan steps

    async def _vision_issues(
        self, run_id: str, outcomes: List[PageOutcome], home: str, tracker: ProgressTracker
    ) -> List[Issue]:
        captures = [
            ScreenCapture(url=o.url, desktop=o.screenshots.get("desktop"), mobile=o.screenshots.get("mobile"))
            for o in outcomes
            if o.screenshots
        ]
        if self.vision is None:
            logger.info("No vision analyzer configured, skipping AI vision analysis")
            return []
        if not captures:
            logger.info("No screenshots captured, skipping AI vision analysis")
            return []

        await self._update_progress(run_id, tracker.vision())
        try:
            return await self.vision.analyze_screens(captures, home)
        except Exception as e:
            logger.warning(f"AI vision analysis failed: {e}")
            return []

    async def _upload_media(self, site: SiteRecord, run_id: str, outcomes: List[PageOutcome], home_url: str):
        """Returns (enriched page results, screenshot URLs of `home_url`, or None when it has none)"""
        scanned = [o for o in outcomes if o.scan is not None]
        if self.storage is None:
            return [o.page_result() for o in scanned], None

        uploader = MediaUploader(self.storage, audit_folder(site.id, run_id))
        media = await asyncio.gather(*(uploader.page_media(o.scan) for o in scanned))
        page_results = [o.page_result(m) for o, m in zip(scanned, media)]

        homepage_screens = None
        home = next((m for o, m in zip(scanned, media) if o.url == home_url), None)
        if home and (home["screenshotDesktop"] or home["screenshotMobile"]):
            homepage_screens = {"desktop": home["screenshotDesktop"], "mobile": home["screenshotMobile"]}
        logger.info(f"Uploaded media for {len(page_results)} pages")
        return page_results, homepage_screens

    async def _attach_summary(
        self, run_id: str, issues: List[Issue], score: int, category_scores: Dict[str, int], url: str, page_count: int
    ) -> None:
        if self.summarizer is None:
            return
        try:
            summary = await self.summarizer.summarize(issues, score, category_scores, url, page_count)
            if summary:
                await self.store.update_run(run_id, summary=summary)
                logger.info(f"AI summary saved ({len(summary)} chars)")
        except Exception as e:
            logger.warning(f"AI summary generation failed: {e}")

    # Notifications

    def _schedule_notification(self, account_id: Optional[str], event: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        task = asyncio.create_task(self._notify(account_id, event))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _notify(self, account_id: Optional[str], event: Dict[str, Any]) -> None:
        try:
            await self.notifier.notify(account_id, event)
        except Exception as e:
            logger.warning(f"Notification {event.get('type')} failed: {e}")

    async def wait_for_background_tasks(self) -> None:
        """Wait for scheduled notifications; used before shutdown"""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
