"""
Tests for the audit run state machine
"""
import asyncio
import logging

import pytest

from core.config import get_settings
from d1_discovery.types import DiscoveryMethod, SiteRecord
from d3_assessment.types import IssueCategory, IssueSeverity, IssueSource, make_issue
from d4_orchestration.orchestrator import AuditOrchestrator, audit_failed_issue, no_sitemap_issue
from database.models import AuditStatus

from .fakes import (
    HOME,
    FakeAnalyzer,
    FakeDiscovery,
    FakeFetcher,
    FakeNotifier,
    FakeStorage,
    FakeStore,
    FakeSummarizer,
    FakeVision,
)

SITE = SiteRecord(id="site-1", url="acme.test/", account_id="acct-1")


def pages(count):
    return [HOME] + [f"{HOME}/page-{i}" for i in range(1, count)]


class SlowProgressStore(FakeStore):
    """Later progress steps are written faster than earlier ones"""

    async def update_run(self, run_id, **fields):
        progress = fields.get("progress")
        if progress and progress["label"] not in ("discovery", "complete"):
            await asyncio.sleep(max(0.0, 0.05 - progress["currentStep"] * 0.01))
        return await super().update_run(run_id, **fields)


class BrokenProgressStore(FakeStore):
    async def update_run(self, run_id, **fields):
        if "pages_scanned" in fields and "status" not in fields:
            raise RuntimeError("connection reset")
        return await super().update_run(run_id, **fields)


def make_orchestrator(store, discovery, fetcher=None, **overrides):
    settings_overrides = overrides.pop("settings", {})
    settings = get_settings().model_copy(update={"use_browser": False, "psi_max_pages": 0, **settings_overrides})
    return AuditOrchestrator(
        store=store,
        discovery=discovery,
        fetcher=fetcher or FakeFetcher(),
        analyzer=overrides.pop("analyzer", FakeAnalyzer()),
        settings=settings,
        **overrides,
    )


class TestNoSitemap:
    @pytest.mark.asyncio
    async def test_run_fails_without_scanning(self):
        store = FakeStore()
        fetcher = FakeFetcher()
        orchestrator = make_orchestrator(store, FakeDiscovery(has_sitemap=False, method=DiscoveryMethod.CRAWL), fetcher)

        run = await orchestrator.start_audit(SITE)

        assert run["status"] == "FAILED"
        assert run["score"] == 0
        assert run["pages_scanned"] == 0
        assert run["discovery_method"] == "crawl"
        assert run["progress"]["failureReason"] == "NO_SITEMAP"
        assert run["issues"] == [no_sitemap_issue(HOME).to_dict()]
        assert run["issues"][0]["message"] == "audit.issues.noSitemap"
        assert fetcher.scanned == []
        assert len(store.status_writes(AuditStatus.FAILED)) == 1


class TestCompletedRun:
    @pytest.mark.asyncio
    async def test_full_run(self):
        store = FakeStore()
        analyzer = FakeAnalyzer()
        summarizer = FakeSummarizer()
        notifier = FakeNotifier()
        orchestrator = make_orchestrator(
            store,
            FakeDiscovery(urls=pages(5)),
            analyzer=analyzer,
            summarizer=summarizer,
            notifier=notifier,
            settings={"scan_concurrency": 3},
        )

        run = await orchestrator.start_audit(SITE, device_type="desktop")
        await orchestrator.wait_for_background_tasks()

        assert run["status"] == "COMPLETED"
        assert run["pages_found"] == 5
        assert run["pages_scanned"] == 5
        assert run["discovery_method"] == "sitemap"
        assert run["device_type"] == "desktop"
        assert run["progress"] == {"currentStep": 8, "totalSteps": 8, "percentage": 100, "label": "complete"}
        assert analyzer.robots_checked == [HOME]

        messages = [issue["message"] for issue in run["issues"]]
        # the site-wide compression issue is reported once, per-page issues once per page
        assert messages.count("audit.issues.noCompression") == 1
        assert messages.count("audit.issues.noCanonical") == 5
        assert "audit.issues.robotsTxtFound" in messages

        assert run["category_scores"] == {"technical": 85, "performance": 90, "visual": 100, "accessibility": 100}
        assert run["score"] == 92
        assert [result["url"] for result in run["page_results"]] == pages(5)
        assert run["summary"] == "## Summary"
        assert summarizer.calls[0][2:] == (HOME, 5)

        (account_id, event), = notifier.events
        assert account_id == "acct-1"
        assert event["type"] == "audit_complete"
        assert event["data"]["auditId"] == run["id"]
        assert event["data"]["score"] == 92

    @pytest.mark.asyncio
    async def test_progress_never_goes_backwards(self):
        store = FakeStore()
        orchestrator = make_orchestrator(store, FakeDiscovery(urls=pages(6)), settings={"scan_concurrency": 3})

        await orchestrator.start_audit(SITE)

        steps = [update["progress"]["currentStep"] for update in store.updates if "progress" in update]
        percentages = [update["progress"]["percentage"] for update in store.updates if "progress" in update]
        assert steps == sorted(steps)
        assert percentages == sorted(percentages)
        assert steps[0] == 1
        assert percentages[-1] == 100

    @pytest.mark.asyncio
    async def test_progress_order_survives_slow_writes(self):
        store = SlowProgressStore()
        orchestrator = make_orchestrator(store, FakeDiscovery(urls=pages(5)), settings={"scan_concurrency": 3})

        await orchestrator.start_audit(SITE)

        page_updates = [update for update in store.updates if "pages_scanned" in update and "status" not in update]
        steps = [update["progress"]["currentStep"] for update in store.updates if "progress" in update]
        assert steps == sorted(steps)
        assert [update["pages_scanned"] for update in page_updates] == [1, 2, 3, 4, 5]
        assert all(update["progress"]["currentStep"] == update["pages_scanned"] + 1 for update in page_updates)

    @pytest.mark.asyncio
    async def test_progress_write_failure_keeps_page_results(self):
        store = BrokenProgressStore()
        orchestrator = make_orchestrator(store, FakeDiscovery(urls=pages(3)))

        run = await orchestrator.start_audit(SITE)

        assert run["status"] == "COMPLETED"
        assert run["pages_scanned"] == 3
        assert "audit.issues.pageLoadFailed" not in [issue["message"] for issue in run["issues"]]

    @pytest.mark.asyncio
    async def test_pages_are_capped(self):
        store = FakeStore()
        fetcher = FakeFetcher()
        orchestrator = make_orchestrator(store, FakeDiscovery(urls=pages(10)), fetcher, settings={"max_pages": 3})

        run = await orchestrator.start_audit(SITE)

        assert run["pages_found"] == 10
        assert run["pages_scanned"] == 3
        assert sorted(fetcher.scanned) == sorted(pages(3))

    @pytest.mark.asyncio
    async def test_failed_page_is_reported_not_fatal(self):
        store = FakeStore()
        failing = f"{HOME}/page-2"
        orchestrator = make_orchestrator(store, FakeDiscovery(urls=pages(4)), FakeFetcher(failing=[failing]))

        run = await orchestrator.start_audit(SITE)

        assert run["status"] == "COMPLETED"
        assert run["pages_scanned"] == 3
        failed = [issue for issue in run["issues"] if issue.get("url") == failing]
        assert [issue["message"] for issue in failed] == ["audit.issues.pageLoadFailed"]
        assert failed[0]["source"] == "system"

    @pytest.mark.asyncio
    async def test_vision_and_media(self):
        store = FakeStore()
        storage = FakeStorage()
        vision_issue = make_issue(IssueCategory.VISUAL, IssueSeverity.WARNING, "Overlapping header", IssueSource.AI_VISION)
        vision = FakeVision(issues=[vision_issue])
        orchestrator = make_orchestrator(
            store,
            FakeDiscovery(urls=pages(2)),
            FakeFetcher(screenshots={"desktop": b"d", "mobile": b"m"}),
            vision=vision,
            storage=storage,
        )

        run = await orchestrator.start_audit(SITE)

        assert [capture.url for capture in vision.captures] == pages(2)
        assert run["category_scores"]["visual"] == 97
        assert run["screenshots"] == {
            "desktop": f"https://cdn.test/audits/site-1/{run['id']}/ss_homepage_desktop.jpg",
            "mobile": f"https://cdn.test/audits/site-1/{run['id']}/ss_homepage_mobile.jpg",
        }
        assert run["page_results"][1]["screenshotMobile"].endswith("ss_page-1_mobile.jpg")
        vision_progress = [u["progress"] for u in store.updates if u.get("progress", {}).get("label") == "vision"]
        assert vision_progress[0]["percentage"] == 88

    @pytest.mark.asyncio
    async def test_homepage_screenshots_only_from_homepage(self):
        store = FakeStore()
        orchestrator = make_orchestrator(
            store,
            FakeDiscovery(urls=pages(3)),
            FakeFetcher(failing=[HOME], screenshots={"desktop": b"d"}),
            storage=FakeStorage(),
        )

        run = await orchestrator.start_audit(SITE)

        assert run["pages_scanned"] == 2
        assert run.get("screenshots") is None
        assert run["page_results"][0]["screenshotDesktop"].endswith("ss_page-1_desktop.jpg")

    @pytest.mark.asyncio
    async def test_vision_skipped_without_screenshots(self):
        vision = FakeVision()

        await make_orchestrator(FakeStore(), FakeDiscovery(urls=pages(2)), vision=vision).start_audit(SITE)

        assert vision.captures is None

    @pytest.mark.asyncio
    async def test_missing_vision_analyzer_is_logged_as_such(self, caplog):
        orchestrator = make_orchestrator(
            FakeStore(), FakeDiscovery(urls=pages(2)), FakeFetcher(screenshots={"desktop": b"d"})
        )

        with caplog.at_level(logging.INFO, logger="d4_orchestration.orchestrator"):
            await orchestrator.start_audit(SITE)

        assert "No vision analyzer configured" in caplog.text
        assert "No screenshots captured" not in caplog.text

    @pytest.mark.asyncio
    async def test_notifier_failure_is_absorbed(self):
        store = FakeStore()
        orchestrator = make_orchestrator(store, FakeDiscovery(), notifier=FakeNotifier(error=RuntimeError("smtp down")))

        run = await orchestrator.start_audit(SITE)
        await orchestrator.wait_for_background_tasks()

        assert run["status"] == "COMPLETED"


class TestFailures:
    @pytest.mark.asyncio
    async def test_discovery_error_fails_run(self):
        store = FakeStore()

        run = await make_orchestrator(store, FakeDiscovery(error=RuntimeError("dns exploded"))).start_audit(SITE)

        assert run["status"] == "FAILED"
        assert run["score"] == 0
        assert run["issues"] == [audit_failed_issue(RuntimeError("dns exploded")).to_dict()]
        assert run["issues"][0]["suggestion"] == "dns exploded"

    @pytest.mark.asyncio
    async def test_final_write_failure_marks_failed_once(self):
        store = FakeStore(fail_on_status=AuditStatus.COMPLETED)
        summarizer = FakeSummarizer()
        notifier = FakeNotifier()
        orchestrator = make_orchestrator(store, FakeDiscovery(urls=pages(2)), summarizer=summarizer, notifier=notifier)

        run = await orchestrator.start_audit(SITE)
        await orchestrator.wait_for_background_tasks()

        assert run["status"] == "FAILED"
        assert len(store.status_writes(AuditStatus.FAILED)) == 1
        assert run["issues"][0]["message"] == "audit.issues.auditFailed"
        assert summarizer.calls == []
        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_terminal_run_is_not_overwritten(self):
        store = FakeStore()
        orchestrator = make_orchestrator(store, FakeDiscovery())
        run = await store.create_run(SITE.id)
        await store.update_run(run["id"], status=AuditStatus.COMPLETED, score=77)

        await orchestrator._fail(run["id"], RuntimeError("late"), 0.0)

        assert (await store.get_run(run["id"]))["score"] == 77
        assert store.status_writes(AuditStatus.FAILED) == []

    def test_audit_failed_issue_truncates(self):
        issue = audit_failed_issue(RuntimeError("x" * 1000))

        assert len(issue.suggestion) == 300
        assert issue.url is None
