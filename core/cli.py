"""
Command-line interface for SiteAuditor
"""
import asyncio
import json
import sys

import click

from core.config import settings
from core.exceptions import SiteAuditError
from core.logging import get_logger

logger = get_logger(__name__)


@click.group()
@click.version_option(version=settings.app_version)
def cli():
    """SiteAuditor CLI - website technical, performance, visual and accessibility audits"""
    pass


@cli.command()
def init_db():
    """Initialize database with tables"""
    from database.session import init_db as create_tables

    click.echo("Creating database tables...")
    create_tables()
    click.echo("Database initialized successfully!")


@cli.command()
@click.argument("url")
def discover(url: str):
    """List the pages an audit of URL would scan"""
    from core.utils import normalize_url
    from d1_discovery import SiteRecord, UrlDiscovery

    async def run_discovery():
        site = SiteRecord(id="adhoc", url=normalize_url(url))
        return await UrlDiscovery().discover(site)

    result = asyncio.run(run_discovery())
    click.echo(f"Method: {result.method.value} (sitemap: {'yes' if result.has_sitemap else 'no'})")
    for page_url in result.urls:
        click.echo(page_url)


@cli.command()
@click.argument("url")
@click.option("--max-pages", type=click.IntRange(1, 50), default=None, help="Cap on pages scanned")
@click.option("--no-browser", is_flag=True, help="Fetch-only mode, no screenshots")
@click.option("--json", "as_json", is_flag=True, help="Print the final run record as JSON")
def audit(url: str, max_pages: int, no_browser: bool, as_json: bool):
    """Run a full audit of URL and store the result"""
    from d0_gateway.providers import LocalImageStorage, OpenAIClient, PageSpeedClient
    from d2_scanner import BrowserSession
    from d3_assessment.summary import SummaryGenerator
    from d3_assessment.vision import VisionAnalyzer
    from d4_orchestration import AuditOrchestrator
    from d9_delivery import build_notifier
    from database.repository import SqlAuditStore
    from database.session import init_db as create_tables

    overrides = {}
    if max_pages:
        overrides["max_pages"] = max_pages
    if no_browser:
        overrides["use_browser"] = False
    run_settings = settings.model_copy(update=overrides)

    async def run_audit():
        store = SqlAuditStore()
        site = await store.get_or_create_site(url)
        openai = OpenAIClient()
        pagespeed = PageSpeedClient()
        orchestrator = AuditOrchestrator(
            store=store,
            browser=None if no_browser else BrowserSession(),
            diagnostics=pagespeed,
            vision=VisionAnalyzer(openai),
            summarizer=SummaryGenerator(openai),
            storage=LocalImageStorage(),
            notifier=build_notifier(),
            settings=run_settings,
        )
        try:
            run = await orchestrator.start_audit(site)
            await orchestrator.wait_for_background_tasks()
        finally:
            await openai.aclose()
            await pagespeed.aclose()
        return run

    try:
        create_tables()
        run = asyncio.run(run_audit())
    except SiteAuditError as e:
        click.echo(f"✗ {e.message}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(run, indent=2, default=str))
        return

    click.echo(f"Audit {run['id']}: {run['status']}")
    click.echo(f"Score: {run['score']}")
    for category, value in (run.get("categoryScores") or {}).items():
        click.echo(f"  {category}: {value}")
    click.echo(f"Pages scanned: {run['pagesScanned']} of {run['pagesFound']} found")
    click.echo(f"Issues: {len(run['issues'])}")
    if run.get("summary"):
        click.echo("")
        click.echo(run["summary"])
    if run["status"] != "COMPLETED":
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.File("r"))
def score(file):
    """Score a JSON list of issues"""
    from d3_assessment.types import Issue
    from d5_scoring import calculate_audit_score, deduplicate_issues

    try:
        raw = json.load(file)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="FILE")
    if not isinstance(raw, list):
        raise click.BadParameter("expected a JSON list of issues", param_hint="FILE")

    issues = deduplicate_issues([Issue.from_dict(item) for item in raw if isinstance(item, dict)])
    result = calculate_audit_score(issues)
    click.echo(json.dumps({**result.to_dict(), "issueCount": len(issues)}, indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
