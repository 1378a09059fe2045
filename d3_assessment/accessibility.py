"""
Accessibility analysis with axe-core on a live Playwright page

Timeout: bounded by the page's default Playwright timeout
Cost: Free (runs in the browser)
"""
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from core.config import get_settings
from core.logging import get_logger
from d3_assessment.types import Issue, IssueCategory, IssueSeverity, IssueSource

logger = get_logger(__name__, domain="d3")

AXE_IMPACT_TO_SEVERITY = {
    "critical": IssueSeverity.ERROR,
    "serious": IssueSeverity.ERROR,
    "moderate": IssueSeverity.WARNING,
    "minor": IssueSeverity.INFO,
}

AXE_RUN_TAGS = ["wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "best-practice"]

MAX_NODES_PER_VIOLATION = 20

AXE_RUN_SCRIPT = """(tags) => window.axe.run(document, {runOnly: {type: 'tag', values: tags}})"""


def _best_selector(node: Dict[str, Any]) -> Optional[str]:
    target = node.get("target") or []
    if not target:
        return None
    last = target[-1]
    if isinstance(last, list):
        return last[-1] if last else None
    return last


def _contrast_metadata(node: Dict[str, Any]) -> Dict[str, Any]:
    for check in node.get("any") or []:
        data = check.get("data")
        if isinstance(data, dict) and "contrastRatio" in data:
            return {
                "foreground": data.get("fgColor"),
                "background": data.get("bgColor"),
                "contrastRatio": data.get("contrastRatio"),
                "expectedRatio": data.get("expectedContrastRatio"),
            }
    return {}


def violations_to_issues(violations: List[Dict[str, Any]], url: str) -> List[Issue]:
    """Map axe violations to accessibility issues, one issue per rule"""
    issues = []
    for violation in violations:
        rule_id = violation.get("id", "unknown")
        nodes = []
        for node in (violation.get("nodes") or [])[:MAX_NODES_PER_VIOLATION]:
            entry = {
                "selector": _best_selector(node),
                "codeSnippet": node.get("html", ""),
                "failureSummary": node.get("failureSummary", ""),
            }
            if rule_id == "color-contrast":
                entry["metadata"] = _contrast_metadata(node)
            nodes.append(entry)

        issues.append(
            Issue(
                category=IssueCategory.ACCESSIBILITY,
                severity=AXE_IMPACT_TO_SEVERITY.get(violation.get("impact"), IssueSeverity.WARNING),
                message=f"a11y.{rule_id}",
                source=IssueSource.AXE.value,
                url=url,
                suggestion=violation.get("help") or None,
                details={
                    "ruleId": rule_id,
                    "impact": violation.get("impact"),
                    "description": violation.get("description"),
                    "helpUrl": violation.get("helpUrl"),
                    "tags": violation.get("tags") or [],
                    "nodeCount": len(violation.get("nodes") or []),
                    "nodes": nodes,
                },
            )
        )
    return issues


class AccessibilityAnalyzer:
    """Injects axe-core into a loaded page and reports WCAG 2.1 A/AA violations"""

    def __init__(self, script_url: Optional[str] = None):
        self.script_url = script_url or get_settings().axe_script_url

    async def analyze(self, page: Page, url: str) -> List[Issue]:
        """Returns an empty list when axe cannot be loaded or run"""
        try:
            await page.add_script_tag(url=self.script_url)
            results = await page.evaluate(AXE_RUN_SCRIPT, AXE_RUN_TAGS)
        except PlaywrightError as e:
            logger.warning(f"Axe analysis failed for {url}: {e}")
            return []

        violations = (results or {}).get("violations") or []
        logger.info(f"Axe found {len(violations)} violated rules on {url}")
        return violations_to_issues(violations, url)
