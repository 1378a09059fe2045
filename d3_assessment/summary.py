"""
Audit summary generation
"""
from typing import Dict, List, Optional

from core.exceptions import ExternalAPIError
from core.logging import get_logger
from d0_gateway.providers.openai import OpenAIClient
from d3_assessment.prompts import AuditPrompts
from d3_assessment.types import Issue, IssueSeverity

logger = get_logger(__name__, domain="d3")


def _bullet(issue: Issue, with_url: bool = False) -> str:
    line = f"- {issue.message}"
    value = (issue.details or {}).get("value")
    if value:
        line += f" ({value})"
    if with_url and issue.url:
        line += f" [{issue.url}]"
    return line


class SummaryGenerator:
    """Writes a short markdown narrative from the final issue set"""

    def __init__(self, client: Optional[OpenAIClient] = None):
        self.client = client or OpenAIClient()

    def is_available(self) -> bool:
        return self.client.is_available() and self.client.settings.enable_summary

    def build_prompt(
        self, issues: List[Issue], score: int, category_scores: Dict[str, int], url: str, page_count: int
    ) -> str:
        errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
        warnings = [i for i in issues if i.severity == IssueSeverity.WARNING]
        passed = [i for i in issues if i.severity == IssueSeverity.PASSED]

        return AuditPrompts.SUMMARY_USER_PROMPT.format(
            url=url,
            score=score,
            technical=category_scores.get("technical", "N/A"),
            performance=category_scores.get("performance", "N/A"),
            visual=category_scores.get("visual", "N/A"),
            accessibility=category_scores.get("accessibility", "N/A"),
            page_count=page_count,
            error_count=len(errors),
            errors="\n".join(_bullet(i, with_url=True) for i in errors[:10]) or "- None",
            warning_count=len(warnings),
            warnings="\n".join(_bullet(i) for i in warnings[:10]) or "- None",
            passed_count=len(passed),
            passed="\n".join(f"- {i.message}" for i in passed[:8]) or "- None",
        )

    async def summarize(
        self, issues: List[Issue], score: int, category_scores: Dict[str, int], url: str, page_count: int
    ) -> Optional[str]:
        """Return summary text, or None if there is nothing to summarize or the call fails"""
        if not issues or not self.is_available():
            return None

        messages = [
            {"role": "system", "content": AuditPrompts.SUMMARY_SYSTEM_PROMPT},
            {"role": "user", "content": self.build_prompt(issues, score, category_scores, url, page_count)},
        ]
        try:
            response = await self.client.chat_completion(messages, temperature=0.3, max_tokens=600)
        except ExternalAPIError as e:
            logger.error(f"Summary generation failed for {url}: {e.message}")
            return None

        text = OpenAIClient.first_message_content(response)
        return text.strip() if text and text.strip() else None
