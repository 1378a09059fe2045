"""
AI vision analysis of page screenshots

Sends the desktop and mobile captures of several pages in a single chat
completion and maps the model's findings to visual issues.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from core.exceptions import ExternalAPIError
from core.logging import get_logger
from d0_gateway.providers.openai import OpenAIClient, image_part, text_part
from d3_assessment.prompts import AuditPrompts
from d3_assessment.types import BoundingBox, DeviceType, Issue, IssueCategory, IssueSeverity, IssueSource

logger = get_logger(__name__, domain="d3")

MAX_VISION_ISSUES = 15
JSON_BLOCK_PATTERN = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class ScreenCapture:
    """Screenshots of one page handed to the vision analyzer"""

    url: str
    desktop: Optional[bytes] = None
    mobile: Optional[bytes] = None

    @property
    def has_screens(self) -> bool:
        return bool(self.desktop or self.mobile)


def _extract_json(content: str) -> Dict[str, Any]:
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        match = JSON_BLOCK_PATTERN.search(content)
        if not match:
            raise
        return json.loads(match.group(0))


def _to_issue(raw: Dict[str, Any], site_url: str) -> Issue:
    severity = IssueSeverity.coerce(raw.get("severity"))
    if severity in (IssueSeverity.NOTICE, IssueSeverity.INFO, IssueSeverity.PASSED):
        severity = IssueSeverity.WARNING

    try:
        device = DeviceType(raw.get("device") or "both")
    except ValueError:
        device = DeviceType.BOTH

    return Issue(
        category=IssueCategory.VISUAL,
        severity=severity,
        message=str(raw.get("message") or "audit.issues.visualIssue"),
        source=IssueSource.AI_VISION.value,
        url=raw.get("pageUrl") or site_url,
        suggestion=raw.get("suggestion") or None,
        device=device,
        region=BoundingBox.from_dict(raw.get("region")),
    )


class VisionAnalyzer:
    """Batch screenshot analysis through an OpenAI-compatible vision model"""

    def __init__(self, client: Optional[OpenAIClient] = None):
        self.client = client or OpenAIClient()

    def is_available(self) -> bool:
        return self.client.is_available() and self.client.settings.enable_vision

    def build_messages(self, pages: List[ScreenCapture], site_url: str) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [
            text_part(f"Analyze the following screenshots from {len(pages)} page(s) of {site_url}:")
        ]
        for page in pages:
            path = urlparse(page.url).path or "/"
            content.append(text_part(f"\n-- PAGE: {page.url} ({path}) --"))
            if page.desktop:
                content.append(text_part(f"DESKTOP Screenshot (1920x1080) - {path}:"))
                content.append(image_part(page.desktop))
            if page.mobile:
                content.append(text_part(f"MOBILE Screenshot (375x812, iPhone) - {path}:"))
                content.append(image_part(page.mobile))

        return [
            {"role": "system", "content": AuditPrompts.VISION_SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]

    async def analyze_screens(self, pages: List[ScreenCapture], site_url: str) -> List[Issue]:
        """
        Analyze all pages in one call

        Returns:
            Visual issues, or an empty list when nothing could be analyzed
        """
        pages = [page for page in pages if page.has_screens]
        if not pages or not self.is_available():
            return []

        try:
            response = await self.client.chat_completion(
                self.build_messages(pages, site_url),
                temperature=0.2,
                response_format={"type": "json_object"},
            )
            content = OpenAIClient.first_message_content(response)
            if not content:
                logger.warning("Vision analysis returned an empty response")
                return []
            raw_issues = _extract_json(content).get("issues") or []
        except ExternalAPIError as e:
            logger.error(f"Vision analysis failed for {site_url}: {e.message}")
            return []
        except (ValueError, AttributeError) as e:
            logger.error(f"Vision analysis returned unparseable output for {site_url}: {e}")
            return []

        issues = [_to_issue(raw, site_url) for raw in raw_issues[:MAX_VISION_ISSUES] if isinstance(raw, dict)]
        logger.info(f"Vision analysis found {len(issues)} issues across {len(pages)} pages")
        return issues
