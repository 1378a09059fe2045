"""
D3 Assessment Types

Issue records produced by every scanner and analyzer, and the enums that
constrain them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class IssueCategory(Enum):
    """Scoring bucket an issue belongs to"""

    TECHNICAL = "technical"
    PERFORMANCE = "performance"
    VISUAL = "visual"
    ACCESSIBILITY = "accessibility"

    @classmethod
    def coerce(cls, value: Any) -> "IssueCategory":
        """Unknown or missing categories fold into technical"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.TECHNICAL


class IssueSeverity(Enum):
    """Severity of an issue"""

    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    INFO = "info"
    PASSED = "passed"

    @classmethod
    def coerce(cls, value: Any) -> "IssueSeverity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.NOTICE


class IssueSource(Enum):
    """Component that produced an issue"""

    PLAYWRIGHT = "playwright"
    FETCH = "fetch"
    HTML = "html"
    PSI = "psi"
    AXE = "axe"
    AI_VISION = "ai-vision"
    ROBOTS = "robots"
    SYSTEM = "system"


class DeviceType(Enum):
    """Viewport a page was captured with"""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    BOTH = "both"  # vision findings visible on both captures


@dataclass(frozen=True)
class BoundingBox:
    """Region of a screenshot, in percent of the viewport"""

    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["BoundingBox"]:
        if not isinstance(data, dict):
            return None
        try:
            return cls(
                x=float(data.get("x", 0)),
                y=float(data.get("y", 0)),
                width=float(data.get("width", 0)),
                height=float(data.get("height", 0)),
            )
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class Issue:
    """
    A single audit finding.

    `message` and `suggestion` are translation keys (e.g. 'audit.issues.noH1'),
    not display text. `details` carries structured evidence for the dashboard.
    """

    category: IssueCategory
    severity: IssueSeverity
    message: str
    source: str
    url: Optional[str] = None
    suggestion: Optional[str] = None
    details: Optional[Dict[str, Any]] = field(default=None, compare=False, hash=False)
    device: Optional[DeviceType] = None
    region: Optional[BoundingBox] = None

    @property
    def dedupe_key(self) -> str:
        return f"{self.message}::{self.url or 'global'}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape stored on an audit run"""
        data: Dict[str, Any] = {
            "type": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "source": self.source,
        }
        if self.url:
            data["url"] = self.url
        if self.suggestion:
            data["suggestion"] = self.suggestion
        if self.details:
            data["details"] = self.details
        if self.device:
            data["device"] = self.device.value
        if self.region:
            data["boundingBox"] = self.region.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "Issue":
        """Build an Issue from a loosely-shaped dictionary (API payloads, stored runs)"""
        device = data.get("device")
        try:
            device = DeviceType(device) if device else None
        except ValueError:
            device = None

        return cls(
            category=IssueCategory.coerce(data.get("type") or data.get("category")),
            severity=IssueSeverity.coerce(data.get("severity")),
            message=str(data.get("message") or "audit.issues.unknown"),
            source=source or str(data.get("source") or IssueSource.SYSTEM.value),
            url=data.get("url") or None,
            suggestion=data.get("suggestion") or None,
            details=data.get("details") or None,
            device=device,
            region=BoundingBox.from_dict(data.get("boundingBox") or data.get("region")),
        )


def make_issue(
    category: IssueCategory,
    severity: IssueSeverity,
    message: str,
    source: IssueSource,
    url: Optional[str] = None,
    suggestion: Optional[str] = None,
    **details,
) -> Issue:
    """Shorthand used by analyzers: message/suggestion keys are namespaced automatically"""
    return Issue(
        category=category,
        severity=severity,
        message=message if "." in message else f"audit.issues.{message}",
        source=source.value,
        url=url,
        suggestion=(suggestion if "." in suggestion else f"audit.suggestions.{suggestion}") if suggestion else None,
        details=details or None,
    )
