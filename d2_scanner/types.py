"""
D2 Scanner Types
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from d3_assessment.types import Issue


class ScannerKind(Enum):
    BROWSER = "browser"
    FETCH = "fetch"


class FilmstripStage(Enum):
    DOM_CONTENT_LOADED = "domcontentloaded"
    NETWORK_IDLE = "networkidle"
    FULLY_LOADED = "fullyLoaded"


@dataclass
class ScanOptions:
    """
    Per-page scan options

    device_type: "desktop", "mobile" or None for both
    """

    capture_screenshots: bool = True
    device_type: Optional[str] = None
    run_accessibility: bool = False

    @property
    def scan_desktop(self) -> bool:
        return self.device_type in (None, "desktop")

    @property
    def scan_mobile(self) -> bool:
        return self.device_type in (None, "mobile")


@dataclass(frozen=True)
class DomSummary:
    title: str = ""
    meta_description: str = ""
    h1s: List[str] = field(default_factory=list)
    canonical: str = ""
    lang: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DomSummary":
        data = data or {}
        return cls(
            title=data.get("title") or "",
            meta_description=data.get("metaDescription") or "",
            h1s=[h for h in data.get("h1s") or [] if h],
            canonical=data.get("canonical") or "",
            lang=data.get("lang") or "",
        )


@dataclass(frozen=True)
class ConsoleError:
    text: str
    stack_trace: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"text": self.text, "stackTrace": self.stack_trace}


@dataclass(frozen=True)
class BrokenResource:
    status: int
    url: str

    def __str__(self) -> str:
        return f"{self.status} {self.url}"


@dataclass(frozen=True)
class FilmstripFrame:
    stage: FilmstripStage
    data: bytes


@dataclass(frozen=True)
class PageScanResult:
    """Everything a scanner learned about one page"""

    url: str
    scanner: ScannerKind
    html: str = ""
    dom: DomSummary = field(default_factory=DomSummary)
    status_code: int = 0
    ttfb: int = 0
    headers: Dict[str, str] = field(default_factory=dict)
    console_errors: List[ConsoleError] = field(default_factory=list)
    broken_resources: List[BrokenResource] = field(default_factory=list)
    screenshots: Dict[str, bytes] = field(default_factory=dict)
    segments: Dict[str, List[bytes]] = field(default_factory=dict)
    filmstrip: Dict[str, List[FilmstripFrame]] = field(default_factory=dict)
    issues: List[Issue] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)

    @property
    def has_screenshots(self) -> bool:
        return any(self.screenshots.values())

    @property
    def load_failed(self) -> bool:
        return any(issue.message == "audit.issues.pageLoadFailed" for issue in self.issues)
