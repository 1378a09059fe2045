"""
Interfaces the orchestrator depends on

Default adapters live in database, d0_gateway, d2_scanner, d3_assessment and
d9_delivery; tests substitute their own.
"""
from typing import Any, Dict, List, Optional, Protocol

from d0_gateway.providers.pagespeed import PageSpeedDiagnostics
from d1_discovery.types import DiscoveryResult, SiteRecord
from d2_scanner.types import PageScanResult, ScanOptions
from d3_assessment.types import Issue
from d3_assessment.vision import ScreenCapture


class AuditStore(Protocol):
    async def create_run(self, site_id: Optional[str], device_type: Optional[str] = None) -> Dict[str, Any]:
        ...

    async def update_run(self, run_id: str, **fields) -> Dict[str, Any]:
        ...

    async def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        ...


class Discovery(Protocol):
    async def discover(self, site: SiteRecord) -> DiscoveryResult:
        ...


class PageScanner(Protocol):
    async def scan(self, url: str, options: Optional[ScanOptions] = None) -> PageScanResult:
        ...


class DiagnosticsProvider(Protocol):
    def is_available(self) -> bool:
        ...

    async def get_diagnostics(self, url: str, strategy: str = "mobile") -> Optional[PageSpeedDiagnostics]:
        ...


class VisionProvider(Protocol):
    async def analyze_screens(self, pages: List[ScreenCapture], site_url: str) -> List[Issue]:
        ...


class Summarizer(Protocol):
    async def summarize(
        self, issues: List[Issue], score: int, category_scores: Dict[str, int], url: str, page_count: int
    ) -> Optional[str]:
        ...


class ImageStorage(Protocol):
    async def upload_image(self, data: Optional[bytes], folder: str, name: str) -> Optional[str]:
        ...


class Notifier(Protocol):
    async def notify(self, account_id: Optional[str], event: Dict[str, Any]) -> None:
        ...
