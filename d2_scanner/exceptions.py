"""
Page scanner exceptions
"""
from typing import Optional

from core.exceptions import SiteAuditError


class ScanError(SiteAuditError):
    """Raised when a page could not be scanned at all"""

    def __init__(self, message: str, url: Optional[str] = None, scanner: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="SCAN_ERROR",
            details={"url": url, "scanner": scanner},
        )
        self.url = url


class BrowserUnavailableError(ScanError):
    """Raised when the headless browser cannot be launched or has gone away"""

    def __init__(self, message: str):
        super().__init__(message, scanner="browser")
        self.error_code = "BROWSER_UNAVAILABLE"
