"""
D2 Scanner - Per-page scanning

A Playwright-driven browser scanner (rendered DOM, screenshots, console and
network errors, accessibility) and a plain HTTP fetch scanner used as fallback.
"""

from .browser import BrowserScanner, BrowserSession
from .exceptions import BrowserUnavailableError, ScanError
from .fetch import FetchScanner
from .types import PageScanResult, ScanOptions, ScannerKind

__all__ = [
    "BrowserScanner",
    "BrowserSession",
    "BrowserUnavailableError",
    "FetchScanner",
    "PageScanResult",
    "ScanError",
    "ScanOptions",
    "ScannerKind",
]
