"""
Provider-specific API clients for D0 Gateway
"""

from .openai import OpenAIClient
from .pagespeed import PageSpeedClient, PageSpeedDiagnostics
from .storage import LocalImageStorage

__all__ = [
    "LocalImageStorage",
    "OpenAIClient",
    "PageSpeedClient",
    "PageSpeedDiagnostics",
]
