"""
D0 Gateway - Clients for every external service the audit talks to

PageSpeed Insights, OpenAI-compatible chat completions and screenshot storage.
Audited sites themselves are fetched with `build_http_client`.
"""

from .base import BaseAPIClient, build_http_client, http_session
from .metrics import GatewayMetrics

__all__ = [
    "BaseAPIClient",
    "GatewayMetrics",
    "build_http_client",
    "http_session",
]
