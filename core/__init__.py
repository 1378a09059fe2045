"""Core utilities and configuration for SiteAuditor"""
from core.config import settings
from core.exceptions import ExternalAPIError, SiteAuditError, ValidationError
from core.logging import get_logger

__all__ = [
    "settings",
    "get_logger",
    "SiteAuditError",
    "ValidationError",
    "ExternalAPIError",
]
