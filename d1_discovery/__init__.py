"""
D1 Discovery - Find the pages of a site worth auditing

Strategies, in priority order: sitemap, authenticated plugin API (with stored
entities as fallback), stored sitemap snapshots, public WordPress REST API and
a two-level homepage crawl.
"""

from .discovery import UrlDiscovery
from .types import CachedSitemap, DiscoveryMethod, DiscoveryResult, SiteRecord, StoredEntity

__all__ = [
    "CachedSitemap",
    "DiscoveryMethod",
    "DiscoveryResult",
    "SiteRecord",
    "StoredEntity",
    "UrlDiscovery",
]
