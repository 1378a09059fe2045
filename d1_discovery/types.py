"""
D1 Discovery Types
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class DiscoveryMethod(Enum):
    """Strategy that produced the final URL list"""

    SITEMAP = "sitemap"
    PLUGIN = "plugin"
    STORED_SITEMAP = "stored-sitemap"
    WP_API = "wp-api"
    CRAWL = "crawl"


class ConnectionStatus(Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"


@dataclass(frozen=True)
class SiteRecord:
    """What discovery and the orchestrator need to know about a site"""

    id: str
    url: str
    account_id: Optional[str] = None
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    site_key: Optional[str] = None
    site_secret: Optional[str] = None

    @property
    def has_plugin_credentials(self) -> bool:
        return bool(self.site_key and self.site_secret)


@dataclass(frozen=True)
class StoredEntity:
    """A previously synced post/page"""

    url: Optional[str]
    status: str = "PUBLISHED"


@dataclass(frozen=True)
class CachedSitemap:
    """Sitemap body captured during an earlier scan"""

    url: str
    content: Optional[str] = None
    is_index: bool = False


@dataclass
class DiscoveryResult:
    urls: List[str] = field(default_factory=list)
    method: DiscoveryMethod = DiscoveryMethod.CRAWL
    has_sitemap: bool = False

    def to_dict(self) -> dict:
        return {"urls": list(self.urls), "method": self.method.value, "hasSitemap": self.has_sitemap}
