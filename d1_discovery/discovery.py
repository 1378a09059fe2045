"""
URL discovery front: runs the strategies in priority order

Every strategy is isolated; `discover` never raises.
"""
from typing import Awaitable, Callable, List, Optional

import httpx

from core.logging import get_logger
from core.metrics import metrics
from core.utils import normalize_url
from d0_gateway.base import http_session

from .constants import MAX_URLS
from .crawl import HomepageCrawler
from .filters import dedupe_with_home
from .plugin import PluginDiscovery
from .sitemap import SitemapCollector
from .sources import SiteContentStore, stored_entity_urls, stored_sitemap_urls, wordpress_api_urls
from .types import ConnectionStatus, DiscoveryMethod, DiscoveryResult, SiteRecord

logger = get_logger(__name__, domain="d1")


class UrlDiscovery:
    """
    Finds up to MAX_URLS pages of a site, homepage first

    Strategies: sitemap, plugin (with stored entities), stored sitemap,
    WordPress REST API, homepage crawl. The first one returning URLs wins.
    """

    def __init__(self, store: Optional[SiteContentStore] = None, client: Optional[httpx.AsyncClient] = None):
        self.store = store
        self.client = client

    async def _attempt(self, name: str, strategy: Callable[[], Awaitable[List[str]]]) -> List[str]:
        try:
            return await strategy()
        except Exception as e:
            logger.warning(f"Discovery strategy {name} failed: {e}")
            return []

    def _finish(self, home: str, urls: List[str], method: DiscoveryMethod, has_sitemap: bool):
        result = DiscoveryResult(urls=dedupe_with_home(home, urls, MAX_URLS), method=method, has_sitemap=has_sitemap)
        metrics.track_discovery(method.value, has_sitemap)
        logger.info(
            f"Discovered {len(result.urls)} URLs for {home} via {method.value} (sitemap: {has_sitemap})",
            extra={"method": method.value, "url_count": len(result.urls)},
        )
        return result

    async def discover(self, site: SiteRecord) -> DiscoveryResult:
        home = normalize_url(site.url)

        async with http_session(self.client) as client:
            collector = SitemapCollector(client)
            try:
                sitemap = await collector.collect(home)
            except Exception as e:
                logger.warning(f"Sitemap discovery failed for {home}: {e}")
                sitemap = None

            has_sitemap = bool(sitemap and sitemap.has_sitemap)
            if sitemap and sitemap.urls:
                return self._finish(home, sitemap.urls, DiscoveryMethod.SITEMAP, has_sitemap)

            if site.connection_status == ConnectionStatus.CONNECTED and site.has_plugin_credentials:
                urls = await self._attempt("plugin", lambda: PluginDiscovery(client).fetch_urls(home, site))
                if not urls and self.store is not None:
                    urls = await self._attempt("stored-entities", lambda: stored_entity_urls(self.store, site.id))
                if urls:
                    return self._finish(home, urls, DiscoveryMethod.PLUGIN, has_sitemap)

            if self.store is not None:
                urls = await self._attempt("stored-sitemap", lambda: stored_sitemap_urls(self.store, site.id, client))
                if urls:
                    return self._finish(home, urls, DiscoveryMethod.STORED_SITEMAP, True)

            urls = await self._attempt("wp-api", lambda: wordpress_api_urls(home, client))
            if urls:
                return self._finish(home, urls, DiscoveryMethod.WP_API, has_sitemap)

            urls = await self._attempt("crawl", lambda: HomepageCrawler(client).crawl(home))
            return self._finish(home, urls, DiscoveryMethod.CRAWL, has_sitemap)
