"""
Discovery from previously stored data and the public WordPress REST API
"""
from typing import List, Protocol

import httpx

from core.config import get_settings
from core.logging import get_logger

from .constants import MAX_STORED_ENTITIES, WP_API_ENDPOINTS
from .sitemap import parse_sitemap_xml
from .types import CachedSitemap, StoredEntity

logger = get_logger(__name__, domain="d1")


class SiteContentStore(Protocol):
    """Read access to data synced for a site in earlier runs"""

    async def find_stored_entities(self, site_id: str, limit: int = MAX_STORED_ENTITIES) -> List[StoredEntity]:
        ...

    async def find_cached_sitemaps(self, site_id: str) -> List[CachedSitemap]:
        ...


async def stored_entity_urls(store: SiteContentStore, site_id: str) -> List[str]:
    """URLs of stored posts/pages, published entities first"""
    entities = [e for e in await store.find_stored_entities(site_id, limit=MAX_STORED_ENTITIES) if e.url]
    published = [e.url for e in entities if e.status == "PUBLISHED"]
    return published or [e.url for e in entities]


async def stored_sitemap_urls(store: SiteContentStore, site_id: str, client: httpx.AsyncClient) -> List[str]:
    """
    Page URLs from cached sitemap snapshots

    A snapshot with an empty body is fetched again from its live URL.
    """
    timeout = get_settings().sitemap_timeout
    urls: List[str] = []
    for cached in await store.find_cached_sitemaps(site_id):
        if cached.is_index:
            continue

        content = cached.content
        if not content:
            try:
                response = await client.get(cached.url, timeout=timeout)
            except httpx.HTTPError as e:
                logger.debug(f"Live re-fetch of {cached.url} failed: {e}")
                continue
            if response.status_code >= 400:
                continue
            content = response.text

        document = parse_sitemap_xml(content)
        if document is None or document.is_index:
            continue
        urls.extend(url for url in document.page_urls if url not in urls)
    return urls


async def wordpress_api_urls(base_url: str, client: httpx.AsyncClient) -> List[str]:
    """Post and page links from the unauthenticated WordPress REST API"""
    timeout = get_settings().crawl_timeout
    urls: List[str] = []
    for endpoint in WP_API_ENDPOINTS:
        try:
            response = await client.get(f"{base_url}{endpoint}", timeout=timeout)
            if response.status_code >= 400:
                continue
            items = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"WordPress API {endpoint} failed: {e}")
            continue
        if isinstance(items, list):
            urls.extend(item["link"] for item in items if isinstance(item, dict) and item.get("link"))
    return urls
