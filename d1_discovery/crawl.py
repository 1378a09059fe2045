"""
Two-level homepage crawl, the last-resort discovery strategy
"""
import asyncio
from typing import List, Optional, Set
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from core.config import get_settings
from core.logging import get_logger

from .constants import MAX_SECOND_LEVEL_PAGES, MAX_URLS
from .filters import is_binary_asset, is_ignored_url

logger = get_logger(__name__, domain="d1")


def _bare_host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def extract_links(html: str, page_url: str, visited: Set[str]) -> List[str]:
    """
    Same-site page links found in `html`, fragment/query and trailing slash stripped

    `visited` is updated with every link returned.
    """
    host = _bare_host(page_url)
    links = []
    for anchor in BeautifulSoup(html, "html.parser").find_all("a", href=True):
        href = anchor["href"].split("#")[0].split("?")[0].strip()
        if not href or href.startswith(("mailto:", "tel:", "javascript:")):
            continue

        absolute = urljoin(page_url, href).rstrip("/")
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https") or _bare_host(absolute) != host:
            continue
        if is_binary_asset(absolute) or is_ignored_url(absolute) or absolute in visited:
            continue

        visited.add(absolute)
        links.append(absolute)
    return links


class HomepageCrawler:
    def __init__(self, client: httpx.AsyncClient, max_urls: int = MAX_URLS):
        self.client = client
        self.max_urls = max_urls
        self.timeout = get_settings().crawl_timeout

    async def _fetch_html(self, url: str) -> Optional[str]:
        try:
            response = await self.client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.debug(f"Crawl fetch failed for {url}: {e}")
            return None
        return response.text if response.status_code < 400 else None

    async def crawl(self, home: str) -> List[str]:
        html = await self._fetch_html(home)
        if html is None:
            return []

        visited = {home, home.rstrip("/")}
        first_level = extract_links(html, home, visited)
        urls = list(first_level)

        pages = await asyncio.gather(*(self._fetch_html(url) for url in first_level[:MAX_SECOND_LEVEL_PAGES]))
        for page_url, page_html in zip(first_level, pages):
            if len(urls) >= self.max_urls:
                break
            if page_html:
                urls.extend(extract_links(page_html, page_url, visited))

        logger.info(f"Crawl of {home} found {len(urls)} links ({len(first_level)} on the homepage)")
        return urls[: self.max_urls]
