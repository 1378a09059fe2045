"""
Sitemap discovery

Candidates come from robots.txt `Sitemap:` lines followed by the conventional
locations. Index sitemaps are followed up to MAX_SITEMAP_DEPTH levels.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

import httpx
from bs4 import BeautifulSoup

from core.config import get_settings
from core.logging import get_logger

from .constants import MAX_SITEMAP_DEPTH, MAX_URLS, SITEMAP_PATHS

logger = get_logger(__name__, domain="d1")

ROBOTS_SITEMAP_PATTERN = re.compile(r"^\s*sitemap:\s*(\S+)", re.IGNORECASE | re.MULTILINE)


@dataclass
class SitemapDocument:
    """Parsed sitemap body"""

    is_index: bool = False
    page_urls: List[str] = field(default_factory=list)
    child_sitemaps: List[str] = field(default_factory=list)


def looks_like_sitemap(text: Optional[str]) -> bool:
    if not text or "<" not in text:
        return False
    return "<urlset" in text or "<sitemapindex" in text or "<url" in text


def parse_sitemap_xml(text: str) -> Optional[SitemapDocument]:
    """
    Classify and parse a sitemap body

    Returns:
        SitemapDocument, or None when the body is not a sitemap
    """
    if not looks_like_sitemap(text):
        return None

    soup = BeautifulSoup(text, "xml")
    if "<sitemapindex" in text:
        children = [loc.get_text(strip=True) for loc in soup.select("sitemap > loc")]
        return SitemapDocument(is_index=True, child_sitemaps=[c for c in children if c])

    pages = [loc.get_text(strip=True) for loc in soup.select("url > loc")]
    return SitemapDocument(page_urls=[p for p in pages if p])


def parse_robots_sitemaps(robots_txt: str) -> List[str]:
    """Absolute sitemap URLs declared in robots.txt"""
    return [value for value in ROBOTS_SITEMAP_PATTERN.findall(robots_txt) if value.lower().startswith("http")]


@dataclass
class SitemapResult:
    urls: List[str] = field(default_factory=list)
    has_sitemap: bool = False


class SitemapCollector:
    """Collects page URLs from a site's sitemaps"""

    def __init__(self, client: httpx.AsyncClient, max_urls: int = MAX_URLS):
        self.client = client
        self.max_urls = max_urls
        settings = get_settings()
        self.robots_timeout = settings.robots_timeout
        self.sitemap_timeout = settings.sitemap_timeout

    async def robots_sitemaps(self, home: str) -> List[str]:
        try:
            response = await self.client.get(f"{home}/robots.txt", timeout=self.robots_timeout)
        except httpx.HTTPError as e:
            logger.debug(f"robots.txt unavailable for {home}: {e}")
            return []
        if response.status_code >= 400:
            return []
        return parse_robots_sitemaps(response.text)

    async def candidates(self, home: str) -> List[str]:
        """Robots entries first, then the conventional paths, each once"""
        ordered = []
        for url in await self.robots_sitemaps(home) + [f"{home}{path}" for path in SITEMAP_PATHS]:
            if url not in ordered:
                ordered.append(url)
        return ordered

    async def fetch_text(self, url: str) -> Optional[str]:
        try:
            response = await self.client.get(url, timeout=self.sitemap_timeout)
        except httpx.HTTPError as e:
            logger.debug(f"Sitemap fetch failed for {url}: {e}")
            return None
        if response.status_code >= 400:
            return None
        return response.text

    async def process(self, url: str, result: SitemapResult, visited: Set[str], depth: int = 0) -> None:
        """Parse one sitemap into `result`, following index children"""
        if url in visited or depth > MAX_SITEMAP_DEPTH or len(result.urls) >= self.max_urls:
            return
        visited.add(url)

        document = parse_sitemap_xml(await self.fetch_text(url) or "")
        if document is None:
            return
        result.has_sitemap = True

        if document.is_index:
            for child in document.child_sitemaps:
                if len(result.urls) >= self.max_urls:
                    break
                await self.process(child, result, visited, depth + 1)
            return

        for page_url in document.page_urls:
            if page_url not in result.urls:
                result.urls.append(page_url)

    async def collect(self, home: str) -> SitemapResult:
        result = SitemapResult()
        visited: Set[str] = set()
        for candidate in await self.candidates(home):
            await self.process(candidate, result, visited)
            if result.urls:
                logger.info(f"Sitemap {candidate} yielded {len(result.urls)} URLs")
                break
        return result
