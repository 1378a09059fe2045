"""
URL filtering helpers shared by the discovery strategies
"""
from typing import Iterable, List
from urllib.parse import urlparse

from .constants import BINARY_EXTENSION_PATTERN, IGNORED_PATH_PATTERNS, MAX_URLS


def is_ignored_url(url: str) -> bool:
    """True for admin, feed, cart, tag and tracking URLs that are never audited"""
    try:
        path = urlparse(url).path or "/"
    except ValueError:
        return True
    return any(pattern.search(path) or pattern.search(url) for pattern in IGNORED_PATH_PATTERNS)


def is_binary_asset(url: str) -> bool:
    return bool(BINARY_EXTENSION_PATTERN.search(urlparse(url).path))


def dedupe_with_home(home: str, urls: Iterable[str], limit: int = MAX_URLS) -> List[str]:
    """
    Homepage first, then every other non-ignored URL once, capped at `limit`

    URLs differing only by a trailing slash count as the same page.
    """
    result = [home]
    seen = {home.rstrip("/")}
    for url in urls:
        if not url or url.rstrip("/") in seen or is_ignored_url(url):
            continue
        seen.add(url.rstrip("/"))
        result.append(url)
        if len(result) >= limit:
            break
    return result
