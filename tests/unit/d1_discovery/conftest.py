"""
Fixtures for discovery tests: a fake site served through httpx.MockTransport
"""
from typing import Dict, List

import httpx
import pytest

from d1_discovery.types import CachedSitemap, StoredEntity


@pytest.fixture
def site_client(make_client):
    """Serve `routes` (path or full URL -> body or Response); everything else is a 404"""

    def _make(routes: Dict[str, object], requested: List[str] = None) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            if requested is not None:
                requested.append(str(request.url))
            for key in (str(request.url), request.url.path):
                if key in routes:
                    value = routes[key]
                    if isinstance(value, httpx.Response):
                        return value
                    if isinstance(value, (list, dict)):
                        return httpx.Response(200, json=value)
                    return httpx.Response(200, text=value)
            return httpx.Response(404, text="not found")

        return make_client(handler)

    return _make


class FakeContentStore:
    def __init__(self, entities=None, sitemaps=None):
        self.entities = entities or []
        self.sitemaps = sitemaps or []

    async def find_stored_entities(self, site_id, limit=100):
        return [StoredEntity(**e) if isinstance(e, dict) else e for e in self.entities][:limit]

    async def find_cached_sitemaps(self, site_id):
        return [CachedSitemap(**s) if isinstance(s, dict) else s for s in self.sitemaps]


@pytest.fixture
def content_store():
    return FakeContentStore
