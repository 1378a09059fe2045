"""
Tests for the discovery strategy chain
"""
import httpx
import pytest

from d1_discovery import DiscoveryMethod, SiteRecord, UrlDiscovery
from d1_discovery.types import ConnectionStatus

from .helpers import sitemap_index, urlset

HOME = "https://acme.test"
PLUGIN = "/wp-json/ghost-post/v1"


def site(**overrides) -> SiteRecord:
    return SiteRecord(**{"id": "site-1", "url": "acme.test/", **overrides})


def connected_site() -> SiteRecord:
    return site(connection_status=ConnectionStatus.CONNECTED, site_key="key-1", site_secret="secret-1")


class TestUrlDiscovery:
    @pytest.mark.asyncio
    async def test_sitemap_index_capped_with_home_first(self, site_client):
        children = [f"{HOME}/sitemap-{i}.xml" for i in range(3)]
        routes = {"/sitemap.xml": sitemap_index(children)}
        for i in range(3):
            routes[f"/sitemap-{i}.xml"] = urlset([f"{HOME}/section-{i}/page-{j}" for j in range(40)])

        result = await UrlDiscovery(client=site_client(routes)).discover(site())

        assert result.method == DiscoveryMethod.SITEMAP
        assert result.has_sitemap
        assert len(result.urls) == 50
        assert result.urls[0] == HOME
        assert len(set(result.urls)) == 50

    @pytest.mark.asyncio
    async def test_sitemap_urls_are_filtered(self, site_client):
        routes = {
            "/sitemap.xml": urlset([f"{HOME}/about", f"{HOME}/tag/news", f"{HOME}/wp-admin/", f"{HOME}/about"]),
        }

        result = await UrlDiscovery(client=site_client(routes)).discover(site())

        assert result.urls == [HOME, f"{HOME}/about"]

    @pytest.mark.asyncio
    async def test_crawl_when_no_sitemap(self, site_client):
        routes = {
            "/": (
                '<a href="/">Home</a><a href="/about/">About</a><a href="/services#top">Services</a>'
                '<a href="https://other.test/x">Elsewhere</a><a href="/wp-admin/">Admin</a>'
                '<a href="/brochure.pdf">PDF</a><a href="mailto:hi@acme.test">Mail</a>'
            ),
            "/about": '<a href="/team">Team</a><a href="/services">Services</a>',
        }

        result = await UrlDiscovery(client=site_client(routes)).discover(site())

        assert result.method == DiscoveryMethod.CRAWL
        assert not result.has_sitemap
        assert result.urls == [HOME, f"{HOME}/about", f"{HOME}/services", f"{HOME}/team"]

    @pytest.mark.asyncio
    async def test_unreachable_site_yields_home_only(self, make_client):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = await UrlDiscovery(client=make_client(handler)).discover(site())

        assert result.urls == [HOME]
        assert result.method == DiscoveryMethod.CRAWL
        assert not result.has_sitemap

    @pytest.mark.asyncio
    async def test_plugin_discovery(self, site_client, content_store):
        requested = []
        routes = {
            f"{PLUGIN}/site-info": {"postTypes": [{"slug": "service"}, {"slug": "page"}, "junk"]},
            f"{PLUGIN}/posts": [{"link": f"{HOME}/blog/hello"}],
            f"{PLUGIN}/pages": [{"url": f"{HOME}/about"}, {"title": "no link"}],
            f"{PLUGIN}/cpt/service": [{"link": f"{HOME}/services/drains"}],
        }

        result = await UrlDiscovery(store=content_store(), client=site_client(routes, requested)).discover(connected_site())

        assert result.method == DiscoveryMethod.PLUGIN
        assert result.urls == [HOME, f"{HOME}/blog/hello", f"{HOME}/about", f"{HOME}/services/drains"]
        assert not any("/cpt/page" in url for url in requested)

    @pytest.mark.asyncio
    async def test_plugin_discovery_without_store(self, site_client):
        routes = {
            f"{PLUGIN}/site-info": {"postTypes": []},
            f"{PLUGIN}/posts": [{"link": f"{HOME}/blog/hello"}],
            f"{PLUGIN}/pages": [],
        }

        result = await UrlDiscovery(client=site_client(routes)).discover(connected_site())

        assert result.method == DiscoveryMethod.PLUGIN
        assert result.urls == [HOME, f"{HOME}/blog/hello"]

    @pytest.mark.asyncio
    async def test_stored_entities_back_up_the_plugin(self, site_client, content_store):
        store = content_store(
            entities=[
                {"url": f"{HOME}/draft", "status": "DRAFT"},
                {"url": f"{HOME}/published", "status": "PUBLISHED"},
                {"url": None},
            ]
        )

        result = await UrlDiscovery(store=store, client=site_client({})).discover(connected_site())

        assert result.method == DiscoveryMethod.PLUGIN
        assert result.urls == [HOME, f"{HOME}/published"]

    @pytest.mark.asyncio
    async def test_plugin_skipped_for_disconnected_site(self, site_client, content_store):
        store = content_store(entities=[{"url": f"{HOME}/stored"}])

        result = await UrlDiscovery(store=store, client=site_client({})).discover(site(site_key="k", site_secret="s"))

        assert result.method == DiscoveryMethod.CRAWL

    @pytest.mark.asyncio
    async def test_stored_sitemaps(self, site_client, content_store):
        store = content_store(
            sitemaps=[
                {"url": f"{HOME}/old-index.xml", "content": sitemap_index([f"{HOME}/x.xml"]), "is_index": True},
                {"url": f"{HOME}/pages.xml", "content": urlset([f"{HOME}/cached"])},
                {"url": f"{HOME}/live-pages.xml", "content": ""},
            ]
        )
        routes = {"/live-pages.xml": urlset([f"{HOME}/refetched"])}

        result = await UrlDiscovery(store=store, client=site_client(routes)).discover(site())

        assert result.method == DiscoveryMethod.STORED_SITEMAP
        assert result.has_sitemap
        assert result.urls == [HOME, f"{HOME}/cached", f"{HOME}/refetched"]

    @pytest.mark.asyncio
    async def test_wordpress_api(self, site_client):
        routes = {
            "/wp-json/wp/v2/posts": [{"link": f"{HOME}/2024/post"}],
            "/wp-json/wp/v2/pages": [{"link": f"{HOME}/contact"}, {"id": 3}],
        }

        result = await UrlDiscovery(client=site_client(routes)).discover(site())

        assert result.method == DiscoveryMethod.WP_API
        assert result.urls == [HOME, f"{HOME}/2024/post", f"{HOME}/contact"]

    @pytest.mark.asyncio
    async def test_failing_store_does_not_break_discovery(self, site_client, content_store):
        class BrokenStore(content_store):
            async def find_cached_sitemaps(self, site_id):
                raise RuntimeError("database is gone")

        routes = {"/": '<a href="/about">About</a>'}

        result = await UrlDiscovery(store=BrokenStore(), client=site_client(routes)).discover(site())

        assert result.method == DiscoveryMethod.CRAWL
        assert result.urls == [HOME, f"{HOME}/about"]

    def test_result_to_dict(self):
        from d1_discovery import DiscoveryResult

        result = DiscoveryResult(urls=[HOME], method=DiscoveryMethod.STORED_SITEMAP, has_sitemap=True)

        assert result.to_dict() == {"urls": [HOME], "method": "stored-sitemap", "hasSitemap": True}
