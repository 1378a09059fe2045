"""
Static HTML analyzer

Checks raw markup and response headers for SEO, performance, security and
mobile problems. Every check reports either a problem or a `passed` issue so
the dashboard can show what was verified. Issues carry source "html".

Timeout: none (CPU only), robots/sitemap check: 8s per request
"""
import re
from typing import Dict, List, Mapping, Optional

import httpx
from bs4 import BeautifulSoup

from core.config import get_settings
from core.logging import get_logger
from core.utils import extract_domain
from d0_gateway.base import http_session
from d3_assessment.types import Issue, IssueCategory, IssueSeverity, IssueSource, make_issue

logger = get_logger(__name__, domain="d3")

TECH = IssueCategory.TECHNICAL
PERF = IssueCategory.PERFORMANCE
ERROR = IssueSeverity.ERROR
WARNING = IssueSeverity.WARNING
INFO = IssueSeverity.INFO
PASSED = IssueSeverity.PASSED

ZOOM_LOCK_PATTERN = re.compile(r"maximum-scale\s*=\s*1([^.\d]|$)")
FONT_SIZE_PATTERN = re.compile(r"font-size\s*:\s*(\d+)\s*px", re.IGNORECASE)

SITEMAP_FALLBACK_PATHS = ["/sitemap_index.xml", "/wp-sitemap.xml"]


def _file_name(src: str) -> str:
    return src.rsplit("/", 1)[-1].split("?", 1)[0]


class StaticHtmlAnalyzer:
    """Produces issues from a page's markup, headers and TTFB"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self._client = client

    def analyze(
        self,
        html: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        ttfb: Optional[float] = None,
    ) -> List[Issue]:
        """
        Analyze one page

        Args:
            html: Raw or rendered markup
            url: Page URL, attached to every issue
            headers: Response headers; security/caching checks are skipped when empty
            ttfb: Time to first byte in milliseconds, if measured

        Returns:
            List of issues, including passed checks
        """
        headers = {k.lower(): v for k, v in (headers or {}).items()}
        soup = BeautifulSoup(html or "", "html.parser")
        issues: List[Issue] = []

        def add(category, severity, message, suggestion=None, **details):
            issues.append(make_issue(category, severity, message, IssueSource.HTML, url=url, suggestion=suggestion, **details))

        self._check_performance(soup, html or "", headers, ttfb, add)
        self._check_seo(soup, url, add)
        if headers:
            self._check_security(soup, url, headers, add)
        self._check_mobile(soup, add)

        return issues

    def _check_performance(self, soup: BeautifulSoup, html: str, headers: Dict[str, str], ttfb, add) -> None:
        if ttfb is not None:
            ttfb = round(ttfb)
            if ttfb > 3000:
                add(PERF, ERROR, "ttfbCritical", "ttfb", value=f"{ttfb}ms")
            elif ttfb > 1500:
                add(PERF, WARNING, "ttfbSlow", "ttfb", value=f"{ttfb}ms")
            else:
                add(PERF, PASSED, "ttfbGood", value=f"{ttfb}ms")

        size_kb = round(len(html.encode("utf-8")) / 1024)
        if size_kb > 500:
            add(PERF, ERROR, "htmlTooLarge", "htmlSize", value=f"{size_kb}KB")
        elif size_kb > 200:
            add(PERF, WARNING, "htmlLarge", "htmlSize", value=f"{size_kb}KB")
        else:
            add(PERF, PASSED, "htmlSizeGood", value=f"{size_kb}KB")

        inline_scripts = len(soup.find_all("script", src=False))
        if inline_scripts > 10:
            add(PERF, WARNING, "tooManyInlineScripts", "inlineScripts", value=str(inline_scripts))
        else:
            add(PERF, PASSED, "inlineScriptsOk", value=str(inline_scripts))

        script_urls = [tag["src"] for tag in soup.find_all("script", src=True) if tag["src"]]
        if len(script_urls) > 20:
            add(PERF, ERROR, "tooManyScripts", "reduceScripts", value=str(len(script_urls)), detailedSources=script_urls[:30])
        elif len(script_urls) > 10:
            add(PERF, WARNING, "manyScripts", "reduceScripts", value=str(len(script_urls)), detailedSources=script_urls[:20])
        else:
            add(PERF, PASSED, "scriptsOk", value=str(len(script_urls)))

        stylesheets = soup.find_all("link", rel="stylesheet")
        if len(stylesheets) > 10:
            add(PERF, WARNING, "tooManyStylesheets", "reduceStylesheets")
        else:
            add(PERF, PASSED, "stylesheetsOk")

        images = soup.find_all("img")
        not_lazy = [img for img in images if not img.get("loading")]
        if images and len(not_lazy) > 5:
            add(PERF, WARNING, "imagesNotLazy", "lazyLoading", value=f"{len(not_lazy)}/{len(images)}")
        elif images:
            add(PERF, PASSED, "lazyLoadingGood", value=str(len(images)))

        if len([img for img in images if not img.get("width") or not img.get("height")]) > 3:
            add(PERF, WARNING, "imagesNoDimensions", "imageDimensions")

        if headers:
            encoding = headers.get("content-encoding", "").lower()
            if any(token in encoding for token in ("gzip", "br", "deflate")):
                add(PERF, PASSED, "compressionEnabled")
            else:
                add(PERF, WARNING, "noCompression", "enableCompression")

            if headers.get("cache-control"):
                add(PERF, PASSED, "cacheHeadersGood")
            else:
                add(PERF, WARNING, "noCacheHeaders", "cacheHeaders")

        if len([link for link in stylesheets if not link.get("media")]) > 5:
            add(PERF, WARNING, "renderBlockingCSS", "deferCSS")

    def _check_seo(self, soup: BeautifulSoup, url: str, add) -> None:
        title_tag = soup.find("title")
        title = title_tag.get_text().strip() if title_tag else ""
        if not title:
            add(TECH, ERROR, "noTitle", "addTitle")
        elif len(title) < 30:
            add(TECH, WARNING, "titleTooShort", "titleLength", value=f"{len(title)} chars", title=title[:50])
        elif len(title) > 60:
            add(TECH, WARNING, "titleTooLong", "titleLength", value=f"{len(title)} chars", title=title[:50])
        else:
            add(TECH, PASSED, "titleGood", value=f"{len(title)} chars")

        meta = soup.find("meta", attrs={"name": "description"})
        description = (meta.get("content") or "").strip() if meta else ""
        if not description:
            add(TECH, ERROR, "noMetaDescription", "addMetaDescription")
        elif len(description) < 120:
            add(TECH, WARNING, "metaDescriptionShort", "metaDescriptionLength", value=f"{len(description)} chars")
        elif len(description) > 160:
            add(TECH, WARNING, "metaDescriptionLong", "metaDescriptionLength", value=f"{len(description)} chars")
        else:
            add(TECH, PASSED, "metaDescriptionGood", value=f"{len(description)} chars")

        h1_count = len(soup.find_all("h1"))
        if h1_count == 0:
            add(TECH, ERROR, "noH1", "addH1")
        elif h1_count > 1:
            add(TECH, WARNING, "multipleH1", "singleH1", value=f"{h1_count} H1 tags")
        else:
            add(TECH, PASSED, "h1Good")

        if soup.find("h2") is None:
            add(TECH, WARNING, "noH2", "addH2")
        else:
            add(TECH, PASSED, "headingStructureGood")

        canonical = soup.find("link", rel="canonical")
        if canonical is None or not canonical.get("href"):
            add(TECH, WARNING, "noCanonical", "addCanonical")
        else:
            add(TECH, PASSED, "canonicalGood")

        og = {
            prop: soup.find("meta", attrs={"property": f"og:{prop}"})
            for prop in ("title", "description", "image")
        }
        if all(tag is not None and tag.get("content") for tag in og.values()):
            add(TECH, PASSED, "ogTagsGood")
        else:
            add(TECH, WARNING, "missingOG", "addOG")

        images = soup.find_all("img")
        missing_alt = [img for img in images if not (img.get("alt") or "").strip()]
        if missing_alt:
            sources = []
            for img in missing_alt[:20]:
                src = img.get("src") or img.get("data-src") or ""
                sources.append({"url": src, "fileName": _file_name(src)})
            add(TECH, WARNING, "imagesNoAlt", "addAltText", value=f"{len(missing_alt)}/{len(images)}", detailedSources=sources)
        elif images:
            add(TECH, PASSED, "allImagesHaveAlt")

        if soup.find("script", type="application/ld+json") is None:
            add(TECH, WARNING, "noStructuredData", "addStructuredData")
        else:
            add(TECH, PASSED, "structuredDataFound")

        html_tag = soup.find("html")
        if html_tag is None or not html_tag.get("lang"):
            add(TECH, WARNING, "noLangAttribute", "addLangAttribute")
        else:
            add(TECH, PASSED, "langAttributeGood")

        domain = extract_domain(url) or ""
        internal = 0
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"]
            if href.startswith("/") or (domain and domain in href):
                internal += 1
        if internal < 3:
            add(TECH, WARNING, "fewInternalLinks", "addInternalLinks", value=str(internal))
        else:
            add(TECH, PASSED, "internalLinksGood", value=str(internal))

        icons = soup.find_all("link", rel=lambda value: bool(value) and value.lower() in ("icon", "apple-touch-icon"))
        if icons:
            add(TECH, PASSED, "faviconGood")
        else:
            add(TECH, WARNING, "noFavicon", "addFavicon")

    def _check_security(self, soup: BeautifulSoup, url: str, headers: Dict[str, str], add) -> None:
        is_https = url.startswith("https://")
        if is_https:
            add(TECH, PASSED, "httpsEnabled")
        else:
            add(TECH, ERROR, "noHttps", "enableHttps")

        header_checks = [
            ("strict-transport-security", "hstsEnabled", "noHsts", "enableHsts"),
            ("x-frame-options", "xFrameOptionsSet", "noXFrameOptions", "addXFrameOptions"),
            ("content-security-policy", "cspSet", "noCsp", "addCsp"),
        ]
        for header, passed_key, missing_key, suggestion in header_checks:
            if headers.get(header):
                add(TECH, PASSED, passed_key)
            else:
                add(TECH, WARNING, missing_key, suggestion)

        if headers.get("x-content-type-options", "").lower() == "nosniff":
            add(TECH, PASSED, "contentTypeOptionsSet")
        else:
            add(TECH, WARNING, "noContentTypeOptions", "addContentTypeOptions")

        if headers.get("x-xss-protection"):
            add(TECH, PASSED, "xssProtectionSet")

        if headers.get("referrer-policy"):
            add(TECH, PASSED, "referrerPolicySet")
        else:
            add(TECH, WARNING, "noReferrerPolicy", "addReferrerPolicy")

        if headers.get("permissions-policy") or headers.get("feature-policy"):
            add(TECH, PASSED, "permissionsPolicySet")
        else:
            add(TECH, INFO, "noPermissionsPolicy", "addPermissionsPolicy")

        if is_https:
            mixed = 0
            for tag in soup.find_all(lambda t: t.has_attr("src") or t.has_attr("href")):
                value = tag.get("src") or tag.get("href") or ""
                if value.startswith("http://") and "localhost" not in value:
                    mixed += 1
            if mixed:
                add(TECH, WARNING, "mixedContent", "fixMixedContent", value=str(mixed))
            else:
                add(TECH, PASSED, "noMixedContent")

    def _check_mobile(self, soup: BeautifulSoup, add) -> None:
        viewport = soup.find("meta", attrs={"name": "viewport"})
        if viewport is None:
            add(TECH, ERROR, "noViewport", "addViewport")
        else:
            content = viewport.get("content") or ""
            if "width=device-width" in content:
                add(TECH, PASSED, "viewportGood")
            else:
                add(TECH, WARNING, "viewportNoDeviceWidth", "fixViewport")
            if "user-scalable=no" in content or ZOOM_LOCK_PATTERN.search(content):
                add(TECH, WARNING, "zoomDisabled", "enableZoom")

        images = soup.find_all("img")
        if len(images) > 5:
            without_srcset = [img for img in images if not img.get("srcset")]
            responsive = len(images) - len(without_srcset)
            if responsive < len(images) * 0.3:
                sources = []
                for img in without_srcset[:15]:
                    src = img.get("src") or img.get("data-src") or ""
                    sources.append({"url": src, "fileName": _file_name(src)})
                add(TECH, WARNING, "noResponsiveImages", "addSrcset", detailedSources=sources)
            else:
                add(TECH, PASSED, "responsiveImagesGood")

        tiny_fonts = 0
        for tag in soup.find_all(style=True):
            match = FONT_SIZE_PATTERN.search(tag["style"])
            if match and int(match.group(1)) < 12:
                tiny_fonts += 1
        if tiny_fonts > 3:
            add(TECH, WARNING, "smallFontSizes", "increaseFontSize")

    async def check_robots_and_sitemap(self, base_url: str) -> List[Issue]:
        """Site-wide robots.txt and sitemap.xml presence check"""
        base_url = base_url.rstrip("/")
        issues: List[Issue] = []

        def add(severity, message, suggestion=None):
            issues.append(make_issue(TECH, severity, message, IssueSource.HTML, suggestion=suggestion))

        async with http_session(self._client) as client:
            try:
                response = await client.get(f"{base_url}/robots.txt", timeout=self.settings.robots_timeout)
                if response.is_success:
                    add(PASSED, "robotsTxtFound")
                    if "sitemap:" in response.text.lower():
                        add(PASSED, "sitemapInRobotsTxt")
                else:
                    add(WARNING, "noRobotsTxt", "addRobotsTxt")
            except httpx.HTTPError as e:
                logger.debug(f"robots.txt check failed for {base_url}: {e}")
                add(WARNING, "robotsTxtError")

            try:
                response = await client.get(f"{base_url}/sitemap.xml", timeout=self.settings.robots_timeout)
                if response.is_success:
                    if "<urlset" in response.text or "<sitemapindex" in response.text:
                        add(PASSED, "sitemapFound")
                    else:
                        add(WARNING, "sitemapInvalid", "fixSitemap")
                elif await self._any_fallback_sitemap(client, base_url):
                    add(PASSED, "sitemapFound")
                else:
                    add(WARNING, "noSitemap", "addSitemap")
            except httpx.HTTPError as e:
                logger.debug(f"sitemap.xml check failed for {base_url}: {e}")
                add(WARNING, "sitemapError")

        return issues

    async def _any_fallback_sitemap(self, client: httpx.AsyncClient, base_url: str) -> bool:
        for path in SITEMAP_FALLBACK_PATHS:
            try:
                response = await client.get(f"{base_url}{path}", timeout=5.0)
            except httpx.HTTPError:
                continue
            if response.is_success:
                return True
        return False

