"""Constants for URL discovery."""
import re

# Hard cap on URLs returned by a discovery run
MAX_URLS = 50

# Pages fetched during the second crawl level
MAX_SECOND_LEVEL_PAGES = 10

# Sitemap index recursion limit
MAX_SITEMAP_DEPTH = 2

# Stored entities considered by the plugin fallback
MAX_STORED_ENTITIES = 100

# Conventional sitemap locations (WordPress SEO plugins, core wp-sitemap, generic builders)
SITEMAP_PATHS = [
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/wp-sitemap.xml",
    "/sitemap-index.xml",
    "/post-sitemap.xml",
    "/page-sitemap.xml",
    "/sitemap-0.xml",
    "/sitemap-1.xml",
    "/sitemaps/sitemap-index.xml",
    "/sitemap/sitemap-index.xml",
]

# Non-content paths that are never audited
IGNORED_PATH_PATTERNS = [
    re.compile(r"/cdn-cgi/", re.IGNORECASE),
    re.compile(r"/wp-admin(/|$)", re.IGNORECASE),
    re.compile(r"/wp-login\.php", re.IGNORECASE),
    re.compile(r"/wp-json(/|$)", re.IGNORECASE),
    re.compile(r"/feed(/|$)", re.IGNORECASE),
    re.compile(r"/xmlrpc\.php", re.IGNORECASE),
    re.compile(r"/wp-content/uploads/", re.IGNORECASE),
    re.compile(r"/(cart|checkout|my-account)(/|$)", re.IGNORECASE),
    re.compile(r"/tag/", re.IGNORECASE),
    re.compile(r"[?&](replytocom|share)=", re.IGNORECASE),
    re.compile(r"[?&](utm_[a-z]+|fbclid|gclid|msclkid)=", re.IGNORECASE),
]

BINARY_EXTENSION_PATTERN = re.compile(r"\.(jpe?g|png|gif|svg|webp|pdf|zip|css|js|xml|json|ico|woff2?)$", re.IGNORECASE)

# Plugin REST namespace on the audited WordPress site
PLUGIN_API_PREFIX = "/wp-json/ghost-post/v1"
PLUGIN_DEFAULT_ENDPOINTS = ["/posts", "/pages"]
PLUGIN_EXCLUDED_POST_TYPES = {
    "post",
    "page",
    "attachment",
    "revision",
    "nav_menu_item",
    "wp_block",
    "wp_template",
    "wp_template_part",
    "wp_navigation",
}

WP_API_ENDPOINTS = [
    "/wp-json/wp/v2/posts?per_page=50&_fields=link",
    "/wp-json/wp/v2/pages?per_page=50&_fields=link",
]
