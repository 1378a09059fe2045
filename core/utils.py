"""
Core utility functions used across domains
"""
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from urllib.parse import unquote, urlparse


def normalize_url(url: str) -> str:
    """Add a scheme when missing and strip trailing slashes"""
    if not url:
        return ""

    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"

    return url.rstrip("/")


def extract_domain(url: str) -> Optional[str]:
    """Extract domain from URL"""
    try:
        parsed = urlparse(url)
        domain = parsed.netloc.lower()
        if not domain:
            return None
        if ":" in domain:
            domain = domain.split(":")[0]
        if domain.startswith("www."):
            domain = domain[4:]
        return domain
    except ValueError:
        return None


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def page_label(url: str) -> str:
    """Human label for progress output: host without www plus decoded path"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    host = parsed.netloc
    if host.startswith("www."):
        host = host[4:]
    return f"{host}{unquote(parsed.path)}"


def page_slug(url: str, max_length: int = 120) -> str:
    """File-name safe slug for a page, 'homepage' for the site root"""
    try:
        path = unquote(urlparse(url).path)
    except ValueError:
        path = ""
    slug = re.sub(r"/+", "-", path.strip("/"))
    slug = re.sub(r"[^\w.-]", "", slug)
    return (slug or "homepage")[:max_length]
