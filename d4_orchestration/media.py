"""
Uploads of screenshots, segments and filmstrip frames
"""
import asyncio
from typing import Any, Dict, List, Optional

from core.utils import page_slug
from d2_scanner.types import FilmstripFrame, PageScanResult

from .collaborators import ImageStorage


def audit_folder(site_id: Optional[str], run_id: str) -> str:
    return f"audits/{site_id or 'adhoc'}/{run_id}"


class MediaUploader:
    """Names and uploads every capture of a page into one audit folder"""

    def __init__(self, storage: ImageStorage, folder: str):
        self.storage = storage
        self.folder = folder

    async def screenshot(self, data: Optional[bytes], page_url: str, device: str) -> Optional[str]:
        if not data:
            return None
        return await self.storage.upload_image(data, self.folder, f"ss_{page_slug(page_url)}_{device}")

    async def segments(self, segments: Optional[List[bytes]], page_url: str, device: str) -> List[str]:
        if not segments:
            return []
        slug = page_slug(page_url)
        urls = await asyncio.gather(
            *(
                self.storage.upload_image(data, self.folder, f"seg_{slug}_{device}_{index}")
                for index, data in enumerate(segments, start=1)
            )
        )
        return [url for url in urls if url]

    async def filmstrip(self, frames: Optional[List[FilmstripFrame]], page_url: str, device: str) -> List[Dict[str, Any]]:
        if not frames:
            return []
        slug = page_slug(page_url)
        urls = await asyncio.gather(
            *(
                self.storage.upload_image(frame.data, self.folder, f"film_{slug}_{device}_{frame.stage.value}")
                for frame in frames
            )
        )
        return [{"stage": frame.stage.value, "url": url} for frame, url in zip(frames, urls) if url]

    async def page_media(self, scan: PageScanResult) -> Dict[str, Any]:
        """All uploads for one page, run in parallel"""
        url = scan.url
        (
            desktop,
            mobile,
            desktop_segments,
            mobile_segments,
            desktop_film,
            mobile_film,
        ) = await asyncio.gather(
            self.screenshot(scan.screenshots.get("desktop"), url, "desktop"),
            self.screenshot(scan.screenshots.get("mobile"), url, "mobile"),
            self.segments(scan.segments.get("desktop"), url, "desktop"),
            self.segments(scan.segments.get("mobile"), url, "mobile"),
            self.filmstrip(scan.filmstrip.get("desktop"), url, "desktop"),
            self.filmstrip(scan.filmstrip.get("mobile"), url, "mobile"),
        )
        return {
            "screenshotDesktop": desktop,
            "screenshotMobile": mobile,
            "screenshotsDesktop": desktop_segments,
            "screenshotsMobile": mobile_segments,
            "filmstripDesktop": desktop_film or None,
            "filmstripMobile": mobile_film or None,
        }
