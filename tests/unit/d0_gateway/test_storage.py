"""
Tests for local screenshot storage
"""
import pytest

from d0_gateway.providers.storage import LocalImageStorage


class TestLocalImageStorage:
    @pytest.mark.asyncio
    async def test_upload_writes_file_and_returns_url(self, tmp_path):
        storage = LocalImageStorage(storage_dir=str(tmp_path), public_base_url="https://cdn.acme.test/media/")

        url = await storage.upload_image(b"\xff\xd8jpeg", "audits/site-1/run-1", "ss_homepage_desktop")

        assert url == "https://cdn.acme.test/media/audits/site-1/run-1/ss_homepage_desktop.jpg"
        assert (tmp_path / "audits" / "site-1" / "run-1" / "ss_homepage_desktop.jpg").read_bytes() == b"\xff\xd8jpeg"

    @pytest.mark.asyncio
    async def test_unsafe_names_are_sanitized(self, tmp_path):
        storage = LocalImageStorage(storage_dir=str(tmp_path), public_base_url="https://cdn.acme.test")

        url = await storage.upload_image(b"x", "audits/../run", "ss_a b/c")

        assert url == "https://cdn.acme.test/audits/file/run/ss_a_b_c.jpg"

    @pytest.mark.asyncio
    async def test_empty_data_is_skipped(self, tmp_path):
        storage = LocalImageStorage(storage_dir=str(tmp_path))

        assert await storage.upload_image(b"", "audits", "empty") is None
        assert await storage.upload_image(None, "audits", "empty") is None

    @pytest.mark.asyncio
    async def test_write_failure_returns_none(self, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        storage = LocalImageStorage(storage_dir=str(blocker))

        assert await storage.upload_image(b"x", "audits", "img") is None
