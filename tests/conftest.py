"""
Root conftest.py for all tests
Provides common fixtures and configuration
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")

import httpx  # noqa: E402
import pytest  # noqa: E402

from core.config import get_settings  # noqa: E402
from d0_gateway.base import build_http_client  # noqa: E402
from d3_assessment.types import IssueCategory, IssueSeverity, IssueSource, make_issue  # noqa: E402


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Each test sees settings built from the current environment"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_client():
    """Build an httpx client served by a handler function"""
    clients = []

    def _make(handler) -> httpx.AsyncClient:
        client = build_http_client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    return _make


@pytest.fixture
def issue_factory():
    def _make(category=IssueCategory.TECHNICAL, severity=IssueSeverity.WARNING, message="someIssue", url=None):
        return make_issue(category, severity, message, IssueSource.HTML, url=url)

    return _make
