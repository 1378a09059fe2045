"""
Tests for audit notifications
"""
import json

import httpx
import pytest

from core.exceptions import ExternalAPIError
from d9_delivery.notifications import LogNotifier, WebhookNotifier, build_notifier, build_payload

EVENT = {"type": "audit_complete", "data": {"auditId": "run-1", "score": 91}}


class TestPayload:
    def test_payload_shape(self):
        payload = build_payload("acct-1", EVENT)

        assert payload["accountId"] == "acct-1"
        assert payload["type"] == "audit_complete"
        assert payload["data"] == {"auditId": "run-1", "score": 91}
        assert payload["sentAt"].endswith("+00:00")


class TestWebhookNotifier:
    @pytest.mark.asyncio
    async def test_posts_json(self, make_client):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append((str(request.url), json.loads(request.content)))
            return httpx.Response(202)

        notifier = WebhookNotifier("https://hooks.acme.test/audits", client=make_client(handler))
        await notifier.notify("acct-1", EVENT)

        (url, body), = received
        assert url == "https://hooks.acme.test/audits"
        assert body["accountId"] == "acct-1"
        assert body["data"]["auditId"] == "run-1"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, make_client):
        notifier = WebhookNotifier("https://hooks.acme.test", client=make_client(lambda r: httpx.Response(500, text="oops")))

        with pytest.raises(ExternalAPIError) as exc_info:
            await notifier.notify(None, EVENT)

        assert exc_info.value.status_code == 500
        assert exc_info.value.provider == "webhook"

    @pytest.mark.asyncio
    async def test_unreachable_raises(self, make_client):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExternalAPIError):
            await WebhookNotifier("https://hooks.acme.test", client=make_client(handler)).notify(None, EVENT)


class TestBuildNotifier:
    def test_log_notifier_by_default(self, monkeypatch):
        monkeypatch.delenv("NOTIFICATION_WEBHOOK_URL", raising=False)

        assert isinstance(build_notifier(), LogNotifier)

    def test_webhook_when_configured(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATION_WEBHOOK_URL", "https://hooks.acme.test")

        notifier = build_notifier()

        assert isinstance(notifier, WebhookNotifier)
        assert notifier.url == "https://hooks.acme.test"

    @pytest.mark.asyncio
    async def test_log_notifier_never_raises(self):
        await LogNotifier().notify("acct-1", EVENT)
