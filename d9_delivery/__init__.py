"""
D9 Delivery - Outbound notifications for finished audits
"""

from .notifications import LogNotifier, WebhookNotifier, build_notifier

__all__ = ["LogNotifier", "WebhookNotifier", "build_notifier"]
