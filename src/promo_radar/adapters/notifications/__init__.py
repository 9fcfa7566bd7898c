"""Notification display adapters."""

from promo_radar.adapters.notifications.webhook_notifier import ConsoleNotifier, WebhookNotifier

__all__ = ["ConsoleNotifier", "WebhookNotifier"]
