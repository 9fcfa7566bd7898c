"""Push webhook notification adapter."""

from typing import Optional

import httpx

from promo_radar.core.interfaces import NotificationService


class WebhookNotifier(NotificationService):
    """Send notifications to a push gateway webhook."""

    def __init__(self, webhook_url: Optional[str] = None) -> None:
        """Initialize webhook notifier.

        Args:
            webhook_url: Push gateway URL. If None, notifications are skipped.
        """
        self.webhook_url = webhook_url

    async def display(
        self, title: str, body: str, tag: str, url: Optional[str] = None
    ) -> None:
        """Post one notification to the gateway.

        Args:
            title: Notification title
            body: Notification body
            tag: Dedup tag; the platform collapses notifications sharing it
            url: Optional click-through target
        """
        if not self.webhook_url:
            # Silently skip if no webhook configured
            return

        payload = {
            "title": title,
            "body": body,
            "tag": tag,
        }
        if url:
            payload["url"] = url

        async with httpx.AsyncClient(timeout=10.0) as client:
            try:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
            except httpx.HTTPError as e:
                print(f"⚠️  Failed to deliver notification {tag}: {e}")


class ConsoleNotifier(NotificationService):
    """Print notifications instead of pushing them."""

    async def display(
        self, title: str, body: str, tag: str, url: Optional[str] = None
    ) -> None:
        print(f"  🔔 {title}")
        print(f"     └─ {body}" + (f" ({url})" if url else ""))
