"""HTTP client for the shop update data service."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from promo_radar.config import Settings
from promo_radar.core import (
    Coordinate,
    NotificationQueue,
    QueuedNotification,
    TimedItem,
    UpdateSource,
)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string or integer nanoseconds since the epoch."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, int):
        return datetime.fromtimestamp(value / 1_000_000_000, tz=timezone.utc)
    if isinstance(value, str):
        if value.isdigit():
            return parse_timestamp(int(value))
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Invalid timestamp: {value!r}")


class HttpDataService(UpdateSource, NotificationQueue):
    """Fetch updates, favorites and queued notifications over JSON/HTTP."""

    def __init__(self, settings: Settings) -> None:
        self.base_url = settings.data_service.base_url.rstrip("/")
        self.token = settings.api_token
        self.timeout = settings.data_service.timeout
        self.max_retries = settings.data_service.max_retries
        self.initial_retry_delay = settings.data_service.initial_retry_delay

    async def fetch_eligible_items(self, reference: Coordinate) -> list[TimedItem]:
        """Fetch the server-filtered feed around ``reference``."""
        response = await self._request(
            "GET",
            "/feed",
            params={"lat": reference.latitude, "lon": reference.longitude},
        )
        items: list[TimedItem] = []
        for record in response.json():
            item = self._parse_item(record)
            if item:
                items.append(item)
        return items

    async def fetch_favorite_source_ids(self) -> set[str]:
        response = await self._request("GET", "/favorites")
        return {str(entry["source_id"]) for entry in response.json()}

    async def fetch_queued_notifications(self) -> list[QueuedNotification]:
        response = await self._request("GET", "/notifications/queue")
        queued: list[QueuedNotification] = []
        for record in response.json():
            try:
                created_at = record.get("created_at")
                queued.append(
                    QueuedNotification(
                        id=str(record["id"]),
                        source_id=str(record["source_id"]),
                        item_id=str(record["item_id"]),
                        title=record.get("title") or "",
                        body=record.get("body"),
                        created_at=parse_timestamp(created_at) if created_at is not None else None,
                    )
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                print(f"  └─ ⚠️  Skipping malformed queued notification {record!r:.80}: {e}")
        return queued

    async def acknowledge(self, ids: list[str]) -> None:
        if not ids:
            return
        await self._request("POST", "/notifications/ack", json={"ids": ids})

    def _parse_item(self, record: dict) -> Optional[TimedItem]:
        """Build an item from a feed record, or None if it is malformed."""
        try:
            location = record["location"]
            return TimedItem(
                id=str(record["id"]),
                source_id=str(record["source_id"]),
                source_name=record.get("source_name", ""),
                category=record.get("category", ""),
                location=Coordinate(
                    latitude=float(location["latitude"]),
                    longitude=float(location["longitude"]),
                ),
                created_at=parse_timestamp(record["created_at"]),
                expires_at=parse_timestamp(record["expires_at"]),
                is_active=bool(record.get("is_active", True)),
                title=record.get("title") or "",
                description=record.get("description"),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            print(f"  └─ ⚠️  Skipping malformed item {record!r:.80}: {e}")
            return None

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Call the data service with retry logic."""
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method,
                        f"{self.base_url}{path}",
                        headers=self._get_headers(),
                        **kwargs,
                    )

                    if response.status_code == 200:
                        return response

                    # Rate limit - retry with backoff
                    if response.status_code == 429:
                        retry_after = self._get_retry_delay(response, attempt)
                        print(f"⏳ Rate limit hit, retrying after {retry_after:.1f}s (attempt {attempt + 1}/{self.max_retries})")
                        await asyncio.sleep(retry_after)
                        continue

                    # Server errors - retry with backoff
                    if response.status_code >= 500:
                        retry_delay = self.initial_retry_delay * (2 ** attempt)
                        print(f"⚠️  Server error {response.status_code}, retrying after {retry_delay:.1f}s")
                        await asyncio.sleep(retry_delay)
                        continue

                    # Other errors - raise immediately
                    response.raise_for_status()
                    return response

            except httpx.RequestError as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    retry_delay = self.initial_retry_delay * (2 ** attempt)
                    print(f"⚠️  Network error, retrying after {retry_delay:.1f}s")
                    await asyncio.sleep(retry_delay)
                    continue
                raise

        if last_exception:
            raise last_exception
        raise RuntimeError(f"{method} {path} failed after {self.max_retries} attempts")

    def _get_retry_delay(self, response: httpx.Response, attempt: int) -> float:
        """Calculate retry delay from response headers or use exponential backoff."""
        retry_after = response.headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass

        return self.initial_retry_delay * (2 ** attempt)
