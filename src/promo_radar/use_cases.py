"""Business logic use cases."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from promo_radar.core import (
    Coordinate,
    FavoriteExpansionMatcher,
    FeedMatcher,
    LocationPermission,
    LocationStatus,
    MatchedItem,
    NotificationDecision,
    NotificationGate,
    NotificationPermission,
    NotificationQueue,
    NotificationService,
    SessionStateStore,
    ShopCategory,
    UpdateSource,
)

DEFAULT_BODY = "New update available"


@dataclass
class FeedPass:
    """Result of one matching pass."""

    feed: list[MatchedItem] = field(default_factory=list)
    favorites: list[MatchedItem] = field(default_factory=list)
    failed: bool = False

    @property
    def candidates(self) -> list[MatchedItem]:
        """Feed and favorite ring together; the two never share an item."""
        return self.feed + self.favorites


@dataclass
class TickReport:
    """What one monitoring tick saw and sent."""

    feed_pass: Optional[FeedPass] = None
    decisions: list[NotificationDecision] = field(default_factory=list)


class FeedService:
    """Service for fetching updates and matching them around the consumer."""

    def __init__(
        self,
        source: UpdateSource,
        feed_matcher: Optional[FeedMatcher] = None,
        favorite_matcher: Optional[FavoriteExpansionMatcher] = None,
    ) -> None:
        self.source = source
        self.feed_matcher = feed_matcher or FeedMatcher()
        self.favorite_matcher = favorite_matcher or FavoriteExpansionMatcher()

    async def collect(
        self,
        reference: Coordinate,
        category: Optional[Union[ShopCategory, str]] = None,
        now: Optional[datetime] = None,
    ) -> FeedPass:
        """Fetch items and favorites, then run both matchers.

        A failed item fetch yields an empty pass; results from earlier passes
        are never reused.
        """
        now = now or datetime.now(timezone.utc)
        print(f"\n📡 Поиск обновлений рядом с ({reference.latitude:.5f}, {reference.longitude:.5f})")

        try:
            items = await self.source.fetch_eligible_items(reference)
        except Exception as e:
            print(f"  └─ ❌ Ошибка загрузки ленты: {e}")
            return FeedPass(failed=True)

        try:
            favorite_ids = await self.source.fetch_favorite_source_ids()
        except Exception as e:
            print(f"  └─ ⚠️  Избранное недоступно: {e}")
            favorite_ids = set()

        feed = self.feed_matcher.match(items, reference, category=category, now=now)
        favorites = self.favorite_matcher.expand(items, reference, favorite_ids, now=now)

        print(f"  └─ Получено: {len(items)} обновлений")
        print(f"  └─ В радиусе {self.feed_matcher.radius_km:g} км: {len(feed)}")
        if favorite_ids:
            print(
                f"  └─ Избранные магазины до {self.favorite_matcher.outer_radius_km:g} км: "
                f"{len(favorites)}"
            )

        return FeedPass(feed=feed, favorites=favorites)


class DispatchService:
    """Service for turning eligible items into displayed notifications."""

    def __init__(
        self,
        gate: NotificationGate,
        notifier: NotificationService,
        permission: NotificationPermission,
        queue: Optional[NotificationQueue] = None,
        click_url_template: str = "/updates/{item_id}",
    ) -> None:
        self.gate = gate
        self.notifier = notifier
        self.permission = permission
        self.queue = queue
        self.click_url_template = click_url_template

    def can_notify(self) -> bool:
        return self.permission.is_granted and self.gate.should_evaluate()

    def _click_url(self, item_id: str) -> str:
        return self.click_url_template.format(item_id=item_id)

    async def _display(self, title: str, body: str, item_id: str) -> None:
        try:
            await self.notifier.display(title, body, tag=item_id, url=self._click_url(item_id))
        except Exception as e:
            print(f"  ⚠️  Не удалось показать уведомление {item_id}: {e}")

    async def dispatch(
        self, candidates: list[MatchedItem], now: datetime
    ) -> list[NotificationDecision]:
        """Notify about the candidates the gate lets through.

        Args:
            candidates: Output of a matching pass, in priority order
            now: Decision instant

        Returns:
            One decision per displayed item
        """
        if not self.can_notify():
            return []

        emitted = self.gate.decide(candidates, now)
        decisions: list[NotificationDecision] = []

        for match in emitted:
            item = match.item
            title = f"{item.source_name} — {item.title}" if item.title else item.source_name
            await self._display(title, item.description or DEFAULT_BODY, item.id)
            decisions.append(
                NotificationDecision(item_id=item.id, source_id=item.source_id, decided_at=now)
            )

        if candidates:
            print(f"🔔 Уведомлений: {len(emitted)} (пропущено: {len(candidates) - len(emitted)})")
        return decisions

    async def dispatch_queue(self, now: datetime) -> list[NotificationDecision]:
        """Show server-queued notifications and acknowledge them."""
        if self.queue is None or not self.can_notify():
            return []

        try:
            queued = await self.queue.fetch_queued_notifications()
        except Exception as e:
            print(f"  └─ ⚠️  Очередь уведомлений недоступна: {e}")
            return []

        batch = self.gate.decide_queued(queued, now)
        decisions: list[NotificationDecision] = []

        for notification in batch.emitted:
            await self._display(
                notification.title or DEFAULT_BODY,
                notification.body or DEFAULT_BODY,
                notification.item_id,
            )
            decisions.append(
                NotificationDecision(
                    item_id=notification.item_id,
                    source_id=notification.source_id,
                    decided_at=now,
                )
            )

        try:
            await self.queue.acknowledge(batch.acknowledge_ids)
        except Exception as e:
            # Local dedup keeps these from showing twice until the next ack
            print(f"  └─ ⚠️  Не удалось подтвердить уведомления: {e}")

        return decisions


class RadarMonitor:
    """Periodic matching and dispatch for one consumer session."""

    def __init__(
        self,
        feed_service: FeedService,
        dispatch_service: DispatchService,
        location: LocationPermission,
        session: Optional[SessionStateStore] = None,
        category: Optional[Union[ShopCategory, str]] = None,
        poll_interval: float = 30.0,
    ) -> None:
        self.feed_service = feed_service
        self.dispatch_service = dispatch_service
        self.location = location
        self.session = session
        self.category = category
        self.poll_interval = poll_interval

    async def _current_position(self) -> Optional[Coordinate]:
        if self.location.status is LocationStatus.UNREQUESTED:
            await self.location.request_permission()
        elif self.location.status is LocationStatus.GRANTED:
            await self.location.refresh()
        elif self.location.is_pending:
            await self.location.request_permission()

        result = self.location.snapshot()
        if result.error is not None:
            print(f"📍 Геолокация: {result.error.value}")
        if result.status is not LocationStatus.GRANTED:
            return None
        return result.coordinate

    async def tick(self, now: Optional[datetime] = None) -> TickReport:
        """Run one full pass: locate, match, dispatch, drain the queue."""
        coordinate = await self._current_position()
        now = now or datetime.now(timezone.utc)
        report = TickReport()

        if coordinate is not None:
            if self.session is not None:
                self.session.set_last_location(coordinate)
            report.feed_pass = await self.feed_service.collect(coordinate, self.category, now)

        self.dispatch_service.permission.sync()
        if report.feed_pass is not None:
            report.decisions.extend(
                await self.dispatch_service.dispatch(report.feed_pass.candidates, now)
            )
        report.decisions.extend(await self.dispatch_service.dispatch_queue(now))
        return report

    async def run(self, ticks: Optional[int] = None) -> None:
        """Tick every ``poll_interval`` seconds, forever or ``ticks`` times.

        Ticks are started on schedule even if the previous one is still
        running; the gate makes overlapping ticks safe.
        """
        running: set[asyncio.Future] = set()
        count = 0

        def finished(task: asyncio.Future) -> None:
            running.discard(task)
            if not task.cancelled() and task.exception() is not None:
                print(f"❌ Ошибка цикла: {task.exception()}")

        while ticks is None or count < ticks:
            task = asyncio.ensure_future(self.tick())
            running.add(task)
            task.add_done_callback(finished)
            count += 1
            if ticks is not None and count >= ticks:
                break
            await asyncio.sleep(self.poll_interval)

        if running:
            await asyncio.wait(set(running))
