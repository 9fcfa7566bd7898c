"""Tests for use cases."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from promo_radar.adapters.platform import FixedLocationProvider, StaticNotificationPermission
from promo_radar.adapters.storage import MemoryStore
from promo_radar.core import (
    Coordinate,
    LocationPermission,
    MatchedItem,
    NotificationGate,
    NotificationPermission,
    QueuedNotification,
    SessionStateStore,
    TimedItem,
)
from promo_radar.use_cases import DEFAULT_BODY, DispatchService, FeedService, RadarMonitor

T0 = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
NOW = T0 + timedelta(hours=1)
HOME = Coordinate(latitude=0.0, longitude=0.0)

# Degrees of longitude on the equator per kilometer
KM = 1 / 111.195


def make_item(
    item_id: str,
    km_east: float,
    source_id: str = "shop-1",
    title: str = "Fresh mangoes",
    description: Optional[str] = None,
) -> TimedItem:
    return TimedItem(
        id=item_id,
        source_id=source_id,
        source_name="Corner Store",
        category="Grocery",
        location=Coordinate(latitude=0.0, longitude=km_east * KM),
        created_at=T0 + timedelta(minutes=10),
        expires_at=NOW + timedelta(days=1),
        title=title,
        description=description,
    )


async def granted_permission() -> NotificationPermission:
    permission = NotificationPermission(StaticNotificationPermission(granted=True))
    await permission.request_permission()
    return permission


def enabled_gate() -> NotificationGate:
    gate = NotificationGate(MemoryStore())
    gate.enable(T0)
    return gate


@pytest.mark.asyncio
async def test_feed_service_collect() -> None:
    """Test feed service matches feed and favorite ring."""
    mock_source = AsyncMock()
    mock_source.fetch_eligible_items.return_value = [
        make_item("near", 1.0),
        make_item("fav", 6.0, source_id="fav-shop"),
        make_item("far", 6.0),
    ]
    mock_source.fetch_favorite_source_ids.return_value = {"fav-shop"}

    service = FeedService(source=mock_source)
    feed_pass = await service.collect(HOME, now=NOW)

    assert not feed_pass.failed
    assert [m.id for m in feed_pass.feed] == ["near"]
    assert [m.id for m in feed_pass.favorites] == ["fav"]
    assert [m.id for m in feed_pass.candidates] == ["near", "fav"]
    mock_source.fetch_eligible_items.assert_called_once_with(HOME)


@pytest.mark.asyncio
async def test_feed_service_fetch_failure_yields_empty_pass() -> None:
    """Test a failed fetch never falls back to stale results."""
    mock_source = AsyncMock()
    mock_source.fetch_eligible_items.side_effect = RuntimeError("connection reset")

    feed_pass = await FeedService(source=mock_source).collect(HOME, now=NOW)

    assert feed_pass.failed
    assert feed_pass.candidates == []
    mock_source.fetch_favorite_source_ids.assert_not_called()


@pytest.mark.asyncio
async def test_feed_service_favorites_failure_keeps_feed() -> None:
    """Test losing favorites only drops the favorite ring."""
    mock_source = AsyncMock()
    mock_source.fetch_eligible_items.return_value = [make_item("near", 1.0)]
    mock_source.fetch_favorite_source_ids.side_effect = RuntimeError("401")

    feed_pass = await FeedService(source=mock_source).collect(HOME, now=NOW)

    assert [m.id for m in feed_pass.feed] == ["near"]
    assert feed_pass.favorites == []


@pytest.mark.asyncio
async def test_feed_service_category_filter() -> None:
    mock_source = AsyncMock()
    mock_source.fetch_eligible_items.return_value = [make_item("near", 1.0)]
    mock_source.fetch_favorite_source_ids.return_value = set()

    feed_pass = await FeedService(source=mock_source).collect(HOME, category="Medical", now=NOW)

    assert feed_pass.feed == []


@pytest.mark.asyncio
async def test_dispatch_displays_and_records() -> None:
    """Test dispatch shows each new item once with its content."""
    notifier = AsyncMock()
    service = DispatchService(
        gate=enabled_gate(), notifier=notifier, permission=await granted_permission()
    )
    candidates = [
        MatchedItem(item=make_item("u1", 1.0, description="Alphonso, today only"), distance_km=1.0),
        MatchedItem(item=make_item("u2", 2.0, source_id="shop-2", title=""), distance_km=2.0),
    ]

    decisions = await service.dispatch(candidates, NOW)
    repeat = await service.dispatch(candidates, NOW + timedelta(minutes=1))

    assert [d.item_id for d in decisions] == ["u1", "u2"]
    assert decisions[0].decided_at == NOW
    assert repeat == []
    assert notifier.display.call_count == 2

    first = notifier.display.call_args_list[0]
    assert first.args == ("Corner Store — Fresh mangoes", "Alphonso, today only")
    assert first.kwargs == {"tag": "u1", "url": "/updates/u1"}

    second = notifier.display.call_args_list[1]
    assert second.args == ("Corner Store", DEFAULT_BODY)


@pytest.mark.asyncio
async def test_dispatch_requires_permission_and_opt_in() -> None:
    """Test nothing is shown or recorded without permission or opt-in."""
    notifier = AsyncMock()
    candidates = [MatchedItem(item=make_item("u1", 1.0), distance_km=1.0)]

    denied = DispatchService(
        gate=enabled_gate(),
        notifier=notifier,
        permission=NotificationPermission(StaticNotificationPermission(granted=False)),
    )
    not_opted_in = DispatchService(
        gate=NotificationGate(MemoryStore()),
        notifier=notifier,
        permission=await granted_permission(),
    )

    assert await denied.dispatch(candidates, NOW) == []
    assert await not_opted_in.dispatch(candidates, NOW) == []
    notifier.display.assert_not_called()
    assert denied.gate.load_state().notified_item_ids == []


@pytest.mark.asyncio
async def test_dispatch_display_failure_does_not_retry() -> None:
    """Test a failed display still counts as notified."""
    notifier = AsyncMock()
    notifier.display.side_effect = RuntimeError("gateway down")
    service = DispatchService(
        gate=enabled_gate(), notifier=notifier, permission=await granted_permission()
    )
    candidates = [MatchedItem(item=make_item("u1", 1.0), distance_km=1.0)]

    decisions = await service.dispatch(candidates, NOW)

    assert [d.item_id for d in decisions] == ["u1"]
    assert await service.dispatch(candidates, NOW) == []


@pytest.mark.asyncio
async def test_dispatch_queue_acknowledges() -> None:
    """Test queued notifications are shown once and acknowledged."""
    notifier = AsyncMock()
    queue = AsyncMock()
    queue.fetch_queued_notifications.return_value = [
        QueuedNotification(id="n1", source_id="s1", item_id="u1", title="Flash sale", body="1 hour"),
        QueuedNotification(id="n2", source_id="s1", item_id="u2", created_at=T0 - timedelta(hours=1)),
    ]
    service = DispatchService(
        gate=enabled_gate(),
        notifier=notifier,
        permission=await granted_permission(),
        queue=queue,
    )

    decisions = await service.dispatch_queue(NOW)

    assert [d.item_id for d in decisions] == ["u1"]
    notifier.display.assert_called_once_with("Flash sale", "1 hour", tag="u1", url="/updates/u1")
    queue.acknowledge.assert_called_once_with(["n1", "n2"])


@pytest.mark.asyncio
async def test_dispatch_queue_ack_failure_is_tolerated() -> None:
    notifier = AsyncMock()
    queue = AsyncMock()
    queue.fetch_queued_notifications.return_value = [
        QueuedNotification(id="n1", source_id="s1", item_id="u1")
    ]
    queue.acknowledge.side_effect = RuntimeError("503")
    service = DispatchService(
        gate=enabled_gate(),
        notifier=notifier,
        permission=await granted_permission(),
        queue=queue,
    )

    assert len(await service.dispatch_queue(NOW)) == 1
    # Next poll sees the same entry again; it is not shown twice
    assert await service.dispatch_queue(NOW) == []
    assert notifier.display.call_count == 1


@pytest.mark.asyncio
async def test_monitor_tick() -> None:
    """Test one tick locates, matches, notifies and remembers the position."""
    store = MemoryStore()
    gate = NotificationGate(store)
    gate.enable(T0)
    session = SessionStateStore(store)

    mock_source = AsyncMock()
    mock_source.fetch_eligible_items.return_value = [make_item("u1", 1.0)]
    mock_source.fetch_favorite_source_ids.return_value = set()
    notifier = AsyncMock()

    monitor = RadarMonitor(
        feed_service=FeedService(source=mock_source),
        dispatch_service=DispatchService(
            gate=gate, notifier=notifier, permission=await granted_permission()
        ),
        location=LocationPermission(FixedLocationProvider(HOME)),
        session=session,
    )

    report = await monitor.tick(NOW)

    assert [m.id for m in report.feed_pass.feed] == ["u1"]
    assert [d.item_id for d in report.decisions] == ["u1"]
    assert session.last_location == HOME
    notifier.display.assert_called_once()


@pytest.mark.asyncio
async def test_monitor_tick_without_location() -> None:
    """Test a tick with no position skips matching."""
    mock_source = AsyncMock()
    monitor = RadarMonitor(
        feed_service=FeedService(source=mock_source),
        dispatch_service=DispatchService(
            gate=enabled_gate(), notifier=AsyncMock(), permission=await granted_permission()
        ),
        location=LocationPermission(FixedLocationProvider(None)),
    )

    report = await monitor.tick(NOW)

    assert report.feed_pass is None
    assert report.decisions == []
    mock_source.fetch_eligible_items.assert_not_called()


@pytest.mark.asyncio
async def test_monitor_run_ticks() -> None:
    """Test the loop runs the requested number of ticks."""
    mock_source = AsyncMock()
    mock_source.fetch_eligible_items.return_value = []
    mock_source.fetch_favorite_source_ids.return_value = set()

    monitor = RadarMonitor(
        feed_service=FeedService(source=mock_source),
        dispatch_service=DispatchService(
            gate=enabled_gate(), notifier=AsyncMock(), permission=await granted_permission()
        ),
        location=LocationPermission(FixedLocationProvider(HOME)),
        poll_interval=0,
    )

    await monitor.run(ticks=2)

    assert mock_source.fetch_eligible_items.call_count == 2
