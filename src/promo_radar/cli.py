"""CLI entry point for promo radar."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from promo_radar.adapters.data import HttpDataService
from promo_radar.adapters.notifications import ConsoleNotifier, WebhookNotifier
from promo_radar.adapters.platform import FixedLocationProvider, StaticNotificationPermission
from promo_radar.adapters.storage import YamlFileStore
from promo_radar.config import get_settings
from promo_radar.core import (
    Coordinate,
    FavoriteExpansionMatcher,
    FeedMatcher,
    LocationPermission,
    NotificationGate,
    NotificationPermission,
    SessionStateStore,
    ShopCategory,
)
from promo_radar.use_cases import DispatchService, FeedService, RadarMonitor


def main(
    lat: float = typer.Option(..., "--lat", help="Latitude of the consumer"),
    lon: float = typer.Option(..., "--lon", help="Longitude of the consumer"),
    category: Optional[ShopCategory] = typer.Option(None, "--category", help="Only show this shop category"),
    watch: bool = typer.Option(False, "--watch", help="Keep polling at the configured interval"),
    enable_notifications: bool = typer.Option(False, "--enable-notifications", help="Opt in to notifications"),
    disable_notifications: bool = typer.Option(
        False, "--disable-notifications", help="Opt out and forget notification history"
    ),
    logout: bool = typer.Option(False, "--logout", help="Clear session and notification state"),
    no_push: bool = typer.Option(False, "--no-push", help="Print notifications instead of pushing them"),
    config: Path = typer.Option(Path("config.yaml"), "--config", help="Path to config.yaml"),
) -> None:
    """Show nearby shop updates and push notifications for new ones."""
    try:
        reference = Coordinate(latitude=lat, longitude=lon)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    if enable_notifications and disable_notifications:
        raise typer.BadParameter("--enable-notifications and --disable-notifications are exclusive")

    asyncio.run(
        async_run(
            reference,
            category,
            watch,
            enable_notifications,
            logout,
            no_push,
            config,
            disable_notifications=disable_notifications,
        )
    )


def app() -> None:
    """CLI entry point."""
    typer.run(main)


async def async_run(
    reference: Coordinate,
    category: Optional[ShopCategory],
    watch: bool,
    enable_notifications: bool,
    logout: bool,
    no_push: bool,
    config: Path,
    disable_notifications: bool = False,
) -> None:
    """Async implementation of run command."""
    settings = get_settings(config)

    store = YamlFileStore(settings.state_file)
    gate = NotificationGate(
        store,
        max_per_source_per_day=settings.max_per_source_per_day,
        max_tracked_ids=settings.notifications.max_tracked_ids,
    )
    session = SessionStateStore(store, gate=gate)

    if logout:
        session.logout()
        print("✓ Сессия и состояние уведомлений очищены")
        return

    if disable_notifications:
        gate.reset()
        print("✓ Уведомления выключены, история уведомлений очищена")
        return

    if enable_notifications:
        gate.enable(datetime.now(timezone.utc))

    # Header
    print("\n" + "=" * 70)
    print("🛍️  PROMO RADAR - Shop updates nearby")
    print("=" * 70)

    print(f"\n🔑 Креды:")
    if settings.api_token:
        print(f"  ✓ PROMO_RADAR_API_TOKEN - для доступа к ленте")
    else:
        print(f"  ⚠️  PROMO_RADAR_API_TOKEN - не найден (анонимный доступ)")

    if no_push:
        print(f"  ⚠️  PROMO_RADAR_PUSH_WEBHOOK_URL - отключен опцией --no-push")
    elif settings.push_webhook_url:
        print(f"  ✓ PROMO_RADAR_PUSH_WEBHOOK_URL - для отправки уведомлений")
    else:
        print(f"  ⚠️  PROMO_RADAR_PUSH_WEBHOOK_URL - не найден (уведомления в консоль)")

    state = gate.load_state()
    print(f"\n⚙️  Настройки:")
    print(f"  • Радиус ленты: {settings.feed_radius_km:g} км")
    print(f"  • Радиус избранного: {settings.favorite_radius_km:g} км")
    print(f"  • Лимит на магазин в день: {settings.max_per_source_per_day}")
    if category:
        print(f"  • Категория: {category.value}")
    if state.enabled_at:
        print(f"  • Уведомления включены с {state.enabled_at.isoformat()}")
    else:
        print(f"  • Уведомления выключены (используйте --enable-notifications)")
    if session.last_location:
        last = session.last_location
        print(f"  • Последняя позиция: ({last.latitude:.5f}, {last.longitude:.5f})")

    data_service = HttpDataService(settings)

    if settings.push_webhook_url and not no_push:
        notifier = WebhookNotifier(settings.push_webhook_url)
    else:
        notifier = ConsoleNotifier()

    notification_permission = NotificationPermission(
        StaticNotificationPermission(granted=True), timeout=settings.permission_timeout
    )
    if gate.should_evaluate():
        await notification_permission.request_permission()

    location = LocationPermission(
        FixedLocationProvider(reference), timeout=settings.permission_timeout
    )

    monitor = RadarMonitor(
        feed_service=FeedService(
            source=data_service,
            feed_matcher=FeedMatcher(settings.feed_radius_km),
            favorite_matcher=FavoriteExpansionMatcher(
                settings.feed_radius_km, settings.favorite_radius_km
            ),
        ),
        dispatch_service=DispatchService(
            gate=gate,
            notifier=notifier,
            permission=notification_permission,
            queue=data_service,
            click_url_template=settings.notifications.click_url_template,
        ),
        location=location,
        session=session,
        category=category,
        poll_interval=settings.poll_interval,
    )

    if watch:
        print(f"\n⏱️  Опрос каждые {settings.poll_interval:g} с (Ctrl+C для выхода)")
        await monitor.run()
        return

    report = await monitor.tick()

    print("\n" + "=" * 70)
    if report.feed_pass is None or report.feed_pass.failed:
        print("❌ ЛЕНТА НЕДОСТУПНА")
    elif not report.feed_pass.candidates:
        print("❌ РЯДОМ НЕТ АКТИВНЫХ ОБНОВЛЕНИЙ")
    else:
        print("✅ ОБНОВЛЕНИЯ РЯДОМ")
    print("=" * 70)

    if report.feed_pass is not None:
        for match in report.feed_pass.feed:
            print(f"  • {match.distance_km:5.2f} км  {match.source_name} — {match.item.title}")
        for match in report.feed_pass.favorites:
            print(f"  ★ {match.distance_km:5.2f} км  {match.source_name} — {match.item.title}")

    if report.decisions:
        print(f"\n🔔 Отправлено уведомлений: {len(report.decisions)}")
    print()


if __name__ == "__main__":
    app()
