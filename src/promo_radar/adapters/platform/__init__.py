"""Platform permission adapters."""

from promo_radar.adapters.platform.static import FixedLocationProvider, StaticNotificationPermission

__all__ = ["FixedLocationProvider", "StaticNotificationPermission"]
