"""Platform hooks for headless runs, where there is no permission prompt."""

from typing import Optional

from promo_radar.core import Coordinate, LocationProvider, NotificationPermissionProvider
from promo_radar.core.permissions import PermissionFailure, PositionError


class FixedLocationProvider(LocationProvider):
    """Report a position given up front, e.g. on the command line."""

    def __init__(self, coordinate: Optional[Coordinate]) -> None:
        self.coordinate = coordinate

    def is_supported(self) -> bool:
        return True

    async def get_current_position(self) -> Coordinate:
        if self.coordinate is None:
            raise PositionError(PermissionFailure.POSITION_UNAVAILABLE, "No position configured")
        return self.coordinate


class StaticNotificationPermission(NotificationPermissionProvider):
    """Answer every permission prompt with a fixed result."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self._state = "default"

    def is_supported(self) -> bool:
        return True

    def current(self) -> str:
        return self._state

    async def request(self) -> str:
        self._state = "granted" if self.granted else "denied"
        return self._state
