"""Lifecycle of location and notification permissions.

Both machines wrap a callback-style platform API as one awaitable request.
Only one request per machine is in flight: a second caller awaits the same
task instead of prompting the user twice. Requests time out and resolve to a
``TIMEOUT`` classification instead of hanging.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from promo_radar.core.entities import Coordinate
from promo_radar.core.interfaces import LocationProvider, NotificationPermissionProvider

PERMISSION_TIMEOUT = 10.0

T = TypeVar("T")


class PermissionFailure(str, Enum):
    """Classified, user-recoverable permission failure."""

    PERMISSION_DENIED = "permission-denied"
    POSITION_UNAVAILABLE = "position-unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


class PositionError(Exception):
    """Raised by a LocationProvider when the platform rejects a request."""

    def __init__(self, failure: PermissionFailure, message: str = "") -> None:
        super().__init__(message or failure.value)
        self.failure = failure


class PermissionStateError(ValueError):
    """Operation not allowed from the current permission state."""


class LocationStatus(str, Enum):
    UNREQUESTED = "unrequested"
    PENDING = "pending"
    GRANTED = "granted"
    DENIED = "denied"


class NotificationStatus(str, Enum):
    UNSUPPORTED = "unsupported"
    DEFAULT = "default"
    PENDING = "pending"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class LocationResult:
    status: LocationStatus
    coordinate: Optional[Coordinate]
    error: Optional[PermissionFailure]


@dataclass(frozen=True)
class NotificationResult:
    status: NotificationStatus
    error: Optional[PermissionFailure]


_LOCATION_TRANSITIONS = {
    LocationStatus.UNREQUESTED: {LocationStatus.PENDING},
    LocationStatus.PENDING: {LocationStatus.GRANTED, LocationStatus.DENIED},
    LocationStatus.GRANTED: {LocationStatus.PENDING},
    LocationStatus.DENIED: {LocationStatus.PENDING},
}

_SETTLED_NOTIFICATION = {
    NotificationStatus.DEFAULT,
    NotificationStatus.GRANTED,
    NotificationStatus.DENIED,
}

_NOTIFICATION_TRANSITIONS = {
    NotificationStatus.UNSUPPORTED: set(),
    NotificationStatus.DEFAULT: {NotificationStatus.PENDING} | _SETTLED_NOTIFICATION,
    NotificationStatus.PENDING: _SETTLED_NOTIFICATION,
    NotificationStatus.GRANTED: {NotificationStatus.PENDING} | _SETTLED_NOTIFICATION,
    NotificationStatus.DENIED: {NotificationStatus.PENDING} | _SETTLED_NOTIFICATION,
}


class _PermissionMachine:
    """Shared transition check and single-flight request handling."""

    _transitions: dict = {}

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        self.status = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    def _transition(self, target) -> None:
        if target not in self._transitions[self.status]:
            raise PermissionStateError(
                f"{type(self).__name__}: cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    async def _join(self) -> T:
        return await asyncio.shield(self._pending)

    async def _launch(self, resolver: Callable[[], Awaitable[T]]) -> T:
        async def guarded() -> T:
            try:
                return await resolver()
            finally:
                self._pending = None

        self._pending = asyncio.ensure_future(guarded())
        return await self._join()


class LocationPermission(_PermissionMachine):
    """Track location permission and the last good coordinate."""

    _transitions = _LOCATION_TRANSITIONS

    def __init__(
        self, provider: Optional[LocationProvider], timeout: float = PERMISSION_TIMEOUT
    ) -> None:
        super().__init__(timeout)
        self.provider = provider
        self.status = LocationStatus.UNREQUESTED
        self.coordinate: Optional[Coordinate] = None
        self.error: Optional[PermissionFailure] = None

    def snapshot(self) -> LocationResult:
        return LocationResult(status=self.status, coordinate=self.coordinate, error=self.error)

    async def request_permission(self) -> LocationResult:
        """Ask for a position. From GRANTED this is the same as :meth:`refresh`."""
        if self.is_pending:
            return await self._join()
        if self.status is LocationStatus.GRANTED:
            return await self.refresh()

        self._transition(LocationStatus.PENDING)
        self.error = None
        return await self._launch(lambda: self._resolve(refreshing=False))

    async def refresh(self) -> LocationResult:
        """Re-read the position without dropping back to UNREQUESTED.

        Raises:
            PermissionStateError: permission was never granted
        """
        if self.is_pending:
            return await self._join()
        if self.status is not LocationStatus.GRANTED:
            raise PermissionStateError(
                f"refresh() requires granted location permission, not {self.status.value}"
            )

        self._transition(LocationStatus.PENDING)
        return await self._launch(lambda: self._resolve(refreshing=True))

    async def _resolve(self, refreshing: bool) -> LocationResult:
        failure: Optional[PermissionFailure] = None
        coordinate: Optional[Coordinate] = None

        if self.provider is None or not self.provider.is_supported():
            failure = PermissionFailure.UNSUPPORTED
        else:
            try:
                coordinate = await asyncio.wait_for(
                    self.provider.get_current_position(), self.timeout
                )
            except asyncio.TimeoutError:
                failure = PermissionFailure.TIMEOUT
            except PositionError as e:
                failure = e.failure
            except Exception as e:
                print(f"⚠️  Failed to get location: {e}")
                failure = PermissionFailure.POSITION_UNAVAILABLE

        if failure is None:
            self.coordinate = coordinate
            self.error = None
            self._transition(LocationStatus.GRANTED)
        elif refreshing and failure in (
            PermissionFailure.POSITION_UNAVAILABLE,
            PermissionFailure.TIMEOUT,
        ):
            # Still granted; the previous coordinate stays usable
            self.error = failure
            self._transition(LocationStatus.GRANTED)
        else:
            self.error = failure
            self._transition(LocationStatus.DENIED)

        return self.snapshot()


class NotificationPermission(_PermissionMachine):
    """Track the platform's notification permission."""

    _transitions = _NOTIFICATION_TRANSITIONS

    def __init__(
        self,
        provider: Optional[NotificationPermissionProvider],
        timeout: float = PERMISSION_TIMEOUT,
    ) -> None:
        super().__init__(timeout)
        self.provider = provider
        self.error: Optional[PermissionFailure] = None
        if provider is None or not provider.is_supported():
            self.status = NotificationStatus.UNSUPPORTED
            self.error = PermissionFailure.UNSUPPORTED
        else:
            self.status = self._parse(provider.current())

    @property
    def is_granted(self) -> bool:
        return self.status is NotificationStatus.GRANTED

    def snapshot(self) -> NotificationResult:
        return NotificationResult(status=self.status, error=self.error)

    @staticmethod
    def _parse(value: str) -> NotificationStatus:
        try:
            status = NotificationStatus(value)
        except ValueError:
            return NotificationStatus.DEFAULT
        return status if status in _SETTLED_NOTIFICATION else NotificationStatus.DEFAULT

    def sync(self) -> NotificationResult:
        """Pick up permission changes made outside the app."""
        if self.status is not NotificationStatus.UNSUPPORTED and not self.is_pending:
            self._transition(self._parse(self.provider.current()))
        return self.snapshot()

    async def request_permission(self) -> NotificationResult:
        """Prompt for permission unless already granted or unsupported."""
        if self.is_pending:
            return await self._join()
        if self.status in (NotificationStatus.UNSUPPORTED, NotificationStatus.GRANTED):
            return self.snapshot()

        self._transition(NotificationStatus.PENDING)
        self.error = None
        return await self._launch(self._resolve)

    async def _resolve(self) -> NotificationResult:
        try:
            outcome = self._parse(await asyncio.wait_for(self.provider.request(), self.timeout))
        except asyncio.TimeoutError:
            self.error = PermissionFailure.TIMEOUT
            self._transition(NotificationStatus.DEFAULT)
            return self.snapshot()
        except Exception as e:
            print(f"⚠️  Failed to request notification permission: {e}")
            self._transition(NotificationStatus.DEFAULT)
            return self.snapshot()

        if outcome is NotificationStatus.DENIED:
            self.error = PermissionFailure.PERMISSION_DENIED
        self._transition(outcome)
        return self.snapshot()
