"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from promo_radar.core.entities import Coordinate, QueuedNotification, TimedItem


class UpdateSource(ABC):
    """Interface for the remote data service holding shops and updates."""

    @abstractmethod
    async def fetch_eligible_items(self, reference: Coordinate) -> list[TimedItem]:
        """Fetch items the server considers active near ``reference``."""
        pass

    @abstractmethod
    async def fetch_favorite_source_ids(self) -> set[str]:
        """Fetch ids of shops the consumer has favorited."""
        pass


class NotificationQueue(ABC):
    """Interface for server-queued notifications."""

    @abstractmethod
    async def fetch_queued_notifications(self) -> list[QueuedNotification]:
        """Fetch notifications waiting for this consumer."""
        pass

    @abstractmethod
    async def acknowledge(self, ids: list[str]) -> None:
        """Tell the server the given queued notifications were handled."""
        pass


class NotificationService(ABC):
    """Interface for displaying a notification on the platform."""

    @abstractmethod
    async def display(
        self, title: str, body: str, tag: str, url: Optional[str] = None
    ) -> None:
        """Show a notification. ``tag`` collapses repeats of the same item."""
        pass


class KeyValueStore(ABC):
    """Interface for persisted key/value state.

    Values are plain YAML/JSON types (str, int, float, bool, list, dict).
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value or ``default`` when missing."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        pass

    @abstractmethod
    def set_many(self, values: dict[str, Any]) -> None:
        """Store several keys in a single write."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        pass

    @abstractmethod
    def delete_many(self, keys: Iterable[str]) -> None:
        """Remove several keys in a single write."""
        pass


class LocationProvider(ABC):
    """Platform geolocation hook."""

    @abstractmethod
    def is_supported(self) -> bool:
        """Whether the platform can provide a position at all."""
        pass

    @abstractmethod
    async def get_current_position(self) -> Coordinate:
        """Resolve the current position.

        Raises:
            PositionError: permission denied or position unavailable
        """
        pass


class NotificationPermissionProvider(ABC):
    """Platform notification permission hook."""

    @abstractmethod
    def is_supported(self) -> bool:
        """Whether the platform can display notifications."""
        pass

    @abstractmethod
    def current(self) -> str:
        """Current platform permission: ``default``, ``granted`` or ``denied``."""
        pass

    @abstractmethod
    async def request(self) -> str:
        """Prompt the user and return the resulting permission."""
        pass
