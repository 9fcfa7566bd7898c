"""Core domain entities."""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ShopCategory(str, Enum):
    """Category a shop registers under."""

    GROCERY = "Grocery"
    CLOTHING = "Clothing"
    ELECTRONICS = "Electronics"
    MEDICAL = "Medical"
    FOOD = "Food"
    OTHER = "Other"


class UserRole(str, Enum):
    """Role chosen by a signed-in user."""

    CUSTOMER = "customer"
    SHOP = "shop"


@dataclass(frozen=True)
class Coordinate:
    """Latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if math.isnan(self.latitude) or not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if math.isnan(self.longitude) or not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class TimedItem:
    """A time-bounded update published by a shop."""

    id: str
    source_id: str
    source_name: str
    category: str
    location: Coordinate
    created_at: datetime
    expires_at: datetime
    is_active: bool = True
    title: str = ""
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Item id cannot be empty")
        if not self.source_id:
            raise ValueError("Source id cannot be empty")

    def is_eligible(self, now: datetime) -> bool:
        """Active and not yet expired at ``now``."""
        return self.is_active and self.expires_at > now


@dataclass(frozen=True)
class MatchedItem:
    """Item that passed a matching pass, with its distance from the reference."""

    item: TimedItem
    distance_km: float

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def source_id(self) -> str:
        return self.item.source_id

    @property
    def source_name(self) -> str:
        return self.item.source_name

    @property
    def category(self) -> str:
        return self.item.category

    @property
    def created_at(self) -> datetime:
        return self.item.created_at


@dataclass(frozen=True)
class QueuedNotification:
    """Notification the data service queued for this consumer."""

    id: str
    source_id: str
    item_id: str
    title: str = ""
    body: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class NotificationDecision:
    """Record that an item was sent to the display layer."""

    item_id: str
    source_id: str
    decided_at: datetime
