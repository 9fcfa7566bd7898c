"""Core domain layer."""

from promo_radar.core.entities import (
    Coordinate,
    MatchedItem,
    NotificationDecision,
    QueuedNotification,
    ShopCategory,
    TimedItem,
    UserRole,
)
from promo_radar.core.gate import GateState, NotificationGate, QueueBatch
from promo_radar.core.geo import distance_km
from promo_radar.core.interfaces import (
    KeyValueStore,
    LocationProvider,
    NotificationPermissionProvider,
    NotificationQueue,
    NotificationService,
    UpdateSource,
)
from promo_radar.core.matching import FavoriteExpansionMatcher, FeedMatcher
from promo_radar.core.permissions import (
    LocationPermission,
    LocationStatus,
    NotificationPermission,
    NotificationStatus,
    PermissionFailure,
    PermissionStateError,
    PositionError,
)
from promo_radar.core.session import SessionStateStore

__all__ = [
    "Coordinate",
    "TimedItem",
    "MatchedItem",
    "QueuedNotification",
    "NotificationDecision",
    "ShopCategory",
    "UserRole",
    "distance_km",
    "FeedMatcher",
    "FavoriteExpansionMatcher",
    "GateState",
    "NotificationGate",
    "QueueBatch",
    "LocationPermission",
    "LocationStatus",
    "NotificationPermission",
    "NotificationStatus",
    "PermissionFailure",
    "PermissionStateError",
    "PositionError",
    "SessionStateStore",
    "KeyValueStore",
    "LocationProvider",
    "NotificationPermissionProvider",
    "NotificationQueue",
    "NotificationService",
    "UpdateSource",
]
