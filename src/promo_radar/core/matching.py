"""Radius-based matching of shop updates around a reference point."""

from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from promo_radar.core import geo
from promo_radar.core.entities import Coordinate, MatchedItem, ShopCategory, TimedItem

FEED_RADIUS_KM = 3.0
FAVORITE_RADIUS_KM = 10.0


def sort_matches(matches: list[MatchedItem]) -> list[MatchedItem]:
    """Order by distance ascending, newest first among equal distances."""
    # Two stable passes: secondary key first
    matches.sort(key=lambda m: m.created_at, reverse=True)
    matches.sort(key=lambda m: m.distance_km)
    return matches


def _eligible(items: Iterable[TimedItem], now: Optional[datetime]) -> list[TimedItem]:
    current = now or datetime.now(timezone.utc)
    return [item for item in items if item.is_eligible(current)]


class FeedMatcher:
    """Build the primary feed: eligible items within the feed radius."""

    def __init__(self, radius_km: float = FEED_RADIUS_KM) -> None:
        self.radius_km = radius_km

    def match(
        self,
        items: Iterable[TimedItem],
        reference: Coordinate,
        radius_km: Optional[float] = None,
        category: Optional[Union[ShopCategory, str]] = None,
        now: Optional[datetime] = None,
    ) -> list[MatchedItem]:
        """Filter items to the feed disc around ``reference``.

        Args:
            items: Raw items from the data service (left untouched)
            reference: Consumer position
            radius_km: Override for the configured radius
            category: Keep only this category, applied after the distance cut
            now: Evaluation instant, defaults to the current time

        Returns:
            New list ordered by distance, ties broken newest first
        """
        radius = self.radius_km if radius_km is None else radius_km
        eligible = _eligible(items, now)

        matches = []
        for item in eligible:
            distance = geo.distance_km(reference, item.location)
            if distance <= radius:
                matches.append(MatchedItem(item=item, distance_km=distance))

        if category is not None:
            wanted = category.value if isinstance(category, ShopCategory) else category
            matches = [m for m in matches if m.category == wanted]

        return sort_matches(matches)


class FavoriteExpansionMatcher:
    """Surface favorited shops' items that lie beyond the feed radius."""

    def __init__(
        self,
        inner_radius_km: float = FEED_RADIUS_KM,
        outer_radius_km: float = FAVORITE_RADIUS_KM,
    ) -> None:
        if outer_radius_km < inner_radius_km:
            raise ValueError("outer_radius_km must be >= inner_radius_km")
        self.inner_radius_km = inner_radius_km
        self.outer_radius_km = outer_radius_km

    def expand(
        self,
        items: Iterable[TimedItem],
        reference: Coordinate,
        favorite_source_ids: set[str],
        inner_radius_km: Optional[float] = None,
        outer_radius_km: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> list[MatchedItem]:
        """Return favorited items in the ring ``inner < distance <= outer``.

        The ring never overlaps the feed disc, so the two results can be
        concatenated without deduplication.
        """
        inner = self.inner_radius_km if inner_radius_km is None else inner_radius_km
        outer = self.outer_radius_km if outer_radius_km is None else outer_radius_km
        if outer < inner:
            raise ValueError("outer_radius_km must be >= inner_radius_km")

        if not favorite_source_ids:
            return []

        eligible = _eligible(items, now)

        matches = []
        for item in eligible:
            if item.source_id not in favorite_source_ids:
                continue
            distance = geo.distance_km(reference, item.location)
            if inner < distance <= outer:
                matches.append(MatchedItem(item=item, distance_km=distance))

        return sort_matches(matches)
