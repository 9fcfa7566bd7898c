"""Tests for core entities."""

from datetime import datetime, timedelta, timezone

import pytest

from promo_radar.core import Coordinate, MatchedItem, TimedItem


def make_item(**overrides) -> TimedItem:
    now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
    fields = {
        "id": "u1",
        "source_id": "shop-1",
        "source_name": "Corner Store",
        "category": "Grocery",
        "location": Coordinate(latitude=12.97, longitude=77.59),
        "created_at": now - timedelta(hours=1),
        "expires_at": now + timedelta(hours=1),
    }
    fields.update(overrides)
    return TimedItem(**fields)


def test_coordinate_creation() -> None:
    """Test creating a valid coordinate."""
    point = Coordinate(latitude=-90.0, longitude=180.0)

    assert point.latitude == -90.0
    assert point.longitude == 180.0


def test_coordinate_validation() -> None:
    """Test coordinate range validation."""
    with pytest.raises(ValueError, match="Latitude out of range"):
        Coordinate(latitude=90.5, longitude=0.0)

    with pytest.raises(ValueError, match="Longitude out of range"):
        Coordinate(latitude=0.0, longitude=-180.1)

    with pytest.raises(ValueError, match="Latitude out of range"):
        Coordinate(latitude=float("nan"), longitude=0.0)


def test_coordinate_is_immutable() -> None:
    """Test coordinates cannot be changed after creation."""
    point = Coordinate(latitude=1.0, longitude=2.0)

    with pytest.raises(AttributeError):
        point.latitude = 3.0  # type: ignore[misc]


def test_item_validation() -> None:
    """Test item validation."""
    with pytest.raises(ValueError, match="Item id cannot be empty"):
        make_item(id="")

    with pytest.raises(ValueError, match="Source id cannot be empty"):
        make_item(source_id="")


def test_item_eligibility() -> None:
    """Test active/expiry rules."""
    now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    assert make_item().is_eligible(now)
    assert not make_item(is_active=False).is_eligible(now)
    assert not make_item(expires_at=now).is_eligible(now)
    assert not make_item(expires_at=now - timedelta(seconds=1)).is_eligible(now)


def test_matched_item_passthrough() -> None:
    """Test matched item exposes the wrapped item's fields."""
    item = make_item()
    match = MatchedItem(item=item, distance_km=1.5)

    assert match.id == "u1"
    assert match.source_id == "shop-1"
    assert match.source_name == "Corner Store"
    assert match.category == "Grocery"
    assert match.created_at == item.created_at
