"""Data service adapters."""

from promo_radar.adapters.data.http_data_service import HttpDataService

__all__ = ["HttpDataService"]
