"""Promo Radar: nearby shop updates and deduplicated push notifications."""

__version__ = "0.1.0"
