"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class MatchingConfig:
    """Radius settings."""
    feed_radius_km: float = 3.0
    favorite_radius_km: float = 10.0


@dataclass
class NotificationsConfig:
    """Notification gate and polling settings."""
    max_per_source_per_day: int = 3
    max_tracked_ids: int = 1000
    poll_interval: float = 30.0
    permission_timeout: float = 10.0
    click_url_template: str = "/updates/{item_id}"


@dataclass
class DataServiceConfig:
    """Remote data service settings."""
    base_url: str = "http://localhost:8000/api"
    timeout: float = 30.0
    max_retries: int = 3
    initial_retry_delay: float = 1.0


@dataclass
class PathsConfig:
    """Path settings."""
    state_file: Path = Path("state/promo_radar.yaml")


@dataclass
class Settings:
    """Application settings."""

    # Secrets (from environment only)
    api_token: Optional[str] = None
    push_webhook_url: Optional[str] = None

    # Config sections
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    data_service: DataServiceConfig = field(default_factory=DataServiceConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    @property
    def feed_radius_km(self) -> float:
        return self.matching.feed_radius_km

    @property
    def favorite_radius_km(self) -> float:
        return self.matching.favorite_radius_km

    @property
    def max_per_source_per_day(self) -> int:
        return self.notifications.max_per_source_per_day

    @property
    def poll_interval(self) -> float:
        return self.notifications.poll_interval

    @property
    def permission_timeout(self) -> float:
        return self.notifications.permission_timeout

    @property
    def state_file(self) -> Path:
        return self.paths.state_file


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    config = load_config(config_path)

    settings = Settings(
        api_token=os.getenv("PROMO_RADAR_API_TOKEN"),
        push_webhook_url=os.getenv("PROMO_RADAR_PUSH_WEBHOOK_URL"),
    )

    # Apply YAML config
    if "matching" in config:
        for key, value in config["matching"].items():
            setattr(settings.matching, key, float(value))

    if "notifications" in config:
        for key, value in config["notifications"].items():
            setattr(settings.notifications, key, value)

    if "data_service" in config:
        for key, value in config["data_service"].items():
            setattr(settings.data_service, key, value)

    if "paths" in config:
        for key, value in config["paths"].items():
            setattr(settings.paths, key, Path(value))

    if settings.favorite_radius_km < settings.feed_radius_km:
        raise ValueError("matching.favorite_radius_km must be >= matching.feed_radius_km")

    return settings
