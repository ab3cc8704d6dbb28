from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field

SummaryMode = Literal["off", "on", "districts"]
SUMMARY_MODES = ("off", "on", "districts")

TWITTER_ENV_VARS = {
    "consumer_key": "TWITTER_CONSUMER_KEY",
    "consumer_secret": "TWITTER_CONSUMER_SECRET",
    "access_token": "TWITTER_ACCESS_TOKEN",
    "access_token_secret": "TWITTER_ACCESS_TOKEN_SECRET",
}


class ConfigError(ValueError):
    pass


class BoundingBox(BaseModel):
    lower_latitude: float
    lower_longitude: float
    upper_latitude: float
    upper_longitude: float


class TwitterCredentials(BaseModel):
    consumer_key: str | None = None
    consumer_secret: str | None = None
    access_token: str | None = None
    access_token_secret: str | None = None

    def resolved(self) -> "TwitterCredentials":
        # Values in the locations file win; env vars fill the gaps.
        return TwitterCredentials(**{
            name: getattr(self, name) or os.getenv(env)
            for name, env in TWITTER_ENV_VARS.items()
        })

    def missing(self) -> list[str]:
        return [name for name in TWITTER_ENV_VARS if not getattr(self, name)]


class RepresentativesConfig(BaseModel):
    geojson_url: str | None = None
    district_term: str | None = None
    district_property: str = "NAME"
    members: dict[str, str] = Field(default_factory=dict)
    at_large: list[str] = Field(default_factory=list)


class LocationConfig(BaseModel):
    display_name: str
    time_zone: str = "America/New_York"
    bbox: BoundingBox
    twitter: TwitterCredentials = Field(default_factory=TwitterCredentials)
    google_key: str | None = None
    representatives: RepresentativesConfig | None = None

    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    def resolved_google_key(self) -> str | None:
        return self.google_key or os.getenv("GOOGLE_MAPS_KEY")


def load_locations(path: str | Path) -> dict[str, LocationConfig]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Locations file not found: {path}")
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    locations = data.get("locations", data)
    return {name: LocationConfig.model_validate(body) for name, body in locations.items()}


def archive_file(archive_dir: str | Path, location_id: str) -> Path:
    return Path(archive_dir) / f"tweetIncidentSummaries-{location_id}.json"


def summary_file(archive_dir: str | Path, location_id: str) -> Path:
    return Path(archive_dir) / f"summary-{location_id}.json"


@dataclass(frozen=True)
class RunConfig:
    """Everything one run needs; built once by the CLI and passed down."""

    location_id: str
    location: LocationConfig
    include_satellite: bool = False
    include_representatives: bool = False
    dry_run: bool = False
    days: int = 1
    summary_mode: SummaryMode = "off"

    archive_dir: Path = Path("archive")
    assets_root: Path = Path(".")

    # Fixed pauses between posts; there is no adaptive backoff.
    post_delay_s: float = 2.0
    dry_run_delay_s: float = 0.1
    summary_delay_s: float = 5.0

    per_day_limit: int = 200
    timeout_s: int = 30

    @property
    def feed_limit(self) -> int:
        return self.per_day_limit * self.days

    @property
    def delay_s(self) -> float:
        return self.dry_run_delay_s if self.dry_run else self.post_delay_s

    @property
    def needs_districts(self) -> bool:
        return self.include_representatives or self.summary_mode == "districts"

    @property
    def assets_dir(self) -> Path:
        return self.assets_root / f"assets-{self.location_id}"

    @property
    def archive_path(self) -> Path:
        return archive_file(self.archive_dir, self.location_id)

    @property
    def summary_path(self) -> Path:
        return summary_file(self.archive_dir, self.location_id)

    @property
    def lock_path(self) -> Path:
        return self.archive_dir / f".crash-watch-{self.location_id}.lock"


def build_run_config(
    location_id: str | None,
    locations: dict[str, LocationConfig],
    **options,
) -> RunConfig:
    if not location_id:
        raise ConfigError("location must be passed in")
    if location_id not in locations:
        raise ConfigError(f"locations file must have location information for '{location_id}'")
    config = RunConfig(location_id=location_id, location=locations[location_id], **options)
    validate_run_config(config)
    return config


def validate_run_config(config: RunConfig) -> None:
    location = config.location

    if config.days < 1:
        raise ConfigError("days must be at least 1")

    if config.summary_mode not in SUMMARY_MODES:
        raise ConfigError(f"summary mode must be one of {', '.join(SUMMARY_MODES)}")

    try:
        location.tz()
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"unknown time zone '{location.time_zone}'") from exc

    if config.include_satellite and not location.resolved_google_key():
        raise ConfigError(
            "locations file must contain google_key for location if calling with tweet-satellite flag"
        )

    if config.needs_districts:
        reps = location.representatives
        if reps is None:
            raise ConfigError(
                "must have representative info for location if calling with tweet-reps or districts summary"
            )
        if not reps.geojson_url:
            raise ConfigError(
                "must have geojson_url set so incidents can be mapped to representative districts"
            )
        if not reps.district_term:
            raise ConfigError("must have district_term set if mapping incidents to districts")

    if not config.dry_run:
        missing = location.twitter.resolved().missing()
        if missing:
            raise ConfigError(f"missing Twitter credentials for '{config.location_id}': {', '.join(missing)}")
