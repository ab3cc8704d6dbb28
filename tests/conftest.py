"""Shared fixtures. Nothing here touches the network."""

from datetime import datetime, timezone

import pytest

from crash_watch.config import BoundingBox, LocationConfig, RepresentativesConfig, RunConfig
from crash_watch.models import Incident

# Saturday 2023-12-30 17:00 UTC, noon in New York.
NOW = datetime(2023, 12, 30, 17, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)


def make_incident(**kwargs) -> Incident:
    defaults = dict(
        key="abc123",
        raw="Pedestrian struck by vehicle",
        title="Pedestrian struck",
        ts=NOW_MS - 60_000,
        address="123 Main St",
        latitude=37.55,
        longitude=-77.45,
        shareMap="https://maps.example.org/abc123.png",
    )
    defaults.update(kwargs)
    return Incident.model_validate(defaults)


# Two unit squares side by side: district "1" covers lon [-78, -77], "2" covers lon [-77, -76].
DISTRICT_GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "properties": {"NAME": "1"},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-78, 37], [-77, 37], [-77, 38], [-78, 38], [-78, 37]]],
            },
        },
        {
            "type": "Feature",
            "properties": {"NAME": "2"},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-77, 37], [-76, 37], [-76, 38], [-77, 38], [-77, 37]]],
            },
        },
    ],
}


@pytest.fixture
def location() -> LocationConfig:
    return LocationConfig(
        display_name="RVA",
        time_zone="America/New_York",
        bbox=BoundingBox(
            lower_latitude=37.425128,
            lower_longitude=-77.669312,
            upper_latitude=37.716030,
            upper_longitude=-77.284938,
        ),
        twitter={
            "consumer_key": "ck",
            "consumer_secret": "cs",
            "access_token": "at",
            "access_token_secret": "ats",
        },
        google_key="gk",
        representatives=RepresentativesConfig(
            geojson_url="https://example.org/districts.geojson",
            district_term="District",
            members={"1": "@rep_one", "2": "@rep_two"},
            at_large=["@big_a", "@big_b"],
        ),
    )


@pytest.fixture
def run_config(location, tmp_path) -> RunConfig:
    return RunConfig(
        location_id="richmond",
        location=location,
        archive_dir=tmp_path / "archive",
        assets_root=tmp_path,
    )
