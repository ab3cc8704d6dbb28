from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import requests
from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry

from crash_watch.log import get_logger
from crash_watch.models import Incident

logger = get_logger(__name__)

DistrictFeatures = list[tuple[str, BaseGeometry]]

GEOJSON_FILENAME = "city_council_districts.geojson"


def download_district_polygons(url: str, dest: str | Path, *, timeout_s: int = 30) -> Path:
    out = Path(dest)
    out.parent.mkdir(parents=True, exist_ok=True)
    with requests.get(url, stream=True, timeout=timeout_s) as r:
        r.raise_for_status()
        with open(out, "wb") as f:
            for chunk in r.iter_content(chunk_size=65536):
                f.write(chunk)
    return out


def features_from_geojson(geo: dict[str, Any], name_property: str = "NAME") -> DistrictFeatures:
    features: DistrictFeatures = []
    for feature in geo.get("features", []):
        name = (feature.get("properties") or {}).get(name_property)
        geometry = feature.get("geometry")
        if name is None or not geometry:
            continue
        features.append((str(name), shape(geometry)))
    return features


def load_district_features(path: str | Path, name_property: str = "NAME") -> DistrictFeatures:
    geo = json.loads(Path(path).read_text(encoding="utf-8"))
    return features_from_geojson(geo, name_property)


def map_to_district(latitude: float | None, longitude: float | None, features: DistrictFeatures) -> str | None:
    if latitude is None or longitude is None:
        return None
    pt = Point(longitude, latitude)  # shapely expects (x=lon, y=lat)
    for name, polygon in features:
        # covers() so points on a shared border still land in a district
        if polygon.covers(pt):
            return name
    return None


def assign_districts(incidents: Iterable[Incident], features: DistrictFeatures) -> list[Incident]:
    mapped: list[Incident] = []
    for incident in incidents:
        coords = incident.coordinates() or []
        district = map_to_district(*coords[:2], features) if len(coords) >= 2 else None
        if district is None:
            logger.info("Incident %s is outside every district", incident.key)
        mapped.append(incident.model_copy(update={"district": district}))
    return mapped
