from __future__ import annotations

import shutil
from pathlib import Path
from urllib.parse import urlencode

import requests

from crash_watch.models import Incident, MediaAttachment

STATIC_MAPS_URL = "https://maps.googleapis.com/maps/api/staticmap"


def reset_assets_dir(path: str | Path) -> Path:
    p = Path(path)
    shutil.rmtree(p, ignore_errors=True)
    p.mkdir(parents=True, exist_ok=True)
    return p


def satellite_map_url(latitude: float, longitude: float, key: str) -> str:
    query = urlencode({
        "center": f"{latitude},{longitude}",
        "size": "500x500",
        "zoom": 20,
        "maptype": "hybrid",
        "scale": 2,
        "key": key,
    })
    return f"{STATIC_MAPS_URL}?{query}"


def download_image(url: str, dest: str | Path, *, timeout_s: int = 30) -> Path:
    out = Path(dest)
    with requests.get(url, stream=True, timeout=timeout_s) as r:
        r.raise_for_status()
        with open(out, "wb") as f:
            for chunk in r.iter_content(chunk_size=65536):
                f.write(chunk)
    return out


def download_map_images(
    incident: Incident,
    assets_dir: str | Path,
    *,
    google_key: str | None = None,
    timeout_s: int = 30,
) -> list[MediaAttachment]:
    """Fetch the Citizen share map and, with a Google key, a satellite view.

    Raises whatever ``requests`` raises; the caller decides whether to post
    the incident without images.
    """
    assets = Path(assets_dir)
    where = f"Coordinates: {incident.latitude}, {incident.longitude}"
    media: list[MediaAttachment] = []

    if incident.share_map:
        path = download_image(incident.share_map, assets / f"{incident.key}.png", timeout_s=timeout_s)
        media.append(MediaAttachment(path=path, alt_text=f"A photo of a map at {incident.address}. {where}"))

    if google_key and incident.latitude is not None and incident.longitude is not None:
        url = satellite_map_url(incident.latitude, incident.longitude, google_key)
        path = download_image(url, assets / f"{incident.key}_satellite.png", timeout_s=timeout_s)
        media.append(MediaAttachment(path=path, alt_text=f"A satellite photo of a map at {incident.address}. {where}"))

    return media
