from __future__ import annotations

from typing import Any

import requests
from pydantic import ValidationError

from crash_watch.config import BoundingBox
from crash_watch.log import get_logger
from crash_watch.models import Incident

logger = get_logger(__name__)

TRENDING_URL = "https://citizen.com/api/incident/trending"
USER_AGENT = "crash-watch/0.1 (traffic violence bot)"


class FeedError(RuntimeError):
    pass


def trending_params(bbox: BoundingBox, limit: int) -> dict[str, Any]:
    return {
        "lowerLatitude": bbox.lower_latitude,
        "lowerLongitude": bbox.lower_longitude,
        "upperLatitude": bbox.upper_latitude,
        "upperLongitude": bbox.upper_longitude,
        "fullResponse": "true",
        "limit": limit,
    }


def parse_incidents(rows: list[Any]) -> list[Incident]:
    incidents: list[Incident] = []
    for row in rows:
        try:
            incidents.append(Incident.model_validate(row))
        except ValidationError as exc:
            key = row.get("key") if isinstance(row, dict) else None
            logger.warning("Skipping malformed incident %s: %s", key or "<no key>", exc.errors()[:1])
    return incidents


def fetch_incidents(
    bbox: BoundingBox,
    limit: int,
    *,
    timeout_s: int = 30,
    session: requests.Session | None = None,
) -> list[Incident]:
    """GET the trending incidents inside ``bbox``.

    Any transport or HTTP failure raises :class:`FeedError`; there is no retry.
    """
    http = session or requests
    try:
        r = http.get(
            TRENDING_URL,
            params=trending_params(bbox, limit),
            headers={"User-Agent": USER_AGENT},
            timeout=timeout_s,
        )
    except requests.RequestException as exc:
        raise FeedError(f"Citizen feed request failed: {exc}") from exc

    if r.status_code >= 400:
        raise FeedError(f"Citizen feed error {r.status_code}: {r.text[:500]}")

    try:
        data = r.json()
    except ValueError as exc:
        raise FeedError("Citizen feed returned a non-JSON body") from exc

    rows = data.get("results") if isinstance(data, dict) else None
    if not isinstance(rows, list):
        raise FeedError("Citizen feed response has no 'results' list")

    incidents = parse_incidents(rows)
    logger.info("Fetched %d incidents (limit %d)", len(incidents), limit)
    return incidents
