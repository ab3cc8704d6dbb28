from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import requests
import tweepy

from crash_watch.archive import dedupe, load_archive, save_archive
from crash_watch.citizen import fetch_incidents
from crash_watch.classifier import filter_recent, split_by_verdict
from crash_watch.config import RunConfig
from crash_watch.districts import GEOJSON_FILENAME, assign_districts, download_district_polygons, load_district_features
from crash_watch.log import get_logger
from crash_watch.media import download_map_images, reset_assets_dir
from crash_watch.models import Incident, ThreadMessage
from crash_watch.poster import Poster
from crash_watch.storage import RunLock
from crash_watch.summary import compose_daily_summary, load_summary, record_and_maybe_rollup, save_summary
from crash_watch.threads import compose_incident_thread

logger = get_logger(__name__)

# Per-incident failures that are logged and skipped rather than aborting the run.
ITEM_ERRORS = (requests.RequestException, tweepy.TweepyException, OSError)


@dataclass
class RunReport:
    fetched: int = 0
    recent: int = 0
    pedestrian_or_cyclist: int = 0
    vehicle_only: int = 0
    new: int = 0
    posted: int = 0
    failed: int = 0
    rollups: int = 0


def _post(poster: Poster, messages: list[ThreadMessage], what: str) -> bool:
    try:
        poster.post_thread(messages)
        return True
    except ITEM_ERRORS as exc:
        logger.error("Error posting %s: %s", what, exc)
        return False


def _map_districts(config: RunConfig, incidents: list[Incident]) -> list[Incident]:
    reps = config.location.representatives
    geojson_path = download_district_polygons(
        reps.geojson_url, config.assets_dir / GEOJSON_FILENAME, timeout_s=config.timeout_s
    )
    features = load_district_features(geojson_path, reps.district_property)
    return assign_districts(incidents, features)


def run(
    config: RunConfig,
    *,
    poster: Poster,
    fetch: Callable[..., list[Incident]] = fetch_incidents,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunReport:
    """Run one pass: fetch, classify, dedupe, post threads, post summary.

    Setup and feed failures propagate. Image download and posting failures
    are logged per incident and the loop moves on.
    """
    location = config.location
    tz = location.tz()
    now = now or datetime.now(timezone.utc)
    report = RunReport()

    with RunLock(config.lock_path):
        reset_assets_dir(config.assets_dir)

        incidents = fetch(location.bbox, config.feed_limit, timeout_s=config.timeout_s)
        report.fetched = len(incidents)

        recent = filter_recent(incidents, int(now.timestamp() * 1000), config.days)
        report.recent = len(recent)

        batch = split_by_verdict(recent)
        report.pedestrian_or_cyclist = len(batch.pedestrian_or_cyclist)
        report.vehicle_only = len(batch.vehicle_only)

        archive = load_archive(config.archive_path)
        result = dedupe(batch.relevant(), archive, tz=tz)
        to_post = result.to_process
        report.new = len(to_post)
        logger.info(
            "%d recent incidents, %d pedestrian/cyclist, %d vehicle only, %d new",
            report.recent, report.pedestrian_or_cyclist, report.vehicle_only, report.new,
        )
        if config.needs_districts and to_post:
            to_post = _map_districts(config, to_post)

        if config.dry_run:
            logger.info("Dry run: archive %s left unchanged", config.archive_path)
        else:
            save_archive(config.archive_path, result.updated_archive)

        reps = location.representatives if config.include_representatives else None
        google_key = location.resolved_google_key() if config.include_satellite else None

        for incident in to_post:
            logger.info("%s", incident.raw)
            sleep(config.delay_s)
            try:
                media = download_map_images(incident, config.assets_dir, google_key=google_key, timeout_s=config.timeout_s)
            except ITEM_ERRORS as exc:
                logger.error("Error downloading map images for %s: %s", incident.key, exc)
                media = []
            messages = compose_incident_thread(incident, tz, media=media, representatives=reps)
            if _post(poster, messages, f"incident {incident.key}"):
                report.posted += 1
            else:
                report.failed += 1

        if config.summary_mode == "off":
            return report

        # posted after the incident threads so it ends up on top of the timeline
        sleep(config.delay_s if config.dry_run else config.summary_delay_s)
        pedestrian_keys = {i.key for i in batch.pedestrian_or_cyclist}
        new_pedestrian = sum(1 for i in to_post if i.key in pedestrian_keys)
        district_term = location.representatives.district_term if config.needs_districts else None
        daily = compose_daily_summary(
            to_post,
            new_pedestrian,
            days=config.days,
            area_name=location.display_name,
            district_term=district_term,
            at_large=reps.at_large if reps else None,
        )
        _post(poster, [ThreadMessage(text=t) for t in daily], "daily summary")

        rollup = record_and_maybe_rollup(
            load_summary(config.summary_path),
            to_post,
            now.astimezone(tz).date(),
            track_districts=config.summary_mode == "districts",
            district_term=district_term or "District",
        )
        for message in rollup.rollup_messages:
            sleep(config.delay_s)
            if _post(poster, [ThreadMessage(text=message)], "rollup"):
                report.rollups += 1

        if config.dry_run:
            logger.info("Dry run: summary counters %s left unchanged", config.summary_path)
        else:
            save_summary(config.summary_path, rollup.updated_state)

    return report
