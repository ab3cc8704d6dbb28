import json
from dataclasses import replace

import pytest
import requests
import tweepy

from conftest import DISTRICT_GEOJSON, NOW, NOW_MS, make_incident
from crash_watch import runner
from crash_watch.archive import load_archive
from crash_watch.citizen import FeedError
from crash_watch.classifier import DAY_MS
from crash_watch.poster import DryRunPoster
from crash_watch.storage import RunLock, RunLockedError
from crash_watch.summary import load_summary


class RecordingPoster:
    def __init__(self, fail_on=()):
        self.threads = []
        self.fail_on = set(fail_on)

    def post_thread(self, messages):
        if any(text in messages[0].text for text in self.fail_on):
            raise tweepy.TweepyException("rate limited")
        self.threads.append([m.text for m in messages])
        return []


def feed():
    return [
        make_incident(key="ped", raw="Pedestrian struck on Broad St", title="Pedestrian struck", latitude=37.5, longitude=-77.5),
        make_incident(key="car", raw="Vehicle collision on I-95", title="Crash", latitude=37.5, longitude=-76.5),
        make_incident(key="dog", raw="A dog was spotted eating a burger", title="Dog eating"),
        make_incident(key="old", raw="Pedestrian struck last week", ts=NOW_MS - 3 * DAY_MS),
    ]


@pytest.fixture
def sleeps():
    return []


@pytest.fixture(autouse=True)
def no_downloads(monkeypatch):
    monkeypatch.setattr(runner, "download_map_images", lambda incident, assets_dir, **kw: [])

    def fake_polygons(url, dest, **kw):
        dest.write_text(json.dumps(DISTRICT_GEOJSON), encoding="utf-8")
        return dest

    monkeypatch.setattr(runner, "download_district_polygons", fake_polygons)


def run(config, poster, sleeps, incidents=None):
    return runner.run(
        config,
        poster=poster,
        fetch=lambda bbox, limit, **kw: incidents if incidents is not None else feed(),
        now=NOW,
        sleep=sleeps.append,
    )


def test_posts_new_relevant_incidents_once(run_config, sleeps):
    poster = RecordingPoster()
    report = run(run_config, poster, sleeps)

    assert report.fetched == 4
    assert report.recent == 3
    assert (report.pedestrian_or_cyclist, report.vehicle_only) == (1, 1)
    assert report.posted == 2
    assert [t[0].split("\n")[0] for t in poster.threads] == [
        "Pedestrian struck on Broad St",
        "Vehicle collision on I-95",
    ]
    assert [r.key for r in load_archive(run_config.archive_path)] == ["ped", "car"]
    assert sleeps == [run_config.post_delay_s] * 2
    assert not run_config.lock_path.exists()

    again = RecordingPoster()
    report = run(run_config, again, sleeps)
    assert report.new == 0
    assert again.threads == []


def test_assets_dir_is_reset(run_config, sleeps):
    run_config.assets_dir.mkdir(parents=True)
    (run_config.assets_dir / "stale.png").write_bytes(b"x")
    run(run_config, RecordingPoster(), sleeps, incidents=[])
    assert run_config.assets_dir.is_dir()
    assert list(run_config.assets_dir.iterdir()) == []


def test_post_failure_does_not_stop_the_batch(run_config, sleeps):
    poster = RecordingPoster(fail_on=["Pedestrian struck"])
    report = run(run_config, poster, sleeps)
    assert report.failed == 1
    assert report.posted == 1
    assert poster.threads[0][0].startswith("Vehicle collision")


def test_image_failure_still_posts(run_config, sleeps, monkeypatch):
    def broken(incident, assets_dir, **kw):
        raise requests.ConnectionError("map server down")

    monkeypatch.setattr(runner, "download_map_images", broken)
    poster = RecordingPoster()
    report = run(run_config, poster, sleeps)
    assert report.posted == 2


def test_feed_failure_aborts_and_releases_lock(run_config, sleeps):
    def failing_fetch(bbox, limit, **kw):
        raise FeedError("Citizen feed error 500")

    with pytest.raises(FeedError):
        runner.run(run_config, poster=RecordingPoster(), fetch=failing_fetch, now=NOW, sleep=sleeps.append)
    assert not run_config.lock_path.exists()
    assert not run_config.archive_path.exists()


def test_district_download_failure_leaves_archive_untouched(run_config, sleeps, monkeypatch):
    def failing_polygons(url, dest, **kw):
        raise requests.ConnectionError("geojson host unreachable")

    monkeypatch.setattr(runner, "download_district_polygons", failing_polygons)
    config = replace(run_config, include_representatives=True)
    poster = RecordingPoster()
    with pytest.raises(requests.ConnectionError):
        run(config, poster, sleeps)
    assert load_archive(config.archive_path) == []
    assert poster.threads == []
    assert not config.lock_path.exists()


def test_overlapping_run_is_refused(run_config, sleeps):
    with RunLock(run_config.lock_path):
        with pytest.raises(RunLockedError):
            run(run_config, RecordingPoster(), sleeps)


def test_summary_with_districts(run_config, sleeps):
    config = replace(run_config, summary_mode="districts", include_representatives=True)
    poster = RecordingPoster()
    report = run(config, poster, sleeps)

    incident_threads, daily, weekly = poster.threads[:2], poster.threads[2], poster.threads[3]
    assert incident_threads[0][-1] == "This incident occurred in District 1. \n\nRepresentative: @rep_one"
    assert daily[0] == (
        "There were 2 incidents of traffic violence found over the last 24 hours. "
        "Of these, 1 involved pedestrians or cyclists.\n\n"
        "The crashes occurred in Districts 1 and 2."
    )
    assert daily[-1] == "At large city council representatives and president: @big_a and @big_b"
    assert weekly == [
        "There were 2 incidents of traffic violence reported to 911 this week.\n\n"
        "Districts 1 and 2 tied for the most incidents, with 1 incident each."
    ]
    assert report.rollups == 1

    state = load_summary(config.summary_path)
    assert state.week.total == 0
    assert state.month.total == 2
    assert state.month.districts == {"1": 1, "2": 1}


def test_summary_on_without_districts(run_config, sleeps):
    config = replace(run_config, summary_mode="on")
    poster = RecordingPoster()
    run(config, poster, sleeps, incidents=[])
    assert poster.threads[0] == ["There were no incidents of traffic violence reported to 911 today in the RVA area."]
    assert poster.threads[1] == ["There were no incidents of traffic violence reported to 911 this week."]
    assert sleeps == [config.summary_delay_s, config.post_delay_s]


def test_dry_run_persists_nothing(run_config, sleeps):
    config = replace(run_config, dry_run=True, summary_mode="on")
    poster = DryRunPoster()
    report = run(config, poster, sleeps)

    assert report.posted == 2
    assert len(poster.threads) == 4
    assert not config.archive_path.exists()
    assert not config.summary_path.exists()
    assert set(sleeps) == {config.dry_run_delay_s}
