from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Iterable

from pydantic import TypeAdapter, ValidationError

from crash_watch.log import get_logger
from crash_watch.models import Incident, SeenIncidentRecord
from crash_watch.storage import write_json_atomic
from crash_watch.threads import format_local_time

logger = get_logger(__name__)

_records = TypeAdapter(list[SeenIncidentRecord])


@dataclass
class DedupeResult:
    to_process: list[Incident]
    updated_archive: list[SeenIncidentRecord]


def to_seen_record(incident: Incident, tz: tzinfo | None = None) -> SeenIncidentRecord:
    return SeenIncidentRecord(
        key=incident.key,
        raw=incident.raw,
        ts=incident.ts,
        date=format_local_time(incident.ts, tz) if tz is not None else None,
        coordinates=incident.coordinates(),
        map_image_url=incident.share_map,
    )


def dedupe(
    candidates: Iterable[Incident],
    archive: list[SeenIncidentRecord],
    *,
    tz: tzinfo | None = None,
) -> DedupeResult:
    """Drop incidents already present in ``archive`` and extend the archive.

    Candidates with an empty ``raw`` are dropped as malformed. A key repeated
    inside ``candidates`` is processed once. ``archive`` itself is not touched.
    """
    seen = {record.key for record in archive}
    to_process: list[Incident] = []
    for incident in candidates:
        if incident.key in seen or not incident.raw:
            continue
        seen.add(incident.key)
        to_process.append(incident)

    updated = [*archive, *(to_seen_record(i, tz) for i in to_process)]
    return DedupeResult(to_process=to_process, updated_archive=updated)


def load_archive(path: str | Path) -> list[SeenIncidentRecord]:
    p = Path(path)
    if not p.exists():
        logger.info("No archive at %s yet, starting empty", p)
        return []
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
        return _records.validate_python(payload)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Archive %s is unreadable (%s); treating it as empty", p, exc)
        return []


def save_archive(path: str | Path, records: list[SeenIncidentRecord]) -> None:
    write_json_atomic(_records.dump_python(records, by_alias=True, mode="json"), path)
