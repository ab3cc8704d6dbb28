from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Iterable, Sequence

from crash_watch.config import RepresentativesConfig
from crash_watch.models import Incident, MediaAttachment, ThreadMessage


def format_local_time(ts_ms: int, tz: tzinfo) -> str:
    """Render epoch milliseconds like ``1/5/2023, 3:04:05 PM`` in ``tz``."""
    local = datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).astimezone(tz)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{local.month}/{local.day}/{local.year}, {hour}:{local.minute:02d}:{local.second:02d} {suffix}"


def format_list(items: Sequence[str]) -> str:
    items = [str(i) for i in items]
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    if count == 1:
        return singular
    return plural or f"{singular}s"


def compose_incident_thread(
    incident: Incident,
    tz: tzinfo,
    *,
    media: Iterable[MediaAttachment] = (),
    representatives: RepresentativesConfig | None = None,
) -> list[ThreadMessage]:
    messages = [
        ThreadMessage(
            text=f"{incident.raw}\n\n{format_local_time(incident.ts, tz)}",
            media=list(media),
        )
    ]

    for update in incident.narrative_updates():
        if not update.text:
            continue
        stamp = format_local_time(update.ts, tz) if update.ts is not None else ""
        messages.append(ThreadMessage(text=f"{update.text}\n\n{stamp}".rstrip()))

    if representatives and incident.district:
        member = representatives.members.get(incident.district)
        if member:
            messages.append(ThreadMessage(
                text=(
                    f"This incident occurred in {representatives.district_term} {incident.district}. "
                    f"\n\nRepresentative: {member}"
                )
            ))

    return messages
