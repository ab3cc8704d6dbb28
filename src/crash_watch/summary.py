from __future__ import annotations

import calendar
import json
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Iterable, Sequence

from pydantic import ValidationError

from crash_watch.log import get_logger
from crash_watch.models import AggregateCounters, Incident, SummaryState
from crash_watch.storage import write_json_atomic
from crash_watch.threads import format_list, pluralize

logger = get_logger(__name__)

WEEKLY_ROLLUP_WEEKDAY = calendar.SATURDAY

DISCLAIMER = (
    "Disclaimer: This bot tweets incidents called into 911 and is not "
    "representative of all traffic violence that occurred."
)


@dataclass
class RollupResult:
    updated_state: SummaryState
    rollup_messages: list[str] = field(default_factory=list)


def is_weekly_boundary(today: date) -> bool:
    return today.weekday() == WEEKLY_ROLLUP_WEEKDAY


def is_last_day_of_month(today: date) -> bool:
    return (today + timedelta(days=1)).day == 1


def district_sort_key(name: str) -> tuple:
    # "2" before "10"; named districts after numbered ones
    return (0, int(name), "") if name.isdigit() else (1, 0, name)


def district_leaders(districts: dict[str, int]) -> tuple[list[str], int]:
    if not districts:
        return [], 0
    top = max(districts.values())
    leaders = sorted((name for name, count in districts.items() if count == top), key=district_sort_key)
    return leaders, top


def tally_sentence(total: int, period: str) -> str:
    if total == 0:
        return f"There were no incidents of traffic violence reported to 911 {period}."
    verb = "was" if total == 1 else "were"
    return f"There {verb} {total} {pluralize(total, 'incident')} of traffic violence reported to 911 {period}."


def leader_sentence(districts: dict[str, int], district_term: str) -> str | None:
    leaders, top = district_leaders(districts)
    if not leaders:
        return None
    noun = pluralize(top, "incident")
    if len(leaders) == 1:
        return f"The most incidents occurred in {district_term} {leaders[0]}, with {top} {noun}."
    return f"{district_term}s {format_list(leaders)} tied for the most incidents, with {top} {noun} each."


def rollup_message(counters: AggregateCounters, period: str, *, track_districts: bool, district_term: str) -> str:
    parts = [tally_sentence(counters.total, period)]
    if track_districts:
        sentence = leader_sentence(counters.districts, district_term)
        if sentence:
            parts.append(sentence)
    return "\n\n".join(parts)


def _count(counters: AggregateCounters, incidents: Sequence[Incident], track_districts: bool) -> None:
    counters.total += len(incidents)
    if not track_districts:
        return
    for incident in incidents:
        if incident.district:
            counters.districts[incident.district] = counters.districts.get(incident.district, 0) + 1


def record_and_maybe_rollup(
    state: SummaryState,
    new_incidents: Sequence[Incident],
    today: date,
    *,
    track_districts: bool = False,
    district_term: str = "District",
) -> RollupResult:
    """Add this run's incidents to the counters and emit any due rollups.

    The weekly rollup fires on Saturdays and the monthly one on the last day
    of the month; both can fire on the same run. Each rollup reports the
    counters including today's incidents, then resets them. ``state`` is left
    untouched, persisting the returned state is up to the caller.
    """
    updated = state.model_copy(deep=True)
    _count(updated.week, new_incidents, track_districts)
    _count(updated.month, new_incidents, track_districts)

    messages: list[str] = []
    if is_weekly_boundary(today):
        messages.append(rollup_message(updated.week, "this week", track_districts=track_districts, district_term=district_term))
        updated.week = AggregateCounters()
    if is_last_day_of_month(today):
        period = f"in {today.strftime('%B')}"
        messages.append(rollup_message(updated.month, period, track_districts=track_districts, district_term=district_term))
        updated.month = AggregateCounters()

    return RollupResult(updated_state=updated, rollup_messages=messages)


def compose_daily_summary(
    incidents: Sequence[Incident],
    pedestrian_count: int,
    *,
    days: int = 1,
    area_name: str,
    district_term: str | None = None,
    at_large: Iterable[str] | None = None,
) -> list[str]:
    total = len(incidents)
    if total == 0:
        return [f"There were no incidents of traffic violence reported to 911 today in the {area_name} area."]

    window = "24 hours" if days == 1 else f"{days} days"
    verb = "was" if total == 1 else "were"
    first = (
        f"There {verb} {total} {pluralize(total, 'incident')} of traffic violence found over the last {window}. "
        f"Of these, {pedestrian_count} involved pedestrians or cyclists."
    )

    if district_term:
        districts = sorted({i.district for i in incidents if i.district}, key=district_sort_key)
        if districts:
            start = "The crash occurred in" if total == 1 else "The crashes occurred in"
            term = district_term if len(districts) == 1 else f"{district_term}s"
            first = f"{first}\n\n{start} {term} {format_list(districts)}."

    messages = [first, DISCLAIMER]
    at_large = list(at_large or [])
    if district_term and at_large:
        messages.append(f"At large city council representatives and president: {format_list(at_large)}")
    return messages


def load_summary(path: str | Path) -> SummaryState:
    p = Path(path)
    if not p.exists():
        return SummaryState()
    try:
        text = p.read_text(encoding="utf-8").strip()
        if not text:
            return SummaryState()
        return SummaryState.model_validate(json.loads(text))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Summary counters %s are unreadable (%s); starting from zero", p, exc)
        return SummaryState()


def save_summary(path: str | Path, state: SummaryState) -> None:
    write_json_atomic(state.model_dump(mode="json"), path, indent=2)
