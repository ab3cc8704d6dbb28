from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from crash_watch.models import Incident, Verdict

DAY_MS = 86_400_000

# Bump when any term list below changes; tests are pinned to this table.
RULES_VERSION = 3

BANNED_TERMS = (
    "robbed",
    "burglar",
    "stolen",
    "gunmen",
    "armed",
    "gunman",
    "breaking into",
)

HYDRANT_TERM = "hydrant"
HYDRANT_QUALIFIERS = ("pedestrian", "bicycle", "scooter", "bicyclist")

PEDESTRIAN_TERMS = (
    "pedestrian",
    "cyclist",
    "bicyclist",
    "struck by vehicle",
    "hit by vehicle",
    "bicycle",
    "scooter",
)

PEDESTRIAN_UPDATE_TERMS = (
    "pedestrian",
    "bicyclist",
    "struck by vehicle",
    "bicycle",
    "scooter",
)

VEHICLE_TERMS = (
    "vehicle collision",
    "vehicle flipped",
    "overturned vehicle",
    "dragging vehicle",
    "hit-and-run",
)

TOP_LEVEL = ("title", "raw")
UPDATES = ("updates",)


@dataclass(frozen=True)
class Rule:
    """One row of the classification table.

    A rule matches an incident when any of the text fields named in ``fields``
    matches. An exclude term in the title or raw text rules out the whole
    incident; in an update it only rules out that update. A field mentioning a
    hydrant only matches through ``hydrant_qualifiers``.
    """

    category: Verdict
    include_terms: tuple[str, ...]
    exclude_terms: tuple[str, ...] = BANNED_TERMS
    fields: tuple[str, ...] = TOP_LEVEL
    hydrant_qualifiers: tuple[str, ...] = ()

    def matches_text(self, text: str | None) -> bool:
        lowered = (text or "").lower()
        if not lowered:
            return False
        if any(term in lowered for term in self.exclude_terms):
            return False
        if HYDRANT_TERM in lowered:
            return any(term in lowered for term in self.hydrant_qualifiers)
        return any(term in lowered for term in self.include_terms)

    def excludes(self, incident: Incident) -> bool:
        return any(
            term in (text or "").lower()
            for text in _field_texts(incident, TOP_LEVEL)
            for term in self.exclude_terms
        )

    def matches(self, incident: Incident) -> bool:
        if self.excludes(incident):
            return False
        return any(self.matches_text(text) for text in _field_texts(incident, self.fields))


# Order matters: the first matching rule decides the verdict.
DEFAULT_RULES: tuple[Rule, ...] = (
    Rule(
        Verdict.PEDESTRIAN_OR_CYCLIST,
        PEDESTRIAN_TERMS,
        fields=TOP_LEVEL,
        hydrant_qualifiers=HYDRANT_QUALIFIERS,
    ),
    Rule(
        Verdict.PEDESTRIAN_OR_CYCLIST,
        PEDESTRIAN_UPDATE_TERMS,
        fields=UPDATES,
        hydrant_qualifiers=HYDRANT_QUALIFIERS,
    ),
    Rule(Verdict.VEHICLE_ONLY, VEHICLE_TERMS, fields=TOP_LEVEL),
)


def _field_texts(incident: Incident, fields: Iterable[str]) -> Iterable[str | None]:
    for name in fields:
        if name == "updates":
            for update in incident.updates.values():
                yield update.text
        else:
            yield getattr(incident, name)


def classify(incident: Incident, rules: tuple[Rule, ...] = DEFAULT_RULES) -> Verdict:
    for rule in rules:
        if rule.matches(incident):
            return rule.category
    return Verdict.IRRELEVANT


def filter_recent(incidents: Iterable[Incident], now_ms: int, window_days: int = 1) -> list[Incident]:
    cutoff = now_ms - window_days * DAY_MS
    return [incident for incident in incidents if incident.ts >= cutoff]


@dataclass
class ClassifiedBatch:
    pedestrian_or_cyclist: list[Incident] = field(default_factory=list)
    vehicle_only: list[Incident] = field(default_factory=list)

    def relevant(self) -> list[Incident]:
        seen: set[str] = set()
        out: list[Incident] = []
        for incident in [*self.pedestrian_or_cyclist, *self.vehicle_only]:
            if incident.key in seen:
                continue
            seen.add(incident.key)
            out.append(incident)
        return out


def split_by_verdict(incidents: Iterable[Incident], rules: tuple[Rule, ...] = DEFAULT_RULES) -> ClassifiedBatch:
    batch = ClassifiedBatch()
    for incident in incidents:
        verdict = classify(incident, rules)
        if verdict is Verdict.PEDESTRIAN_OR_CYCLIST:
            batch.pedestrian_or_cyclist.append(incident)
        elif verdict is Verdict.VEHICLE_ONLY:
            batch.vehicle_only.append(incident)
    return batch
