from __future__ import annotations
from enum import Enum
from pathlib import Path
from typing import Iterator
from pydantic import BaseModel, ConfigDict, Field


class Verdict(str, Enum):
    PEDESTRIAN_OR_CYCLIST = "pedestrian_or_cyclist"
    VEHICLE_ONLY = "vehicle_only"
    IRRELEVANT = "irrelevant"


class IncidentUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = ""
    ts: int | None = None
    type: str = ""


class Incident(BaseModel):
    """One incident as served by the Citizen trending feed.

    Only the fields this project reads are declared; anything else in the
    payload is dropped. ``district`` is never part of the feed, it is filled in
    by :func:`crash_watch.districts.assign_districts`.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    key: str
    raw: str | None = None
    title: str = ""
    ts: int
    address: str = ""
    latitude: float | None = None
    longitude: float | None = None
    ll: list[float] | None = None
    share_map: str | None = Field(default=None, alias="shareMap")
    updates: dict[str, IncidentUpdate] = Field(default_factory=dict)
    district: str | None = None

    def narrative_updates(self) -> Iterator[IncidentUpdate]:
        # dicts keep feed order, which is chronological
        for update in self.updates.values():
            if update.type != "ROOT":
                yield update

    def coordinates(self) -> list[float] | None:
        if self.latitude is not None and self.longitude is not None:
            return [self.latitude, self.longitude]
        return self.ll


class SeenIncidentRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    raw: str | None = None
    ts: int | None = None
    date: str | None = None
    coordinates: list[float] | None = Field(default=None, alias="ll")
    map_image_url: str | None = Field(default=None, alias="shareMap")


class AggregateCounters(BaseModel):
    total: int = 0
    districts: dict[str, int] = Field(default_factory=dict)


class SummaryState(BaseModel):
    week: AggregateCounters = Field(default_factory=AggregateCounters)
    month: AggregateCounters = Field(default_factory=AggregateCounters)


class MediaAttachment(BaseModel):
    path: Path
    alt_text: str = ""


class ThreadMessage(BaseModel):
    text: str
    media: list[MediaAttachment] = Field(default_factory=list)
