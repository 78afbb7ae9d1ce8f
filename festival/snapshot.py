"""Read-only domain snapshot for the festival console."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from django.db import models

logger = logging.getLogger(__name__)

__all__ = [
    "ItemType",
    "PerformanceType",
    "ResultStatus",
    "UserRole",
    "PrizePoints",
    "Item",
    "Grade",
    "GradeTables",
    "Participant",
    "Team",
    "Category",
    "Winner",
    "DeclaredResult",
    "ScheduledEvent",
    "FestivalSettings",
    "Snapshot",
    "SnapshotError",
    "build_snapshot",
    "chest_number_key",
]


class SnapshotError(ValueError):
    """Raised when a data-layer payload cannot be read as a festival snapshot."""


class ItemType(models.TextChoices):
    SINGLE = "Single", "Single"
    GROUP = "Group", "Group"


class PerformanceType(models.TextChoices):
    ON_STAGE = "On Stage", "On Stage"
    OFF_STAGE = "Off Stage", "Off Stage"


class ResultStatus(models.TextChoices):
    NOT_UPLOADED = "Not Uploaded", "Not Uploaded"
    UPLOADED = "Uploaded", "Draft"
    DECLARED = "Declared", "Declared"


class UserRole(models.TextChoices):
    MANAGER = "Manager", "Manager"
    TEAM_LEADER = "Team Leader", "Team Leader"
    THIRD_PARTY = "Third Party", "Third Party"
    JUDGE = "Judge", "Judge"


_CHUNK_RE = re.compile(r"(\d+)")


def chest_number_key(value: str) -> tuple:
    """Return a numeric-aware sort key so that ``"9"`` sorts before ``"10"``."""

    text = (value or "").strip().casefold()
    # re.split keeps text at even indices and digit runs at odd ones, so
    # two keys always compare like-for-like types position by position.
    return tuple(
        int(chunk) if index % 2 else chunk
        for index, chunk in enumerate(_CHUNK_RE.split(text))
    )


@dataclass(frozen=True)
class PrizePoints:
    first: int = 0
    second: int = 0
    third: int = 0

    def for_position(self, position: int | None) -> int:
        if position == 1:
            return self.first
        if position == 2:
            return self.second
        if position == 3:
            return self.third
        return 0


@dataclass(frozen=True)
class Item:
    id: str
    name: str
    category_id: str
    type: ItemType = ItemType.SINGLE
    performance_type: PerformanceType = PerformanceType.ON_STAGE
    points: PrizePoints = PrizePoints()
    grade_points_override: Mapping[str, int] = field(default_factory=dict)
    duration: int = 0
    code: str = ""


@dataclass(frozen=True)
class Grade:
    id: str
    name: str
    points: int = 0


@dataclass(frozen=True)
class GradeTables:
    single: tuple[Grade, ...] = ()
    group: tuple[Grade, ...] = ()


@dataclass(frozen=True)
class Participant:
    id: str
    chest_number: str
    name: str
    team_id: str
    category_id: str
    item_ids: frozenset[str] = frozenset()
    place: str = ""


@dataclass(frozen=True)
class Team:
    id: str
    name: str


@dataclass(frozen=True)
class Category:
    id: str
    name: str


@dataclass(frozen=True)
class Winner:
    participant_id: str
    position: int | None = None
    grade_id: str | None = None
    mark: float | None = None


@dataclass(frozen=True)
class DeclaredResult:
    id: str
    item_id: str
    category_id: str
    status: ResultStatus = ResultStatus.NOT_UPLOADED
    winners: tuple[Winner, ...] = ()

    @property
    def is_declared(self) -> bool:
        return self.status == ResultStatus.DECLARED


@dataclass(frozen=True)
class ScheduledEvent:
    id: str
    item_id: str
    category_id: str
    date: str = ""
    time: str = ""
    stage: str = ""


@dataclass(frozen=True)
class FestivalSettings:
    heading: str = ""
    event_days: tuple[str, ...] = ()
    stages: tuple[str, ...] = ()


@dataclass(frozen=True)
class Snapshot:
    """A consistent, immutable view of every festival collection."""

    items: tuple[Item, ...] = ()
    participants: tuple[Participant, ...] = ()
    teams: tuple[Team, ...] = ()
    categories: tuple[Category, ...] = ()
    grades: GradeTables = GradeTables()
    results: tuple[DeclaredResult, ...] = ()
    schedule: tuple[ScheduledEvent, ...] = ()
    settings: FestivalSettings = FestivalSettings()
    _index: dict[str, dict[str, Any]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._index.update(
            items={item.id: item for item in self.items},
            participants={participant.id: participant for participant in self.participants},
            teams={team.id: team for team in self.teams},
            categories={category.id: category for category in self.categories},
        )

    def item(self, item_id: str | None) -> Item | None:
        return self._index["items"].get(item_id)

    def participant(self, participant_id: str | None) -> Participant | None:
        return self._index["participants"].get(participant_id)

    def team(self, team_id: str | None) -> Team | None:
        return self._index["teams"].get(team_id)

    def category(self, category_id: str | None) -> Category | None:
        return self._index["categories"].get(category_id)


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def _int(value: Any, default: int = 0) -> int:
    if value in (None, "") or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _float(value: Any) -> float | None:
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _choice(enum: type[models.TextChoices], value: Any, default: models.TextChoices):
    text = _text(value)
    for member in enum:
        if text in (member.value, member.name):
            return member
    if text:
        logger.debug("Unknown %s value %r, using %s", enum.__name__, text, default.value)
    return default


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if value in (None, ""):
        return {}
    if not isinstance(value, Mapping):
        logger.warning("Ignoring malformed %s: %r", what, value)
        return {}
    return value


def _sequence(value: Any, what: str) -> tuple:
    if value in (None, ""):
        return ()
    if not isinstance(value, (list, tuple)):
        logger.warning("Ignoring malformed %s: %r", what, value)
        return ()
    return tuple(value)


def _records(payload: Mapping[str, Any], key: str) -> Iterable[Mapping[str, Any]]:
    raw = payload.get(key) or []
    if isinstance(raw, Mapping):
        raw = list(raw.values())
    raw = _sequence(raw, key)
    for record in raw:
        if not isinstance(record, Mapping):
            logger.warning("Skipping malformed %s record: %r", key, record)
            continue
        if not _text(record.get("id")) and key not in ("results",):
            logger.warning("Skipping %s record without an id", key)
            continue
        yield record


def _parse_item(record: Mapping[str, Any]) -> Item:
    points = _mapping(record.get("points"), "points")
    overrides = _mapping(record.get("gradePointsOverride"), "gradePointsOverride")
    return Item(
        id=_text(record["id"]),
        name=_text(record.get("name")),
        code=_text(record.get("code")),
        category_id=_text(record.get("categoryId")),
        type=_choice(ItemType, record.get("type"), ItemType.SINGLE),
        performance_type=_choice(
            PerformanceType, record.get("performanceType"), PerformanceType.ON_STAGE
        ),
        points=PrizePoints(
            first=max(0, _int(points.get("first"))),
            second=max(0, _int(points.get("second"))),
            third=max(0, _int(points.get("third"))),
        ),
        grade_points_override={
            _text(grade_id): _int(value)
            for grade_id, value in overrides.items()
            if value not in (None, "")
        },
        duration=_int(record.get("duration")),
    )


def _parse_grade(record: Mapping[str, Any]) -> Grade:
    return Grade(
        id=_text(record["id"]),
        name=_text(record.get("name")),
        points=_int(record.get("points")),
    )


def _parse_participant(record: Mapping[str, Any]) -> Participant:
    return Participant(
        id=_text(record["id"]),
        chest_number=_text(record.get("chestNumber")),
        name=_text(record.get("name")),
        place=_text(record.get("place")),
        team_id=_text(record.get("teamId")),
        category_id=_text(record.get("categoryId")),
        item_ids=frozenset(_text(item_id) for item_id in _sequence(record.get("itemIds"), "itemIds")),
    )


def _parse_winner(record: Mapping[str, Any]) -> Winner | None:
    participant_id = _text(record.get("participantId"))
    if not participant_id:
        return None
    position = _int(record.get("position"), default=0)
    return Winner(
        participant_id=participant_id,
        position=position or None,
        grade_id=_text(record.get("gradeId")) or None,
        mark=_float(record.get("mark")),
    )


def _parse_result(record: Mapping[str, Any]) -> DeclaredResult | None:
    item_id = _text(record.get("itemId"))
    if not item_id:
        logger.warning("Skipping result without an itemId")
        return None
    category_id = _text(record.get("categoryId"))
    winners = []
    for raw in _sequence(record.get("winners"), "winners"):
        winner = _parse_winner(raw) if isinstance(raw, Mapping) else None
        if winner is not None:
            winners.append(winner)
    return DeclaredResult(
        id=_text(record.get("id")) or f"{item_id}-{category_id}",
        item_id=item_id,
        category_id=category_id,
        status=_choice(ResultStatus, record.get("status"), ResultStatus.NOT_UPLOADED),
        winners=tuple(winners),
    )


def _parse_event(record: Mapping[str, Any]) -> ScheduledEvent:
    return ScheduledEvent(
        id=_text(record["id"]),
        item_id=_text(record.get("itemId")),
        category_id=_text(record.get("categoryId")),
        date=_text(record.get("date")),
        time=_text(record.get("time")),
        stage=_text(record.get("stage")),
    )


def build_snapshot(payload: Mapping[str, Any]) -> Snapshot:
    """Build a :class:`Snapshot` from a data-layer document payload.

    The payload mirrors the document store export: camelCase keys, one list
    per collection and ``gradePoints`` holding the ``single``/``group`` grading
    tables. Records that cannot be identified are skipped and logged rather
    than failing the whole snapshot.
    """

    if not isinstance(payload, Mapping):
        raise SnapshotError("Festival payload must be a JSON object.")

    grade_points = _mapping(payload.get("gradePoints"), "gradePoints")
    settings_block = _mapping(payload.get("settings"), "settings")

    results = tuple(
        result
        for result in (_parse_result(record) for record in _records(payload, "results"))
        if result is not None
    )

    return Snapshot(
        items=tuple(_parse_item(record) for record in _records(payload, "items")),
        participants=tuple(
            _parse_participant(record) for record in _records(payload, "participants")
        ),
        teams=tuple(
            Team(id=_text(record["id"]), name=_text(record.get("name")))
            for record in _records(payload, "teams")
        ),
        categories=tuple(
            Category(id=_text(record["id"]), name=_text(record.get("name")))
            for record in _records(payload, "categories")
        ),
        grades=GradeTables(
            single=tuple(_parse_grade(record) for record in _records(grade_points, "single")),
            group=tuple(_parse_grade(record) for record in _records(grade_points, "group")),
        ),
        results=results,
        schedule=tuple(_parse_event(record) for record in _records(payload, "schedule")),
        settings=FestivalSettings(
            heading=_text(settings_block.get("heading")),
            event_days=tuple(_text(day) for day in _sequence(settings_block.get("eventDays"), "eventDays")),
            stages=tuple(_text(stage) for stage in _sequence(settings_block.get("stages"), "stages")),
        ),
    )
