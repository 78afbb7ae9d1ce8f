"""Faceted filtering shared by every list, report and standings consumer."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping, TypeVar

from django.db import models

from .snapshot import (
    DeclaredResult,
    Item,
    Participant,
    ScheduledEvent,
    Snapshot,
    UserRole,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = [
    "Facet",
    "Consumer",
    "FacetSelections",
    "RoleContext",
    "FilterState",
    "matches",
    "filter_entities",
    "item_options",
    "active_facet_count",
]


class Facet(models.TextChoices):
    TEAM = "team", "Team"
    CATEGORY = "category", "Category"
    ITEM = "item", "Item"
    PERFORMANCE_TYPE = "performanceType", "Performance type"
    RESULT_STATUS = "resultStatus", "Result status"
    DATE = "date", "Date"
    STAGE = "stage", "Stage"
    ITEM_TYPE = "itemType", "Item type"


class Consumer(models.TextChoices):
    PARTICIPANTS = "participants", "Participants"
    ITEMS = "items", "Items"
    SCHEDULE = "schedule", "Schedule"
    RESULTS = "results", "Results"


@dataclass(frozen=True)
class FacetSelections:
    """Selected ids per facet. An empty selection restricts nothing."""

    values: Mapping[Facet, frozenset[str]] = field(default_factory=dict)
    version: int = 0

    def selected(self, facet: Facet) -> frozenset[str]:
        return self.values.get(facet, frozenset())

    def allows(self, facet: Facet, keys: Iterable[str]) -> bool:
        selected = self.selected(facet)
        if not selected:
            return True
        return any(str(key) in selected for key in keys)

    def with_facet(self, facet: Facet, values: Iterable[str]) -> FacetSelections:
        updated = dict(self.values)
        updated[facet] = frozenset(value for value in values if value)
        return FacetSelections(values=updated, version=self.version + 1)

    def as_query(self) -> dict[str, list[str]]:
        return {facet.value: sorted(selected) for facet, selected in self.values.items() if selected}


@dataclass(frozen=True)
class RoleContext:
    role: UserRole = UserRole.MANAGER
    team_id: str | None = None

    @property
    def pinned_team(self) -> str | None:
        if self.role == UserRole.TEAM_LEADER and self.team_id:
            return self.team_id
        return None

    def is_locked(self, facet: Facet) -> bool:
        return facet == Facet.TEAM and self.pinned_team is not None


@dataclass(frozen=True)
class FilterState:
    """The facet configuration handed to every filtering call.

    Mutators return a new state. A team leader's team facet is pinned: any
    request to change it is ignored and :meth:`reset` restores the pin.
    """

    selections: FacetSelections = FacetSelections()
    role: RoleContext = RoleContext()

    @classmethod
    def for_role(cls, role: RoleContext) -> FilterState:
        return cls(role=role).reset()

    @classmethod
    def from_query(cls, params: Mapping[str, Any], role: RoleContext | None = None) -> FilterState:
        """Build a state from query parameters such as ``?team=a&team=b&category=c``.

        ``params`` may be a Django ``QueryDict`` or a plain mapping of lists.
        """

        state = cls.for_role(role or RoleContext())
        for facet in Facet:
            if hasattr(params, "getlist"):
                raw = params.getlist(facet.value)
            else:
                raw = params.get(facet.value) or []
                if isinstance(raw, str):
                    raw = [raw]
            values = [part.strip() for value in raw for part in str(value).split(",") if part.strip()]
            if values:
                state = state.select(facet, values)
        return state

    @property
    def version(self) -> int:
        return self.selections.version

    def select(self, facet: Facet, values: Iterable[str]) -> FilterState:
        if self.role.is_locked(facet):
            logger.debug("Ignoring change to locked facet %s", facet.value)
            return self
        new_values = frozenset(value for value in values if value)
        if new_values == self.selections.selected(facet):
            return self
        selections = self.selections.with_facet(facet, new_values)
        if facet == Facet.CATEGORY and selections.selected(Facet.ITEM):
            # Item ids chosen under the previous categories no longer apply.
            selections = selections.with_facet(Facet.ITEM, ())
        return replace(self, selections=selections)

    def toggle(self, facet: Facet, value: str) -> FilterState:
        selected = self.selections.selected(facet)
        if value in selected:
            return self.select(facet, selected - {value})
        return self.select(facet, selected | {value})

    def clear(self, facet: Facet) -> FilterState:
        return self.select(facet, ())

    def reset(self) -> FilterState:
        values = {facet: frozenset() for facet in Facet}
        pinned = self.role.pinned_team
        if pinned:
            values[Facet.TEAM] = frozenset({pinned})
        selections = FacetSelections(values=values, version=self.selections.version + 1)
        return replace(self, selections=selections)


KeyExtractor = Callable[[Any, Snapshot], Iterable[str]]


def _participant_items(participant: Participant, snapshot: Snapshot) -> list[Item]:
    return [item for item in (snapshot.item(item_id) for item_id in participant.item_ids) if item]


def _item_of(entity: ScheduledEvent | DeclaredResult, snapshot: Snapshot) -> list[Item]:
    item = snapshot.item(entity.item_id)
    return [item] if item else []


def _result_teams(result: DeclaredResult, snapshot: Snapshot) -> list[str]:
    teams = []
    for winner in result.winners:
        participant = snapshot.participant(winner.participant_id)
        if participant is not None:
            teams.append(participant.team_id)
    return teams


_PARTICIPANT_RULES: dict[Facet, KeyExtractor] = {
    Facet.TEAM: lambda p, s: [p.team_id],
    Facet.CATEGORY: lambda p, s: [p.category_id],
    Facet.ITEM: lambda p, s: p.item_ids,
    Facet.PERFORMANCE_TYPE: lambda p, s: [item.performance_type for item in _participant_items(p, s)],
    Facet.ITEM_TYPE: lambda p, s: [item.type for item in _participant_items(p, s)],
}

_ITEM_RULES: dict[Facet, KeyExtractor] = {
    Facet.CATEGORY: lambda i, s: [i.category_id],
    Facet.ITEM: lambda i, s: [i.id],
    Facet.PERFORMANCE_TYPE: lambda i, s: [i.performance_type],
    Facet.ITEM_TYPE: lambda i, s: [i.type],
}

_SCHEDULE_RULES: dict[Facet, KeyExtractor] = {
    Facet.CATEGORY: lambda e, s: [e.category_id],
    Facet.ITEM: lambda e, s: [e.item_id],
    Facet.PERFORMANCE_TYPE: lambda e, s: [item.performance_type for item in _item_of(e, s)],
    Facet.ITEM_TYPE: lambda e, s: [item.type for item in _item_of(e, s)],
    Facet.DATE: lambda e, s: [e.date],
    Facet.STAGE: lambda e, s: [e.stage],
}

_RESULT_RULES: dict[Facet, KeyExtractor] = {
    Facet.TEAM: _result_teams,
    Facet.CATEGORY: lambda r, s: [r.category_id],
    Facet.ITEM: lambda r, s: [r.item_id],
    Facet.PERFORMANCE_TYPE: lambda r, s: [item.performance_type for item in _item_of(r, s)],
    Facet.ITEM_TYPE: lambda r, s: [item.type for item in _item_of(r, s)],
    Facet.RESULT_STATUS: lambda r, s: [r.status],
}


def facet_rules(consumer: Consumer) -> dict[Facet, KeyExtractor]:
    """Return the facets a consumer filters on with their key extractors."""

    if consumer == Consumer.PARTICIPANTS:
        return _PARTICIPANT_RULES
    if consumer == Consumer.ITEMS:
        return _ITEM_RULES
    if consumer == Consumer.SCHEDULE:
        return _SCHEDULE_RULES
    if consumer == Consumer.RESULTS:
        return _RESULT_RULES
    raise ValueError(f"Unknown filter consumer: {consumer!r}")  # pragma: no cover


def _selections(selections: FacetSelections | FilterState) -> FacetSelections:
    if isinstance(selections, FilterState):
        return selections.selections
    return selections


def matches(
    consumer: Consumer,
    entity: Any,
    snapshot: Snapshot,
    selections: FacetSelections | FilterState,
) -> bool:
    """Return whether ``entity`` satisfies every facet that applies to ``consumer``."""

    chosen = _selections(selections)
    for facet, keys in facet_rules(consumer).items():
        if not chosen.selected(facet):
            continue
        if not chosen.allows(facet, keys(entity, snapshot)):
            return False
    return True


def filter_entities(
    consumer: Consumer,
    entities: Iterable[T],
    snapshot: Snapshot,
    selections: FacetSelections | FilterState,
) -> list[T]:
    """Return the matching entities in their original order."""

    return [entity for entity in entities if matches(consumer, entity, snapshot, selections)]


def item_options(snapshot: Snapshot, selections: FacetSelections | FilterState) -> list[Item]:
    """Items the item facet can offer under the current category selection."""

    chosen = _selections(selections)
    items = [item for item in snapshot.items if chosen.allows(Facet.CATEGORY, [item.category_id])]
    items.sort(key=lambda item: (item.name.casefold(), item.id))
    return items


def active_facet_count(consumer: Consumer, state: FilterState) -> int:
    """Count applicable facets with a selection the current user controls."""

    return sum(
        1
        for facet in facet_rules(consumer)
        if state.selections.selected(facet) and not state.role.is_locked(facet)
    )

