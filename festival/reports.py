"""Tabular report builders shared by the CSV exports and the command line."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from . import services
from .filters import Consumer, Facet, FilterState, filter_entities, matches
from .snapshot import Snapshot, chest_number_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Report:
    title: str
    header: list[str]
    rows: list[list[object]]


def _placings(wins: dict[int, list[str]], position: int) -> str:
    return "; ".join(wins.get(position, []))


def standings_report(snapshot: Snapshot, state: FilterState) -> Report:
    teams = state.selections.selected(Facet.TEAM)
    rows = [
        [
            standing.rank,
            standing.team.name,
            standing.points,
            standing.prize_points,
            standing.grade_points,
            standing.wins,
        ]
        for standing in services.leaderboard(snapshot)
        if not teams or standing.team.id in teams
    ]
    return Report(
        title="Team standings",
        header=["rank", "team", "points", "prize_points", "grade_points", "placings"],
        rows=rows,
    )


def merit_list_report(snapshot: Snapshot, state: FilterState) -> Report:
    """Tally placings over the declared results that survive the facets."""

    results = filter_entities(Consumer.RESULTS, services.declared_results(snapshot), snapshot, state)
    teams = state.selections.selected(Facet.TEAM)
    rows = []
    for entry in services.merit_list(snapshot, services.aggregate(snapshot, results)):
        if teams and entry.participant.team_id not in teams:
            continue
        rows.append(
            [
                entry.participant.chest_number,
                entry.participant.name,
                entry.team.name if entry.team else "",
                entry.category.name if entry.category else "",
                _placings(entry.wins, 1),
                _placings(entry.wins, 2),
                _placings(entry.wins, 3),
                entry.points,
            ]
        )
    return Report(
        title="Merit list",
        header=["chest_number", "name", "team", "category", "first", "second", "third", "points"],
        rows=rows,
    )


def item_winners_report(snapshot: Snapshot, state: FilterState) -> Report:
    rows = []
    for entry in services.item_wise_winners(snapshot):
        if not matches(Consumer.ITEMS, entry.item, snapshot, state):
            continue
        for position, records in entry.winners_by_position.items():
            for record in records:
                rows.append(
                    [
                        entry.item.name,
                        entry.category.name if entry.category else "",
                        position,
                        record.participant.chest_number,
                        record.display_name,
                        record.team_name,
                        record.score.grade_name,
                        record.total,
                    ]
                )
    return Report(
        title="Item-wise winners",
        header=["item", "category", "position", "chest_number", "name", "team", "grade", "points"],
        rows=rows,
    )


def results_report(snapshot: Snapshot, state: FilterState) -> Report:
    rows = []
    results = filter_entities(Consumer.RESULTS, services.declared_results(snapshot), snapshot, state)
    for result in results:
        item = snapshot.item(result.item_id)
        category = snapshot.category(result.category_id)
        for row in services.result_rows(snapshot, result):
            rows.append(
                [
                    item.name,
                    category.name if category else "",
                    row["position"] or "",
                    row["chest_number"],
                    row["name"],
                    row["team"],
                    row["grade"],
                    "" if row["mark"] is None else row["mark"],
                    row["points"],
                ]
            )
    return Report(
        title="Declared results",
        header=["item", "category", "position", "chest_number", "name", "team", "grade", "mark", "points"],
        rows=rows,
    )


def schedule_report(snapshot: Snapshot, state: FilterState) -> Report:
    rows = []
    for event in filter_entities(Consumer.SCHEDULE, snapshot.schedule, snapshot, state):
        item = snapshot.item(event.item_id)
        if item is None:
            logger.debug("Dropping schedule entry %s for missing item %s", event.id, event.item_id)
            continue
        category = snapshot.category(event.category_id)
        rows.append(
            [
                event.date,
                event.time,
                event.stage,
                item.name,
                category.name if category else "",
                item.performance_type,
            ]
        )
    return Report(
        title="Schedule",
        header=["date", "time", "stage", "item", "category", "performance_type"],
        rows=rows,
    )


def participants_report(snapshot: Snapshot, state: FilterState) -> Report:
    participants = sorted(
        filter_entities(Consumer.PARTICIPANTS, snapshot.participants, snapshot, state),
        key=lambda participant: (chest_number_key(participant.chest_number), participant.id),
    )
    rows = []
    for participant in participants:
        team = snapshot.team(participant.team_id)
        category = snapshot.category(participant.category_id)
        items = sorted(
            item.name for item in (snapshot.item(item_id) for item_id in participant.item_ids) if item
        )
        rows.append(
            [
                participant.chest_number,
                participant.name,
                participant.place,
                team.name if team else "",
                category.name if category else "",
                "; ".join(items),
            ]
        )
    return Report(
        title="Participants",
        header=["chest_number", "name", "place", "team", "category", "items"],
        rows=rows,
    )


REPORT_BUILDERS: dict[str, Callable[[Snapshot, FilterState], Report]] = {
    "standings": standings_report,
    "merit-list": merit_list_report,
    "item-winners": item_winners_report,
    "results": results_report,
    "schedule": schedule_report,
    "participants": participants_report,
}


def build_report(kind: str, snapshot: Snapshot, state: FilterState | None = None) -> Report:
    try:
        builder = REPORT_BUILDERS[kind]
    except KeyError as exc:
        raise KeyError(f"Unknown report: {kind}") from exc
    return builder(snapshot, state or FilterState())
