"""Result aggregation for the festival console."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from .scoring import SCORING_POSITIONS, WinnerScore, score_winner
from .snapshot import (
    Category,
    DeclaredResult,
    Item,
    ItemType,
    Participant,
    Snapshot,
    Team,
    Winner,
    chest_number_key,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ScoringRecord",
    "ParticipantTally",
    "ItemWinners",
    "Aggregate",
    "TeamStanding",
    "MeritEntry",
    "CategoryTopper",
    "RaceStep",
    "PointRace",
    "declared_results",
    "scoring_records",
    "latest_declared_result",
    "aggregate",
    "leaderboard",
    "merit_list",
    "item_wise_winners",
    "category_toppers",
    "point_race",
    "dashboard_stats",
    "result_rows",
]


@dataclass(frozen=True)
class ScoringRecord:
    """Container describing the points a single winner earned for an item."""

    result: DeclaredResult
    item: Item
    category: Category | None
    participant: Participant
    team: Team | None
    winner: Winner
    score: WinnerScore

    @property
    def position(self) -> int | None:
        return self.winner.position

    @property
    def total(self) -> int:
        return self.score.total

    @property
    def team_name(self) -> str:
        return self.team.name if self.team else "Unaffiliated"

    @property
    def display_name(self) -> str:
        if self.item.type == ItemType.GROUP:
            return f"{self.participant.name} & Party"
        return self.participant.name


@dataclass
class ParticipantTally:
    participant: Participant
    points: int = 0
    prize_points: int = 0
    grade_points: int = 0
    wins: dict[int, list[str]] = field(default_factory=lambda: {1: [], 2: [], 3: []})

    def add(self, record: ScoringRecord) -> None:
        self.points += record.total
        self.prize_points += record.score.prize_points
        self.grade_points += record.score.grade_points
        self.wins[record.position].append(record.item.name)


@dataclass(frozen=True)
class ItemWinners:
    item: Item
    category: Category | None
    winners_by_position: dict[int, list[ScoringRecord]]

    @property
    def total_points(self) -> int:
        return sum(record.total for records in self.winners_by_position.values() for record in records)


@dataclass(frozen=True)
class Aggregate:
    per_participant: dict[str, ParticipantTally]
    per_team: dict[str, int]
    item_wise: list[ItemWinners]
    records: list[ScoringRecord]

    @property
    def total_points(self) -> int:
        return sum(self.per_team.values())


@dataclass(frozen=True)
class TeamStanding:
    rank: int
    team: Team
    points: int
    prize_points: int
    grade_points: int
    wins: int


@dataclass(frozen=True)
class MeritEntry:
    participant: Participant
    team: Team | None
    category: Category | None
    points: int
    wins: dict[int, list[str]]


@dataclass(frozen=True)
class CategoryTopper:
    category: Category
    participant: Participant
    team: Team | None
    points: int


@dataclass(frozen=True)
class RaceStep:
    result_id: str
    item_name: str
    gains: dict[str, int]
    totals: dict[str, int]


@dataclass(frozen=True)
class PointRace:
    baseline: dict[str, int]
    baseline_count: int
    steps: list[RaceStep]


def declared_results(snapshot: Snapshot) -> list[DeclaredResult]:
    """Return declared results whose item still exists, in declaration order."""

    results: list[DeclaredResult] = []
    for result in snapshot.results:
        if not result.is_declared:
            continue
        if snapshot.item(result.item_id) is None:
            logger.debug("Ignoring orphaned result %s for missing item %s", result.id, result.item_id)
            continue
        results.append(result)
    return results


def latest_declared_result(snapshot: Snapshot) -> DeclaredResult | None:
    results = declared_results(snapshot)
    return results[-1] if results else None


def _records_for(snapshot: Snapshot, result: DeclaredResult) -> list[ScoringRecord]:
    item = snapshot.item(result.item_id)
    if item is None:
        return []
    category = snapshot.category(result.category_id) or snapshot.category(item.category_id)
    records: list[ScoringRecord] = []
    for winner in result.winners:
        if winner.position not in SCORING_POSITIONS:
            continue
        participant = snapshot.participant(winner.participant_id)
        if participant is None:
            logger.debug(
                "Skipping unknown participant %s on result %s", winner.participant_id, result.id
            )
            continue
        records.append(
            ScoringRecord(
                result=result,
                item=item,
                category=category,
                participant=participant,
                team=snapshot.team(participant.team_id),
                winner=winner,
                score=score_winner(item, winner, snapshot.grades),
            )
        )
    return records


def scoring_records(snapshot: Snapshot, results: Iterable[DeclaredResult] | None = None) -> list[ScoringRecord]:
    """Return one scoring record per counted winner of the declared results."""

    if results is None:
        results = declared_results(snapshot)
    records: list[ScoringRecord] = []
    for result in results:
        records.extend(_records_for(snapshot, result))
    return records


def _team_totals(snapshot: Snapshot, records: Iterable[ScoringRecord]) -> dict[str, int]:
    totals = {team.id: 0 for team in snapshot.teams}
    for record in records:
        if record.team is not None:
            totals[record.team.id] += record.total
    return totals


def aggregate(snapshot: Snapshot, results: Iterable[DeclaredResult] | None = None) -> Aggregate:
    """Fold declared results into participant, team and item-wise totals.

    ``results`` narrows the fold to a subset of the declared results.
    """

    records = scoring_records(snapshot, results)

    per_participant: dict[str, ParticipantTally] = {}
    by_item: dict[str, dict[int, list[ScoringRecord]]] = {}
    for record in records:
        tally = per_participant.get(record.participant.id)
        if tally is None:
            tally = per_participant[record.participant.id] = ParticipantTally(record.participant)
        tally.add(record)
        buckets = by_item.setdefault(record.item.id, {1: [], 2: [], 3: []})
        buckets[record.position].append(record)

    item_wise: list[ItemWinners] = []
    for buckets in by_item.values():
        first = next(record for bucket in buckets.values() for record in bucket)
        item_wise.append(
            ItemWinners(item=first.item, category=first.category, winners_by_position=buckets)
        )
    item_wise.sort(key=lambda entry: (entry.item.name.casefold(), entry.item.id))

    return Aggregate(
        per_participant=per_participant,
        per_team=_team_totals(snapshot, records),
        item_wise=item_wise,
        records=records,
    )


def leaderboard(snapshot: Snapshot, aggregated: Aggregate | None = None) -> list[TeamStanding]:
    """Rank every team by total points.

    Equal totals share a rank ("1, 1, 3") and are listed by team name, then
    team id, so the order never depends on registration order.
    """

    aggregated = aggregated or aggregate(snapshot)
    prize: dict[str, int] = defaultdict(int)
    grade: dict[str, int] = defaultdict(int)
    wins: dict[str, int] = defaultdict(int)
    for record in aggregated.records:
        if record.team is None:
            continue
        prize[record.team.id] += record.score.prize_points
        grade[record.team.id] += record.score.grade_points
        wins[record.team.id] += 1

    teams = sorted(
        snapshot.teams,
        key=lambda team: (-aggregated.per_team.get(team.id, 0), team.name.casefold(), team.id),
    )
    standings: list[TeamStanding] = []
    running_rank = 0
    last_points: int | None = None
    for index, team in enumerate(teams, start=1):
        points = aggregated.per_team.get(team.id, 0)
        if last_points is None or points != last_points:
            running_rank = index
            last_points = points
        standings.append(
            TeamStanding(
                rank=running_rank,
                team=team,
                points=points,
                prize_points=prize[team.id],
                grade_points=grade[team.id],
                wins=wins[team.id],
            )
        )
    return standings


def merit_list(snapshot: Snapshot, aggregated: Aggregate | None = None) -> list[MeritEntry]:
    """List placed participants ordered by chest number, not by points."""

    aggregated = aggregated or aggregate(snapshot)
    entries = [
        MeritEntry(
            participant=tally.participant,
            team=snapshot.team(tally.participant.team_id),
            category=snapshot.category(tally.participant.category_id),
            points=tally.points,
            wins={position: list(names) for position, names in tally.wins.items()},
        )
        for tally in aggregated.per_participant.values()
    ]
    entries.sort(key=lambda entry: (chest_number_key(entry.participant.chest_number), entry.participant.id))
    return entries


def item_wise_winners(snapshot: Snapshot, aggregated: Aggregate | None = None) -> list[ItemWinners]:
    return list((aggregated or aggregate(snapshot)).item_wise)


def category_toppers(snapshot: Snapshot, records: list[ScoringRecord] | None = None) -> list[CategoryTopper]:
    """Return the highest scoring individual per category, counting single items only."""

    if records is None:
        records = scoring_records(snapshot)
    points: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for record in records:
        if record.item.type != ItemType.SINGLE or record.total <= 0:
            continue
        points[record.item.category_id][record.participant.id] += record.total

    toppers: list[CategoryTopper] = []
    for category in snapshot.categories:
        scores = points.get(category.id)
        if not scores:
            continue
        participant_id, best = min(
            scores.items(),
            key=lambda pair: (-pair[1], chest_number_key(snapshot.participant(pair[0]).chest_number)),
        )
        participant = snapshot.participant(participant_id)
        toppers.append(
            CategoryTopper(
                category=category,
                participant=participant,
                team=snapshot.team(participant.team_id),
                points=best,
            )
        )
    toppers.sort(key=lambda topper: (-topper.points, topper.category.name.casefold()))
    return toppers


def point_race(snapshot: Snapshot, limit: int = 10) -> PointRace:
    """Split declared results into a team baseline and a replayable tail.

    The last ``limit`` declared results become individual race steps; every
    earlier result is folded into the baseline.
    """

    results = declared_results(snapshot)
    cutoff = max(0, len(results) - max(0, limit))
    baseline = _team_totals(snapshot, scoring_records(snapshot, results[:cutoff]))

    totals = dict(baseline)
    steps: list[RaceStep] = []
    for result in results[cutoff:]:
        gains = {team.id: 0 for team in snapshot.teams}
        for record in _records_for(snapshot, result):
            if record.team is not None:
                gains[record.team.id] += record.total
        for team_id, gain in gains.items():
            totals[team_id] = totals.get(team_id, 0) + gain
        steps.append(
            RaceStep(
                result_id=result.id,
                item_name=snapshot.item(result.item_id).name,
                gains=gains,
                totals=dict(totals),
            )
        )
    return PointRace(baseline=baseline, baseline_count=cutoff, steps=steps)


def dashboard_stats(snapshot: Snapshot, aggregated: Aggregate | None = None) -> dict[str, int]:
    aggregated = aggregated or aggregate(snapshot)
    return {
        "participants": len(snapshot.participants),
        "teams": len(snapshot.teams),
        "items": len(snapshot.items),
        "categories": len(snapshot.categories),
        "declared": len(declared_results(snapshot)),
        "total_points": aggregated.total_points,
        "scheduled": len(snapshot.schedule),
    }


def result_rows(snapshot: Snapshot, result: DeclaredResult) -> list[dict[str, object]]:
    """Return display rows for every winner of one result.

    Placed winners come first by position, the rest by mark descending.
    Winners whose participant no longer exists are left out.
    """

    item = snapshot.item(result.item_id)
    if item is None:
        return []
    rows: list[dict[str, object]] = []
    for winner in result.winners:
        participant = snapshot.participant(winner.participant_id)
        if participant is None:
            continue
        team = snapshot.team(participant.team_id)
        score = score_winner(item, winner, snapshot.grades)
        rows.append(
            {
                "participant_id": participant.id,
                "chest_number": participant.chest_number,
                "name": f"{participant.name} & Party" if item.type == ItemType.GROUP else participant.name,
                "team_id": participant.team_id,
                "team": team.name if team else "",
                "position": winner.position,
                "grade": score.grade_name,
                "mark": winner.mark,
                "prize_points": score.prize_points,
                "grade_points": score.grade_points,
                "points": score.total,
            }
        )
    rows.sort(
        key=lambda row: (
            row["position"] is None,
            row["position"] or 0,
            -(row["mark"] or 0),
        )
    )
    return rows
