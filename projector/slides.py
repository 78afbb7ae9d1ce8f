"""Slide content for the projector display."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from django.conf import settings

from festival import services
from festival.scoring import SCORING_POSITIONS
from festival.snapshot import Snapshot

from .presentation import DisplayMode, RevealStep

# Ranks disclosed at each reveal step: third place first, the champion last.
VISIBLE_POSITIONS = {
    RevealStep.HIDDEN: frozenset(),
    RevealStep.THIRD: frozenset({3}),
    RevealStep.SECOND: frozenset({2, 3}),
    RevealStep.CHAMPION: frozenset({1, 2, 3}),
}


class SlideDeck:
    """Build JSON-ready content for each display mode."""

    def __init__(self, race_limit: Optional[int] = None, upcoming_limit: Optional[int] = None) -> None:
        self.race_limit = race_limit if race_limit is not None else getattr(settings, "PROJECTOR_RACE_LIMIT", 10)
        self.upcoming_limit = (
            upcoming_limit if upcoming_limit is not None else getattr(settings, "PROJECTOR_UPCOMING_LIMIT", 6)
        )

    def build(self, mode: DisplayMode, snapshot: Snapshot, reveal_step: RevealStep) -> Dict[str, Any]:
        if mode == DisplayMode.RESULT:
            content = self.result_slide(snapshot, reveal_step)
            if content is None:
                # Nothing declared yet: keep the RESULT position, show statistics.
                content = self.stats_slide(snapshot)
                content["fallback"] = True
            return content
        if mode == DisplayMode.LEADERBOARD:
            return self.leaderboard_slide(snapshot)
        if mode == DisplayMode.STATS:
            return self.stats_slide(snapshot)
        if mode == DisplayMode.UPCOMING:
            return self.upcoming_slide(snapshot)
        raise ValueError(f"Unknown display mode: {mode!r}")  # pragma: no cover

    def _base(self, snapshot: Snapshot, slide: str) -> Dict[str, Any]:
        return {"slide": slide, "heading": snapshot.settings.heading}

    def result_slide(self, snapshot: Snapshot, reveal_step: RevealStep) -> Optional[Dict[str, Any]]:
        result = services.latest_declared_result(snapshot)
        if result is None:
            return None
        item = snapshot.item(result.item_id)
        category = snapshot.category(result.category_id) or snapshot.category(item.category_id)
        visible = VISIBLE_POSITIONS[RevealStep(reveal_step)]

        winners: List[Dict[str, Any]] = []
        for row in services.result_rows(snapshot, result):
            if row["position"] not in SCORING_POSITIONS:
                continue
            shown = row["position"] in visible
            winners.append(
                {
                    "position": row["position"],
                    "visible": shown,
                    "chestNumber": row["chest_number"] if shown else None,
                    "name": row["name"] if shown else None,
                    "team": row["team"] if shown else None,
                    "grade": row["grade"] if shown else None,
                    "points": row["points"] if shown else None,
                }
            )

        content = self._base(snapshot, DisplayMode.RESULT.value)
        content.update(
            {
                "resultId": result.id,
                "item": item.name,
                "itemType": item.type.value,
                "category": category.name if category else "",
                "winners": winners,
            }
        )
        return content

    def leaderboard_slide(self, snapshot: Snapshot) -> Dict[str, Any]:
        aggregated = services.aggregate(snapshot)
        race = services.point_race(snapshot, self.race_limit)
        content = self._base(snapshot, DisplayMode.LEADERBOARD.value)
        content.update(
            {
                "standings": [
                    {
                        "rank": standing.rank,
                        "teamId": standing.team.id,
                        "team": standing.team.name,
                        "points": standing.points,
                    }
                    for standing in services.leaderboard(snapshot, aggregated)
                ],
                "race": {
                    "baseline": race.baseline,
                    "baselineCount": race.baseline_count,
                    "steps": [
                        {"resultId": step.result_id, "item": step.item_name, "gains": step.gains, "totals": step.totals}
                        for step in race.steps
                    ],
                },
            }
        )
        return content

    def stats_slide(self, snapshot: Snapshot) -> Dict[str, Any]:
        content = self._base(snapshot, DisplayMode.STATS.value)
        content.update(
            {
                "stats": services.dashboard_stats(snapshot),
                "toppers": [
                    {
                        "category": topper.category.name,
                        "name": topper.participant.name,
                        "chestNumber": topper.participant.chest_number,
                        "team": topper.team.name if topper.team else "",
                        "points": topper.points,
                    }
                    for topper in services.category_toppers(snapshot)
                ],
            }
        )
        return content

    def upcoming_slide(self, snapshot: Snapshot) -> Dict[str, Any]:
        events = []
        for event in snapshot.schedule:
            if len(events) >= self.upcoming_limit:
                break
            item = snapshot.item(event.item_id)
            if item is None:
                continue
            category = snapshot.category(event.category_id)
            events.append(
                {
                    "item": item.name,
                    "category": category.name if category else "",
                    "date": event.date,
                    "time": event.time,
                    "stage": event.stage,
                }
            )
        content = self._base(snapshot, DisplayMode.UPCOMING.value)
        content["events"] = events
        return content
