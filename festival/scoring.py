"""Point calculation for declared winners."""
from __future__ import annotations

from dataclasses import dataclass

from .snapshot import Grade, GradeTables, Item, ItemType, Winner

SCORING_POSITIONS = (1, 2, 3)


@dataclass(frozen=True)
class WinnerScore:
    position: int | None
    prize_points: int
    grade_points: int
    grade_name: str = ""

    @property
    def total(self) -> int:
        return self.prize_points + self.grade_points


def grade_table_for(item: Item, grades: GradeTables) -> tuple[Grade, ...]:
    """Return the grading table for the item's type."""

    if item.type == ItemType.SINGLE:
        return grades.single
    if item.type == ItemType.GROUP:
        return grades.group
    raise ValueError(f"Unsupported item type: {item.type!r}")  # pragma: no cover


def _find_grade(table: tuple[Grade, ...], grade_id: str | None) -> Grade | None:
    if not grade_id:
        return None
    for grade in table:
        if grade.id == grade_id:
            return grade
    return None


def score_winner(item: Item, winner: Winner, grades: GradeTables) -> WinnerScore:
    """Split a winner's points into the prize and grade components."""

    prize = max(0, item.points.for_position(winner.position))
    grade = _find_grade(grade_table_for(item, grades), winner.grade_id)
    if grade is None:
        return WinnerScore(position=winner.position, prize_points=prize, grade_points=0)
    grade_points = item.grade_points_override.get(grade.id, grade.points)
    return WinnerScore(
        position=winner.position,
        prize_points=prize,
        grade_points=max(0, grade_points),
        grade_name=grade.name,
    )


def points_for_winner(item: Item, winner: Winner, grades: GradeTables) -> int:
    """Return the total points a winner earns for ``item``."""

    return score_winner(item, winner, grades).total
