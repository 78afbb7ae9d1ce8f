import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "festival_console.settings")

import django

django.setup()

from django.test import SimpleTestCase

from festival.snapshot import (
    Grade,
    ItemType,
    PerformanceType,
    ResultStatus,
    SnapshotError,
    build_snapshot,
    chest_number_key,
)
from festival.tests.fixtures import festival_payload


class BuildSnapshotTests(SimpleTestCase):
    def test_parses_collections_and_lookups(self):
        snapshot = build_snapshot(festival_payload())

        self.assertEqual(len(snapshot.items), 3)
        self.assertEqual(len(snapshot.participants), 4)
        self.assertEqual(snapshot.settings.heading, "Arts Fest 2025")
        self.assertEqual(snapshot.settings.stages, ("Stage 1", "Hall"))

        song = snapshot.item("i-song")
        self.assertEqual(song.points.first, 10)
        self.assertEqual(song.grade_points_override, {"g-a": 8})
        self.assertEqual(snapshot.item("i-dance").type, ItemType.GROUP)
        self.assertEqual(snapshot.item("i-essay").performance_type, PerformanceType.OFF_STAGE)
        self.assertEqual(snapshot.participant("p1").item_ids, frozenset({"i-song", "i-dance"}))
        self.assertEqual(snapshot.grades.group[0].points, 10)

        self.assertIsNone(snapshot.item("missing"))
        self.assertIsNone(snapshot.team(None))

    def test_results_keep_status_and_winner_positions(self):
        snapshot = build_snapshot(festival_payload())
        statuses = {result.id: result.status for result in snapshot.results}
        self.assertEqual(statuses["r-song"], ResultStatus.DECLARED)
        self.assertEqual(statuses["r-dance"], ResultStatus.UPLOADED)

        song = next(result for result in snapshot.results if result.id == "r-song")
        self.assertEqual([winner.position for winner in song.winners], [3, 1, 2])
        self.assertEqual(song.winners[1].mark, 91.0)

    def test_result_id_defaults_to_item_and_category(self):
        payload = festival_payload(
            results=[{"itemId": "i-song", "categoryId": "c-jr", "status": "Declared", "winners": []}]
        )
        snapshot = build_snapshot(payload)
        self.assertEqual(snapshot.results[0].id, "i-song-c-jr")

    def test_drift_is_tolerated(self):
        payload = festival_payload(
            teams=[{"name": "No id"}, "garbage", {"id": "t-1", "name": "One"}],
            items=[
                {
                    "id": "i-1",
                    "name": "Poem",
                    "categoryId": "c-jr",
                    "type": "Trio",
                    "points": {"first": "7", "second": -2},
                }
            ],
            results=[
                {
                    "itemId": "i-1",
                    "status": "Published",
                    "winners": [{"participantId": "p1", "position": 0}, {"position": 1}],
                }
            ],
        )
        with self.assertLogs("festival.snapshot", level="WARNING"):
            snapshot = build_snapshot(payload)

        self.assertEqual([team.id for team in snapshot.teams], ["t-1"])
        item = snapshot.item("i-1")
        self.assertEqual(item.type, ItemType.SINGLE)
        self.assertEqual(item.points.first, 7)
        self.assertEqual(item.points.second, 0)
        result = snapshot.results[0]
        self.assertEqual(result.status, ResultStatus.NOT_UPLOADED)
        self.assertEqual(len(result.winners), 1)
        self.assertIsNone(result.winners[0].position)

    def test_malformed_nested_fields_fall_back_to_empty(self):
        payload = festival_payload(
            items=[
                {"id": "i-1", "name": "Poem", "points": 5, "gradePointsOverride": ["g-a"]},
            ],
            participants=[{"id": "p-1", "name": "Ira", "itemIds": 7}],
            results=[{"id": "r-1", "itemId": "i-1", "status": "Declared", "winners": 5}],
            settings={"heading": "Fest", "eventDays": "2025-01-10", "stages": 3},
            gradePoints={"single": {"id": "g-a"}, "group": "A"},
        )
        with self.assertLogs("festival.snapshot", level="WARNING") as logs:
            snapshot = build_snapshot(payload)

        item = snapshot.item("i-1")
        self.assertEqual(item.points.first, 0)
        self.assertEqual(item.grade_points_override, {})
        self.assertEqual(snapshot.participant("p-1").item_ids, frozenset())
        self.assertEqual(snapshot.results[0].winners, ())
        self.assertEqual(snapshot.settings.event_days, ())
        self.assertEqual(snapshot.settings.stages, ())
        self.assertTrue(any("itemIds" in line for line in logs.output))
        self.assertTrue(any("winners" in line for line in logs.output))

    def test_malformed_points_block_is_logged(self):
        with self.assertLogs("festival.snapshot", level="WARNING") as logs:
            snapshot = build_snapshot(festival_payload(items=[{"id": "i-1", "points": 5}]))
        self.assertEqual(snapshot.item("i-1").points.third, 0)
        self.assertIn("points", logs.output[0])

    def test_grade_mark_bands_are_not_kept(self):
        payload = festival_payload(
            gradePoints={"single": [{"id": "g-a", "name": "A", "points": 5, "lowerLimit": 80, "upperLimit": 100}]}
        )
        snapshot = build_snapshot(payload)
        self.assertEqual(snapshot.grades.single, (Grade(id="g-a", name="A", points=5),))
        self.assertEqual(snapshot.grades.group, ())

    def test_non_mapping_payload_raises(self):
        with self.assertRaises(SnapshotError):
            build_snapshot(["not", "a", "document"])


class ChestNumberKeyTests(SimpleTestCase):
    def test_numeric_aware_ordering(self):
        self.assertEqual(sorted(["2", "10", "1"], key=chest_number_key), ["1", "2", "10"])

    def test_prefixed_numbers(self):
        values = ["A10", "a2", "B1", "A1"]
        self.assertEqual(sorted(values, key=chest_number_key), ["A1", "a2", "A10", "B1"])
