import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "festival_console.settings")

import django

django.setup()

from django.test import SimpleTestCase

from festival import services
from festival.snapshot import build_snapshot
from festival.tests.fixtures import FESTIVAL_PAYLOAD, festival_payload


class AggregationTests(SimpleTestCase):
    def setUp(self):
        self.snapshot = build_snapshot(festival_payload())
        self.aggregated = services.aggregate(self.snapshot)

    def test_team_totals_include_every_team(self):
        self.assertEqual(self.aggregated.per_team, {"t-z": 5, "t-y": 18, "t-x": 18})
        self.assertEqual(self.aggregated.total_points, 41)

    def test_participant_tallies(self):
        anu = self.aggregated.per_participant["p1"]
        self.assertEqual(anu.points, 18)
        self.assertEqual((anu.prize_points, anu.grade_points), (10, 8))
        self.assertEqual(anu.wins[1], ["Song"])

        dev = self.aggregated.per_participant["p4"]
        self.assertEqual(dev.points, 9)
        self.assertEqual(dev.wins, {1: [], 2: ["Essay"], 3: ["Song"]})

    def test_item_wise_matches_participant_totals(self):
        item_total = sum(entry.total_points for entry in self.aggregated.item_wise)
        participant_total = sum(tally.points for tally in self.aggregated.per_participant.values())
        self.assertEqual(item_total, participant_total)
        self.assertEqual(item_total, self.aggregated.total_points)

    def test_uploaded_results_do_not_count(self):
        results = [result for result in FESTIVAL_PAYLOAD["results"] if result["status"] != "Uploaded"]
        without_draft = services.aggregate(build_snapshot(festival_payload(results=results)))
        self.assertEqual(without_draft.per_team, self.aggregated.per_team)
        self.assertEqual(
            {pid: tally.points for pid, tally in without_draft.per_participant.items()},
            {pid: tally.points for pid, tally in self.aggregated.per_participant.items()},
        )

    def test_removing_an_item_removes_its_contribution(self):
        items = [item for item in FESTIVAL_PAYLOAD["items"] if item["id"] != "i-song"]
        aggregated = services.aggregate(build_snapshot(festival_payload(items=items)))
        self.assertEqual(aggregated.per_team, {"t-z": 5, "t-y": 6, "t-x": 0})
        self.assertNotIn("p1", aggregated.per_participant)

    def test_unknown_participants_are_skipped(self):
        results = [
            {
                "id": "r-1",
                "itemId": "i-essay",
                "categoryId": "c-sr",
                "status": "Declared",
                "winners": [{"participantId": "ghost", "position": 1}, {"participantId": "p3", "position": 2}],
            }
        ]
        aggregated = services.aggregate(build_snapshot(festival_payload(results=results)))
        self.assertEqual(list(aggregated.per_participant), ["p3"])
        self.assertEqual(aggregated.per_team["t-z"], 3)

    def test_no_declared_results(self):
        aggregated = services.aggregate(build_snapshot(festival_payload(results=[])))
        self.assertEqual(aggregated.per_participant, {})
        self.assertEqual(aggregated.item_wise, [])
        self.assertEqual(set(aggregated.per_team.values()), {0})


class DerivedViewTests(SimpleTestCase):
    def setUp(self):
        self.snapshot = build_snapshot(festival_payload())

    def test_leaderboard_shares_rank_and_breaks_ties_by_name(self):
        standings = services.leaderboard(self.snapshot)
        self.assertEqual(
            [(standing.rank, standing.team.name, standing.points) for standing in standings],
            [(1, "Xavier House", 18), (1, "Yellow House", 18), (3, "Zeta", 5)],
        )
        self.assertEqual(standings[1].wins, 3)

    def test_leaderboard_two_teams(self):
        payload = festival_payload(
            teams=[{"id": "y", "name": "Y"}, {"id": "x", "name": "X"}],
            participants=[{"id": "p1", "chestNumber": "1", "name": "Anu", "teamId": "x", "categoryId": "c-jr"}],
            results=[
                {
                    "id": "r-1",
                    "itemId": "i-song",
                    "categoryId": "c-jr",
                    "status": "Declared",
                    "winners": [{"participantId": "p1", "position": 1, "gradeId": "g-a"}],
                }
            ],
        )
        standings = services.leaderboard(build_snapshot(payload))
        self.assertEqual([(s.team.name, s.points) for s in standings], [("X", 18), ("Y", 0)])

    def test_merit_list_orders_by_chest_number(self):
        entries = services.merit_list(self.snapshot)
        self.assertEqual([entry.participant.chest_number for entry in entries], ["1", "2", "10", "21"])

    def test_item_wise_sorted_by_name(self):
        entries = services.item_wise_winners(self.snapshot)
        self.assertEqual([entry.item.name for entry in entries], ["Essay", "Song"])
        song = entries[1]
        self.assertEqual([record.participant.id for record in song.winners_by_position[1]], ["p1"])

    def test_declared_results_skip_drafts_and_orphans(self):
        self.assertEqual([result.id for result in services.declared_results(self.snapshot)], ["r-song", "r-essay"])
        self.assertEqual(services.latest_declared_result(self.snapshot).id, "r-essay")

    def test_category_toppers(self):
        toppers = services.category_toppers(self.snapshot)
        self.assertEqual(
            [(topper.category.name, topper.participant.name, topper.points) for topper in toppers],
            [("Junior", "Anu", 18), ("Senior", "Dev", 6)],
        )

    def test_point_race(self):
        race = services.point_race(self.snapshot, limit=1)
        self.assertEqual(race.baseline_count, 1)
        self.assertEqual(race.baseline, {"t-z": 0, "t-y": 12, "t-x": 18})
        self.assertEqual(len(race.steps), 1)
        step = race.steps[0]
        self.assertEqual(step.item_name, "Essay")
        self.assertEqual(step.gains, {"t-z": 5, "t-y": 6, "t-x": 0})
        self.assertEqual(step.totals, {"t-z": 5, "t-y": 18, "t-x": 18})

    def test_point_race_limit_larger_than_results(self):
        race = services.point_race(self.snapshot, limit=10)
        self.assertEqual(race.baseline_count, 0)
        self.assertEqual([step.result_id for step in race.steps], ["r-song", "r-essay"])

    def test_dashboard_stats(self):
        self.assertEqual(
            services.dashboard_stats(self.snapshot),
            {
                "participants": 4,
                "teams": 3,
                "items": 3,
                "categories": 2,
                "declared": 2,
                "total_points": 41,
                "scheduled": 4,
            },
        )

    def test_result_rows_order_by_position(self):
        song = next(r for r in self.snapshot.results if r.id == "r-song")
        rows = services.result_rows(self.snapshot, song)
        self.assertEqual([row["participant_id"] for row in rows], ["p1", "p2", "p4"])
        self.assertEqual(rows[0]["points"], 18)
        self.assertEqual(rows[1]["grade"], "B")
