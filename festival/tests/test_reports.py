import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "festival_console.settings")

import django

django.setup()

from django.test import SimpleTestCase

from festival.filters import Facet, FilterState
from festival.reports import REPORT_BUILDERS, build_report
from festival.snapshot import build_snapshot
from festival.tests.fixtures import festival_payload


class ReportBuilderTests(SimpleTestCase):
    def setUp(self):
        self.snapshot = build_snapshot(festival_payload())

    def test_standings(self):
        report = build_report("standings", self.snapshot)
        self.assertEqual(report.header[:3], ["rank", "team", "points"])
        self.assertEqual([row[:3] for row in report.rows], [[1, "Xavier House", 18], [1, "Yellow House", 18], [3, "Zeta", 5]])

    def test_standings_honour_team_facet(self):
        state = FilterState().select(Facet.TEAM, ["t-z"])
        report = build_report("standings", self.snapshot, state)
        self.assertEqual([row[1] for row in report.rows], ["Zeta"])
        self.assertEqual(report.rows[0][0], 3)

    def test_merit_list(self):
        report = build_report("merit-list", self.snapshot)
        self.assertEqual([row[0] for row in report.rows], ["1", "2", "10", "21"])
        dev = report.rows[-1]
        self.assertEqual(dev[1:8], ["Dev", "Yellow House", "Senior", "", "Essay", "Song", 9])

    def test_merit_list_only_counts_results_matching_facets(self):
        state = FilterState().select(Facet.PERFORMANCE_TYPE, ["On Stage"])
        report = build_report("merit-list", self.snapshot, state)
        self.assertEqual([row[0] for row in report.rows], ["2", "10", "21"])
        self.assertEqual(report.rows[-1], ["21", "Dev", "Yellow House", "Senior", "", "", "Song", 3])

    def test_merit_list_team_facet_drops_other_teams(self):
        state = FilterState().select(Facet.TEAM, ["t-z"])
        report = build_report("merit-list", self.snapshot, state)
        self.assertEqual(report.rows, [["1", "Cara", "Zeta", "Senior", "Essay", "", "", 5]])

    def test_item_winners_filtered_by_performance_type(self):
        state = FilterState().select(Facet.PERFORMANCE_TYPE, ["On Stage"])
        report = build_report("item-winners", self.snapshot, state)
        self.assertEqual({row[0] for row in report.rows}, {"Song"})
        self.assertEqual([row[2] for row in report.rows], [1, 2, 3])

    def test_results_drop_drafts_and_orphans(self):
        report = build_report("results", self.snapshot)
        self.assertEqual({row[0] for row in report.rows}, {"Song", "Essay"})
        self.assertEqual(len(report.rows), 5)

    def test_schedule_drops_orphaned_events(self):
        report = build_report("schedule", self.snapshot)
        self.assertEqual([row[3] for row in report.rows], ["Song", "Essay", "Group Dance"])
        self.assertEqual(report.rows[1][5], "Off Stage")

    def test_participants_sorted_by_chest_number(self):
        state = FilterState().select(Facet.CATEGORY, ["c-jr"])
        report = build_report("participants", self.snapshot, state)
        self.assertEqual([row[:2] for row in report.rows], [["2", "Ben"], ["10", "Anu"]])
        self.assertEqual(report.rows[1][5], "Group Dance; Song")

    def test_every_builder_handles_an_empty_snapshot(self):
        empty = build_snapshot({})
        for kind in REPORT_BUILDERS:
            self.assertEqual(build_report(kind, empty).rows, [], kind)

    def test_unknown_report(self):
        with self.assertRaises(KeyError):
            build_report("nope", self.snapshot)
