from __future__ import annotations

from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from festival.filters import FilterState, RoleContext
from festival.reports import REPORT_BUILDERS
from festival.snapshot import UserRole
from festival.sources import load_snapshot, snapshot_path


class Command(BaseCommand):
    """Print a festival report for a snapshot export."""

    help = "Print team standings, the merit list, item-wise winners or any other festival report."

    def add_arguments(self, parser):
        parser.add_argument(
            "--report",
            default="standings",
            choices=sorted(REPORT_BUILDERS),
            help="Report to print (default: standings)",
        )
        parser.add_argument("--path", help="Snapshot JSON file (defaults to FESTIVAL_SNAPSHOT_PATH)")
        parser.add_argument("--team", action="append", default=[], help="Restrict to a team id; repeatable")
        parser.add_argument("--category", action="append", default=[], help="Restrict to a category id; repeatable")

    def handle(self, *args, **options):
        path = Path(options["path"]) if options.get("path") else snapshot_path()
        if path is None:
            raise CommandError("Provide --path or set FESTIVAL_SNAPSHOT_PATH.")
        if not path.exists():
            raise CommandError(f"Snapshot file not found at {path}.")

        snapshot = load_snapshot(path)
        if snapshot is None:
            raise CommandError(f"Snapshot at {path} could not be read.")

        state = FilterState.from_query(
            {"team": options["team"], "category": options["category"]},
            RoleContext(role=UserRole.MANAGER),
        )
        report = REPORT_BUILDERS[options["report"]](snapshot, state)

        self.stdout.write(report.title, self.style.SUCCESS)
        self.stdout.write("\t".join(report.header))
        for row in report.rows:
            self.stdout.write("\t".join(str(value) for value in row))
        if not report.rows:
            self.stdout.write("No rows.")
