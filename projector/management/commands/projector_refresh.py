from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from projector.utils import notify_snapshot_changed


class Command(BaseCommand):
    """Tell connected projectors that the festival snapshot changed."""

    help = "Broadcast a snapshot change so every projector reloads its data."

    def handle(self, *args, **options):
        if not notify_snapshot_changed():
            raise CommandError("No channel layer is configured; set CHANNEL_LAYERS.")
        self.stdout.write("Projectors notified.", self.style.SUCCESS)
