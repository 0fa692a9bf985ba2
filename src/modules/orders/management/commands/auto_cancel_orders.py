from __future__ import annotations

from django.core.management.base import BaseCommand

from modules.orders.sweep import AutoCancelSweep


class Command(BaseCommand):
    help = "Cancel pending orders that were not confirmed within the configured time."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the orders that would be cancelled without cancelling them.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        result = AutoCancelSweep().run(dry_run=dry_run)

        if result.skipped == "disabled":
            self.stdout.write(self.style.WARNING("Auto-cancel is disabled."))
            return
        if result.skipped == "locked":
            self.stdout.write(self.style.WARNING("Another auto-cancel run is in progress."))
            return
        if result.skipped:
            self.stderr.write(self.style.ERROR("Could not read pending orders; try again later."))
            return

        self.stdout.write(
            f"Threshold: {result.minutes} minutes (cutoff {result.cutoff:%Y-%m-%d %H:%M:%S})"
        )
        if dry_run:
            for order_number in result.candidates:
                self.stdout.write(f"  would cancel {order_number}")
            self.stdout.write(
                self.style.SUCCESS(f"Dry run: {len(result.candidates)} order(s) would be cancelled.")
            )
            return

        for order_number in result.failed:
            self.stderr.write(self.style.ERROR(f"  failed to cancel {order_number}"))
        self.stdout.write(
            self.style.SUCCESS(
                f"Cancelled {len(result.cancelled)} order(s), {len(result.failed)} failed."
            )
        )
