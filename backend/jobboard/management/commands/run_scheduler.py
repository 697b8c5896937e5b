import threading

from django.core.management.base import BaseCommand

from jobboard.services import get_marketplace


class Command(BaseCommand):
    help = "Closes bidding on jobs past their deadline and assigns winners, every interval."

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
        parser.add_argument("--interval", type=float, default=None, help="Seconds between sweeps")
        parser.add_argument("--max-sweeps", type=int, default=None)

    def handle(self, *args, **options):
        marketplace = get_marketplace()

        if options["once"]:
            report = marketplace.sweep()
            self.stdout.write(
                f"[{report.now.isoformat()}] assigned={len(report.assigned)} "
                f"no_winner={len(report.no_winner)} retry_later={len(report.retry_later)} "
                f"failed={len(report.failed)}"
            )
            return

        stop_event = threading.Event()
        try:
            marketplace.scheduler.run(
                stop_event=stop_event,
                interval_seconds=options["interval"],
                max_sweeps=options["max_sweeps"],
            )
        except KeyboardInterrupt:
            stop_event.set()
            self.stdout.write("Scheduler interrupted, stopping.")
