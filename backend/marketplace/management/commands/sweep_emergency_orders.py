from django.core.management.base import BaseCommand
from django.db import close_old_connections

from dispatch import TimeoutSweeper
from backend.marketplace.services import get_dispatcher


class Command(BaseCommand):
    help = "Move pending emergency orders past their response deadline to no_response."

    def add_arguments(self, parser):
        parser.add_argument(
            "--loop",
            action="store_true",
            help="Keep sweeping on a fixed interval instead of running once (for use without cron).",
        )
        parser.add_argument(
            "--interval",
            type=float,
            default=None,
            help="Seconds between sweeps in --loop mode. Defaults to EMERGENCY_ORDERS['sweep_interval_seconds'].",
        )
        parser.add_argument(
            "--max-cycles",
            type=int,
            default=None,
            help="Stop after this many sweeps in --loop mode.",
        )

    def handle(self, *args, **options):
        dispatcher = get_dispatcher()

        if not options["loop"]:
            moved = dispatcher.process_order_timeouts()
            self.stdout.write(f"Updated {moved} orders to 'no_response'")
            return

        def tick():
            # long-running process: drop connections the database may have closed
            close_old_connections()
            return dispatcher.process_order_timeouts()

        interval = options["interval"] or dispatcher.policy.sweep_interval_seconds
        sweeper = TimeoutSweeper(tick, interval_seconds=interval)
        self.stdout.write(f"Sweeping emergency orders every {interval}s (Ctrl+C to stop)")
        try:
            cycles = sweeper.run_forever(max_cycles=options["max_cycles"])
        except KeyboardInterrupt:
            sweeper.stop()
            return
        self.stdout.write(f"Stopped after {cycles} sweeps")
