import signal

from django.core.management.base import BaseCommand, CommandError
from replenishment.scheduler import ReplenishmentScheduler, ScheduleConfig


class Command(BaseCommand):
    help = "Run the blocking daily replenishment scheduler until SIGINT/SIGTERM."

    def add_arguments(self, parser):
        parser.add_argument("--cron", help="Crontab expression (default REPLENISHMENT_SCHEDULE_CRON)")
        parser.add_argument("--timezone", help="IANA timezone (default REPLENISHMENT_TIMEZONE)")
        parser.add_argument("--workers", type=int, help="Parallel client workers (default REPLENISHMENT_MAX_WORKERS)")

    def handle(self, *args, **options):
        defaults = ScheduleConfig.from_settings()
        config = ScheduleConfig(
            cron_expression=options.get("cron") or defaults.cron_expression,
            timezone=options.get("timezone") or defaults.timezone,
        )
        try:
            config.trigger()
        except (ValueError, LookupError) as exc:
            raise CommandError(f"Invalid schedule {config}: {exc}") from exc

        scheduler = ReplenishmentScheduler(config, max_workers=options.get("workers"))
        signal.signal(signal.SIGINT, scheduler.stop)
        signal.signal(signal.SIGTERM, scheduler.stop)

        self.stdout.write(
            self.style.SUCCESS(f"Replenishment scheduler running: '{config.cron_expression}' ({config.timezone})")
        )
        scheduler.start()
        self.stdout.write("Replenishment scheduler stopped.")
