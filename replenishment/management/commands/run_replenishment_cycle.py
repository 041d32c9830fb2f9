from clients.models import Client
from django.core.management.base import BaseCommand, CommandError
from replenishment.jobs import run_cycle, run_for_client


class Command(BaseCommand):
    help = "Run the daily consumption + automatic order cycle once, or a single client's pass with --client."

    def add_arguments(self, parser):
        parser.add_argument("--client", type=int, help="Only run detection and settlement for this client id")
        parser.add_argument(
            "--force", action="store_true", help="Run even if today's window was already processed (decrements again)"
        )
        parser.add_argument("--workers", type=int, help="Parallel client workers (default REPLENISHMENT_MAX_WORKERS)")

    def handle(self, *args, **options):
        client_id = options.get("client")
        if client_id is not None:
            if not Client.objects.filter(id=client_id).exists():
                raise CommandError(f"Client {client_id} does not exist")
            result = run_for_client(client_id, holder="command")
            self.stdout.write(self.style.SUCCESS(f"Client {client_id}: {result.as_dict()}"))
            return

        workers = options.get("workers")
        if workers is not None and workers < 1:
            raise CommandError("--workers must be at least 1")

        report = run_cycle(force=options["force"], max_workers=workers)
        if report.already_ran:
            self.stdout.write(f"Window {report.window} already processed; use --force to run again.")
            return
        for result in report.results:
            self.stdout.write(str(result.as_dict()))
        self.stdout.write(
            self.style.SUCCESS(
                f"Cycle {report.window}: decremented {report.decremented} entries; outcomes {report.counts()}"
            )
        )
