from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import LedgerError
from ledger_core.services import close_period


class Command(BaseCommand):
    help = "Posts the closing entry moving a period's net income into equity."

    def add_arguments(self, parser):
        parser.add_argument("start_date", help="YYYY-MM-DD")
        parser.add_argument("end_date", help="YYYY-MM-DD")

    def handle(self, *args, **options):
        try:
            result = close_period(options["start_date"], options["end_date"])
        except LedgerError as exc:
            raise CommandError(str(exc))

        if result.entry is None:
            self.stdout.write("No net income to close for this period.")
        elif not result.created:
            self.stdout.write(
                f"Closing entry {result.entry.entry_number} already exists."
            )
        else:
            self.stdout.write(self.style.SUCCESS(
                f"Posted {result.entry.entry_number}: net income {result.net_income}"
            ))
