from django.core.management.base import BaseCommand, CommandError

from ledger_core.choices import DEFAULT_CHART
from ledger_core.exceptions import MissingAccount
from ledger_core.models import ChartOfAccount
from ledger_core.services import validate_chart


class Command(BaseCommand):
    help = "Seeds the chart of accounts the journal builder posts to."

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "--check",
            action="store_true",
            help="Only verify the chart; fail if an account is missing",
        )

    def handle(self, *args, **options):
        if not options["check"]:
            self.stdout.write(self.style.NOTICE("Seeding chart of accounts..."))
            for code, name, sub_type in DEFAULT_CHART:
                _, created = ChartOfAccount.objects.get_or_create(
                    code=code,
                    defaults={
                        "account_name": name.value,
                        "category": name.category,
                        "type": sub_type,
                    },
                )
                verb = "created" if created else "exists"
                self.stdout.write(f"  {code} {name.value}: {verb}")

        try:
            validate_chart()
        except MissingAccount as exc:
            raise CommandError(str(exc))
        self.stdout.write(self.style.SUCCESS("Chart of accounts is complete."))
