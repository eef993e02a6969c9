import logging

from django.core.management.base import BaseCommand, CommandError

from ledger.services import ConsumptionService, StockLedgerService, format_quantity

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Compare section inventory with the ledger-derived allocation per material'

    def add_arguments(self, parser):
        parser.add_argument(
            '--database',
            default='default',
            help='Database alias to check (default: default)'
        )

    def handle(self, *args, **options):
        using = options['database']
        report = StockLedgerService(using=using).allocation_report()
        unreconciled = ConsumptionService(using=using).unreconciled_count()

        problems = 0
        for row in report:
            if row['consistent']:
                continue
            problems += 1
            self.stdout.write(self.style.ERROR(
                f"{row['name']}: sections hold {format_quantity(row['section_total'])}, "
                f"ledger allocated {format_quantity(row['ledger_allocated'])}, "
                f"on hand {format_quantity(row['on_hand'])}"
            ))

        if unreconciled:
            self.stdout.write(self.style.WARNING(
                f'{unreconciled} consumption(s) recorded without a ledger movement'
            ))

        if problems or unreconciled:
            logger.warning(
                "Ledger reconciliation found %s inconsistent material(s), %s unreconciled consumption(s)",
                problems, unreconciled,
            )
            raise CommandError(
                f'Ledger inconsistent: {problems} material(s), {unreconciled} unreconciled consumption(s)'
            )

        self.stdout.write(self.style.SUCCESS(f'Ledger consistent across {len(report)} material(s)'))
