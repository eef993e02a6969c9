import json

from django.core.management.base import BaseCommand, CommandError

from ledger.services import StockLedgerService


class Command(BaseCommand):
    help = 'Print ledger-derived stock levels for active raw materials'

    def add_arguments(self, parser):
        parser.add_argument(
            '--low-only',
            action='store_true',
            help='Only show materials at or below their minimum stock level'
        )
        parser.add_argument(
            '--json',
            action='store_true',
            help='Print the levels as JSON'
        )
        parser.add_argument(
            '--database',
            default='default',
            help='Database alias to read from (default: default)'
        )

    def handle(self, *args, **options):
        result = StockLedgerService(using=options['database']).all_levels(
            low_stock_only=options['low_only']
        )
        if not result['success']:
            raise CommandError(result['message'])

        levels = result['data']['levels']

        if options['json']:
            self.stdout.write(json.dumps(levels, indent=2))
            return

        if not levels:
            self.stdout.write('No stock levels to show')
            return

        for level in levels:
            line = (
                f"{level['name']}: available {level['available_quantity']} {level['available_unit']}"
            )
            if 'available_pack_quantity' in level:
                line += f" ({level['available_pack_quantity']} {level['available_pack_unit']})"
            line += f", on hand {level['on_hand']}, allocated {level['allocated']}"

            if level['is_low_stock']:
                self.stdout.write(self.style.WARNING(f'{line} [LOW]'))
            else:
                self.stdout.write(line)

        self.stdout.write(self.style.SUCCESS(
            f"{result['data']['count']} material(s), {result['data']['low_stock_count']} low"
        ))
