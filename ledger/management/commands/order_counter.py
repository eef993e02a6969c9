from django.core.management.base import BaseCommand, CommandError

from ledger.services import ReferenceSequencer, ServiceError


class Command(BaseCommand):
    help = 'Show or reset the order reference counter'

    def add_arguments(self, parser):
        parser.add_argument(
            '--reset',
            type=int,
            metavar='N',
            help='Set the counter to N; the next reference issued will be N + 1'
        )
        parser.add_argument(
            '--database',
            default='default',
            help='Database alias (default: default)'
        )

    def handle(self, *args, **options):
        sequencer = ReferenceSequencer(using=options['database'])

        if options['reset'] is not None:
            try:
                previous = sequencer.reset(options['reset'])
            except ServiceError as e:
                raise CommandError(e.message)
            self.stdout.write(self.style.SUCCESS(
                f"Counter reset from {previous} to {options['reset']}"
            ))
            return

        number = sequencer.current_number()
        self.stdout.write(f'Last issued: {number} ({sequencer.format(number)})')
        self.stdout.write(f'Next: {sequencer.format(number + 1)}')
