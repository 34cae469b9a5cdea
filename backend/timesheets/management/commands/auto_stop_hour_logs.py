"""
Management command to close hour logs left running past the shift limit.
"""
from django.core.management.base import BaseCommand
from backend.core.utils import get_setting
from backend.timesheets.utils import auto_stop_hour_logs


class Command(BaseCommand):
    help = 'Stop active hour logs that have been running longer than the maximum shift length'

    def add_arguments(self, parser):
        parser.add_argument(
            '--max-hours',
            type=int,
            help='Hours after which a log is stopped (defaults to the HOUR_LOG_MAX_HOURS setting)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show which logs would be stopped without changing them',
        )

    def handle(self, *args, **options):
        max_hours = options['max_hours'] or int(get_setting('HOUR_LOG_MAX_HOURS', 8))
        dry_run = options['dry_run']

        logs = auto_stop_hour_logs(max_hours, dry_run=dry_run)
        if not logs:
            self.stdout.write(self.style.SUCCESS(f'No hour logs running longer than {max_hours} hours.'))
            return

        for log in logs:
            self.stdout.write(f'  {log.user.username}: started {log.start_time:%Y-%m-%d %H:%M}')

        if dry_run:
            self.stdout.write(self.style.WARNING(f'Dry run - {len(logs)} hour log(s) would be stopped'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Auto-stopped {len(logs)} hour log(s) after {max_hours} hours'))
