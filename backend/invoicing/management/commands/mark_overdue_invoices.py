"""
Management command to flag PENDING invoices past their due date as OVERDUE.
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from backend.core.utils import create_audit_log
from backend.invoicing.models import Invoice


class Command(BaseCommand):
    help = 'Mark PENDING invoices whose due date has passed as OVERDUE'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show which invoices would be marked without changing them',
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Show detailed information for each invoice',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        verbose = options['verbose']
        today = timezone.localdate()

        invoices = Invoice.objects.filter(
            status='PENDING',
            due_date__lt=today
        ).select_related('customer').order_by('due_date')

        total = invoices.count()
        if total == 0:
            self.stdout.write(self.style.SUCCESS('No overdue invoices found.'))
            return

        self.stdout.write(f'Found {total} pending invoice(s) past their due date')

        updated = 0
        with transaction.atomic():
            for invoice in invoices:
                days_overdue = (today - invoice.due_date).days
                if verbose or dry_run:
                    self.stdout.write(
                        f'  {invoice.invoice_number} ({invoice.customer.name}) '
                        f'due {invoice.due_date}, {days_overdue} day(s) overdue, total {invoice.total_amount}'
                    )
                if dry_run:
                    continue

                invoice.status = 'OVERDUE'
                invoice.save(update_fields=['status', 'updated_at'])
                create_audit_log(
                    action='invoice_status',
                    model_name='Invoice',
                    object_id=invoice.id,
                    object_name=invoice.invoice_number,
                    object_reference=invoice.invoice_number,
                    changes={'invoice_status': {'old': 'PENDING', 'new': 'OVERDUE'}, 'source': 'mark_overdue_invoices'},
                )
                updated += 1

        if dry_run:
            self.stdout.write(self.style.WARNING(f'Dry run - {total} invoice(s) would be marked OVERDUE'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Marked {updated} invoice(s) as OVERDUE'))
