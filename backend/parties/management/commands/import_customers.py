"""
Management command to import customers from a CSV file
"""
import csv
import os
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from backend.parties.models import Customer


class Command(BaseCommand):
    help = "Imports customers from a CSV file with name, email, phone and address columns"

    def add_arguments(self, parser):
        parser.add_argument('csv_file', type=str, help='Path to the CSV file')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would be imported without writing to the database',
        )
        parser.add_argument(
            '--update',
            action='store_true',
            help='Update name, phone and address of customers whose email already exists',
        )

    def handle(self, *args, **options):
        csv_file = options['csv_file']
        dry_run = options['dry_run']
        update = options['update']

        if not os.path.exists(csv_file):
            raise CommandError(f"CSV file not found at {csv_file}")

        self.stdout.write(f"Importing customers from {csv_file}")

        created_count = 0
        updated_count = 0
        skipped_count = 0
        seen_emails = set()

        with open(csv_file, 'r', encoding='utf-8') as f, transaction.atomic():
            reader = csv.DictReader(f)
            for line_number, row in enumerate(reader, start=2):
                name = (row.get('name') or '').strip()
                email = (row.get('email') or '').strip().lower()

                if not name or not email:
                    skipped_count += 1
                    self.stdout.write(self.style.WARNING(f"  Line {line_number}: skipped (name and email are required)"))
                    continue

                if email in seen_emails:
                    skipped_count += 1
                    self.stdout.write(self.style.WARNING(f"  Line {line_number}: skipped (duplicate email in CSV): {email}"))
                    continue
                seen_emails.add(email)

                fields = {
                    'name': name,
                    'phone': (row.get('phone') or '').strip() or None,
                    'address': (row.get('address') or '').strip(),
                }

                existing = Customer.objects.filter(email__iexact=email).first()
                if existing:
                    if not update:
                        skipped_count += 1
                        continue
                    if not dry_run:
                        for field, value in fields.items():
                            setattr(existing, field, value)
                        existing.save()
                    updated_count += 1
                    continue

                if not dry_run:
                    Customer.objects.create(email=email, **fields)
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f"  Created: {name} <{email}>"))

            if dry_run:
                transaction.set_rollback(True)

        prefix = '[DRY RUN] ' if dry_run else ''
        self.stdout.write(self.style.SUCCESS(
            f"{prefix}Created: {created_count}, Updated: {updated_count}, Skipped: {skipped_count}"
        ))
