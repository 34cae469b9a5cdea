from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Admin, Production, Sales'

    GROUPS = [
        {
            'name': 'Admin',
            'description': 'Shop owners and managers - full access including reports and portal administration',
        },
        {
            'name': 'Production',
            'description': 'Print floor staff - jobs, progress updates, hour logs and product lookups',
            'apps': ['jobs', 'catalog', 'timesheets'],
        },
        {
            'name': 'Sales',
            'description': 'Field sales staff - customers, quotes and pipeline activities',
            'apps': ['parties', 'sales'],
        },
    ]

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be created without making changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        created_count = 0
        existing_count = 0

        for group_config in self.GROUPS:
            name = group_config['name']
            if dry_run:
                exists = Group.objects.filter(name=name).exists()
                self.stdout.write(f'  Would {"update" if exists else "create"} group: {name}')
                continue

            group, created = Group.objects.get_or_create(name=name)
            if created:
                self.stdout.write(self.style.SUCCESS(f'Created group: {name}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {name}')
                existing_count += 1

            if name == 'Admin':
                group.permissions.set(Permission.objects.all())
                self.stdout.write('  Added all permissions to Admin group')
            else:
                permissions = Permission.objects.filter(content_type__app_label__in=group_config['apps'])
                group.permissions.set(permissions)
                self.stdout.write(f'  Added {permissions.count()} permissions to {name} group')

        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run - no changes made'))
            return

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {existing_count} groups already existed'
        ))
