from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission

from backend.core.roles import TECHNICIAN, SC_MANAGER, CENTRAL_ADMIN, INVENTORY_MANAGER, ROLE_DESCRIPTIONS


class Command(BaseCommand):
    help = 'Create Django user groups for the parts workflow: Technician, ServiceCenterManager, CentralAdmin, InventoryManager'

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': TECHNICIAN,
                'permissions': [
                    ('jobcards', 'view_jobcard'),
                    ('jobcards', 'add_jobcard'),
                    ('parts_issues', 'view_partsissuerequest'),
                    ('parts_issues', 'add_partsissuerequest'),
                    ('catalog', 'view_part'),
                ],
            },
            {
                'name': SC_MANAGER,
                'permissions': [
                    ('jobcards', 'view_jobcard'),
                    ('jobcards', 'add_jobcard'),
                    ('parts_issues', 'view_partsissuerequest'),
                    ('parts_issues', 'add_partsissuerequest'),
                    ('parts_issues', 'change_partsissuerequest'),
                    ('catalog', 'view_part'),
                ],
            },
            {
                'name': INVENTORY_MANAGER,
                'permissions': [
                    ('parts_issues', 'view_partsissuerequest'),
                    ('parts_issues', 'change_partsissuerequest'),
                    ('inventory', 'view_centralstock'),
                    ('inventory', 'change_centralstock'),
                    ('purchasing', 'view_purchaseorder'),
                    ('catalog', 'view_part'),
                ],
            },
            {
                'name': CENTRAL_ADMIN,
                'permissions': '*',
            },
        ]

        created_count = 0
        updated_count = 0

        for group_config in groups_config:
            name = group_config['name']
            group, created = Group.objects.get_or_create(name=name)

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {name} ({ROLE_DESCRIPTIONS[name]})'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {name}')
                updated_count += 1

            if group_config['permissions'] == '*':
                # Central admins get every module permission except Django admin internals
                permissions = Permission.objects.exclude(content_type__app_label='admin')
                group.permissions.set(permissions)
                self.stdout.write(f'  Added module permissions to {name} group')
                continue

            permissions = []
            for app_label, codename in group_config['permissions']:
                permission = Permission.objects.filter(
                    content_type__app_label=app_label, codename=codename
                ).first()
                if permission is None:
                    self.stdout.write(self.style.WARNING(f'  Permission not found: {app_label}.{codename}'))
                    continue
                permissions.append(permission)
            group.permissions.set(permissions)
            self.stdout.write(f'  Set {len(permissions)} permissions for {name} group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))
