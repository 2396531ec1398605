"""
Seed departments, wards, beds and one login per staff role.

Idempotent: existing rows are reused and bed batches only top up missing
labels.  Passwords are reset on every run.
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from inpatient.models import Bed, Department, User, Ward
from inpatient.services.beds import DEFAULT_PREFIX, sequential_labels
from inpatient.services.wards import refresh_ward_counts

LAYOUT = {
    'General Medicine': [('Ward A', 'A-', 10), ('Ward B', 'B', 8)],
    'Surgery': [('Surgical 1', 'S-', 12)],
    'Paediatrics': [('Kids', DEFAULT_PREFIX, 6)],
}

STAFF = [
    ('admin1', User.ROLE_ADMIN, 'General Medicine'),
    ('doctor1', User.ROLE_DOCTOR, 'General Medicine'),
    ('nurse1', User.ROLE_NURSE, 'General Medicine'),
]


class Command(BaseCommand):
    help = 'Create demo departments, wards, beds and staff users (idempotent).'

    def add_arguments(self, parser):
        parser.add_argument('--password', default='P@ssw0rd1', help='password for the seeded users')

    @transaction.atomic
    def handle(self, *args, **opts):
        departments = {}
        for dept_name, wards in LAYOUT.items():
            dept, _ = Department.objects.get_or_create(name=dept_name)
            departments[dept_name] = dept
            for ward_name, prefix, count in wards:
                ward, created = Ward.objects.get_or_create(name=ward_name, department=dept)
                existing = set(ward.beds.values_list('bed_no', flat=True))
                Bed.objects.bulk_create([
                    Bed(ward=ward, bed_no=label)
                    for label in sequential_labels(count, prefix)
                    if label not in existing
                ])
                refresh_ward_counts(ward.id)
                verb = 'created' if created else 'ok'
                self.stdout.write(f'{verb}: {dept_name} / {ward_name} ({count} beds)')

        for username, role, dept_name in STAFF:
            user, _ = User.objects.get_or_create(username=username)
            user.role = role
            user.department = departments[dept_name]
            user.is_active = True
            user.is_staff = role == User.ROLE_ADMIN
            user.set_password(opts['password'])
            user.save()
            self.stdout.write(self.style.SUCCESS(f'ok: {username} ({role})'))
        self.stdout.write(self.style.SUCCESS('Ward data seeded.'))
