from django.core.management.base import BaseCommand

from inpatient.services.wards import reconcile_ward_counts


class Command(BaseCommand):
    help = "Recompute every ward's bed_count/occupied_beds from its beds and report drift."

    def handle(self, *args, **options):
        drifted = reconcile_ward_counts()
        for row in drifted:
            self.stdout.write(self.style.WARNING(f"fixed: ward #{row['wardId']} {row['before']} -> {row['after']}"))
        self.stdout.write(self.style.SUCCESS(f'{len(drifted)} ward(s) corrected.'))
