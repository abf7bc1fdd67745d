# Recalculate Maker Stats Management Command
from django.core.management.base import BaseCommand
from django.db.models import Count, Q

from core.models import MakerProfile


class Command(BaseCommand):
    help = 'Recalculates completed-print counters on maker profiles from their print requests.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Run the command without saving changes to the database.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        self.recalculate_completed_prints(dry_run, batch_size)

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Recalculation completed successfully.'))

    def recalculate_completed_prints(self, dry_run, batch_size):
        self.stdout.write('Recalculating maker completed prints...')

        # A print counts once it reached COMPLETED; delivery keeps it counted
        profiles = (
            MakerProfile.objects
            .select_related('user')
            .annotate(actual=Count(
                'user__assigned_prints',
                filter=Q(user__assigned_prints__status__in=['COMPLETED', 'DELIVERED'])
            ))
            .order_by('pk')
            .iterator(chunk_size=batch_size)
        )
        updates = []
        count = 0
        changed = 0

        for profile in profiles:
            if profile.completed_prints != profile.actual:
                if dry_run:
                    self.stdout.write(
                        f'  [DRY-RUN] Maker {profile.user_id} ({profile.user.email}): '
                        f'Completed prints {profile.completed_prints} -> {profile.actual}'
                    )
                profile.completed_prints = profile.actual
                updates.append(profile)
                changed += 1

            if len(updates) >= batch_size:
                if not dry_run:
                    MakerProfile.objects.bulk_update(updates, ['completed_prints'])
                updates = []

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} makers...')

        if updates and not dry_run:
            MakerProfile.objects.bulk_update(updates, ['completed_prints'])

        self.stdout.write(f'Processed {count} makers total, {changed} out of date.')
