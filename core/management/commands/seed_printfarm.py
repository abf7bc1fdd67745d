# Seed PrintFarm Management Command
import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from faker import Faker

from core.models import (
    Announcement,
    Favorite,
    MakerProfile,
    Message,
    ModelListing,
    PrintRequest,
    Role,
    User,
)

fake = Faker()

MATERIALS = ['PLA', 'PETG', 'ABS', 'TPU', 'ASA', 'Nylon', 'Resin']
TAGS = [
    'toy', 'articulated', 'no-supports', 'organizer', 'desk', 'cosplay',
    'miniature', 'household', 'tool', 'electronics', 'case', 'planter',
]
COMPLEXITIES = [choice for choice, _label in ModelListing.COMPLEXITY_CHOICES]

# Statuses a seeded request ends in, with the timestamps it must carry
STATUS_PATHS = {
    'REQUESTED': [],
    'ACCEPTED': ['accepted_at'],
    'PRINTING': ['accepted_at', 'started_at'],
    'COMPLETED': ['accepted_at', 'started_at', 'completed_at'],
    'DELIVERED': ['accepted_at', 'started_at', 'completed_at', 'delivered_at'],
    'CANCELLED': [],
    'REJECTED': [],
}


class Command(BaseCommand):
    help = 'Populates the database with demo makers, customers, models, print requests and messages.'

    def add_arguments(self, parser):
        parser.add_argument('--customers', type=int, default=10, help='Number of customers to create.')
        parser.add_argument('--makers', type=int, default=5, help='Number of makers to create.')
        parser.add_argument('--models', type=int, default=20, help='Number of model listings to create.')
        parser.add_argument('--seed', type=int, default=None, help='Random seed for reproducible data.')

    def handle(self, *args, **options):
        if options['makers'] < 1 or options['customers'] < 1 or options['models'] < 1:
            raise CommandError('--customers, --makers and --models must be at least 1.')

        if options['seed'] is not None:
            random.seed(options['seed'])
            Faker.seed(options['seed'])

        self.stdout.write('Starting database population...')

        with transaction.atomic():
            customers, makers = self.create_users(options['customers'], options['makers'])
            models = self.create_models(options['models'])
            self.create_favorites(customers, models)
            self.create_print_requests(customers, makers, models)
            self.create_messages(customers, makers)
            self.create_announcements()

        self.stdout.write(self.style.SUCCESS('Database population completed successfully!'))

    def create_users(self, num_customers, num_makers):
        self.stdout.write(f'Creating {num_customers} customers and {num_makers} makers...')
        customers = []
        makers = []

        for _ in range(num_customers):
            user = User.objects.create_user(
                email=fake.unique.email(),
                name=fake.name()[:50],
                role=Role.CUSTOMER,
            )
            profile = user.customer_profile
            profile.preferred_materials = random.sample(MATERIALS, random.randint(1, 3))
            profile.city = fake.city()
            profile.state = fake.state_abbr()
            profile.save()
            customers.append(user)

        for _ in range(num_makers):
            user = User.objects.create_user(
                email=fake.unique.email(),
                name=fake.name()[:50],
                role=Role.MAKER,
            )
            profile = user.maker_profile
            profile.materials = random.sample(MATERIALS, random.randint(2, 5))
            profile.printer_volume = random.choice(['220x220x250mm', '256x256x256mm', '300x300x400mm'])
            profile.resolution = random.choice(['0.05mm', '0.1mm', '0.2mm'])
            profile.has_enclosure = random.choice([True, False])
            profile.status = random.choice([code for code, _label in MakerProfile.STATUS_CHOICES])
            profile.availability = random.choice(['Weekdays', 'Evenings and weekends', 'Anytime'])
            profile.hourly_rate = Decimal(random.uniform(5.0, 40.0)).quantize(Decimal('0.01'))
            profile.city = fake.city()
            profile.state = fake.state_abbr()
            profile.rating = Decimal(random.uniform(3.5, 5.0)).quantize(Decimal('0.01'))
            profile.total_ratings = random.randint(0, 40)
            profile.save()
            makers.append(user)

        self.stdout.write(f'Created {len(customers)} customers and {len(makers)} makers.')
        return customers, makers

    def create_models(self, num_models):
        self.stdout.write('Creating model listings...')
        models = []

        for _ in range(num_models):
            thing_id = str(fake.unique.random_int(min=1000000, max=9999999))
            models.append(ModelListing.objects.create(
                thing_id=thing_id,
                title=fake.catch_phrase()[:200],
                description=fake.paragraph(),
                image_url=fake.image_url(),
                source_url=f'https://www.thingiverse.com/thing/{thing_id}',
                tags=random.sample(TAGS, random.randint(1, 4)),
                license='Creative Commons - Attribution',
                author_name=fake.user_name()[:100],
                published_date=timezone.now() - timedelta(days=random.randint(30, 900)),
                download_count=random.randint(0, 30000),
                like_count=random.randint(0, 2000),
                complexity=random.choice(COMPLEXITIES),
                print_time=f'{random.randint(1, 24)} hours',
                filament_used=f'{random.randint(5, 300)}g',
            ))

        self.stdout.write(f'Created {len(models)} model listings.')
        return models

    def create_favorites(self, customers, models):
        favorites = []
        for customer in customers:
            for model in random.sample(models, min(len(models), random.randint(0, 4))):
                favorites.append(Favorite(user=customer, model=model))
        Favorite.objects.bulk_create(favorites, ignore_conflicts=True)
        self.stdout.write(f'Created {len(favorites)} favorites.')

    def create_print_requests(self, customers, makers, models):
        self.stdout.write('Creating print requests...')
        count = 0

        for customer in customers:
            # Each customer requests 0-3 prints
            for _ in range(random.randint(0, 3)):
                maker = random.choice(makers)
                status = random.choice(list(STATUS_PATHS))
                created = timezone.now() - timedelta(days=random.randint(1, 30))

                print_request = PrintRequest(
                    model=random.choice(models),
                    customer=customer,
                    maker=maker,
                    quantity=random.randint(1, 3),
                    material=random.choice(maker.maker_profile.materials),
                    color=random.choice(['', 'Black', 'White', 'Red', 'Blue']),
                    notes=fake.sentence() if random.random() < 0.5 else '',
                    urgency=random.choice(['Low', 'Normal', 'High']),
                    status=status,
                )
                for offset, field in enumerate(STATUS_PATHS[status], start=1):
                    setattr(print_request, field, created + timedelta(days=offset))
                if print_request.accepted_at:
                    print_request.quoted_price = Decimal(random.uniform(5.0, 80.0)).quantize(Decimal('0.01'))
                if print_request.completed_at:
                    print_request.final_price = print_request.quoted_price
                print_request.save()

                if status in ('COMPLETED', 'DELIVERED'):
                    MakerProfile.objects.filter(user=maker).update(completed_prints=F('completed_prints') + 1)
                count += 1

        self.stdout.write(f'Created {count} print requests.')

    def create_messages(self, customers, makers):
        count = 0
        for customer in customers:
            maker = random.choice(makers)
            for turn in range(random.randint(0, 4)):
                sender, receiver = (customer, maker) if turn % 2 == 0 else (maker, customer)
                Message.objects.create(
                    sender=sender,
                    receiver=receiver,
                    content=fake.sentence(),
                    is_read=random.random() < 0.5,
                )
                count += 1
        self.stdout.write(f'Created {count} messages.')

    def create_announcements(self):
        Announcement.objects.create(
            title='Welcome to ThePrintFarm',
            content='Find a local maker and get your favorite models printed.',
            type='INFO',
            priority=5,
        )
        self.stdout.write('Created announcements.')
