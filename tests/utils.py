"""
Shared fixtures for the API tests.

Tokens are minted the way the identity provider signs them (HS256 with the
project JWT secret, audience ``authenticated``) and verified locally, so the
tests never reach the network.
"""

import uuid
from datetime import datetime, timedelta, timezone as dt_timezone

import jwt
from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from core.models import ModelListing, Role

User = get_user_model()

TEST_JWT_SECRET = 'test-identity-provider-secret-0123456789abcdef'

LOCAL_IDENTITY = {
    'URL': 'http://identity.test',
    'ANON_KEY': 'test-anon-key',
    'JWT_SECRET': TEST_JWT_SECRET,
    'JWT_AUDIENCE': 'authenticated',
    'VERIFY_MODE': 'local',
    'TIMEOUT': 1.0,
}


def make_token(email, secret=TEST_JWT_SECRET, expires_in=3600, **claims):
    now = datetime.now(dt_timezone.utc)
    payload = {
        'sub': str(uuid.uuid4()),
        'email': email,
        'aud': 'authenticated',
        'role': 'authenticated',
        'iat': now,
        'exp': now + timedelta(seconds=expires_in),
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm='HS256')


def create_customer(email='customer@example.com', name='Casey Customer', **extra):
    return User.objects.create_user(email=email, name=name, role=Role.CUSTOMER, **extra)


def create_maker(email='maker@example.com', name='Morgan Maker', materials=('PLA', 'PETG'), **extra):
    user = User.objects.create_user(email=email, name=name, role=Role.MAKER, **extra)
    profile = user.maker_profile
    profile.materials = list(materials)
    profile.save()
    return user


def create_admin(email='admin@example.com', name='Alex Admin', **extra):
    return User.objects.create_user(email=email, name=name, role=Role.ADMIN, **extra)


def create_listing(thing_id='1000001', title='Articulated Dragon', **extra):
    defaults = {
        'description': 'A fully articulated dragon that prints in place.',
        'image_url': 'https://images.example.com/dragon.png',
        'source_url': f'https://www.thingiverse.com/thing/{thing_id}',
        'tags': ['dragon', 'articulated'],
        'author_name': 'DragonMaker3D',
        'complexity': 'Beginner',
    }
    defaults.update(extra)
    return ModelListing.objects.create(thing_id=thing_id, title=title, **defaults)


@override_settings(IDENTITY_PROVIDER=LOCAL_IDENTITY)
class APITestCase(TestCase):
    """TestCase with an APIClient and local token verification."""

    def setUp(self):
        self.client = APIClient()

    def authenticate(self, user):
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {make_token(user.email)}')

    def logout(self):
        self.client.credentials()
