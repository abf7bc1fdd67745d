"""
Tests for the authentication routes proxied to the identity provider.

The provider client is replaced with a mock, so these tests cover what the
API does with the provider's answers: local account creation, error
mapping, throttling and the welcome email.

Test Coverage:
- Registration of customers and makers
- Login, logout, session refresh
- Password reset and update
- Provider rejections (400/401) and outages (503)
- IdentityProviderClient request building and error mapping
"""

from unittest import mock

import requests
from django.conf import settings
from django.core import mail
from django.core.cache import cache
from django.test import override_settings
from rest_framework import status

from core.identity import (
    IdentityProviderClient,
    IdentityProviderRejected,
    IdentityProviderUnavailable,
)
from core.models import MakerProfile, User

from .utils import APITestCase, create_customer

SESSION = {
    'access_token': 'access-123',
    'refresh_token': 'refresh-456',
    'expires_in': 3600,
    'expires_at': 1700000000,
    'token_type': 'bearer',
    'user': {'id': 'uuid-1', 'email': 'customer@example.com'},
}


class AuthRouteTestBase(APITestCase):

    def setUp(self):
        super().setUp()
        cache.clear()
        self.provider = mock.Mock(spec=IdentityProviderClient)
        patcher = mock.patch('core.views.IdentityProviderClient.from_settings', return_value=self.provider)
        patcher.start()
        self.addCleanup(patcher.stop)


# ============================================================================
# Registration
# ============================================================================

class RegisterTests(AuthRouteTestBase):

    def customer_payload(self, **overrides):
        payload = {
            'email': 'New.Customer@Example.com',
            'password': 'secret123',
            'name': 'New Customer',
            'role': 'CUSTOMER',
            'city': 'Portland',
            'state': 'OR',
        }
        payload.update(overrides)
        return payload

    def maker_payload(self, **overrides):
        payload = {
            'email': 'new.maker@example.com',
            'password': 'secret123',
            'name': 'New Maker',
            'role': 'MAKER',
            'materials': ['PLA', 'PETG', 'PLA'],
            'printerVolume': '256x256x256mm',
            'resolution': '0.1mm',
            'hasEnclosure': True,
            'hourlyRate': 15.5,
        }
        payload.update(overrides)
        return payload

    def test_register_customer(self):
        self.provider.sign_up.return_value = {'id': 'uuid-1', 'email': 'new.customer@example.com'}

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post('/api/auth/register', self.customer_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['email'], 'new.customer@example.com')
        self.assertEqual(response.data['user']['role'], 'CUSTOMER')
        self.assertEqual(response.data['user']['customerProfile']['city'], 'Portland')
        self.assertIsNone(response.data['user']['makerProfile'])
        self.assertIsNone(response.data['session'])
        self.assertIn('Registration successful', response.data['message'])
        self.provider.sign_up.assert_called_once_with('new.customer@example.com', 'secret123')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['new.customer@example.com'])

    def test_register_maker_creates_maker_profile(self):
        self.provider.sign_up.return_value = SESSION

        response = self.client.post('/api/auth/register', self.maker_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        profile = MakerProfile.objects.get(user__email='new.maker@example.com')
        self.assertEqual(profile.materials, ['PLA', 'PETG'])
        self.assertEqual(profile.printer_volume, '256x256x256mm')
        self.assertTrue(profile.has_enclosure)
        self.assertEqual(response.data['session']['access_token'], 'access-123')
        self.assertFalse(hasattr(User.objects.get(email='new.maker@example.com'), 'customer_profile'))

    def test_maker_requires_printer_details(self):
        response = self.client.post(
            '/api/auth/register', self.maker_payload(printerVolume=''), format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.provider.sign_up.assert_not_called()

    def test_maker_requires_materials(self):
        response = self.client.post('/api/auth/register', self.maker_payload(materials=[]), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'materials: This field is required for makers.')

    def test_admin_role_not_allowed(self):
        response = self.client.post('/api/auth/register', self.customer_payload(role='ADMIN'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.data['error'].startswith('role:'))

    def test_duplicate_email(self):
        create_customer(email='new.customer@example.com')

        response = self.client.post('/api/auth/register', self.customer_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'email: A user with that email already exists.')
        self.provider.sign_up.assert_not_called()

    def test_short_password(self):
        response = self.client.post('/api/auth/register', self.customer_payload(password='123'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.data['error'].startswith('password:'))

    def test_provider_rejects_sign_up(self):
        self.provider.sign_up.side_effect = IdentityProviderRejected('Password is too weak', status_code=422)

        response = self.client.post('/api/auth/register', self.customer_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Password is too weak')
        self.assertFalse(User.objects.filter(email='new.customer@example.com').exists())

    def test_provider_unavailable(self):
        self.provider.sign_up.side_effect = IdentityProviderUnavailable('timed out')

        response = self.client.post('/api/auth/register', self.customer_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['error'], 'Authentication service unavailable')
        self.assertFalse(User.objects.filter(email='new.customer@example.com').exists())


# ============================================================================
# Login, logout and refresh
# ============================================================================

class LoginTests(AuthRouteTestBase):

    def setUp(self):
        super().setUp()
        self.user = create_customer()

    def test_login_success(self):
        self.provider.sign_in_with_password.return_value = SESSION

        response = self.client.post('/api/auth/login', {
            'email': 'Customer@Example.com',
            'password': 'secret123',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], self.user.pk)
        self.assertEqual(response.data['session']['refresh_token'], 'refresh-456')
        self.provider.sign_in_with_password.assert_called_once_with('customer@example.com', 'secret123')
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login)

    def test_bad_credentials(self):
        self.provider.sign_in_with_password.side_effect = IdentityProviderRejected('Invalid login credentials')

        response = self.client.post('/api/auth/login', {
            'email': 'customer@example.com',
            'password': 'wrongpass',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid credentials')

    def test_no_local_account(self):
        self.provider.sign_in_with_password.return_value = SESSION

        response = self.client.post('/api/auth/login', {
            'email': 'ghost@example.com',
            'password': 'secret123',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'User not found or inactive')

    def test_inactive_account(self):
        User.objects.filter(pk=self.user.pk).update(is_active=False)
        self.provider.sign_in_with_password.return_value = SESSION

        response = self.client.post('/api/auth/login', {
            'email': 'customer@example.com',
            'password': 'secret123',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'User not found or inactive')

    def test_provider_unavailable(self):
        self.provider.sign_in_with_password.side_effect = IdentityProviderUnavailable('down')

        response = self.client.post('/api/auth/login', {
            'email': 'customer@example.com',
            'password': 'secret123',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_login_is_throttled(self):
        self.provider.sign_in_with_password.side_effect = IdentityProviderRejected('Invalid login credentials')
        payload = {'email': 'customer@example.com', 'password': 'wrongpass'}

        for _ in range(5):
            response = self.client.post('/api/auth/login', payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        response = self.client.post('/api/auth/login', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertIn('error', response.data)


class SessionTests(AuthRouteTestBase):

    def test_logout_revokes_bearer_session(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer access-123')

        response = self.client.post('/api/auth/logout')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Logged out successfully')
        self.provider.sign_out.assert_called_once_with('access-123')

    def test_logout_without_token(self):
        response = self.client.post('/api/auth/logout')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.provider.sign_out.assert_not_called()

    def test_refresh(self):
        self.provider.refresh_session.return_value = SESSION

        response = self.client.post('/api/auth/refresh', {'refresh_token': 'refresh-456'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['session']['access_token'], 'access-123')
        self.provider.refresh_session.assert_called_once_with('refresh-456')

    def test_refresh_requires_token(self):
        response = self.client.post('/api/auth/refresh', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Refresh token required')

    def test_refresh_rejected(self):
        self.provider.refresh_session.side_effect = IdentityProviderRejected('Invalid Refresh Token')

        response = self.client.post('/api/auth/refresh', {'refresh_token': 'stale'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid Refresh Token')


class PasswordTests(AuthRouteTestBase):

    def test_reset_password(self):
        response = self.client.post('/api/auth/reset-password', {'email': 'customer@example.com'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Password reset email sent')
        self.provider.reset_password_for_email.assert_called_once_with(
            'customer@example.com', redirect_to=f'{settings.FRONTEND_URL}/reset-password'
        )

    def test_reset_password_requires_email(self):
        response = self.client.post('/api/auth/reset-password', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Email is required')

    def test_update_password(self):
        response = self.client.post('/api/auth/update-password', {
            'password': 'brandnew123',
            'access_token': 'recovery-token',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.provider.update_password.assert_called_once_with('recovery-token', 'brandnew123')

    def test_update_password_with_expired_link(self):
        self.provider.update_password.side_effect = IdentityProviderRejected('Token has expired')

        response = self.client.post('/api/auth/update-password', {
            'password': 'brandnew123',
            'access_token': 'expired',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Token has expired')


# ============================================================================
# Identity provider client
# ============================================================================

class IdentityProviderClientTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.session = mock.Mock(spec=requests.Session)
        self.session.headers = {}
        self.client_under_test = IdentityProviderClient(
            'http://identity.test/', 'anon-key', timeout=2.5, session=self.session
        )

    def answer(self, status_code, body):
        response = mock.Mock()
        response.status_code = status_code
        response.content = b'{}'
        response.json.return_value = body
        return response

    def test_sign_in_builds_password_grant(self):
        self.session.request.return_value = self.answer(200, SESSION)

        body = self.client_under_test.sign_in_with_password('a@example.com', 'secret123')

        self.assertEqual(body, SESSION)
        self.assertEqual(self.session.headers['apikey'], 'anon-key')
        self.session.request.assert_called_once_with(
            'POST',
            'http://identity.test/auth/v1/token',
            params={'grant_type': 'password'},
            json={'email': 'a@example.com', 'password': 'secret123'},
            headers={},
            timeout=2.5,
        )

    def test_rejection_carries_provider_message(self):
        self.session.request.return_value = self.answer(
            400, {'error': 'invalid_grant', 'error_description': 'Invalid login credentials'}
        )

        with self.assertRaises(IdentityProviderRejected) as ctx:
            self.client_under_test.sign_in_with_password('a@example.com', 'wrong')

        self.assertEqual(ctx.exception.message, 'Invalid login credentials')
        self.assertEqual(ctx.exception.status_code, 400)

    def test_timeout_is_unavailable(self):
        self.session.request.side_effect = requests.exceptions.Timeout()

        with self.assertRaises(IdentityProviderUnavailable) as ctx:
            self.client_under_test.get_user('token')

        self.assertIn('2.5 seconds', ctx.exception.message)

    def test_server_error_is_unavailable(self):
        self.session.request.return_value = self.answer(503, {})

        with self.assertRaises(IdentityProviderUnavailable):
            self.client_under_test.refresh_session('refresh')

    def test_client_from_settings_is_reused(self):
        first = IdentityProviderClient.from_settings()

        self.assertIs(IdentityProviderClient.from_settings(), first)

        other_provider = dict(settings.IDENTITY_PROVIDER, URL='http://other-identity.test')
        with override_settings(IDENTITY_PROVIDER=other_provider):
            other = IdentityProviderClient.from_settings()

        self.assertIsNot(other, first)
        self.assertEqual(other.base_url, 'http://other-identity.test')
