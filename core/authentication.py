"""
Bearer-token authentication against the Supabase identity provider.
"""

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import authentication
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.backends import TokenBackend
from rest_framework_simplejwt.exceptions import TokenBackendError

from .identity import IdentityProviderClient, IdentityProviderRejected, IdentityProviderUnavailable

User = get_user_model()
logger = logging.getLogger(__name__)


class IdentityProviderAuthentication(authentication.BaseAuthentication):
    """
    Resolve ``Authorization: Bearer <token>`` to a local, active account.

    In ``remote`` mode the token is sent to the provider (``GET /auth/v1/user``)
    and the answer's email is looked up locally. In ``local`` mode the
    provider-signed HS256 JWT is verified with simplejwt's TokenBackend using
    the project's JWT secret.

    Requests without a bearer header stay anonymous so public endpoints keep
    working; protected endpoints then answer 401 through IsAuthenticated.
    Successful authentication stamps ``last_login``.
    """

    keyword = 'Bearer'

    def __init__(self, client=None):
        self.client = client

    def authenticate_header(self, request):
        return self.keyword

    def get_client(self):
        return self.client or IdentityProviderClient.from_settings()

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).split()

        if not header or header[0].lower() != self.keyword.lower().encode():
            return None

        if len(header) != 2:
            raise AuthenticationFailed('Invalid token header')

        try:
            token = header[1].decode()
        except UnicodeError:
            raise AuthenticationFailed('Invalid token header')

        email = self.verify_token(token)
        user = self.resolve_user(email)
        return (user, token)

    def verify_token(self, token):
        """
        Verify ``token`` with the provider and return the account email.

        Raises:
            AuthenticationFailed: Token rejected, provider unreachable or timed out
        """
        conf = settings.IDENTITY_PROVIDER

        if conf.get('VERIFY_MODE', 'remote') == 'local':
            if not conf.get('JWT_SECRET'):
                logger.error("Local token verification requested but no JWT secret is configured")
                raise AuthenticationFailed('Authentication failed')

            backend = TokenBackend(
                'HS256',
                signing_key=conf['JWT_SECRET'],
                audience=conf.get('JWT_AUDIENCE') or None,
            )
            try:
                payload = backend.decode(token, verify=True)
            except TokenBackendError as e:
                logger.warning(f"Rejected bearer token: {e}")
                raise AuthenticationFailed('Invalid token')
            email = payload.get('email')
        else:
            try:
                provider_user = self.get_client().get_user(token)
            except IdentityProviderRejected as e:
                logger.warning(f"Identity provider rejected bearer token: {e.message}")
                raise AuthenticationFailed('Invalid token')
            except IdentityProviderUnavailable as e:
                logger.error(f"Identity provider unavailable during authentication: {e.message}")
                raise AuthenticationFailed('Authentication failed')
            email = provider_user.get('email')

        if not email:
            raise AuthenticationFailed('Invalid token')
        return email

    def resolve_user(self, email):
        try:
            user = User.objects.select_related(
                'maker_profile', 'customer_profile'
            ).get(email__iexact=email)
        except User.DoesNotExist:
            logger.warning(f"Authenticated token for unknown account. Email: {email}")
            raise AuthenticationFailed('User not found or inactive')

        if not user.is_active:
            logger.warning(f"Authenticated token for inactive account. Email: {email}")
            raise AuthenticationFailed('User not found or inactive')

        now = timezone.now()
        User.objects.filter(pk=user.pk).update(last_login=now)
        user.last_login = now
        return user
