"""Client for the Supabase identity provider (GoTrue REST API)"""
import functools
from typing import Any, Dict, Optional

import requests
from django.conf import settings


class IdentityProviderError(Exception):
    """Base exception for identity provider errors"""
    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class IdentityProviderUnavailable(IdentityProviderError):
    """Raised when the provider cannot be reached or times out"""
    pass


class IdentityProviderRejected(IdentityProviderError):
    """Raised when the provider answers with a 4xx (bad credentials, expired token, ...)"""
    pass


class IdentityProviderClient:
    """
    Thin wrapper over the GoTrue endpoints used by the API.

    Every call is bounded by ``timeout`` seconds. Timeouts and connection
    failures raise IdentityProviderUnavailable; 4xx answers raise
    IdentityProviderRejected carrying the provider's message.
    """

    def __init__(self, base_url: str, anon_key: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.anon_key = anon_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers['apikey'] = anon_key
        self.session.headers['content-type'] = 'application/json'

    @classmethod
    def from_settings(cls) -> 'IdentityProviderClient':
        """Return the process-wide client for the configured provider, building it on first use"""
        conf = settings.IDENTITY_PROVIDER
        return shared_client(cls, conf['URL'], conf['ANON_KEY'], float(conf.get('TIMEOUT', 5.0)))

    def _request(self, method: str, path: str, access_token: Optional[str] = None,
                 params: Optional[Dict[str, str]] = None, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make a call to the provider and return the decoded JSON body ({} when empty)

        Raises:
            IdentityProviderUnavailable: Timeout, connection failure or 5xx
            IdentityProviderRejected: The provider refused the request (4xx)
        """
        url = f"{self.base_url}/auth/v1/{path}"
        headers = {}
        if access_token:
            headers['Authorization'] = f'Bearer {access_token}'

        try:
            response = self.session.request(
                method, url, params=params, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise IdentityProviderUnavailable(
                f"Identity provider timed out after {self.timeout} seconds", endpoint=path
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise IdentityProviderUnavailable(
                f"Failed to connect to identity provider at {self.base_url}", endpoint=path
            ) from e
        except requests.exceptions.RequestException as e:
            raise IdentityProviderUnavailable(f"Request failed: {e}", endpoint=path) from e

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if response.status_code >= 500:
            raise IdentityProviderUnavailable(
                f"Identity provider error ({response.status_code})",
                status_code=response.status_code,
                endpoint=path
            )
        if response.status_code >= 400:
            message = (
                body.get('error_description') or body.get('msg')
                or body.get('message') or body.get('error') or 'Request rejected'
            )
            raise IdentityProviderRejected(message, status_code=response.status_code, endpoint=path)

        return body

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """Return the provider's user record for a valid access token"""
        return self._request('GET', 'user', access_token=access_token)

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """Exchange credentials for a session (access_token, refresh_token, expires_in, user)"""
        return self._request('POST', 'token', params={'grant_type': 'password'},
                             payload={'email': email, 'password': password})

    def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        return self._request('POST', 'signup', payload={'email': email, 'password': password})

    def sign_out(self, access_token: str) -> None:
        self._request('POST', 'logout', access_token=access_token)

    def refresh_session(self, refresh_token: str) -> Dict[str, Any]:
        return self._request('POST', 'token', params={'grant_type': 'refresh_token'},
                             payload={'refresh_token': refresh_token})

    def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {'redirect_to': redirect_to} if redirect_to else None
        self._request('POST', 'recover', params=params, payload={'email': email})

    def update_password(self, access_token: str, password: str) -> Dict[str, Any]:
        return self._request('PUT', 'user', access_token=access_token, payload={'password': password})


@functools.lru_cache(maxsize=8)
def shared_client(cls, base_url: str, anon_key: str, timeout: float) -> IdentityProviderClient:
    # Keyed on the settings so overridden settings get their own pooled session
    return cls(base_url, anon_key, timeout=timeout)


def session_from_response(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Extract the session part of a sign-in/sign-up/refresh answer.

    Sign-up returns no session while email confirmation is pending.
    """
    if not body or 'access_token' not in body:
        return None
    return {
        'access_token': body['access_token'],
        'refresh_token': body.get('refresh_token'),
        'expires_in': body.get('expires_in'),
        'expires_at': body.get('expires_at'),
        'token_type': body.get('token_type', 'bearer'),
    }
