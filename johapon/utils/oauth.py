"""
OAuth Providers (Kakao, Naver)

FLOW OVERVIEW
- encode_state(payload) / decode_state(token)
  • Short-lived HS256 JWT carrying slug and invite tokens across the provider round trip.
- get_provider(name) → KakaoProvider | NaverProvider
  • authorize_url(redirect_uri, state)
  • exchange_code(code, redirect_uri, state) → provider access token
  • fetch_profile(access_token) → OAuthProfile
- Any provider failure raises OAuthError whose `reason` is the /auth/error message.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import jwt
import requests
from flask import current_app


logger = logging.getLogger(__name__)

STATE_AUDIENCE = 'johapon-oauth'


class OAuthError(Exception):
    """Provider round trip failed; reason is shown on /auth/error"""

    def __init__(self, reason, detail=None):
        super().__init__(detail or reason)
        self.reason = reason
        self.detail = detail


@dataclass
class OAuthProfile:
    provider: str
    provider_user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None


def encode_state(payload):
    now = datetime.now(timezone.utc)
    claims = dict(payload)
    claims.update({
        'aud': STATE_AUDIENCE,
        'iat': now,
        'exp': now + timedelta(seconds=current_app.config.get('OAUTH_STATE_EXPIRES', 600)),
    })
    return jwt.encode(claims, current_app.config['JWT_SECRET_KEY'], algorithm='HS256')


def decode_state(token):
    """Claims of a state token, or OAuthError('invalid_state')"""
    if not token:
        raise OAuthError('invalid_state', 'missing state')
    try:
        claims = jwt.decode(
            token,
            current_app.config['JWT_SECRET_KEY'],
            algorithms=['HS256'],
            audience=STATE_AUDIENCE,
        )
    except jwt.InvalidTokenError as e:
        raise OAuthError('invalid_state', str(e))
    for reserved in ('aud', 'iat', 'exp'):
        claims.pop(reserved, None)
    return claims


def format_provider_phone(phone):
    """'+82 10-1234-5678' → '010-1234-5678'"""
    if not phone:
        return None
    phone = phone.strip()
    if phone.startswith('+82'):
        phone = '0' + phone[3:].strip()
    return phone


class OAuthProvider:
    name = None
    authorize_endpoint = None
    token_endpoint = None
    profile_endpoint = None

    def __init__(self, client_id, client_secret, timeout=10):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    def authorize_url(self, redirect_uri, state):
        params = {
            'response_type': 'code',
            'client_id': self.client_id,
            'redirect_uri': redirect_uri,
            'state': state,
        }
        return f'{self.authorize_endpoint}?{urlencode(params)}'

    def _get_json(self, response, reason):
        try:
            return response.json()
        except ValueError:
            raise OAuthError(reason, f'{self.name} returned non-JSON (HTTP {response.status_code})')

    def exchange_code(self, code, redirect_uri, state=None):
        raise NotImplementedError

    def fetch_profile(self, access_token):
        raise NotImplementedError


class KakaoProvider(OAuthProvider):
    name = 'kakao'
    authorize_endpoint = 'https://kauth.kakao.com/oauth/authorize'
    token_endpoint = 'https://kauth.kakao.com/oauth/token'
    profile_endpoint = 'https://kapi.kakao.com/v2/user/me'

    def exchange_code(self, code, redirect_uri, state=None):
        data = {
            'grant_type': 'authorization_code',
            'client_id': self.client_id,
            'redirect_uri': redirect_uri,
            'code': code,
        }
        if self.client_secret:
            data['client_secret'] = self.client_secret
        try:
            response = requests.post(self.token_endpoint, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise OAuthError('token_error', str(e))

        payload = self._get_json(response, 'token_error')
        if response.status_code != 200 or 'error' in payload or not payload.get('access_token'):
            raise OAuthError('token_error', str(payload.get('error_description') or payload.get('error')))
        return payload['access_token']

    def fetch_profile(self, access_token):
        try:
            response = requests.get(
                self.profile_endpoint,
                headers={'Authorization': f'Bearer {access_token}'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise OAuthError('user_info_error', str(e))

        payload = self._get_json(response, 'user_info_error')
        if response.status_code != 200 or not payload.get('id'):
            raise OAuthError('user_info_error', str(payload.get('msg') or payload))

        account = payload.get('kakao_account') or {}
        profile = account.get('profile') or {}
        return OAuthProfile(
            provider=self.name,
            provider_user_id=str(payload['id']),
            email=account.get('email'),
            name=account.get('name') or profile.get('nickname'),
            phone_number=format_provider_phone(account.get('phone_number')),
        )


class NaverProvider(OAuthProvider):
    name = 'naver'
    authorize_endpoint = 'https://nid.naver.com/oauth2.0/authorize'
    token_endpoint = 'https://nid.naver.com/oauth2.0/token'
    profile_endpoint = 'https://openapi.naver.com/v1/nid/me'

    def exchange_code(self, code, redirect_uri, state=None):
        params = {
            'grant_type': 'authorization_code',
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'code': code,
            'state': state or '',
        }
        try:
            response = requests.get(self.token_endpoint, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise OAuthError('token_error', str(e))

        payload = self._get_json(response, 'token_error')
        if payload.get('error') or not payload.get('access_token'):
            raise OAuthError('token_error', str(payload.get('error_description') or payload.get('error')))
        return payload['access_token']

    def fetch_profile(self, access_token):
        try:
            response = requests.get(
                self.profile_endpoint,
                headers={'Authorization': f'Bearer {access_token}'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise OAuthError('user_info_error', str(e))

        payload = self._get_json(response, 'user_info_error')
        if payload.get('resultcode') != '00':
            raise OAuthError('user_info_error', str(payload.get('message')))

        user = payload.get('response') or {}
        if not user.get('id'):
            raise OAuthError('user_info_error', 'missing id')
        return OAuthProfile(
            provider=self.name,
            provider_user_id=str(user['id']),
            email=user.get('email'),
            name=user.get('name') or user.get('nickname'),
            phone_number=user.get('mobile'),
        )


PROVIDER_CLASSES = {
    'kakao': KakaoProvider,
    'naver': NaverProvider,
}


def get_provider(name):
    """Configured provider instance, or None for an unknown provider"""
    provider_cls = PROVIDER_CLASSES.get(name)
    if provider_cls is None:
        return None
    prefix = name.upper()
    return provider_cls(
        client_id=current_app.config.get(f'{prefix}_CLIENT_ID'),
        client_secret=current_app.config.get(f'{prefix}_CLIENT_SECRET'),
        timeout=current_app.config.get('OAUTH_HTTP_TIMEOUT', 10),
    )
