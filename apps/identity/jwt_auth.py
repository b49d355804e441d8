"""
JWT utilities for the identity provider integration.

Tokens are issued by an external identity provider. We only verify them
and read the subject ("sub") claim, which becomes the owner id of every
task. Two key sources are supported:

- JWT_JWKS_URL set: RS256/ES256 keys fetched from the provider's JWKS
  endpoint (what hosted providers publish)
- otherwise: shared secret JWT_SECRET with JWT_ALGORITHM (HS256 default)

create_access_token() mints tokens with the shared secret for local
development and tests.
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt
from django.conf import settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 60


@lru_cache(maxsize=4)
def _jwks_client(url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(url, cache_keys=True)


def _signing_key(token: str):
    if settings.JWT_JWKS_URL:
        return _jwks_client(settings.JWT_JWKS_URL).get_signing_key_from_jwt(token).key
    return settings.JWT_SECRET


def _algorithms() -> list:
    if settings.JWT_JWKS_URL:
        return ['RS256', 'ES256']
    return [settings.JWT_ALGORITHM]


def create_access_token(subject_id: str, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES, **claims) -> str:
    """
    Create a signed access token for `subject_id` using the shared secret.
    """
    now = datetime.now(timezone.utc)
    payload = {
        'sub': subject_id,
        'iat': now,
        'exp': now + timedelta(minutes=expires_minutes),
        'type': 'access',
    }
    if settings.JWT_ISSUER:
        payload['iss'] = settings.JWT_ISSUER
    if settings.JWT_AUDIENCE:
        payload['aud'] = settings.JWT_AUDIENCE
    payload.update(claims)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT.

    Returns:
        Decoded payload if valid, None if invalid, expired or unverifiable.
    """
    options = {'require': ['sub', 'exp']}
    kwargs = {
        'algorithms': _algorithms(),
        'options': options,
        'leeway': settings.JWT_LEEWAY_SECONDS,
    }
    if settings.JWT_ISSUER:
        kwargs['issuer'] = settings.JWT_ISSUER
    if settings.JWT_AUDIENCE:
        kwargs['audience'] = settings.JWT_AUDIENCE
    else:
        options['verify_aud'] = False

    try:
        return jwt.decode(token, _signing_key(token), **kwargs)
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except jwt.PyJWKClientError as e:
        logger.warning(f"Could not resolve signing key: {e}")
        return None
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected invalid token: {e}")
        return None


def get_subject_from_token(token: str) -> Optional[str]:
    """
    Extract the subject id from a valid token.

    Returns:
        The non-empty "sub" claim, None otherwise.
    """
    payload = decode_token(token)
    if not payload:
        return None
    subject = payload.get('sub')
    if not isinstance(subject, str) or not subject.strip():
        return None
    return subject


# Cookie configuration for the web frontend session
def get_cookie_settings(is_production: bool = False) -> dict:
    """
    Production: Secure, SameSite=Lax
    Development: Not secure (localhost), SameSite=Lax
    """
    return {
        'httponly': True,
        'secure': is_production,
        'samesite': 'Lax',
        'path': '/',
    }


def get_access_token_cookie_settings(is_production: bool = False) -> dict:
    """Cookie settings for the access token."""
    cookie = get_cookie_settings(is_production)
    cookie['max_age'] = ACCESS_TOKEN_EXPIRE_MINUTES * 60
    return cookie
