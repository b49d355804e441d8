"""
Request authentication.

The verified caller is represented by an explicit, immutable Caller that
the API layer passes into every service call. It is built once per
request and never read from ambient state.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.http import HttpRequest
from ninja.security import HttpBearer

from apps.core.errors import ApiError, ErrorCode
from .jwt_auth import get_subject_from_token

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = 'access_token'


@dataclass(frozen=True)
class Caller:
    """The authenticated subject making a request."""
    subject_id: str
    token: str = ''

    def __repr__(self):
        return f"Caller({self.subject_id!r})"


def caller_from_token(token: Optional[str]) -> Optional[Caller]:
    if not token:
        return None
    subject_id = get_subject_from_token(token)
    if not subject_id:
        return None
    return Caller(subject_id=subject_id, token=token)


class JWTBearer(HttpBearer):
    """
    Verifies `Authorization: Bearer <jwt>` and sets request.auth to a Caller.

    A missing header never reaches authenticate(); ninja raises
    AuthenticationError, which the error handlers report as
    unauthenticated.
    """

    def authenticate(self, request: HttpRequest, token: str) -> Caller:
        caller = caller_from_token(token)
        if caller is None:
            raise ApiError(ErrorCode.UNAUTHENTICATED, "invalid token")
        return caller


def get_cookie_caller(request: HttpRequest) -> Optional[Caller]:
    """
    Caller from the web session cookie, None when absent or invalid.
    """
    return caller_from_token(request.COOKIES.get(ACCESS_TOKEN_COOKIE))
