from datetime import datetime, timedelta, timezone
from io import StringIO

import jwt
from django.conf import settings
from django.core.management import CommandError, call_command
from django.test import RequestFactory, TestCase, override_settings

from apps.core.errors import ApiError, ErrorCode
from .auth import ACCESS_TOKEN_COOKIE, Caller, JWTBearer, caller_from_token, get_cookie_caller
from .jwt_auth import create_access_token, decode_token, get_subject_from_token


def encode(payload, secret=None):
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class TokenVerificationTest(TestCase):
    """Test JWT verification and subject extraction."""

    def test_valid_token_yields_subject(self):
        """Test a freshly issued token resolves to its subject."""
        token = create_access_token("user_alice")
        self.assertEqual(get_subject_from_token(token), "user_alice")

    def test_expired_token(self):
        token = create_access_token("user_alice", expires_minutes=-5)
        self.assertIsNone(decode_token(token))

    def test_wrong_secret(self):
        """Test tokens signed with another key are rejected."""
        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        token = encode({'sub': 'user_alice', 'exp': exp}, secret='someone-elses-secret-with-enough-length')
        self.assertIsNone(get_subject_from_token(token))

    def test_missing_or_blank_subject(self):
        """Test tokens without a usable sub are rejected."""
        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        self.assertIsNone(get_subject_from_token(encode({'exp': exp})))
        self.assertIsNone(get_subject_from_token(encode({'sub': '   ', 'exp': exp})))

    def test_missing_expiry(self):
        self.assertIsNone(decode_token(encode({'sub': 'user_alice'})))

    def test_garbage(self):
        self.assertIsNone(get_subject_from_token("not-a-jwt"))

    @override_settings(JWT_ISSUER="https://id.example", JWT_AUDIENCE="tasks")
    def test_issuer_and_audience_are_checked(self):
        """Test iss/aud are enforced when configured."""
        self.assertEqual(get_subject_from_token(create_access_token("user_alice")), "user_alice")

        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        foreign = encode({'sub': 'user_alice', 'exp': exp, 'iss': 'https://other.example', 'aud': 'tasks'})
        self.assertIsNone(get_subject_from_token(foreign))


class CallerTest(TestCase):
    """Test Caller construction from bearer and cookie tokens."""

    def test_caller_from_token(self):
        token = create_access_token("user_alice")
        self.assertEqual(caller_from_token(token), Caller(subject_id="user_alice", token=token))

    def test_no_token(self):
        self.assertIsNone(caller_from_token(None))
        self.assertIsNone(caller_from_token(""))

    def test_repr_hides_token(self):
        """Test the token never shows up in logs via repr."""
        caller = Caller(subject_id="user_alice", token="secret-token")
        self.assertNotIn("secret-token", repr(caller))

    def test_bearer_authenticates(self):
        request = RequestFactory().get('/api/tasks')
        token = create_access_token("user_bob")

        caller = JWTBearer().authenticate(request, token)

        self.assertEqual(caller.subject_id, "user_bob")

    def test_bearer_rejects_invalid_token(self):
        """Test JWTBearer raises unauthenticated for bad tokens."""
        request = RequestFactory().get('/api/tasks')
        with self.assertRaises(ApiError) as ctx:
            JWTBearer().authenticate(request, "bad")
        self.assertEqual(ctx.exception.code, ErrorCode.UNAUTHENTICATED)
        self.assertEqual(ctx.exception.message, "invalid token")

    def test_cookie_caller(self):
        request = RequestFactory().get('/tasks/')
        self.assertIsNone(get_cookie_caller(request))

        request.COOKIES[ACCESS_TOKEN_COOKIE] = create_access_token("user_alice")
        self.assertEqual(get_cookie_caller(request).subject_id, "user_alice")


class IssueTokenCommandTest(TestCase):
    """Test the issue_token management command."""

    def test_issues_verifiable_token(self):
        """Test the printed token verifies to the given subject."""
        out = StringIO()
        call_command('issue_token', 'user_carol', '--minutes', '5', stdout=out, stderr=StringIO())

        token = out.getvalue().strip()
        self.assertEqual(get_subject_from_token(token), "user_carol")

    def test_rejects_blank_subject(self):
        with self.assertRaises(CommandError):
            call_command('issue_token', '  ', stdout=StringIO(), stderr=StringIO())

    def test_rejects_non_positive_lifetime(self):
        with self.assertRaises(CommandError):
            call_command('issue_token', 'user_carol', '--minutes', '0', stdout=StringIO(), stderr=StringIO())
