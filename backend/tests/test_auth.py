"""Tests for bearer token verification."""
import pytest

from collabflow.auth.service import CredentialVerifier, Principal, parse_bearer
from collabflow.errors import AuthenticationError, AuthTokenMissing

from helpers import TEST_SECRET, make_token


@pytest.fixture
def verifier():
    return CredentialVerifier(TEST_SECRET)


class TestCredentialVerifier:
    """Tests for CredentialVerifier.verify."""

    def test_valid_token_returns_principal(self, verifier):
        principal = verifier.verify(make_token("u-1", "a@example.com"))
        assert principal == Principal(userId="u-1", email="a@example.com")

    def test_missing_token(self, verifier):
        with pytest.raises(AuthTokenMissing):
            verifier.verify(None)

    def test_blank_token_counts_as_missing(self, verifier):
        with pytest.raises(AuthTokenMissing):
            verifier.verify("   ")

    def test_missing_token_is_an_authentication_error(self, verifier):
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify("")
        assert exc_info.value.status_code == 401

    def test_wrong_secret_rejected(self, verifier):
        token = make_token(secret="another-secret")
        with pytest.raises(AuthenticationError):
            verifier.verify(token)

    def test_expired_token_rejected(self, verifier):
        token = make_token(expires_in=-60)
        with pytest.raises(AuthenticationError):
            verifier.verify(token)

    def test_malformed_token_rejected(self, verifier):
        with pytest.raises(AuthenticationError):
            verifier.verify("not-a-jwt")

    def test_missing_user_id_claim_rejected(self, verifier):
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(make_token(user_id=None))
        assert exc_info.value.message == "Invalid token payload"

    def test_missing_email_claim_rejected(self, verifier):
        with pytest.raises(AuthenticationError):
            verifier.verify(make_token(email=None))

    def test_numeric_user_id_rejected(self, verifier):
        from jose import jwt
        token = jwt.encode({"userId": 42, "email": "a@example.com"}, TEST_SECRET, algorithm="HS256")
        with pytest.raises(AuthenticationError):
            verifier.verify(token)


class TestParseBearer:
    """Tests for Authorization header parsing."""

    def test_bearer_header(self):
        assert parse_bearer("Bearer abc.def") == "abc.def"

    def test_missing_header(self):
        assert parse_bearer(None) is None

    def test_wrong_scheme(self):
        assert parse_bearer("Basic abc") is None

    def test_empty_bearer(self):
        assert parse_bearer("Bearer ") is None
