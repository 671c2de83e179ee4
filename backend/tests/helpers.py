"""Token helpers shared by the test modules."""
import time

from jose import jwt

TEST_SECRET = "test-secret"


def make_token(user_id="user-1", email="user1@example.com", secret=TEST_SECRET, expires_in=3600, **claims):
    """Mint a token the way the login service does."""
    payload = {"exp": int(time.time()) + expires_in, **claims}
    if user_id is not None:
        payload["userId"] = user_id
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}
