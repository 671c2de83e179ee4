"""Bearer token verification.

Tokens are issued by the credential subsystem (login) as HS256 JWTs carrying
``userId`` and ``email`` claims. This module only verifies them:
1. Reject a missing/blank token
2. Check signature and expiry with the shared secret
3. Require ``userId`` and ``email`` as strings
"""
import logging
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, Field

from collabflow.errors import AuthenticationError, AuthTokenMissing

logger = logging.getLogger(__name__)


class Principal(BaseModel):
    """Authenticated identity, rebuilt from the token on every operation."""
    userId: str = Field(..., description="User ID from the token")
    email: str = Field(..., description="Email from the token")


class CredentialVerifier:
    """Validates bearer tokens and extracts the Principal.

    The HTTP dependency and the realtime gate share one instance so both
    surfaces use the same secret and algorithm.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256") -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify(self, token: Optional[str]) -> Principal:
        """Return the Principal for *token*.

        Raises:
            AuthTokenMissing: No token supplied.
            AuthenticationError: Bad signature, expired, malformed, or
                missing ``userId``/``email`` claims.
        """
        if token is None or not token.strip():
            raise AuthTokenMissing()

        try:
            payload = jwt.decode(token.strip(), self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info("[Auth] Token rejected: %s", e)
            raise AuthenticationError("Authentication error") from e

        user_id = payload.get("userId")
        email = payload.get("email")
        if not isinstance(user_id, str) or not isinstance(email, str):
            logger.info("[Auth] Token rejected: missing userId/email claims")
            raise AuthenticationError("Invalid token payload")

        return Principal(userId=user_id, email=email)


def parse_bearer(header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None
