"""Connection gate: authenticate a realtime connection before it is admitted.

The token is read from the handshake (``?token=`` query parameter, falling
back to an ``Authorization: Bearer`` header) and verified with the same
CredentialVerifier the HTTP routes use. A refused handshake never reaches
the session handler.
"""
import logging
from typing import Optional

from fastapi import WebSocket

from collabflow.auth.service import CredentialVerifier, Principal, parse_bearer

logger = logging.getLogger(__name__)

# WebSocket close code used when refusing a handshake (Policy Violation)
REFUSE_CODE = 1008


def handshake_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if token:
        return token
    return parse_bearer(websocket.headers.get("authorization"))


class ConnectionGate:
    """Turns handshake data into a Principal or refuses the connection."""

    def __init__(self, verifier: CredentialVerifier) -> None:
        self._verifier = verifier

    def admit(self, token: Optional[str]) -> Principal:
        """Verify *token* once for this handshake.

        Raises:
            AuthTokenMissing: No token in the handshake.
            AuthenticationError: The token failed verification.
        """
        principal = self._verifier.verify(token)
        logger.info("[WS] Handshake accepted for user %s", principal.userId)
        return principal
