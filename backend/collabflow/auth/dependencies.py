"""FastAPI dependencies for bearer-token authentication."""
from typing import Optional

from fastapi import Header, Request

from collabflow.errors import AuthenticationError
from collabflow.runtime import runtime_for

from .service import Principal, parse_bearer


async def get_current_principal(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Principal:
    """Resolve the request's Principal or fail with 401."""
    token = parse_bearer(authorization)
    if token is None:
        raise AuthenticationError("Unauthorized")
    return runtime_for(request.app).verifier.verify(token)
