"""Bearer token verification for authenticated routes."""

from __future__ import annotations

import logging

import jwt
from fastapi import Depends, HTTPException, Request, status

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


class AuthError(HTTPException):
    """Authentication failure reported as a 401 response."""

    def __init__(self, detail: str, status_code: int = status.HTTP_401_UNAUTHORIZED):
        super().__init__(
            status_code=status_code,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def verify_access_token(token: str, settings: Settings) -> str:
    """Decode ``token`` and return its subject (the account email)."""

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError("Invalid token") from exc

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthError("Invalid token")
    return subject


def get_current_email(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str:
    """FastAPI dependency resolving the caller identity from the header."""

    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise AuthError("Missing or invalid Authorization header")
    email = verify_access_token(token.strip(), settings)
    logger.debug("Authenticated request for %s", email)
    return email


__all__ = ["AuthError", "get_current_email", "verify_access_token"]
