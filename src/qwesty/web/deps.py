"""Request dependencies for the ingest API."""

from __future__ import annotations

import hmac

from fastapi import Request

from qwesty.errors import AuthError


def require_bearer_token(request: Request) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <ingest token>``."""
    expected = request.app.state.ingest_token
    header = request.headers.get("Authorization")
    if not header:
        raise AuthError("missing Authorization header")

    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthError("invalid Authorization header")
    if not expected or not hmac.compare_digest(token.encode(), expected.encode()):
        raise AuthError("invalid token")
