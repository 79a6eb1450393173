from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.app.settings import Settings

logger = logging.getLogger("prospect_ai")

security = HTTPBearer(auto_error=False)


class AuthError(Exception):
    pass


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    email: Optional[str] = None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _developer_context() -> AuthContext:
    return AuthContext(user_id="dev-local", email="dev@localhost")


def decode_session_token(token: str, settings: Settings) -> AuthContext:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.InvalidTokenError as exc:
        raise AuthError("invalid auth token") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise AuthError("token missing subject")
    email = payload.get("email")
    if not isinstance(email, str) or not email.strip():
        email = None
    return AuthContext(user_id=subject.strip(), email=email.strip() if email else None)


def _extract_token(request: Request, settings: Settings) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    cookie = request.cookies.get(settings.session_cookie_name)
    if cookie and cookie.strip():
        return cookie.strip()
    return None


def resolve_auth_context(
    request: Request,
    settings: Settings,
    *,
    token: Optional[str] = None,
) -> Optional[AuthContext]:
    if not settings.auth_enabled:
        return _developer_context()
    token = token or _extract_token(request, settings)
    if not token:
        return None
    try:
        return decode_session_token(token, settings)
    except AuthError as exc:
        logger.info("auth_rejected path=%s reason=%s", request.url.path, exc)
        return None


def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthContext:
    settings = get_settings(request)
    token = credentials.credentials if credentials else None
    context = resolve_auth_context(request, settings, token=token)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return context
