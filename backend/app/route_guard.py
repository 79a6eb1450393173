from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence
from urllib.parse import urlencode

from fastapi import Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from backend.app.auth import resolve_auth_context
from backend.app.settings import Settings

logger = logging.getLogger("prospect_ai")


class RoutePolicy(str, Enum):
    public = "public"
    api = "api"
    page = "page"


@dataclass(frozen=True)
class RouteRule:
    pattern: re.Pattern
    policy: RoutePolicy

    @classmethod
    def compile(cls, pattern: str, policy: RoutePolicy) -> "RouteRule":
        return cls(pattern=re.compile(pattern), policy=policy)

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None


DEFAULT_ROUTE_RULES: tuple[RouteRule, ...] = (
    RouteRule.compile(
        r"^/(api/auth|login|register|_next/static|_next/image|favicon\.ico)",
        RoutePolicy.public,
    ),
    RouteRule.compile(r"\.(png|jpg|svg)$", RoutePolicy.public),
    RouteRule.compile(r"^/(health|health/ready|metrics)/?$", RoutePolicy.public),
    RouteRule.compile(r"^/api/", RoutePolicy.api),
    RouteRule.compile(r"^/", RoutePolicy.page),
)


def policy_for_path(path: str, rules: Iterable[RouteRule] = DEFAULT_ROUTE_RULES) -> RoutePolicy:
    for rule in rules:
        if rule.matches(path):
            return rule.policy
    return RoutePolicy.page


def sign_in_redirect_url(request: Request, sign_in_path: str) -> str:
    callback = request.url.path
    if request.url.query:
        callback = f"{callback}?{request.url.query}"
    return f"{sign_in_path}?{urlencode({'callbackUrl': callback})}"


async def guard_request(
    request: Request,
    call_next,
    *,
    settings: Settings,
    rules: Optional[Sequence[RouteRule]] = None,
):
    path = request.url.path
    policy = policy_for_path(path, DEFAULT_ROUTE_RULES if rules is None else rules)
    if policy == RoutePolicy.public or path == settings.sign_in_path:
        return await call_next(request)
    # CORS preflight never carries credentials.
    if request.method == "OPTIONS":
        return await call_next(request)

    if resolve_auth_context(request, settings) is not None:
        return await call_next(request)

    logger.info("route_blocked method=%s path=%s policy=%s", request.method, path, policy.value)
    if policy == RoutePolicy.api:
        return JSONResponse(
            {"error": "Unauthorized"},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return RedirectResponse(
        sign_in_redirect_url(request, settings.sign_in_path),
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
