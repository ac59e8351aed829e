# =============================================================================
# Peacock API Session — Admin Login & pc_auth Cookie Lifecycle
# =============================================================================
#
# The upstream API authenticates with a `pc_auth` cookie obtained from
# POST /api/auth/login. The agent logs in with admin credentials and reuses
# the cookie until it ages out:
#
#   age < refresh_days            VALID_FRESH  → reuse
#   refresh_days <= age < valid   VALID_STALE  → log in again
#   age >= validity_days          EXPIRED      → log in again
#   no token                      ABSENT       → log in
#
# DESIGN DECISION: Single-flight login. However many requests need a cookie
# at the same moment, at most one login runs; the others await the same
# task through asyncio.shield(). The in-flight slot is cleared whether the
# login succeeds or fails, so a failed login can be retried immediately.
#
# DESIGN DECISION: Injectable clock. Token age is the only time-dependent
# behaviour in the client; passing `clock` lets tests step through the
# 5-day and 7-day boundaries without sleeping or patching datetime.
# =============================================================================

from __future__ import annotations

import asyncio
import enum
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import httpx

from peacock_agent.config import settings
from peacock_agent.errors import AuthError

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "/api/auth/login"
_COOKIE_PATTERN = re.compile(r"pc_auth=([^;]+)")


class TokenState(str, enum.Enum):
    ABSENT = "absent"
    VALID_FRESH = "valid_fresh"
    VALID_STALE = "valid_stale"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionToken:
    """A pc_auth cookie plus the instants that govern its reuse."""

    cookie: str  # "pc_auth=<value>", ready for the Cookie header
    created_at: datetime
    refresh_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        if not (self.created_at < self.refresh_at < self.expires_at):
            raise ValueError(
                "SessionToken requires created_at < refresh_at < expires_at"
            )

    @classmethod
    def issue(
        cls,
        cookie: str,
        now: datetime,
        validity_days: int,
        refresh_days: int,
    ) -> SessionToken:
        return cls(
            cookie=cookie,
            created_at=now,
            refresh_at=now + timedelta(days=refresh_days),
            expires_at=now + timedelta(days=validity_days),
        )

    def state(self, now: datetime) -> TokenState:
        if now >= self.expires_at:
            return TokenState.EXPIRED
        if now >= self.refresh_at:
            return TokenState.VALID_STALE
        return TokenState.VALID_FRESH


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionManager:
    """Owns the admin session cookie for one Peacock API base URL."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
        validity_days: int | None = None,
        refresh_days: int | None = None,
    ) -> None:
        self._http = http_client
        self._base_url = (base_url or settings.peacock_api_url).rstrip("/")
        self._username = username or settings.peacock_admin_username
        self._password = password or settings.peacock_admin_password
        self._clock = clock
        self._validity_days = (
            settings.session_token_validity_days
            if validity_days is None
            else validity_days
        )
        self._refresh_days = (
            settings.session_token_refresh_days
            if refresh_days is None
            else refresh_days
        )

        self._token: SessionToken | None = None
        self._login_task: asyncio.Task[SessionToken] | None = None

    @property
    def token(self) -> SessionToken | None:
        return self._token

    def current_state(self) -> TokenState:
        if self._token is None:
            return TokenState.ABSENT
        return self._token.state(self._clock())

    async def get_cookie(self) -> str:
        """
        Return a usable Cookie header value, logging in if needed.

        Raises:
            AuthError: The login failed (bad credentials, no cookie, or
                the API was unreachable).
        """
        if self.current_state() == TokenState.VALID_FRESH:
            return self._token.cookie

        if self._login_task is None:
            if self._token is not None:
                logger.debug(
                    "Session token %s, logging in again",
                    self.current_state().value,
                )
            self._login_task = asyncio.create_task(self._login())
        token = await asyncio.shield(self._login_task)
        return token.cookie

    def invalidate(self) -> None:
        """Forget the current token (e.g. after an upstream 401)."""
        self._token = None
        logger.debug("Session token invalidated")

    def clear(self) -> None:
        """Forget the token and any pending login."""
        self._token = None
        self._login_task = None
        logger.debug("Session token cleared")

    async def _login(self) -> SessionToken:
        url = f"{self._base_url}{LOGIN_ENDPOINT}"
        logger.debug("Logging in to Peacock API as %s", self._username)

        try:
            try:
                response = await self._http.post(
                    url,
                    json={"username": self._username, "password": self._password},
                )
            except httpx.HTTPError as e:
                logger.error("Login request failed: %s", e)
                raise AuthError(f"Login failed: {e}", LOGIN_ENDPOINT) from e

            if not response.is_success:
                raise AuthError(
                    f"Login failed: {response.status_code} "
                    f"{response.reason_phrase} - {response.text}",
                    LOGIN_ENDPOINT,
                    status_code=response.status_code,
                )

            set_cookie = "\n".join(response.headers.get_list("set-cookie"))
            match = _COOKIE_PATTERN.search(set_cookie)
            if match is None:
                raise AuthError(
                    "No session cookie received from login", LOGIN_ENDPOINT,
                )

            token = SessionToken.issue(
                cookie=f"pc_auth={match.group(1)}",
                now=self._clock(),
                validity_days=self._validity_days,
                refresh_days=self._refresh_days,
            )
            self._token = token
            logger.info(
                "Logged in to Peacock API. Token expires in %d days, "
                "refresh after %d days",
                self._validity_days, self._refresh_days,
            )
            return token
        finally:
            self._login_task = None
