# =============================================================================
# Unit Tests — Peacock API Session Manager
# =============================================================================
#
# The upstream login endpoint is simulated with httpx.MockTransport; the
# clock is a mutable FakeClock so token ageing needs no sleeping.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from finance_fixtures import _run

from peacock_agent.errors import AuthError, ErrorKind
from peacock_agent.services.session import SessionManager, SessionToken, TokenState

BASE_URL = "http://peacock.test"
T0 = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeLoginServer:
    """Async MockTransport handler issuing numbered pc_auth cookies."""

    def __init__(self, status: int = 200, set_cookie: bool = True, delay: float = 0.0):
        self.status = status
        self.set_cookie = set_cookie
        self.delay = delay
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        headers = {}
        if self.set_cookie and self.status == 200:
            headers["set-cookie"] = f"pc_auth=token{len(self.requests)}; Path=/; HttpOnly"
        return httpx.Response(self.status, json={"ok": self.status == 200}, headers=headers)


def _manager(handler, clock: FakeClock | None = None) -> SessionManager:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SessionManager(
        client,
        base_url=BASE_URL,
        username="admin",
        password="secret",
        clock=clock or FakeClock(),
        validity_days=7,
        refresh_days=5,
    )


class TestSessionToken:

    def test_states(self):
        token = SessionToken.issue("pc_auth=x", T0, validity_days=7, refresh_days=5)

        assert token.state(T0) == TokenState.VALID_FRESH
        assert token.state(T0 + timedelta(days=4, hours=23)) == TokenState.VALID_FRESH
        assert token.state(T0 + timedelta(days=5)) == TokenState.VALID_STALE
        assert token.state(T0 + timedelta(days=6, hours=23)) == TokenState.VALID_STALE
        assert token.state(T0 + timedelta(days=7)) == TokenState.EXPIRED

    def test_refresh_must_precede_expiry(self):
        with pytest.raises(ValueError):
            SessionToken.issue("pc_auth=x", T0, validity_days=5, refresh_days=5)


class TestSessionManager:

    def test_absent_before_login(self):
        assert _manager(FakeLoginServer()).current_state() == TokenState.ABSENT

    def test_login_posts_credentials_and_extracts_cookie(self):
        server = FakeLoginServer()
        manager = _manager(server)

        cookie = _run(manager.get_cookie())

        assert cookie == "pc_auth=token1"
        request = server.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/auth/login"
        assert json.loads(request.content) == {"username": "admin", "password": "secret"}
        assert manager.current_state() == TokenState.VALID_FRESH

    def test_fresh_token_reused(self):
        server = FakeLoginServer()
        clock = FakeClock()
        manager = _manager(server, clock)

        _run(manager.get_cookie())
        clock.advance(days=4)
        cookie = _run(manager.get_cookie())

        assert cookie == "pc_auth=token1"
        assert len(server.requests) == 1

    def test_stale_token_triggers_login(self):
        server = FakeLoginServer()
        clock = FakeClock()
        manager = _manager(server, clock)

        _run(manager.get_cookie())
        clock.advance(days=5, seconds=1)
        assert manager.current_state() == TokenState.VALID_STALE

        assert _run(manager.get_cookie()) == "pc_auth=token2"
        assert len(server.requests) == 2

    def test_expired_token_triggers_login(self):
        server = FakeLoginServer()
        clock = FakeClock()
        manager = _manager(server, clock)

        _run(manager.get_cookie())
        clock.advance(days=8)
        assert manager.current_state() == TokenState.EXPIRED

        assert _run(manager.get_cookie()) == "pc_auth=token2"

    def test_concurrent_callers_share_one_login(self):
        server = FakeLoginServer(delay=0.02)
        manager = _manager(server)

        async def scenario():
            return await asyncio.gather(*(manager.get_cookie() for _ in range(5)))

        cookies = _run(scenario())

        assert len(server.requests) == 1
        assert set(cookies) == {"pc_auth=token1"}

    def test_rejected_login_raises_auth_error(self):
        manager = _manager(FakeLoginServer(status=401))

        with pytest.raises(AuthError) as exc_info:
            _run(manager.get_cookie())

        assert exc_info.value.status_code == 401
        assert exc_info.value.info.kind == ErrorKind.AUTH
        assert manager.current_state() == TokenState.ABSENT

    def test_failure_reaches_every_waiter_and_allows_retry(self):
        server = FakeLoginServer(status=500, delay=0.01)
        manager = _manager(server)

        async def scenario():
            return await asyncio.gather(
                manager.get_cookie(), manager.get_cookie(), return_exceptions=True,
            )

        outcomes = _run(scenario())
        assert all(isinstance(o, AuthError) for o in outcomes)
        assert len(server.requests) == 1

        server.status = 200
        assert _run(manager.get_cookie()) == "pc_auth=token2"

    def test_failed_refresh_keeps_existing_token(self):
        server = FakeLoginServer()
        clock = FakeClock()
        manager = _manager(server, clock)

        _run(manager.get_cookie())
        original = manager.token
        clock.advance(days=6)
        server.status = 503

        with pytest.raises(AuthError):
            _run(manager.get_cookie())
        assert manager.token is original

    def test_missing_cookie(self):
        manager = _manager(FakeLoginServer(set_cookie=False))
        with pytest.raises(AuthError, match="No session cookie"):
            _run(manager.get_cookie())

    def test_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        manager = _manager(refuse)
        with pytest.raises(AuthError, match="connection refused"):
            _run(manager.get_cookie())

    def test_invalidate_and_clear(self):
        server = FakeLoginServer()
        manager = _manager(server)

        _run(manager.get_cookie())
        manager.invalidate()
        assert manager.current_state() == TokenState.ABSENT

        _run(manager.get_cookie())
        manager.clear()
        assert manager.token is None
        assert len(server.requests) == 2
