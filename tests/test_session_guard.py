from datetime import datetime, timedelta

import pytest

from models import User
from services.session_guard import (
    AlreadyLoggedIn,
    InvalidCredentials,
    LoginRequired,
    SessionExpired,
    SessionGuard,
    SessionState,
    hash_token,
)
from tests.conftest import PASSWORD, USERNAME


class Clock:
    def __init__(self):
        self.now = datetime(2026, 10, 18, 9, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def guard(ctx, clock):
    return SessionGuard(timedelta(hours=2), timedelta(minutes=30), clock=clock)


def user():
    return User.query.filter_by(username=USERNAME).first()


def test_login_issues_hashed_token(guard, clock):
    u, token = guard.login(USERNAME, PASSWORD)

    assert u.session_token == hash_token(token)
    assert token not in (u.session_token, u.password)
    assert u.session_expires == clock.now + timedelta(hours=2)
    assert guard.state(u.id, token) is SessionState.LOGGED_IN


def test_password_is_not_stored_in_plaintext(guard):
    assert user().password != PASSWORD


@pytest.mark.parametrize("username, password", [
    (USERNAME, "wrong"),
    ("nobody", PASSWORD),
])
def test_invalid_credentials(guard, username, password):
    with pytest.raises(InvalidCredentials) as exc:
        guard.login(username, password)
    assert exc.value.code == "invalid_credentials"
    assert user().session_token is None


def test_second_login_rejected_while_session_live(guard, clock):
    _, first = guard.login(USERNAME, PASSWORD)
    clock.advance(minutes=10)

    with pytest.raises(AlreadyLoggedIn) as exc:
        guard.login(USERNAME, PASSWORD)

    assert exc.value.code == "already_logged_in"
    assert exc.value.status == 409
    assert guard.state(user().id, first) is SessionState.LOGGED_IN


def test_idle_session_expires_and_is_cleared(guard, clock):
    u, token = guard.login(USERNAME, PASSWORD)
    clock.advance(minutes=31)

    with pytest.raises(SessionExpired):
        guard.resume(u.id, token)

    u = user()
    assert u.session_token is None
    assert u.session_expires is None
    assert guard.state(u.id, token) is SessionState.LOGGED_OUT


def test_activity_keeps_session_alive(guard, clock):
    u, token = guard.login(USERNAME, PASSWORD)
    for _ in range(3):
        clock.advance(minutes=20)
        guard.touch(guard.resume(u.id, token))

    assert guard.state(u.id, token) is SessionState.LOGGED_IN


def test_absolute_expiry_despite_activity(guard, clock):
    u, token = guard.login(USERNAME, PASSWORD)
    for _ in range(6):
        clock.advance(minutes=20)
        guard.touch(u)
    clock.advance(minutes=1)

    with pytest.raises(SessionExpired):
        guard.resume(u.id, token)


def test_login_allowed_after_previous_session_went_idle(guard, clock):
    guard.login(USERNAME, PASSWORD)
    clock.advance(minutes=45)

    _, token = guard.login(USERNAME, PASSWORD)
    assert guard.state(user().id, token) is SessionState.LOGGED_IN


def test_stale_token_is_not_accepted(guard):
    u, token = guard.login(USERNAME, PASSWORD)
    guard.end(u)

    with pytest.raises(LoginRequired):
        guard.resume(u.id, token)
    with pytest.raises(LoginRequired):
        guard.resume(u.id, None)


def test_seconds_left_uses_nearest_deadline(guard, clock):
    u, _ = guard.login(USERNAME, PASSWORD)
    clock.advance(minutes=10)
    assert guard.seconds_left(u) == 20 * 60
