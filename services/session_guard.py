"""
Login sessions with a single active token per user and an idle timeout.

The plaintext token lives in the signed Flask session cookie; the users
table keeps only its sha256 hash, the absolute expiry and the time of the
last qualifying interaction.
"""

import enum
import hashlib
import logging
import secrets
from datetime import timedelta

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from models import db, User, utcnow

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "session_token"


class SessionState(enum.Enum):
    LOGGED_OUT = "LoggedOut"
    LOGGED_IN = "LoggedIn"


class AuthError(Exception):
    code = "auth_error"
    status = 401
    message = "Authentication failed"

    def __init__(self, message=None):
        super().__init__(message or self.message)


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Invalid credentials"


class AlreadyLoggedIn(AuthError):
    code = "already_logged_in"
    status = 409
    message = "Already logged in elsewhere"


class SessionExpired(AuthError):
    code = "session_expired"
    message = "Session expired"


class LoginRequired(AuthError):
    code = "login_required"
    message = "Login required"


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    return generate_password_hash(password, method="pbkdf2:sha256")


class SessionGuard:
    def __init__(self, lifetime: timedelta, idle_limit: timedelta, clock=utcnow):
        self.lifetime = lifetime
        self.idle_limit = idle_limit
        self.clock = clock

    @classmethod
    def from_config(cls, config):
        return cls(
            lifetime=timedelta(minutes=config["SESSION_LIFETIME_MINUTES"]),
            idle_limit=timedelta(minutes=config["IDLE_TIMEOUT_MINUTES"]),
        )

    def _is_idle(self, user, now) -> bool:
        return user.last_activity is None or now - user.last_activity > self.idle_limit

    def has_live_session(self, user, now=None) -> bool:
        now = now or self.clock()
        return bool(
            user.session_token
            and user.session_expires
            and user.session_expires > now
            and not self._is_idle(user, now)
        )

    def login(self, username: str, password: str):
        """Check credentials and open a session; returns (user, plaintext token)."""
        user = User.query.filter_by(username=username).first()
        if not user or not check_password_hash(user.password, password):
            logger.warning("Failed login for %r", username)
            raise InvalidCredentials()

        now = self.clock()
        if self.has_live_session(user, now):
            logger.warning("Rejected second login for %s", user.username)
            raise AlreadyLoggedIn()

        token = generate_token()
        user.session_token = hash_token(token)
        user.session_expires = now + self.lifetime
        user.last_activity = now
        db.session.commit()

        logger.info("User %s logged in", user.username)
        return user, token

    def resume(self, user_id, token):
        """Return the user owning ``token``; expire the session when stale."""
        if not token:
            raise LoginRequired()

        user = db.session.get(User, user_id)
        if user is None or user.session_token != hash_token(token):
            raise LoginRequired()

        now = self.clock()
        if user.session_expires is None or user.session_expires <= now or self._is_idle(user, now):
            self.end(user)
            logger.info("Session for %s expired", user.username)
            raise SessionExpired()
        return user

    def state(self, user_id, token) -> SessionState:
        try:
            self.resume(user_id, token)
        except AuthError:
            return SessionState.LOGGED_OUT
        return SessionState.LOGGED_IN

    def touch(self, user):
        user.last_activity = self.clock()
        db.session.commit()

    def end(self, user):
        user.session_token = None
        user.session_expires = None
        user.last_activity = None
        db.session.commit()

    def seconds_left(self, user) -> int:
        now = self.clock()
        idle_deadline = user.last_activity + self.idle_limit
        deadline = min(idle_deadline, user.session_expires)
        return max(int((deadline - now).total_seconds()), 0)


def get_session_guard() -> SessionGuard:
    return current_app.extensions["session_guard"]
