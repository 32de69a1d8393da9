from flask import Blueprint, current_app, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user

from services.session_guard import (
    SESSION_TOKEN_KEY,
    AuthError,
    SessionState,
    get_session_guard,
)

bp = Blueprint("auth", __name__, url_prefix="/auth")

# Requests to these endpoints do not count as user activity.
PASSIVE_ENDPOINTS = {"auth.session_status", "static"}


# ===================================
# LOGIN
# ===================================
@bp.route("/login", methods=["POST"])
def login():
    is_ajax = request.is_json

    # ---- Input Handling (AJAX + Form) ----
    data = request.get_json(silent=True) if is_ajax else request.form
    data = data or {}
    username = (data.get("username") or "").strip()
    password = (data.get("password") or "").strip()

    # ---- Validation ----
    if not username or not password:
        return jsonify({
            "status": "error",
            "code": "missing_fields",
            "message": "Please fill in all fields",
        }), 400

    # ---- Authentication ----
    try:
        user, token = get_session_guard().login(username, password)
    except AuthError as exc:
        return auth_error(exc)

    session.clear()
    session[SESSION_TOKEN_KEY] = token
    login_user(user)

    return jsonify({
        "status": "success",
        "username": user.username,
        "session_expires": user.session_expires.isoformat(),
    }), 200


# ===================================
# LOGOUT
# ===================================
@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    get_session_guard().end(current_user)
    current_app.logger.info("User %s logged out", current_user.username)
    logout_user()
    session.clear()
    return jsonify({"status": "success", "message": "You have been logged out."})


# ===================================
# SESSION CHECK (polled by the client)
# ===================================
@bp.route("/session", methods=["GET"])
@login_required
def session_status():
    guard = get_session_guard()
    return jsonify({
        "state": SessionState.LOGGED_IN.value,
        "username": current_user.username,
        "seconds_left": guard.seconds_left(current_user),
        "check_interval": current_app.config["IDLE_CHECK_INTERVAL_SECONDS"],
    })


@bp.route("/activity", methods=["POST"])
@login_required
def activity():
    # last activity is refreshed by the before_request hook
    return jsonify({"status": "success"})


# ===================================
# HELPER FUNCTIONS
# ===================================
def auth_error(exc: AuthError):
    """Unified auth error response"""
    return jsonify({
        "status": "error",
        "code": exc.code,
        "message": str(exc),
    }), exc.status


def record_activity():
    if request.endpoint in PASSIVE_ENDPOINTS:
        return
    if current_user.is_authenticated:
        get_session_guard().touch(current_user)
