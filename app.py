import logging

from flask import Flask, g, jsonify, session
from flask_login import LoginManager

from config import Config

# Models
from models import db

# Blueprints
from routes import auth
from routes.billing import bp as billing_bp
from routes.client import client_bp
from routes.payments import payments_bp
from routes.product import bp as product_bp
from routes.service import service_bp
from routes.service_billing import service_billing_bp

from services.session_guard import (
    SESSION_TOKEN_KEY,
    AuthError,
    LoginRequired,
    SessionGuard,
    get_session_guard,
)

# ==========================
# Extensions
# ==========================
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    try:
        return get_session_guard().resume(int(user_id), session.get(SESSION_TOKEN_KEY))
    except AuthError as exc:
        session.clear()
        g.auth_error = exc
        return None


@login_manager.unauthorized_handler
def unauthorized():
    return auth.auth_error(g.get("auth_error") or LoginRequired())


# ==========================
# App Initialization
# ==========================
def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    login_manager.init_app(app)
    app.extensions["session_guard"] = SessionGuard.from_config(app.config)

    # ==========================
    # Blueprints Registration
    # ==========================
    app.register_blueprint(auth.bp)
    app.register_blueprint(product_bp)
    app.register_blueprint(client_bp)
    app.register_blueprint(service_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(service_billing_bp)
    app.register_blueprint(payments_bp)

    app.before_request(auth.record_activity)

    @app.route("/")
    def index():
        return jsonify({"message": "Billing backend running"})

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    from cli import register_commands
    register_commands(app)

    return app


# ==========================
# Run App
# ==========================
if __name__ == "__main__":
    create_app().run(debug=False)
