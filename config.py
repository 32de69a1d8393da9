import os

from dotenv import load_dotenv  # type: ignore

load_dotenv()


def _int_env(name, default):
    value = os.getenv(name)
    return int(value) if value else default


# ==========================
# App Configuration
# ==========================
class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # change in production

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///database.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Shop timezone for invoice dates and date filters; timestamps are stored in UTC
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Karachi")

    # Session guard
    SESSION_LIFETIME_MINUTES = _int_env("SESSION_LIFETIME_MINUTES", 120)
    IDLE_TIMEOUT_MINUTES = _int_env("IDLE_TIMEOUT_MINUTES", 30)
    IDLE_CHECK_INTERVAL_SECONDS = _int_env("IDLE_CHECK_INTERVAL_SECONDS", 60)

    # Invoice header
    SHOP_NAME = os.getenv("SHOP_NAME", "Ali Electronics")
    SHOP_ADDRESS = os.getenv("SHOP_ADDRESS", "Punial Road Near Shah City Mall Gilgit")
    SHOP_PHONE = os.getenv("SHOP_PHONE", "")
    SERVICE_SHOP_NAME = os.getenv("SERVICE_SHOP_NAME", "Ali Electric Services")
    INVOICE_MIN_ROWS = _int_env("INVOICE_MIN_ROWS", 14)


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "WARNING"
    TIMEZONE = "UTC"
