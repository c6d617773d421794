"""
Application settings

Values come from the environment (a local .env file is loaded first).
"""
import os

from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
DATABASE_POOL_SIZE = int(os.getenv("DATABASE_POOL_SIZE", 10))

DEV_JWT_SECRET = "devsecret"
JWT_SECRET = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
JWT_ALGO = "HS256"
SESSION_COOKIE = os.getenv("SESSION_COOKIE", "session")
SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", 7))

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_SECURE = os.getenv("SMTP_SECURE", "false").lower() == "true"
SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", 10))
MAIL_FROM = os.getenv("MAIL_FROM", SMTP_USER or "noreply@localhost")
STORE_NAME = os.getenv("STORE_NAME", "Storefront")

COUPON_DEFAULT_TTL_DAYS = int(os.getenv("COUPON_DEFAULT_TTL_DAYS", 30))
ID_MAX_ATTEMPTS = int(os.getenv("ID_MAX_ATTEMPTS", 20))
LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "5/15minutes")


def validate():
    if APP_ENV not in ("development", "production"):
        raise RuntimeError(f"APP_ENV must be development or production, got {APP_ENV!r}")
    if APP_ENV != "production":
        return
    missing = [name for name, value in (("DATABASE_URL", DATABASE_URL), ("DATABASE_NAME", DATABASE_NAME)) if not value]
    if missing:
        raise RuntimeError(f"Missing required settings: {', '.join(missing)}")
    if JWT_SECRET == DEV_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set in production")
