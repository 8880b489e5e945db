# backend/qrdisplay/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/qrdisplay.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///qrdisplay.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Organization fallbacks used when an org row leaves these unset
    DEFAULT_COMMISSION_RATE = float(os.environ.get("DEFAULT_COMMISSION_RATE", "10.0"))
    DEFAULT_ATTRIBUTION_WINDOW_DAYS = int(os.environ.get("DEFAULT_ATTRIBUTION_WINDOW_DAYS", "30"))

    DISPLAY_ID_PREFIX = os.environ.get("DISPLAY_ID_PREFIX", "QRD")

    # How long a customer product hold keeps its units reserved
    PRODUCT_HOLD_HOURS = int(os.environ.get("PRODUCT_HOLD_HOURS", "24"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"
