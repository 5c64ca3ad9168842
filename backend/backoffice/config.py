# backend/backoffice/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Channel log files are only written when LOG_DIR is set
    LOG_DIR = os.environ.get("LOG_DIR")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SLOW_REQUEST_THRESHOLD_MS = float(os.environ.get("SLOW_REQUEST_THRESHOLD_MS", "1000"))

    SESSION_TOKEN_COOKIE = os.environ.get("SESSION_COOKIE_NAME", "backoffice_session")
    CSRF_COOKIE = "XSRF-TOKEN"

    # Attempts before a generated reference is reported as a conflict
    REFERENCE_MAX_ATTEMPTS = int(os.environ.get("REFERENCE_MAX_ATTEMPTS", "5"))
