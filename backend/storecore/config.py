# backend/storecore/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Relative sqlite paths resolve against the working directory
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///storecore.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # IGV applied to purchase orders that do not send one (percent, 0..100)
    DEFAULT_IGV_PERCENT = os.environ.get("DEFAULT_IGV_PERCENT", "18")

    # Attempts for lock/version conflicts on stock and session writes
    CONCURRENCY_RETRY_ATTEMPTS = int(os.environ.get("CONCURRENCY_RETRY_ATTEMPTS", "3"))
