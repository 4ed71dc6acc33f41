# backend/partsdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/partsdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///partsdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Product images; UPLOAD_FOLDER defaults to <instance>/uploads when unset
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER")
    IMAGE_URL_PREFIX = os.environ.get("IMAGE_URL_PREFIX", "/uploads")
    PLACEHOLDER_IMAGE_URL = os.environ.get("PLACEHOLDER_IMAGE_URL", "https://placehold.co/400x300")

    # Upload and backup import body limit
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", str(5 * 1024 * 1024)))

    # Dashboard presentation
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₺")
    TOP_N = int(os.environ.get("TOP_N", "5"))
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
