"""Database URL helpers for Alembic migrations.

Extracted so they can be tested without triggering alembic.context at import time.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlparse, urlunparse


def _to_sqlalchemy_url(url: str) -> str:
    """Rewrite postgres:// and postgresql:// URLs for the psycopg2 dialect."""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = "postgresql+psycopg2://" + url[len("postgresql://"):]
    return url


def _inject_password(url: str, password: str) -> str:
    """Fill in password when the URL has a user but no password."""
    parsed = urlparse(url)
    if parsed.password or not parsed.username:
        return url
    netloc = f"{quote_plus(parsed.username)}:{quote_plus(password)}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def _get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" not in url:
        raise RuntimeError("DATABASE_URL must be a URL (postgresql://...)")
    url = _to_sqlalchemy_url(url)
    db_password = os.environ.get("DB_PASSWORD", "")
    if db_password:
        url = _inject_password(url, db_password)
    return url
