from __future__ import annotations


def normalize_database_url(url: str) -> str:
    """Pick the async driver for plain postgres/sqlite URLs."""
    if url.startswith(("postgresql+psycopg://", "sqlite+aiosqlite://")):
        return url
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url
